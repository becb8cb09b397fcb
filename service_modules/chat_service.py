"""
Chat Service - one-to-one chats between admin, employees and their assigned users.
"""
from .base import (
    logging, datetime, timezone,
    get_db_session, UserORM, ChatORM, ChatMessageORM,
    ValidationError, AuthorizationError, NotFoundError, utcnow, to_iso
)
from .access_policy import Role, ROLE_RANK, CHAT_TOKEN_PREFIX, check_contact
from .message_store import MessageStore, message_fields
from .notification_service import get_notification_service
from sqlalchemy.exc import IntegrityError
from sockets import get_connection_manager
from typing import List, Optional
import random
import string

logger = logging.getLogger("fitfix")

ALLOWED_EMOJIS = ["❤️", "😂", "👍", "😢", "😡", "🙏"]
MESSAGE_LIMIT = 100
PREVIEW_LENGTH = 100
BASE36 = string.digits + string.ascii_lowercase


def generate_message_id(created_at: datetime) -> str:
    millis = int(created_at.replace(tzinfo=timezone.utc).timestamp() * 1000)
    suffix = "".join(random.choices(BASE36, k=9))
    return f"msg_{millis}_{suffix}"


def preview(content: str) -> str:
    if len(content) > PREVIEW_LENGTH:
        return content[:PREVIEW_LENGTH] + "..."
    return content


def message_to_wire(m) -> dict:
    return {
        "id": m.message_id,
        "chatId": m.chat_id,
        "senderId": m.sender_id,
        "senderRole": m.sender_role,
        "recipientId": m.recipient_id,
        "content": m.content,
        "type": m.type or "text",
        "read": bool(m.read),
        "readAt": to_iso(m.read_at),
        "reactions": m.reactions or {},
        "createdAt": to_iso(m.created_at),
    }


def chat_to_wire(chat: ChatORM) -> dict:
    last_message = None
    if chat.last_message_at is not None:
        last_message = {
            "content": chat.last_message_content,
            "senderId": chat.last_message_sender_id,
            "senderRole": chat.last_message_sender_role,
            "timestamp": to_iso(chat.last_message_at),
        }
    return {
        "chatId": chat.chat_id,
        "participants": chat.participants,
        "lastMessage": last_message,
        "unreadCount": dict(chat.unread_counts or {}),
        "lastActivity": to_iso(chat.last_activity),
        "createdAt": to_iso(chat.created_at),
        "updatedAt": to_iso(chat.updated_at),
    }


def profile_to_wire(user: Optional[UserORM], user_id: str) -> dict:
    if user is None:
        return {"id": user_id, "displayName": "Unknown", "email": None, "role": None, "photoUrl": None}
    return {
        "id": user.id,
        "displayName": user.display_name or user.email,
        "email": user.email,
        "role": user.role,
        "photoUrl": user.photo_url,
    }


class ChatService:
    """Service for chats, messages, read state and reactions."""

    def __init__(self, session_factory=None, notification_service=None, connections=None,
                 message_store: MessageStore = None, clock=None):
        self.session_factory = session_factory or get_db_session
        self._notification_service = notification_service
        self._connections = connections
        self.store = message_store or MessageStore(self.session_factory)
        self.clock = clock or utcnow

    @property
    def notification_service(self):
        return self._notification_service or get_notification_service()

    @property
    def connections(self):
        return self._connections or get_connection_manager()

    # --- CHAT IDS ---

    def _chat_id(self, db, user_a: str, user_b: str) -> str:
        users = {
            u.id: u for u in db.query(UserORM).filter(UserORM.id.in_([user_a, user_b])).all()
        }
        if user_a not in users or user_b not in users:
            return "_".join(sorted([user_a, user_b]))

        tokens = []
        for user_id in (user_a, user_b):
            role = Role.parse(users[user_id].role)
            tokens.append((ROLE_RANK[role], f"{CHAT_TOKEN_PREFIX[role]}_{user_id}"))
        tokens.sort()
        return "__".join(token for _, token in tokens)

    def derive_chat_id(self, user_a: str, user_b: str) -> str:
        """Deterministic id for the chat between two users, independent of argument order."""
        db = self.session_factory()
        try:
            return self._chat_id(db, user_a, user_b)
        finally:
            db.close()

    def _find_chat(self, db, chat_id: str) -> Optional[ChatORM]:
        return db.query(ChatORM).filter(ChatORM.chat_id == chat_id).first()

    def _load_chat_for(self, db, caller, chat_id: str) -> ChatORM:
        chat = self._find_chat(db, chat_id)
        if not chat:
            raise NotFoundError("Chat not found")
        if caller.id not in chat.participants:
            raise AuthorizationError("You are not a participant in this chat")
        return chat

    def _load_recipient(self, db, recipient_id: str) -> UserORM:
        recipient = db.query(UserORM).filter(UserORM.id == recipient_id).first()
        if not recipient:
            raise NotFoundError("Recipient not found")
        return recipient

    # --- SENDING ---

    def send_message(self, sender, recipient_id: str, content: str, message_type: str = "text") -> dict:
        """
        Store a message and update the chat summary.

        Eligibility is checked before anything is written. The in-app
        notification is best-effort; websocket push happens in push_message.
        """
        if not recipient_id:
            raise ValidationError("Recipient ID is required")
        if not content or not content.strip():
            raise ValidationError("Message content is required")

        db = self.session_factory()
        try:
            recipient = self._load_recipient(db, recipient_id)
            check_contact(sender, recipient)

            chat_id = self._chat_id(db, sender.id, recipient_id)

            for attempt in (1, 2):
                try:
                    message = self._write_message(db, sender, recipient_id, chat_id, content, message_type)
                    db.commit()
                    break
                except IntegrityError:
                    # Another request created the chat first; its row is visible now
                    db.rollback()
                    if attempt == 2:
                        raise
                    logger.info(f"Chat {chat_id} created concurrently, retrying send")
            fields = message_fields(message)
            logger.info(f"Message {message.message_id} sent from {sender.id} to {recipient_id}")
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        self.store.mirror_insert(fields)
        self._notify_recipient(sender, fields)

        return message_to_wire(ChatMessageORM(**fields))

    def _write_message(self, db, sender, recipient_id: str, chat_id: str, content: str,
                       message_type: str) -> ChatMessageORM:
        """Stage the message and the chat summary update. The caller commits."""
        now = self.clock()
        message = self.store.add(
            db,
            message_id=generate_message_id(now),
            chat_id=chat_id,
            sender_id=sender.id,
            sender_role=sender.role,
            recipient_id=recipient_id,
            content=content,
            type=message_type or "text",
            read=False,
            read_at=None,
            reactions={},
            created_at=now
        )

        chat = self._find_chat(db, chat_id)
        if chat is None:
            a, b = sorted([sender.id, recipient_id])
            chat = ChatORM(
                chat_id=chat_id,
                participant_a=a,
                participant_b=b,
                unread_counts={sender.id: 0, recipient_id: 1},
                created_at=now
            )
            db.add(chat)
        else:
            counts = dict(chat.unread_counts or {})
            counts[sender.id] = 0
            counts[recipient_id] = counts.get(recipient_id, 0) + 1
            chat.unread_counts = counts

        chat.last_message_content = content
        chat.last_message_sender_id = sender.id
        chat.last_message_sender_role = sender.role
        chat.last_message_at = now
        chat.last_activity = now
        chat.updated_at = now
        return message

    def _notify_recipient(self, sender, fields: dict):
        sender_name = getattr(sender, "display_name", None) or sender.email or "Someone"
        try:
            self.notification_service.create_notification(
                user_id=fields["recipient_id"],
                notification_type="chat_message",
                title=f"New message from {sender_name}",
                message=preview(fields["content"]),
                chat_id=fields["chat_id"],
                message_id=fields["message_id"],
                meta={"senderId": sender.id, "senderRole": sender.role}
            )
        except Exception as e:
            logger.warning(f"Notification for message {fields['message_id']} failed: {e}")

    async def push_message(self, message: dict) -> int:
        """Push a sent message to the recipient's open sockets. Best-effort."""
        if not self.connections.is_connected(message["recipientId"]):
            return 0
        try:
            return await self.connections.send_to_user(
                message["recipientId"], {"type": "new_message", "data": message}
            )
        except Exception as e:
            logger.warning(f"Push for message {message.get('id')} failed: {e}")
            return 0

    # --- CHATS ---

    def create_or_get_chat(self, caller, other_user_id: str) -> dict:
        if not other_user_id:
            raise ValidationError("Other user ID is required")

        db = self.session_factory()
        try:
            other = self._load_recipient(db, other_user_id)
            check_contact(caller, other)

            chat_id = self._chat_id(db, caller.id, other_user_id)
            chat = self._find_chat(db, chat_id)
            if chat is None:
                now = self.clock()
                a, b = sorted([caller.id, other_user_id])
                chat = ChatORM(
                    chat_id=chat_id,
                    participant_a=a,
                    participant_b=b,
                    unread_counts={caller.id: 0, other_user_id: 0},
                    last_activity=now,
                    created_at=now,
                    updated_at=now
                )
                db.add(chat)
                try:
                    db.commit()
                    db.refresh(chat)
                    logger.info(f"Created chat {chat_id}")
                except IntegrityError:
                    db.rollback()
                    chat = self._find_chat(db, chat_id)
                    if chat is None:
                        raise
                    logger.info(f"Chat {chat_id} created concurrently, using existing row")

            return chat_to_wire(chat)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def list_chats(self, caller) -> List[dict]:
        """Chats the caller takes part in, most recent activity first."""
        db = self.session_factory()
        try:
            chats = db.query(ChatORM).filter(
                (ChatORM.participant_a == caller.id) | (ChatORM.participant_b == caller.id)
            ).order_by(ChatORM.last_activity.desc()).all()

            other_ids = [c.participant_b if c.participant_a == caller.id else c.participant_a for c in chats]
            profiles = {
                u.id: u for u in db.query(UserORM).filter(UserORM.id.in_(other_ids)).all()
            } if other_ids else {}

            result = []
            for chat, other_id in zip(chats, other_ids):
                item = chat_to_wire(chat)
                item["otherParticipant"] = profile_to_wire(profiles.get(other_id), other_id)
                item["myUnreadCount"] = (chat.unread_counts or {}).get(caller.id, 0)
                result.append(item)
            return result
        finally:
            db.close()

    # --- READING ---

    def get_messages(self, caller, chat_id: str) -> List[dict]:
        """Oldest-first messages of a chat; also marks the caller's unread ones as read."""
        db = self.session_factory()
        try:
            chat = self._load_chat_for(db, caller, chat_id)
            messages = self.store.load_messages(db, chat_id, MESSAGE_LIMIT)
            result = [message_to_wire(m) for m in messages]

            try:
                self._mark_read(db, chat, caller.id)
            except Exception as e:
                db.rollback()
                logger.warning(f"Could not mark chat {chat_id} read for {caller.id}: {e}")

            return result
        finally:
            db.close()

    def _mark_read(self, db, chat: ChatORM, user_id: str) -> int:
        now = self.clock()
        unread = db.query(ChatMessageORM).filter(
            ChatMessageORM.chat_id == chat.chat_id,
            ChatMessageORM.recipient_id == user_id,
            ChatMessageORM.read == False  # noqa: E712
        ).all()

        for message in unread:
            message.read = True
            message.read_at = now

        counts = dict(chat.unread_counts or {})
        counts[user_id] = 0
        chat.unread_counts = counts
        db.commit()

        message_ids = [m.message_id for m in unread]
        self.store.mirror_update(message_ids, read=True, read_at=now)
        if message_ids:
            logger.info(f"Marked {len(message_ids)} message(s) read in chat {chat.chat_id} for {user_id}")
        return len(message_ids)

    def mark_messages_read(self, caller, chat_id: str) -> dict:
        db = self.session_factory()
        try:
            chat = self._load_chat_for(db, caller, chat_id)
            marked = self._mark_read(db, chat, caller.id)
            return {"chatId": chat_id, "markedCount": marked}
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def unread_count(self, caller) -> int:
        db = self.session_factory()
        try:
            chats = db.query(ChatORM).filter(
                (ChatORM.participant_a == caller.id) | (ChatORM.participant_b == caller.id)
            ).all()
            return sum((c.unread_counts or {}).get(caller.id, 0) for c in chats)
        finally:
            db.close()

    # --- REACTIONS ---

    def toggle_reaction(self, caller, chat_id: str, message_id: str, emoji: str) -> dict:
        """Add the caller to an emoji's reactors, or remove them if already there."""
        if emoji not in ALLOWED_EMOJIS:
            raise ValidationError("Invalid emoji")

        db = self.session_factory()
        try:
            self._load_chat_for(db, caller, chat_id)
            message = db.query(ChatMessageORM).filter(
                ChatMessageORM.message_id == message_id,
                ChatMessageORM.chat_id == chat_id
            ).first()
            if not message:
                raise NotFoundError("Message not found")

            reactions = {key: list(users) for key, users in (message.reactions or {}).items()}
            users = reactions.get(emoji, [])
            if caller.id in users:
                users.remove(caller.id)
            else:
                users.append(caller.id)

            if users:
                reactions[emoji] = users
            else:
                reactions.pop(emoji, None)

            message.reactions = reactions
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        self.store.mirror_update([message_id], reactions=reactions)
        return {"messageId": message_id, "reactions": reactions}


# Singleton instance
chat_service = ChatService()


def get_chat_service() -> ChatService:
    """Dependency injection helper."""
    return chat_service
