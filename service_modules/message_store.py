"""
Message Store - primary chat_messages table with a best-effort message_backups mirror.
"""
from .base import logging, get_db_session, ChatMessageORM, MessageBackupORM
from sqlalchemy.exc import SQLAlchemyError
from typing import Iterable, List

logger = logging.getLogger("fitfix")

MESSAGE_FIELDS = (
    "message_id", "chat_id", "sender_id", "sender_role", "recipient_id",
    "content", "type", "read", "read_at", "reactions", "created_at",
)


def message_fields(message) -> dict:
    return {field: getattr(message, field) for field in MESSAGE_FIELDS}


class MessageStore:
    """
    Reads go to the primary table and fall back to the mirror when the primary
    query fails. Mirror writes run in their own session after the primary
    commit, so a mirror failure never undoes a delivered message.
    """

    def __init__(self, session_factory=None):
        self.session_factory = session_factory or get_db_session

    # --- PRIMARY ---

    def add(self, db, **fields) -> ChatMessageORM:
        message = ChatMessageORM(**fields)
        db.add(message)
        return message

    def primary_messages(self, db, chat_id: str, limit: int) -> List[ChatMessageORM]:
        return db.query(ChatMessageORM).filter(
            ChatMessageORM.chat_id == chat_id
        ).order_by(ChatMessageORM.created_at.asc()).limit(limit).all()

    def load_messages(self, db, chat_id: str, limit: int = 100) -> list:
        """Oldest-first messages of a chat, from the mirror if the primary read fails."""
        try:
            return self.primary_messages(db, chat_id, limit)
        except SQLAlchemyError as e:
            logger.warning(f"Primary message read failed for chat {chat_id}, using backup: {e}")
            db.rollback()
            return self.backup_messages(chat_id, limit)

    def backup_messages(self, chat_id: str, limit: int = 100) -> List[MessageBackupORM]:
        db = self.session_factory()
        try:
            return db.query(MessageBackupORM).filter(
                MessageBackupORM.chat_id == chat_id
            ).order_by(MessageBackupORM.created_at.asc()).limit(limit).all()
        finally:
            db.close()

    # --- MIRROR ---

    def mirror_insert(self, fields: dict) -> bool:
        db = self.session_factory()
        try:
            db.merge(MessageBackupORM(**fields))
            db.commit()
            return True
        except Exception as e:
            db.rollback()
            logger.warning(f"Backup write failed for message {fields.get('message_id')}: {e}")
            return False
        finally:
            db.close()

    def mirror_update(self, message_ids: Iterable[str], **changes) -> bool:
        message_ids = list(message_ids)
        if not message_ids:
            return True

        db = self.session_factory()
        try:
            db.query(MessageBackupORM).filter(
                MessageBackupORM.message_id.in_(message_ids)
            ).update(changes, synchronize_session=False)
            db.commit()
            return True
        except Exception as e:
            db.rollback()
            logger.warning(f"Backup update failed for {len(message_ids)} message(s): {e}")
            return False
        finally:
            db.close()

