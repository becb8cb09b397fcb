"""
Notification Service - handles creating and managing in-app notifications.
"""
from .base import (
    logging, get_db_session, NotificationORM, NotFoundError, utcnow, to_iso
)
from typing import List, Optional

logger = logging.getLogger("fitfix")


def notification_to_wire(n: NotificationORM) -> dict:
    return {
        "id": n.id,
        "userId": n.user_id,
        "type": n.type,
        "title": n.title,
        "message": n.message,
        "chatId": n.chat_id,
        "messageId": n.message_id,
        "meta": n.meta or {},
        "seen": bool(n.seen),
        "createdAt": to_iso(n.created_at),
    }


class NotificationService:
    """Service for managing user notifications."""

    def __init__(self, session_factory=None):
        self.session_factory = session_factory or get_db_session

    def create_notification(
        self,
        user_id: str,
        notification_type: str,
        title: str,
        message: str,
        chat_id: Optional[str] = None,
        message_id: Optional[str] = None,
        meta: dict = None
    ) -> dict:
        """Create a notification for a user."""
        db = self.session_factory()
        try:
            notification = NotificationORM(
                user_id=user_id,
                type=notification_type,
                title=title,
                message=message,
                chat_id=chat_id,
                message_id=message_id,
                meta=meta or {},
                seen=False,
                created_at=utcnow()
            )
            db.add(notification)
            db.commit()
            db.refresh(notification)

            logger.info(f"Created notification for user {user_id}: {title}")
            return notification_to_wire(notification)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def get_user_notifications(self, user_id: str, unseen_only: bool = False, limit: int = 50) -> List[dict]:
        """Get notifications for a user, newest first."""
        db = self.session_factory()
        try:
            query = db.query(NotificationORM).filter(NotificationORM.user_id == user_id)
            if unseen_only:
                query = query.filter(NotificationORM.seen == False)  # noqa: E712

            notifications = query.order_by(NotificationORM.created_at.desc()).limit(limit).all()
            return [notification_to_wire(n) for n in notifications]
        finally:
            db.close()

    def mark_seen(self, notification_id: int, user_id: str) -> dict:
        db = self.session_factory()
        try:
            notification = db.query(NotificationORM).filter(
                NotificationORM.id == notification_id,
                NotificationORM.user_id == user_id
            ).first()

            if not notification:
                raise NotFoundError("Notification not found")

            notification.seen = True
            db.commit()
            return notification_to_wire(notification)
        finally:
            db.close()


# Singleton instance
notification_service = NotificationService()


def get_notification_service() -> NotificationService:
    """Dependency injection helper."""
    return notification_service
