"""
Base service utilities and shared imports.
All services should import from here for common functionality.
"""
import uuid
import json
import logging
from datetime import date, datetime, timedelta, timezone

from database import get_db_session
from errors import (
    AppError, ValidationError, AuthenticationError, AuthorizationError,
    NotFoundError, ConflictError, DependencyError, InternalError
)
from models_orm import (
    UserORM, SubscriptionORM, PaymentORM, EmployeePaymentORM, EmployeeRequestORM,
    ChatORM, ChatMessageORM, MessageBackupORM, NotificationORM,
    utcnow
)

# Re-export for convenience
__all__ = [
    'uuid', 'json', 'logging', 'date', 'datetime', 'timedelta', 'timezone',
    'get_db_session',
    'AppError', 'ValidationError', 'AuthenticationError', 'AuthorizationError',
    'NotFoundError', 'ConflictError', 'DependencyError', 'InternalError',
    'UserORM', 'SubscriptionORM', 'PaymentORM', 'EmployeePaymentORM', 'EmployeeRequestORM',
    'ChatORM', 'ChatMessageORM', 'MessageBackupORM', 'NotificationORM',
    'utcnow', 'to_iso',
]

logger = logging.getLogger("fitfix")


def to_iso(value):
    """Serialize a stored naive-UTC datetime for the wire."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat().replace("+00:00", "Z")
