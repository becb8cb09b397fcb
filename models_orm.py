from sqlalchemy import Column, Integer, String, Boolean, Float, ForeignKey, Text, DateTime, JSON
from database import Base
from datetime import datetime, timezone


def utcnow() -> datetime:
    """Naive UTC now; every DateTime column stores naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# --- CORE MODELS ---

class UserORM(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True, index=True)
    email = Column(String, unique=True, index=True)
    hashed_password = Column(String)
    display_name = Column(String, nullable=True)
    role = Column(String, index=True)  # admin, employee, user
    is_active = Column(Boolean, default=True, index=True)
    subscription_expired = Column(Boolean, default=False)
    subscription_expired_at = Column(DateTime, nullable=True)

    # For users: the employee (coach) who manages them
    assigned_employee_id = Column(String, ForeignKey("users.id"), index=True, nullable=True)
    created_by = Column(String, nullable=True)

    phone = Column(String, nullable=True)
    photo_url = Column(String, nullable=True)
    last_login = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


# --- SUBSCRIPTIONS & PAYMENTS ---

class SubscriptionORM(Base):
    """One paid coverage period for an employee account."""
    __tablename__ = "subscriptions"

    id = Column(String, primary_key=True, index=True)

    # employee_id is linked lazily; email is known from signup onwards
    employee_id = Column(String, index=True, nullable=True)
    employee_email = Column(String, index=True)
    employee_name = Column(String, nullable=True)

    plan_key = Column(String, nullable=True)
    plan_label = Column(String)
    amount = Column(Float, default=0)

    payment_date = Column(DateTime, nullable=True)
    start_date = Column(DateTime, nullable=True)
    expiration_date = Column(DateTime, nullable=True)

    status = Column(String, default="active", index=True)  # active, expired
    is_active = Column(Boolean, default=True, index=True)

    # One-way flags, cleared only by a renewal
    reminder_sent = Column(Boolean, default=False)
    reminder_sent_at = Column(DateTime, nullable=True)
    expiration_email_sent = Column(Boolean, default=False)
    expired_at = Column(DateTime, nullable=True)

    employee_request_id = Column(String, nullable=True)
    employee_payment_id = Column(String, nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class PaymentORM(Base):
    """Immutable receipt for an initial payment or a renewal."""
    __tablename__ = "payments"

    id = Column(String, primary_key=True, index=True)
    employee_id = Column(String, index=True, nullable=True)
    employee_name = Column(String, nullable=True)
    employee_email = Column(String, nullable=True)
    subscription_id = Column(String, ForeignKey("subscriptions.id"), index=True, nullable=True)

    plan_label = Column(String)
    amount = Column(Float, default=0)
    renewed = Column(Boolean, default=False)
    status = Column(String, default="completed", index=True)

    created_at = Column(DateTime, default=utcnow, index=True)
    updated_at = Column(DateTime, default=utcnow)


class EmployeePaymentORM(Base):
    """Signup payment for a coach account, submitted directly or created by a request approval."""
    __tablename__ = "employee_payments"

    id = Column(String, primary_key=True, index=True)
    name = Column(String)
    email = Column(String, index=True)
    phone_number = Column(String, nullable=True)
    address = Column(String, nullable=True)
    country = Column(String, nullable=True)
    city = Column(String, nullable=True)
    gender = Column(String, nullable=True)
    date_of_birth = Column(String, nullable=True)
    notes = Column(Text, nullable=True)

    selected_plan = Column(String)  # plan label
    selected_plan_key = Column(String)
    amount = Column(Float, default=0)
    paid = Column(Boolean, default=True)

    account_created = Column(Boolean, default=False)
    created_employee_id = Column(String, index=True, nullable=True)
    employee_request_id = Column(String, nullable=True)

    created_at = Column(DateTime, default=utcnow, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class EmployeeRequestORM(Base):
    """Public signup request for a coach account, approved or rejected by an admin."""
    __tablename__ = "employee_requests"

    id = Column(String, primary_key=True, index=True)
    full_name = Column(String)
    email = Column(String, index=True)
    phone = Column(String)
    address = Column(String)
    country = Column(String)
    city = Column(String)
    gender = Column(String)
    date_of_birth = Column(String)  # Format: YYYY-MM-DD
    notes = Column(Text, nullable=True)

    selected_plan = Column(String)
    selected_plan_label = Column(String)
    amount = Column(Float)

    status = Column(String, default="pending", index=True)  # pending, approved, rejected
    approved_by = Column(String, nullable=True)
    approved_at = Column(DateTime, nullable=True)
    rejected_by = Column(String, nullable=True)
    rejected_at = Column(DateTime, nullable=True)
    rejection_reason = Column(String, nullable=True)
    created_employee_id = Column(String, nullable=True)

    created_at = Column(DateTime, default=utcnow, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


# --- CHAT ---

class ChatORM(Base):
    """Conversation between exactly two participants, keyed by the derived chat id."""
    __tablename__ = "chats"

    chat_id = Column(String, primary_key=True, index=True)

    # Id-sorted participant pair
    participant_a = Column(String, ForeignKey("users.id"), index=True)
    participant_b = Column(String, ForeignKey("users.id"), index=True)

    last_message_content = Column(Text, nullable=True)
    last_message_sender_id = Column(String, nullable=True)
    last_message_sender_role = Column(String, nullable=True)
    last_message_at = Column(DateTime, nullable=True)

    # {participant_id: unread count}
    unread_counts = Column(JSON, default=dict)

    last_activity = Column(DateTime, default=utcnow, index=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    @property
    def participants(self):
        return [self.participant_a, self.participant_b]


class ChatMessageORM(Base):
    """Primary copy of a message, owned by its chat."""
    __tablename__ = "chat_messages"

    message_id = Column(String, primary_key=True, index=True)
    chat_id = Column(String, ForeignKey("chats.chat_id"), index=True)

    sender_id = Column(String, index=True)
    sender_role = Column(String)
    recipient_id = Column(String, index=True)

    content = Column(Text)
    type = Column(String, default="text")

    read = Column(Boolean, default=False)
    read_at = Column(DateTime, nullable=True)

    # {emoji: [user ids]}
    reactions = Column(JSON, default=dict)

    created_at = Column(DateTime, default=utcnow, index=True)


class MessageBackupORM(Base):
    """Flat mirror of chat_messages, queried by chat id when the primary read fails."""
    __tablename__ = "message_backups"

    message_id = Column(String, primary_key=True, index=True)
    chat_id = Column(String, index=True)

    sender_id = Column(String, index=True)
    sender_role = Column(String)
    recipient_id = Column(String, index=True)

    content = Column(Text)
    type = Column(String, default="text")

    read = Column(Boolean, default=False)
    read_at = Column(DateTime, nullable=True)
    reactions = Column(JSON, default=dict)

    created_at = Column(DateTime, default=utcnow, index=True)


class NotificationORM(Base):
    """In-app notifications for admins, employees and users."""
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, ForeignKey("users.id"), index=True)  # Who receives the notification
    type = Column(String, index=True)  # message, subscription, ...
    title = Column(String)
    message = Column(String)
    chat_id = Column(String, nullable=True)
    message_id = Column(String, nullable=True)
    meta = Column(JSON, nullable=True)
    seen = Column(Boolean, default=False, index=True)
    created_at = Column(DateTime, default=utcnow)
