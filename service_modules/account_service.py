"""
Account Service - coaches provisioning their users, and admin removal of coaches.
"""
from sqlalchemy import or_
from .base import (
    logging,
    get_db_session, UserORM, SubscriptionORM, PaymentORM, EmployeePaymentORM,
    ChatORM, ChatMessageORM, MessageBackupORM, NotificationORM,
    ValidationError, AuthorizationError, NotFoundError, DependencyError, to_iso
)
from .employee_request_service import generate_temp_password
from .email_service import get_email_service
from auth import get_identity_provider
from typing import List

logger = logging.getLogger("fitfix")


def user_to_wire(user: UserORM) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "displayName": user.display_name,
        "phoneNumber": user.phone,
        "role": user.role,
        "isActive": bool(user.is_active),
        "assignedEmployeeId": user.assigned_employee_id,
        "createdBy": user.created_by,
        "createdAt": to_iso(user.created_at),
    }


class AccountService:
    """Service for user provisioning and employee deletion."""

    def __init__(self, session_factory=None, identity=None, email_service=None):
        self.session_factory = session_factory or get_db_session
        self._identity = identity
        self._email_service = email_service

    @property
    def identity(self):
        return self._identity or get_identity_provider()

    @property
    def email_service(self):
        return self._email_service or get_email_service()

    def _resolve_coach(self, db, caller, requested_id: str) -> UserORM:
        """Employees own the users they create; admins must name the coach."""
        if caller.role == "employee":
            coach_id = caller.id
        elif caller.role == "admin":
            if not requested_id:
                raise ValidationError("assignedEmployeeId is required")
            coach_id = requested_id
        else:
            raise AuthorizationError("Forbidden: Employee or Admin access required")

        coach = db.query(UserORM).filter(UserORM.id == coach_id).first()
        if coach is None or coach.role != "employee":
            raise ValidationError("assignedEmployeeId must reference an employee")
        return coach

    def create_user(self, caller, body) -> dict:
        """
        Create a user account assigned to a coach, with a temporary password.

        The welcome email is best-effort; the temporary password is also
        returned so the coach can hand it over directly.
        """
        email = (body.email or "").strip().lower()
        if not email:
            raise ValidationError("Email is required")

        db = self.session_factory()
        try:
            coach = self._resolve_coach(db, caller, body.assigned_employee_id)
            coach_id = coach.id
            coach_name = coach.display_name or "Your Trainer"
        finally:
            db.close()

        display_name = body.display_name or email.split("@")[0]
        temp_password = generate_temp_password()
        user_id = self.identity.create_account(
            email, temp_password,
            display_name=display_name,
            role="user",
            phone=body.phone_number,
            assigned_employee_id=coach_id,
            created_by=caller.id
        )
        logger.info(f"User {user_id} created by {caller.id} and assigned to {coach_id}")

        email_sent = True
        try:
            self.email_service.send_user_welcome(email, display_name, temp_password, coach_name=coach_name)
        except DependencyError as e:
            email_sent = False
            logger.warning(f"Welcome email for {email} not sent: {e}")

        db = self.session_factory()
        try:
            user = db.query(UserORM).filter(UserORM.id == user_id).one()
            return {**user_to_wire(user), "tempPassword": temp_password, "emailSent": email_sent}
        finally:
            db.close()

    def list_assigned_users(self, caller) -> List[dict]:
        """The caller's own users, or every user for an admin."""
        db = self.session_factory()
        try:
            query = db.query(UserORM).filter(UserORM.role == "user")
            if caller.role != "admin":
                query = query.filter(UserORM.assigned_employee_id == caller.id)
            users = query.order_by(UserORM.created_at.desc()).all()
            return [user_to_wire(u) for u in users]
        finally:
            db.close()

    def delete_employee(self, admin, employee_id: str) -> dict:
        """
        Remove an employee account with its signup payments, subscriptions
        and chats. Assigned users are kept and left without a coach.
        Payment receipts are kept for the revenue history.
        """
        db = self.session_factory()
        try:
            employee = db.query(UserORM).filter(UserORM.id == employee_id).first()
            if not employee:
                raise NotFoundError("Employee not found")
            if employee.role != "employee":
                raise ValidationError("User is not an employee")

            email = (employee.email or "").lower()

            subscription_ids = [row.id for row in db.query(SubscriptionORM.id).filter(
                or_(SubscriptionORM.employee_id == employee_id, SubscriptionORM.employee_email == email)
            )]
            if subscription_ids:
                db.query(PaymentORM).filter(PaymentORM.subscription_id.in_(subscription_ids)).update(
                    {PaymentORM.subscription_id: None}, synchronize_session=False
                )
                db.query(SubscriptionORM).filter(SubscriptionORM.id.in_(subscription_ids)).delete(
                    synchronize_session=False
                )

            payments_deleted = db.query(EmployeePaymentORM).filter(
                or_(EmployeePaymentORM.email == email, EmployeePaymentORM.created_employee_id == employee_id)
            ).delete(synchronize_session=False)

            users_unassigned = db.query(UserORM).filter(UserORM.assigned_employee_id == employee_id).update(
                {UserORM.assigned_employee_id: None}, synchronize_session=False
            )

            chat_ids = [row.chat_id for row in db.query(ChatORM.chat_id).filter(
                or_(ChatORM.participant_a == employee_id, ChatORM.participant_b == employee_id)
            )]
            if chat_ids:
                db.query(ChatMessageORM).filter(ChatMessageORM.chat_id.in_(chat_ids)).delete(synchronize_session=False)
                db.query(MessageBackupORM).filter(MessageBackupORM.chat_id.in_(chat_ids)).delete(synchronize_session=False)
                db.query(NotificationORM).filter(NotificationORM.chat_id.in_(chat_ids)).delete(synchronize_session=False)
                db.query(ChatORM).filter(ChatORM.chat_id.in_(chat_ids)).delete(synchronize_session=False)

            db.query(NotificationORM).filter(NotificationORM.user_id == employee_id).delete(synchronize_session=False)
            db.delete(employee)
            db.commit()

            logger.info(
                f"Admin {admin.id} deleted employee {employee_id}: {len(subscription_ids)} subscription(s), "
                f"{payments_deleted} payment(s), {len(chat_ids)} chat(s), {users_unassigned} user(s) unassigned"
            )
            return {
                "employeeId": employee_id,
                "subscriptionsDeleted": len(subscription_ids),
                "employeePaymentsDeleted": payments_deleted,
                "chatsDeleted": len(chat_ids),
                "usersUnassigned": users_unassigned,
            }
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()


# Singleton instance
account_service = AccountService()


def get_account_service() -> AccountService:
    """Dependency injection helper."""
    return account_service
