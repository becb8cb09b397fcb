"""
Employee Request Service - public coach signups and their admin approval.
"""
from .base import (
    uuid, logging,
    get_db_session, UserORM, EmployeeRequestORM, PaymentORM,
    ValidationError, NotFoundError, ConflictError, DependencyError, utcnow, to_iso
)
from .plans import get_plan
from .subscription_service import SubscriptionService, get_subscription_service, subscription_to_wire, payment_to_wire
from .employee_payment_service import stage_employee_payment, employee_payment_to_wire
from .email_service import get_email_service
from auth import get_identity_provider
from typing import List
import secrets
import string

logger = logging.getLogger("fitfix")

REQUIRED_FIELDS = ("full_name", "email", "phone", "address", "country", "city", "gender", "date_of_birth")
TEMP_PASSWORD_ALPHABET = string.ascii_letters + string.digits


def generate_temp_password(length: int = 12) -> str:
    return "".join(secrets.choice(TEMP_PASSWORD_ALPHABET) for _ in range(length)) + "!@#"


def request_to_wire(r: EmployeeRequestORM) -> dict:
    return {
        "id": r.id,
        "fullName": r.full_name,
        "email": r.email,
        "phone": r.phone,
        "address": r.address,
        "country": r.country,
        "city": r.city,
        "gender": r.gender,
        "dateOfBirth": r.date_of_birth,
        "notes": r.notes,
        "selectedPlan": r.selected_plan,
        "selectedPlanLabel": r.selected_plan_label,
        "amount": r.amount,
        "status": r.status,
        "approvedBy": r.approved_by,
        "approvedAt": to_iso(r.approved_at),
        "rejectedBy": r.rejected_by,
        "rejectedAt": to_iso(r.rejected_at),
        "rejectionReason": r.rejection_reason,
        "createdEmployeeId": r.created_employee_id,
        "createdAt": to_iso(r.created_at),
        "updatedAt": to_iso(r.updated_at),
    }


class EmployeeRequestService:
    """Service for employee signup requests."""

    def __init__(self, session_factory=None, identity=None, subscription_service: SubscriptionService = None,
                 email_service=None):
        self.session_factory = session_factory or get_db_session
        self._identity = identity
        self._subscription_service = subscription_service
        self._email_service = email_service

    @property
    def identity(self):
        return self._identity or get_identity_provider()

    @property
    def subscription_service(self) -> SubscriptionService:
        return self._subscription_service or get_subscription_service()

    @property
    def email_service(self):
        return self._email_service or get_email_service()

    def _employee_exists(self, db, email: str) -> bool:
        return db.query(UserORM).filter(
            UserORM.email == email,
            UserORM.role == "employee"
        ).first() is not None

    def create_request(self, body) -> dict:
        """Record a pending signup request."""
        missing = [field for field in REQUIRED_FIELDS if not getattr(body, field, None)]
        if missing:
            raise ValidationError("All required fields must be provided.")

        plan = get_plan(body.selected_plan)
        if plan is None:
            raise ValidationError("Invalid subscription plan.")

        email = body.email.strip().lower()

        db = self.session_factory()
        try:
            existing = db.query(EmployeeRequestORM).filter(
                EmployeeRequestORM.email == email,
                EmployeeRequestORM.status.in_(["pending", "approved"])
            ).first()
            if existing:
                raise ConflictError("A request with this email already exists.")
            if self._employee_exists(db, email):
                raise ConflictError("An employee with this email already exists.")

            now = utcnow()
            request = EmployeeRequestORM(
                id=str(uuid.uuid4()),
                full_name=body.full_name,
                email=email,
                phone=body.phone,
                address=body.address,
                country=body.country,
                city=body.city,
                gender=body.gender,
                date_of_birth=body.date_of_birth,
                notes=body.notes or None,
                selected_plan=plan.key,
                selected_plan_label=plan.label,
                amount=body.amount or plan.amount,
                status="pending",
                created_at=now,
                updated_at=now
            )
            db.add(request)
            db.commit()
            db.refresh(request)

            logger.info(f"Employee request {request.id} submitted for {email}")
            return request_to_wire(request)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def list_requests(self) -> List[dict]:
        db = self.session_factory()
        try:
            requests = db.query(EmployeeRequestORM).order_by(EmployeeRequestORM.created_at.desc()).all()
            return [request_to_wire(r) for r in requests]
        finally:
            db.close()

    def approve_request(self, admin, request_id: str) -> dict:
        """
        Approve a pending request: create the employee account, record the
        signup payment, receipt and subscription, then email the credentials.

        The account is removed again if the records cannot be written.
        """
        db = self.session_factory()
        try:
            request = db.query(EmployeeRequestORM).filter(EmployeeRequestORM.id == request_id).first()
            if not request:
                raise NotFoundError("Request not found")
            if request.status != "pending":
                raise ConflictError(f"Request is already {request.status}")
            if self._employee_exists(db, request.email):
                raise ConflictError("Employee with this email already exists")

            plan = get_plan(request.selected_plan)
            if plan is None:
                raise ValidationError("Invalid subscription plan.")

            temp_password = generate_temp_password()
            employee_id = self.identity.create_account(
                request.email, temp_password,
                display_name=request.full_name,
                role="employee",
                phone=request.phone,
                created_by=admin.id
            )

            try:
                now = utcnow()
                amount = request.amount or plan.amount
                signup_payment = stage_employee_payment(
                    db, request.full_name, request.email, plan, amount,
                    phone_number=request.phone,
                    address=request.address,
                    country=request.country,
                    city=request.city,
                    gender=request.gender,
                    date_of_birth=request.date_of_birth,
                    notes=request.notes,
                    account_created=True,
                    created_employee_id=employee_id,
                    employee_request_id=request.id
                )
                subscription = self.subscription_service.create_subscription(
                    db, request.email, request.full_name, plan,
                    employee_id=employee_id,
                    amount=amount,
                    employee_request_id=request.id,
                    employee_payment_id=signup_payment.id
                )
                payment = PaymentORM(
                    id=str(uuid.uuid4()),
                    employee_id=employee_id,
                    employee_name=request.full_name,
                    employee_email=request.email,
                    subscription_id=subscription.id,
                    plan_label=plan.label,
                    amount=amount,
                    renewed=False,
                    status="completed",
                    created_at=now,
                    updated_at=now
                )
                db.add(payment)

                request.status = "approved"
                request.approved_by = admin.id
                request.approved_at = now
                request.created_employee_id = employee_id
                request.updated_at = now

                db.commit()
            except Exception:
                db.rollback()
                logger.error(f"Approval of request {request_id} failed, removing account {employee_id}")
                self.identity.delete_account(employee_id)
                raise

            logger.info(f"Approved employee request {request_id}, created employee {employee_id}")

            email_sent = True
            try:
                self.email_service.send_employee_credentials(
                    request.email, request.full_name, temp_password,
                    plan_label=plan.label, amount=amount
                )
            except DependencyError as e:
                email_sent = False
                logger.warning(f"Credentials email for {request.email} not sent: {e}")

            return {
                "request": request_to_wire(request),
                "employeeId": employee_id,
                "subscription": subscription_to_wire(subscription),
                "payment": payment_to_wire(payment),
                "employeePayment": employee_payment_to_wire(signup_payment),
                "emailSent": email_sent,
            }
        finally:
            db.close()

    def reject_request(self, admin, request_id: str, reason: str = None) -> dict:
        db = self.session_factory()
        try:
            request = db.query(EmployeeRequestORM).filter(EmployeeRequestORM.id == request_id).first()
            if not request:
                raise NotFoundError("Request not found")
            if request.status != "pending":
                raise ConflictError(f"Request is already {request.status}")

            now = utcnow()
            request.status = "rejected"
            request.rejected_by = admin.id
            request.rejected_at = now
            request.rejection_reason = reason or None
            request.updated_at = now
            db.commit()
            db.refresh(request)

            logger.info(f"Rejected employee request {request_id}")
            return request_to_wire(request)
        finally:
            db.close()


# Singleton instance
employee_request_service = EmployeeRequestService()


def get_employee_request_service() -> EmployeeRequestService:
    """Dependency injection helper."""
    return employee_request_service
