"""
Employee Payment Service - coach signup payments recorded at checkout.

A submitted payment opens a subscription keyed by email. The employee
account is created later, and the subscription is linked to it on the
first renewal or lookup.
"""
from .base import (
    uuid, logging,
    get_db_session, SubscriptionORM, PaymentORM, EmployeePaymentORM,
    ValidationError, NotFoundError, DependencyError, utcnow, to_iso
)
from .plans import get_plan
from .subscription_service import SubscriptionService, get_subscription_service, subscription_to_wire
from .email_service import get_email_service
from typing import List

logger = logging.getLogger("fitfix")

REQUIRED_FIELDS = ("full_name", "email", "phone_number", "address", "country", "city", "gender", "date_of_birth")


def employee_payment_to_wire(p: EmployeePaymentORM) -> dict:
    return {
        "id": p.id,
        "name": p.name,
        "email": p.email,
        "phoneNumber": p.phone_number,
        "address": p.address,
        "country": p.country,
        "city": p.city,
        "gender": p.gender,
        "dateOfBirth": p.date_of_birth,
        "notes": p.notes,
        "selectedPlan": p.selected_plan,
        "selectedPlanKey": p.selected_plan_key,
        "amount": p.amount,
        "paid": p.paid,
        "accountCreated": p.account_created,
        "createdEmployeeId": p.created_employee_id,
        "employeeRequestId": p.employee_request_id,
        "createdAt": to_iso(p.created_at),
    }


def stage_employee_payment(db, name: str, email: str, plan, amount: float = None, **details) -> EmployeePaymentORM:
    """Add a payment row to the caller's session. The caller commits."""
    now = utcnow()
    payment = EmployeePaymentORM(
        id=str(uuid.uuid4()),
        name=name,
        email=email.strip().lower(),
        selected_plan=plan.label,
        selected_plan_key=plan.key,
        amount=plan.amount if amount is None else amount,
        paid=True,
        created_at=now,
        updated_at=now,
        **details
    )
    db.add(payment)
    return payment


class EmployeePaymentService:
    """Service for coach signup payments."""

    def __init__(self, session_factory=None, subscription_service: SubscriptionService = None, email_service=None):
        self.session_factory = session_factory or get_db_session
        self._subscription_service = subscription_service
        self._email_service = email_service

    @property
    def subscription_service(self) -> SubscriptionService:
        return self._subscription_service or get_subscription_service()

    @property
    def email_service(self):
        return self._email_service or get_email_service()

    def submit_payment(self, body) -> dict:
        """Record a paid signup and open its first subscription."""
        missing = [field for field in REQUIRED_FIELDS if not getattr(body, field, None)]
        if missing:
            raise ValidationError("All required fields must be provided.")

        plan = get_plan(body.selected_plan)
        if plan is None:
            raise ValidationError("Invalid subscription plan.")

        db = self.session_factory()
        try:
            payment = stage_employee_payment(
                db, body.full_name, body.email, plan,
                phone_number=body.phone_number,
                address=body.address,
                country=body.country,
                city=body.city,
                gender=body.gender,
                date_of_birth=body.date_of_birth,
                notes=body.notes or None,
                account_created=False
            )
            subscription = self.subscription_service.create_subscription(
                db, payment.email, payment.name, plan,
                amount=payment.amount,
                employee_payment_id=payment.id
            )
            db.commit()
            db.refresh(payment)
            db.refresh(subscription)

            logger.info(f"Employee payment {payment.id} recorded for {payment.email} ({plan.key})")

            email_sent = True
            try:
                self.email_service.send_subscription_confirmation(
                    payment.email, payment.name, plan.label, payment.amount, subscription.expiration_date
                )
            except DependencyError as e:
                email_sent = False
                logger.warning(f"Confirmation email for {payment.email} not sent: {e}")

            return {
                "payment": employee_payment_to_wire(payment),
                "subscription": subscription_to_wire(subscription),
                "emailSent": email_sent,
            }
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def list_payments(self) -> List[dict]:
        db = self.session_factory()
        try:
            payments = db.query(EmployeePaymentORM).order_by(EmployeePaymentORM.created_at.desc()).all()
            return [employee_payment_to_wire(p) for p in payments]
        finally:
            db.close()

    def delete_payment(self, payment_id: str) -> dict:
        """Delete a payment together with the subscriptions it opened."""
        db = self.session_factory()
        try:
            payment = db.query(EmployeePaymentORM).filter(EmployeePaymentORM.id == payment_id).first()
            if not payment:
                raise NotFoundError("Payment not found")

            subscription_ids = [row.id for row in db.query(SubscriptionORM.id).filter(
                SubscriptionORM.employee_payment_id == payment_id
            )]
            if subscription_ids:
                # Renewal receipts outlive the subscriptions they paid for
                db.query(PaymentORM).filter(PaymentORM.subscription_id.in_(subscription_ids)).update(
                    {PaymentORM.subscription_id: None}, synchronize_session=False
                )
                db.query(SubscriptionORM).filter(SubscriptionORM.id.in_(subscription_ids)).delete(
                    synchronize_session=False
                )
            db.delete(payment)
            db.commit()

            logger.info(f"Deleted employee payment {payment_id} and {len(subscription_ids)} subscription(s)")
            return {"paymentId": payment_id, "subscriptionsDeleted": len(subscription_ids)}
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()


# Singleton instance
employee_payment_service = EmployeePaymentService()


def get_employee_payment_service() -> EmployeePaymentService:
    """Dependency injection helper."""
    return employee_payment_service
