"""
Subscription Service - employee subscriptions, renewals, receipts and the expiration scan.
"""
from .base import (
    uuid, logging, datetime, timedelta, timezone,
    get_db_session, UserORM, SubscriptionORM, PaymentORM,
    ValidationError, NotFoundError, utcnow, to_iso
)
from .access_policy import check_subscription_access
from .email_service import get_email_service
from .plans import Plan, get_plan, plan_choices, list_plans
from config import get_settings
from zoneinfo import ZoneInfo
from typing import Optional

logger = logging.getLogger("fitfix")

STATUS_ACTIVE = "active"
STATUS_EXPIRED = "expired"


def subscription_to_wire(sub: SubscriptionORM) -> dict:
    return {
        "id": sub.id,
        "employeeId": sub.employee_id,
        "employeeEmail": sub.employee_email,
        "employeeName": sub.employee_name,
        "planType": sub.plan_key,
        "planLabel": sub.plan_label,
        "amount": sub.amount,
        "paymentDate": to_iso(sub.payment_date),
        "startDate": to_iso(sub.start_date),
        "expirationDate": to_iso(sub.expiration_date),
        "status": sub.status,
        "isActive": bool(sub.is_active),
        "reminderSent": bool(sub.reminder_sent),
        "expirationEmailSent": bool(sub.expiration_email_sent),
        "employeeRequestId": sub.employee_request_id,
        "employeePaymentId": sub.employee_payment_id,
        "createdAt": to_iso(sub.created_at),
        "updatedAt": to_iso(sub.updated_at),
    }


def payment_to_wire(payment: PaymentORM) -> dict:
    return {
        "id": payment.id,
        "employeeId": payment.employee_id,
        "employeeName": payment.employee_name or "Unknown",
        "employeeEmail": payment.employee_email or "N/A",
        "subscriptionId": payment.subscription_id,
        "planLabel": payment.plan_label or "N/A",
        "amount": payment.amount or 0,
        "renewed": bool(payment.renewed),
        "status": payment.status or "completed",
        "createdAt": to_iso(payment.created_at),
        "updatedAt": to_iso(payment.updated_at),
    }


def renewal_expiration(sub: SubscriptionORM, plan: Plan, now: datetime) -> datetime:
    """
    New expiration for a renewal. A live subscription is extended from
    max(current expiration, now); a lapsed one restarts from now.
    """
    if sub.status == STATUS_ACTIVE and sub.is_active:
        current = sub.expiration_date or now
        base = current if current > now else now
    else:
        base = now
    return base + timedelta(days=plan.days)


def local_date(instant: datetime, tz: ZoneInfo):
    """Calendar date of a naive-UTC instant in the given timezone."""
    return instant.replace(tzinfo=timezone.utc).astimezone(tz).date()


def days_until_expiration(expiration: datetime, now: datetime, tz: ZoneInfo) -> int:
    # Comparing calendar dates keeps DST changes from shifting the count
    return (local_date(expiration, tz) - local_date(now, tz)).days


class SubscriptionService:
    """Service for employee subscriptions and their lifecycle."""

    def __init__(self, session_factory=None, email_service=None, clock=None, timezone_name: str = None):
        self.session_factory = session_factory or get_db_session
        self._email_service = email_service
        self.clock = clock or utcnow
        self.timezone_name = timezone_name

    @property
    def email_service(self):
        return self._email_service or get_email_service()

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone_name or get_settings().scheduler_timezone)

    # --- LOOKUP ---

    def _find_subscription(self, db, employee_id: str, employee_email: Optional[str]):
        """Find by employee id first, then fall back to the (lower-cased) email."""
        subscription = db.query(SubscriptionORM).filter(
            SubscriptionORM.employee_id == employee_id
        ).first()

        if subscription is None and employee_email:
            subscription = db.query(SubscriptionORM).filter(
                SubscriptionORM.employee_email == employee_email.strip().lower()
            ).first()
        return subscription

    def _lookup_email(self, employee: Optional[UserORM], caller, employee_id: str) -> Optional[str]:
        if employee is not None and employee.email:
            return employee.email.lower()
        if caller.id == employee_id and caller.email:
            return caller.email.lower()
        return None

    def get_employee_subscription(self, caller, employee_id: str) -> dict:
        """Current subscription snapshot for an employee."""
        if not employee_id:
            raise ValidationError("Employee ID is required")
        check_subscription_access(caller, "view", employee_id)

        db = self.session_factory()
        try:
            employee = db.query(UserORM).filter(UserORM.id == employee_id).first()
            email = self._lookup_email(employee, caller, employee_id)
            subscription = self._find_subscription(db, employee_id, email)

            if subscription is None:
                raise NotFoundError("No subscription found for this employee")

            if subscription.employee_id != employee_id:
                # Found by email: link the id for future lookups
                subscription.employee_id = employee_id
                db.commit()
                logger.info(f"Linked subscription {subscription.id} to employee {employee_id}")

            return subscription_to_wire(subscription)
        finally:
            db.close()

    # --- RENEWAL ---

    def renew(self, caller, employee_id: str, plan_key: str) -> dict:
        """
        Renew an employee's subscription with the given plan.

        Extends a live subscription without losing coverage, restarts a lapsed
        one from now, clears both notification flags, records a receipt and
        reactivates the employee account when it was deactivated.
        """
        if not employee_id:
            raise ValidationError("Employee ID is required")

        plan = get_plan(plan_key)
        if plan is None:
            raise ValidationError(f"Invalid plan. Must be one of: {plan_choices()}")

        check_subscription_access(caller, "renew", employee_id)

        db = self.session_factory()
        try:
            employee = db.query(UserORM).filter(UserORM.id == employee_id).first()
            email = self._lookup_email(employee, caller, employee_id)
            subscription = self._find_subscription(db, employee_id, email)

            if subscription is None:
                raise NotFoundError("No subscription found for this employee")

            now = self.clock()
            new_expiration = renewal_expiration(subscription, plan, now)

            subscription.employee_id = employee_id
            subscription.plan_key = plan.key
            subscription.plan_label = plan.label
            subscription.expiration_date = new_expiration
            subscription.is_active = True
            subscription.status = STATUS_ACTIVE
            subscription.reminder_sent = False
            subscription.expiration_email_sent = False
            subscription.updated_at = now

            employee_name = "Unknown"
            if employee is not None:
                employee_name = employee.display_name or employee_name
            elif subscription.employee_name:
                employee_name = subscription.employee_name

            payment = PaymentORM(
                id=str(uuid.uuid4()),
                employee_id=employee_id,
                employee_name=employee_name,
                employee_email=(employee.email if employee is not None else email) or "N/A",
                subscription_id=subscription.id,
                plan_label=plan.label,
                amount=plan.amount,
                renewed=True,
                status="completed",
                created_at=now,
                updated_at=now
            )
            db.add(payment)

            if employee is not None and (employee.subscription_expired or not employee.is_active):
                employee.is_active = True
                employee.subscription_expired = False
                employee.updated_at = now
                logger.info(f"Reactivated employee {employee_id}")

            db.commit()
            db.refresh(subscription)

            logger.info(
                f"Renewed subscription {subscription.id} for employee {employee_id}: "
                f"{plan.key}, expires {new_expiration.isoformat()}"
            )
            return {
                "subscription": subscription_to_wire(subscription),
                "payment": payment_to_wire(payment),
            }
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    # --- CREATION ---

    def create_subscription(self, db, employee_email: str, employee_name: str, plan: Plan,
                            employee_id: str = None, amount: float = None,
                            employee_request_id: str = None, employee_payment_id: str = None) -> SubscriptionORM:
        """Stage a fresh subscription on the caller's session. The caller commits."""
        now = self.clock()
        subscription = SubscriptionORM(
            id=str(uuid.uuid4()),
            employee_id=employee_id,
            employee_email=employee_email.strip().lower(),
            employee_name=employee_name,
            plan_key=plan.key,
            plan_label=plan.label,
            amount=plan.amount if amount is None else amount,
            payment_date=now,
            start_date=now,
            expiration_date=now + timedelta(days=plan.days),
            status=STATUS_ACTIVE,
            is_active=True,
            reminder_sent=False,
            expiration_email_sent=False,
            employee_request_id=employee_request_id,
            employee_payment_id=employee_payment_id,
            created_at=now,
            updated_at=now
        )
        db.add(subscription)
        return subscription

    # --- LISTING ---

    def list_subscriptions(self) -> list:
        db = self.session_factory()
        try:
            subscriptions = db.query(SubscriptionORM).order_by(SubscriptionORM.created_at.desc()).all()
            return [subscription_to_wire(s) for s in subscriptions]
        finally:
            db.close()

    def list_plans(self) -> list:
        return list_plans()

    def list_payments(self) -> list:
        db = self.session_factory()
        try:
            payments = db.query(PaymentORM).order_by(PaymentORM.created_at.desc()).all()
            return [payment_to_wire(p) for p in payments]
        finally:
            db.close()

    def payment_stats(self) -> dict:
        db = self.session_factory()
        try:
            payments = db.query(PaymentORM).all()
            now = self.clock()
            start_of_month = datetime(now.year, now.month, 1)

            total_revenue = 0
            this_month_revenue = 0
            renewal_count = 0
            for payment in payments:
                amount = payment.amount or 0
                total_revenue += amount
                if payment.renewed:
                    renewal_count += 1
                if payment.created_at and payment.created_at >= start_of_month:
                    this_month_revenue += amount

            return {
                "totalPayments": len(payments),
                "totalRevenue": total_revenue,
                "renewalCount": renewal_count,
                "thisMonthRevenue": this_month_revenue,
            }
        finally:
            db.close()

    # --- EXPIRATION SCAN ---

    def scan_and_notify(self) -> dict:
        """
        Send reminder and expiration emails for live subscriptions.

        Each subscription is handled in its own session; a failure is recorded
        in `errors` and does not stop the rest of the scan.
        """
        now = self.clock()
        tz = self.tz
        results = {"remindersSent": 0, "expirationsSent": 0, "errors": []}

        db = self.session_factory()
        try:
            subscription_ids = [
                row.id for row in db.query(SubscriptionORM.id).filter(
                    SubscriptionORM.status == STATUS_ACTIVE,
                    SubscriptionORM.is_active == True  # noqa: E712
                ).all()
            ]
        finally:
            db.close()

        for subscription_id in subscription_ids:
            try:
                self._process_subscription(subscription_id, now, tz, results)
            except Exception as e:
                logger.error(f"Error processing subscription {subscription_id}: {e}")
                results["errors"].append({"subscriptionId": subscription_id, "error": str(e)})

        logger.info(
            f"Subscription check complete: {results['remindersSent']} reminders, "
            f"{results['expirationsSent']} expirations, {len(results['errors'])} errors"
        )
        return results

    def _process_subscription(self, subscription_id: str, now: datetime, tz: ZoneInfo, results: dict):
        db = self.session_factory()
        try:
            sub = db.query(SubscriptionORM).filter(SubscriptionORM.id == subscription_id).first()
            if sub is None or sub.expiration_date is None:
                return
            if sub.status != STATUS_ACTIVE or not sub.is_active:
                return

            days_left = days_until_expiration(sub.expiration_date, now, tz)
            name = sub.employee_name or "there"

            if not sub.reminder_sent and 1 <= days_left <= 2:
                self.email_service.send_subscription_reminder(
                    sub.employee_email, name, sub.plan_label, sub.expiration_date
                )
                sub.reminder_sent = True
                sub.reminder_sent_at = now
                db.commit()
                results["remindersSent"] += 1
                logger.info(f"Reminder sent for subscription {subscription_id} ({days_left} days left)")

            if not sub.expiration_email_sent and days_left <= 0:
                self.email_service.send_subscription_expiration(
                    sub.employee_email, name, sub.plan_label, sub.expiration_date
                )
                sub.status = STATUS_EXPIRED
                sub.is_active = False
                sub.expiration_email_sent = True
                sub.expired_at = now

                employees = db.query(UserORM).filter(
                    UserORM.email == (sub.employee_email or "").lower(),
                    UserORM.role == "employee"
                ).all()
                for employee in employees:
                    employee.is_active = False
                    employee.subscription_expired = True
                    employee.subscription_expired_at = now

                db.commit()
                results["expirationsSent"] += 1
                logger.info(
                    f"Subscription {subscription_id} expired; deactivated {len(employees)} employee account(s)"
                )
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()


# Singleton instance
subscription_service = SubscriptionService()


def get_subscription_service() -> SubscriptionService:
    """Dependency injection helper."""
    return subscription_service
