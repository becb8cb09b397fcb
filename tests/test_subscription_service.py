from datetime import timedelta

import pytest

from errors import ValidationError, AuthorizationError, NotFoundError
from models_orm import UserORM, SubscriptionORM, PaymentORM


def test_renew_extends_live_subscription_from_current_expiration(subscription_service, db, admin, employee,
                                                                 make_subscription, clock):
    sub_id = make_subscription(employee, expires_in=timedelta(days=10))
    old_expiration = db.get(SubscriptionORM, sub_id).expiration_date

    result = subscription_service.renew(admin, employee.id, "1month")

    db.expire_all()
    sub = db.get(SubscriptionORM, sub_id)
    assert sub.expiration_date == old_expiration + timedelta(days=30)
    assert sub.status == "active"
    assert sub.is_active is True
    assert result["subscription"]["planType"] == "1month"
    assert result["subscription"]["planLabel"] == "1 Month Plan"


def test_renew_of_lapsed_but_still_active_record_starts_from_now(subscription_service, db, employee,
                                                                  make_subscription, clock):
    sub_id = make_subscription(employee, expires_in=timedelta(days=-3))

    subscription_service.renew(employee, employee.id, "3months")

    sub = db.get(SubscriptionORM, sub_id)
    assert sub.expiration_date == clock() + timedelta(days=90)


def test_renew_after_expiration_restarts_and_reactivates(subscription_service, db, admin, make_user,
                                                         make_subscription, clock):
    coach = make_user("employee", email="lapsed@fitfix.test", is_active=False, subscription_expired=True)
    sub_id = make_subscription(
        coach, expires_in=timedelta(days=-5), status="expired", is_active=False,
        reminder_sent=True, expiration_email_sent=True
    )

    subscription_service.renew(admin, coach.id, "2months")

    sub = db.get(SubscriptionORM, sub_id)
    assert sub.expiration_date == clock() + timedelta(days=60)
    assert sub.status == "active"
    assert sub.is_active is True
    assert sub.reminder_sent is False
    assert sub.expiration_email_sent is False

    user = db.get(UserORM, coach.id)
    assert user.is_active is True
    assert user.subscription_expired is False


def test_renew_records_a_renewal_payment(subscription_service, db, admin, employee, make_subscription):
    sub_id = make_subscription(employee)

    result = subscription_service.renew(admin, employee.id, "12months")

    payments = db.query(PaymentORM).all()
    assert len(payments) == 1
    payment = payments[0]
    assert payment.renewed is True
    assert payment.amount == 2300
    assert payment.plan_label == "Yearly (12 Months)"
    assert payment.subscription_id == sub_id
    assert payment.employee_id == employee.id
    assert result["payment"]["id"] == payment.id


def test_renew_rejects_unknown_plan_without_writes(subscription_service, db, admin, employee, make_subscription):
    make_subscription(employee)

    with pytest.raises(ValidationError) as exc:
        subscription_service.renew(admin, employee.id, "6months")

    assert "Invalid plan" in exc.value.message
    assert db.query(PaymentORM).count() == 0


def test_renew_requires_employee_id(subscription_service, admin):
    with pytest.raises(ValidationError):
        subscription_service.renew(admin, "", "1month")


def test_employee_cannot_renew_someone_else(subscription_service, db, employee, make_user, make_subscription):
    other = make_user("employee", email="other@fitfix.test")
    make_subscription(other)

    with pytest.raises(AuthorizationError) as exc:
        subscription_service.renew(employee, other.id, "1month")

    assert exc.value.message == "You can only renew your own subscription"
    assert db.query(PaymentORM).count() == 0


def test_plain_user_cannot_renew(subscription_service, make_user):
    user = make_user("user")
    with pytest.raises(AuthorizationError):
        subscription_service.renew(user, user.id, "1month")


def test_renew_without_subscription_is_not_found_and_writes_nothing(subscription_service, db, admin, employee):
    with pytest.raises(NotFoundError):
        subscription_service.renew(admin, employee.id, "1month")

    assert db.query(PaymentORM).count() == 0
    assert db.query(SubscriptionORM).count() == 0


def test_renew_finds_subscription_by_email_and_links_employee(subscription_service, db, employee, make_subscription):
    sub_id = make_subscription(email="COACH@fitfix.test", employee_id=None)

    subscription_service.renew(employee, employee.id, "1month")

    assert db.get(SubscriptionORM, sub_id).employee_id == employee.id


def test_get_employee_subscription_links_by_email(subscription_service, db, employee, make_subscription):
    sub_id = make_subscription(email=employee.email, employee_id=None)

    data = subscription_service.get_employee_subscription(employee, employee.id)

    assert data["id"] == sub_id
    assert data["employeeId"] == employee.id
    assert data["expirationDate"].endswith("Z")
    assert db.get(SubscriptionORM, sub_id).employee_id == employee.id


def test_get_employee_subscription_of_other_employee_forbidden(subscription_service, employee, make_user):
    other = make_user("employee")
    with pytest.raises(AuthorizationError):
        subscription_service.get_employee_subscription(employee, other.id)


def test_list_plans_matches_plan_table(subscription_service):
    plans = {p["id"]: p for p in subscription_service.list_plans()}

    assert set(plans) == {"1month", "2months", "3months", "12months"}
    assert plans["1month"] == {"id": "1month", "duration": "1 Month Plan", "days": 30, "price": 200}
    assert plans["12months"]["days"] == 365


def test_payment_stats_totals(subscription_service, admin, employee, make_user, make_subscription):
    other = make_user("employee")
    make_subscription(employee)
    make_subscription(other)

    subscription_service.renew(admin, employee.id, "1month")
    subscription_service.renew(admin, other.id, "2months")

    stats = subscription_service.payment_stats()
    assert stats == {
        "totalPayments": 2,
        "totalRevenue": 599,
        "renewalCount": 2,
        "thisMonthRevenue": 599,
    }
    assert len(subscription_service.list_payments()) == 2


def test_list_subscriptions_newest_first(subscription_service, employee, make_user, make_subscription, clock):
    first = make_subscription(employee)
    clock.advance(minutes=5)
    second = make_subscription(make_user("employee"))

    ids = [s["id"] for s in subscription_service.list_subscriptions()]
    assert ids == [second, first]
