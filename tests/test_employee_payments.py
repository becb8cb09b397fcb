from datetime import timedelta

import pytest

from errors import NotFoundError, ValidationError
from models import EmployeePaymentCreate
from models_orm import SubscriptionORM, PaymentORM, EmployeePaymentORM


def checkout(**overrides):
    body = {
        "fullName": "Pat Press",
        "email": "Pat@FitFix.test",
        "phoneNumber": "+961 71 111 111",
        "address": "Bench Ave 4",
        "country": "Lebanon",
        "city": "Saida",
        "gender": "female",
        "dateOfBirth": "1988-08-08",
        "notes": "Evenings only",
        "selectedPlan": "2months",
    }
    body.update(overrides)
    return EmployeePaymentCreate(**body)


def test_submit_records_payment_and_opens_subscription(employee_payment_service, db, email_service, clock):
    result = employee_payment_service.submit_payment(checkout())

    payment = db.query(EmployeePaymentORM).one()
    assert payment.email == "pat@fitfix.test"
    assert payment.selected_plan == "2 Months Plan"
    assert payment.selected_plan_key == "2months"
    assert payment.amount == 399
    assert payment.paid is True
    assert payment.account_created is False
    assert payment.notes == "Evenings only"

    sub = db.query(SubscriptionORM).one()
    assert sub.employee_payment_id == payment.id
    assert sub.employee_id is None
    assert sub.employee_email == "pat@fitfix.test"
    assert sub.expiration_date == clock() + timedelta(days=60)
    assert sub.status == "active"

    assert result["payment"]["id"] == payment.id
    assert result["subscription"]["id"] == sub.id
    assert result["emailSent"] is True
    assert [e["to"] for e in email_service.of_kind("confirmation")] == ["pat@fitfix.test"]


def test_submit_requires_every_contact_field(employee_payment_service, db):
    with pytest.raises(ValidationError) as exc:
        employee_payment_service.submit_payment(checkout(phoneNumber=""))

    assert exc.value.message == "All required fields must be provided."
    assert db.query(EmployeePaymentORM).count() == 0


def test_submit_rejects_unknown_plan(employee_payment_service, db):
    with pytest.raises(ValidationError) as exc:
        employee_payment_service.submit_payment(checkout(selectedPlan="lifetime"))

    assert exc.value.message == "Invalid subscription plan."
    assert db.query(SubscriptionORM).count() == 0


def test_confirmation_failure_keeps_the_records(employee_payment_service, db, email_service):
    email_service.fail_all = True

    result = employee_payment_service.submit_payment(checkout())

    assert result["emailSent"] is False
    assert db.query(EmployeePaymentORM).count() == 1
    assert db.query(SubscriptionORM).count() == 1


def test_submitted_subscription_links_on_first_renewal(employee_payment_service, subscription_service,
                                                       admin, make_user, db):
    employee_payment_service.submit_payment(checkout())
    coach = make_user("employee", email="pat@fitfix.test")

    renewed = subscription_service.renew(admin, coach.id, "1month")

    assert renewed["subscription"]["employeeId"] == coach.id
    assert db.query(SubscriptionORM).one().employee_id == coach.id


def test_list_payments(employee_payment_service):
    employee_payment_service.submit_payment(checkout(email="one@fitfix.test"))
    employee_payment_service.submit_payment(checkout(email="two@fitfix.test", selectedPlan="12months"))

    payments = employee_payment_service.list_payments()

    assert {p["email"] for p in payments} == {"one@fitfix.test", "two@fitfix.test"}
    assert {p["amount"] for p in payments} == {399, 2300}


def test_delete_payment_removes_its_subscriptions(employee_payment_service, subscription_service,
                                                  admin, make_user, db):
    payment_id = employee_payment_service.submit_payment(checkout())["payment"]["id"]
    other_id = employee_payment_service.submit_payment(checkout(email="other@fitfix.test"))["payment"]["id"]
    coach = make_user("employee", email="pat@fitfix.test")
    subscription_service.renew(admin, coach.id, "1month")

    result = employee_payment_service.delete_payment(payment_id)

    assert result == {"paymentId": payment_id, "subscriptionsDeleted": 1}
    assert db.get(EmployeePaymentORM, payment_id) is None
    remaining = db.query(SubscriptionORM).one()
    assert remaining.employee_payment_id == other_id

    # The renewal receipt stays for the revenue history
    receipt = db.query(PaymentORM).one()
    assert receipt.renewed is True
    assert receipt.subscription_id is None


def test_delete_unknown_payment(employee_payment_service):
    with pytest.raises(NotFoundError):
        employee_payment_service.delete_payment("missing")
