from datetime import timedelta

import pytest

from auth import verify_password
from errors import ConflictError, NotFoundError, ValidationError
from models import EmployeeRequestCreate
from models_orm import UserORM, SubscriptionORM, PaymentORM, EmployeePaymentORM, EmployeeRequestORM


def signup(**overrides):
    body = {
        "fullName": "Jordan Lift",
        "email": "Jordan@FitFix.test",
        "phone": "+961 70 000 000",
        "address": "Main St 1",
        "country": "Lebanon",
        "city": "Beirut",
        "gender": "female",
        "dateOfBirth": "1990-04-02",
        "selectedPlan": "3months",
    }
    body.update(overrides)
    return EmployeeRequestCreate(**body)


def test_create_request_normalizes_email_and_plan(employee_request_service):
    request = employee_request_service.create_request(signup())

    assert request["status"] == "pending"
    assert request["email"] == "jordan@fitfix.test"
    assert request["selectedPlanLabel"] == "3 Months Plan"
    assert request["amount"] == 599


def test_create_request_missing_fields(employee_request_service):
    with pytest.raises(ValidationError):
        employee_request_service.create_request(signup(city=None))


def test_create_request_unknown_plan(employee_request_service):
    with pytest.raises(ValidationError):
        employee_request_service.create_request(signup(selectedPlan="weekly"))


def test_duplicate_pending_request_conflicts(employee_request_service):
    employee_request_service.create_request(signup())

    with pytest.raises(ConflictError):
        employee_request_service.create_request(signup(email="jordan@fitfix.test"))


def test_request_for_existing_employee_conflicts(employee_request_service, make_user):
    make_user("employee", email="jordan@fitfix.test")

    with pytest.raises(ConflictError):
        employee_request_service.create_request(signup())


def test_approve_creates_account_subscription_and_payment(employee_request_service, db, admin,
                                                          email_service, clock):
    request_id = employee_request_service.create_request(signup())["id"]

    result = employee_request_service.approve_request(admin, request_id)

    employee = db.query(UserORM).filter(UserORM.email == "jordan@fitfix.test").one()
    assert employee.role == "employee"
    assert employee.display_name == "Jordan Lift"
    assert employee.created_by == admin.id
    assert result["employeeId"] == employee.id

    sub = db.query(SubscriptionORM).one()
    assert sub.employee_id == employee.id
    assert sub.employee_request_id == request_id
    assert sub.status == "active"
    assert sub.reminder_sent is False
    assert sub.expiration_email_sent is False
    assert sub.expiration_date == clock() + timedelta(days=90)

    payment = db.query(PaymentORM).one()
    assert payment.renewed is False
    assert payment.amount == 599
    assert payment.subscription_id == sub.id

    signup_payment = db.query(EmployeePaymentORM).one()
    assert sub.employee_payment_id == signup_payment.id
    assert signup_payment.account_created is True
    assert signup_payment.created_employee_id == employee.id
    assert signup_payment.selected_plan_key == "3months"
    assert result["employeePayment"]["id"] == signup_payment.id

    request = db.get(EmployeeRequestORM, request_id)
    assert request.status == "approved"
    assert request.created_employee_id == employee.id

    credentials = email_service.of_kind("credentials")
    assert [e["to"] for e in credentials] == ["jordan@fitfix.test"]
    assert verify_password(credentials[0]["temp_password"], employee.hashed_password)
    assert result["emailSent"] is True


def test_approve_survives_email_failure(employee_request_service, db, admin, email_service):
    request_id = employee_request_service.create_request(signup())["id"]
    email_service.fail_all = True

    result = employee_request_service.approve_request(admin, request_id)

    assert result["emailSent"] is False
    assert db.get(EmployeeRequestORM, request_id).status == "approved"
    assert db.query(SubscriptionORM).count() == 1


def test_approve_twice_conflicts(employee_request_service, db, admin):
    request_id = employee_request_service.create_request(signup())["id"]
    employee_request_service.approve_request(admin, request_id)

    with pytest.raises(ConflictError):
        employee_request_service.approve_request(admin, request_id)
    assert db.query(SubscriptionORM).count() == 1


def test_approve_unknown_request(employee_request_service, admin):
    with pytest.raises(NotFoundError):
        employee_request_service.approve_request(admin, "missing")


def test_reject_request(employee_request_service, db, admin):
    request_id = employee_request_service.create_request(signup())["id"]

    result = employee_request_service.reject_request(admin, request_id, "Incomplete profile")

    assert result["status"] == "rejected"
    assert result["rejectionReason"] == "Incomplete profile"
    assert result["rejectedBy"] == admin.id
    assert db.query(UserORM).filter(UserORM.email == "jordan@fitfix.test").count() == 0

    # A rejected email may apply again
    assert employee_request_service.create_request(signup())["status"] == "pending"


def test_list_requests(employee_request_service):
    employee_request_service.create_request(signup(email="first@fitfix.test"))
    employee_request_service.create_request(signup(email="second@fitfix.test"))

    emails = [r["email"] for r in employee_request_service.list_requests()]
    assert set(emails) == {"first@fitfix.test", "second@fitfix.test"}
