import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import uuid
from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base
from models_orm import UserORM, SubscriptionORM
from auth import IdentityProvider, get_identity_provider, get_password_hash, to_current_user
from errors import DependencyError
from sockets import ConnectionManager
from service_modules.plans import get_plan
from service_modules.notification_service import NotificationService, get_notification_service
from service_modules.subscription_service import SubscriptionService, get_subscription_service
from service_modules.chat_service import ChatService, get_chat_service
from service_modules.employee_request_service import EmployeeRequestService, get_employee_request_service
from service_modules.employee_payment_service import EmployeePaymentService, get_employee_payment_service
from service_modules.account_service import AccountService, get_account_service

TEST_SECRET = "test-secret-key"
PASSWORD = "password123"


class FakeEmailService:
    """Records every email instead of talking to SMTP."""

    def __init__(self):
        self.sent = []
        self.fail_for = set()
        self.fail_all = False

    def _record(self, kind, to_email, **details):
        if self.fail_all or to_email in self.fail_for:
            raise DependencyError("Email service unavailable")
        self.sent.append({"kind": kind, "to": to_email, **details})
        return True

    def of_kind(self, kind):
        return [e for e in self.sent if e["kind"] == kind]

    def send_subscription_reminder(self, to_email, name, plan_label, expiration_date):
        return self._record("reminder", to_email, name=name, plan_label=plan_label)

    def send_subscription_expiration(self, to_email, name, plan_label, expiration_date):
        return self._record("expiration", to_email, name=name, plan_label=plan_label)

    def send_subscription_confirmation(self, to_email, name, plan_label, amount, expiration_date):
        return self._record("confirmation", to_email, name=name, plan_label=plan_label)

    def send_employee_credentials(self, to_email, name, temp_password, plan_label=None, amount=None):
        return self._record("credentials", to_email, name=name, temp_password=temp_password)

    def send_user_welcome(self, to_email, name, temp_password, coach_name="Your Trainer"):
        return self._record("welcome", to_email, name=name, temp_password=temp_password, coach_name=coach_name)


class FakeClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def email_service():
    return FakeEmailService()


@pytest.fixture
def clock():
    return FakeClock(datetime(2025, 6, 15, 12, 0, 0))


@pytest.fixture
def make_user(session_factory):
    def _make_user(role="employee", email=None, display_name=None, **fields):
        user_id = fields.pop("id", None) or str(uuid.uuid4())
        db = session_factory()
        try:
            user = UserORM(
                id=user_id,
                email=email or f"{role}_{user_id[:8]}@example.com",
                hashed_password=get_password_hash(PASSWORD),
                display_name=display_name or f"Test {role.title()}",
                role=role,
                is_active=fields.pop("is_active", True),
                subscription_expired=fields.pop("subscription_expired", False),
                **fields
            )
            db.add(user)
            db.commit()
            return to_current_user(user)
        finally:
            db.close()
    return _make_user


@pytest.fixture
def make_subscription(session_factory, clock):
    def _make_subscription(employee=None, email=None, plan_key="1month", expires_in=None,
                           expiration_date=None, status="active", is_active=True, **fields):
        plan = get_plan(plan_key)
        now = clock()
        if expiration_date is None:
            expiration_date = now + (expires_in if expires_in is not None else timedelta(days=plan.days))
        db = session_factory()
        try:
            sub = SubscriptionORM(
                id=str(uuid.uuid4()),
                employee_id=fields.pop("employee_id", employee.id if employee else None),
                employee_email=(email or employee.email).lower(),
                employee_name=fields.pop("employee_name", employee.display_name if employee else "Coach"),
                plan_key=plan.key,
                plan_label=plan.label,
                amount=plan.amount,
                payment_date=now,
                start_date=now - timedelta(days=plan.days),
                expiration_date=expiration_date,
                status=status,
                is_active=is_active,
                reminder_sent=fields.pop("reminder_sent", False),
                expiration_email_sent=fields.pop("expiration_email_sent", False),
                created_at=now,
                updated_at=now,
                **fields
            )
            db.add(sub)
            db.commit()
            return sub.id
        finally:
            db.close()
    return _make_subscription


@pytest.fixture
def admin(make_user):
    return make_user("admin", email="admin@fitfix.test", display_name="Admin")


@pytest.fixture
def employee(make_user):
    return make_user("employee", email="coach@fitfix.test", display_name="Coach Carter")


@pytest.fixture
def identity(session_factory):
    return IdentityProvider(session_factory, secret_key=TEST_SECRET)


@pytest.fixture
def notification_service(session_factory):
    return NotificationService(session_factory)


@pytest.fixture
def connections():
    return ConnectionManager()


@pytest.fixture
def subscription_service(session_factory, email_service, clock):
    return SubscriptionService(session_factory, email_service=email_service, clock=clock, timezone_name="UTC")


@pytest.fixture
def chat_service(session_factory, notification_service, connections):
    return ChatService(session_factory, notification_service=notification_service, connections=connections)


@pytest.fixture
def employee_request_service(session_factory, identity, subscription_service, email_service):
    return EmployeeRequestService(
        session_factory,
        identity=identity,
        subscription_service=subscription_service,
        email_service=email_service
    )


@pytest.fixture
def employee_payment_service(session_factory, subscription_service, email_service):
    return EmployeePaymentService(session_factory, subscription_service=subscription_service, email_service=email_service)


@pytest.fixture
def account_service(session_factory, identity, email_service):
    return AccountService(session_factory, identity=identity, email_service=email_service)


@pytest.fixture
def client(identity, subscription_service, chat_service, employee_request_service, notification_service,
           employee_payment_service, account_service):
    from main import app

    app.dependency_overrides[get_identity_provider] = lambda: identity
    app.dependency_overrides[get_subscription_service] = lambda: subscription_service
    app.dependency_overrides[get_chat_service] = lambda: chat_service
    app.dependency_overrides[get_employee_request_service] = lambda: employee_request_service
    app.dependency_overrides[get_notification_service] = lambda: notification_service
    app.dependency_overrides[get_employee_payment_service] = lambda: employee_payment_service
    app.dependency_overrides[get_account_service] = lambda: account_service

    yield TestClient(app, raise_server_exceptions=False)

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(identity):
    def _auth_headers(user):
        return {"Authorization": f"Bearer {identity.issue_token(user.id, user.email)}"}
    return _auth_headers
