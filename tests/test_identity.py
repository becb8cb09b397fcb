from datetime import timedelta

import pytest

from auth import create_access_token, verify_password
from errors import AuthenticationError, ConflictError, NotFoundError
from models_orm import UserORM

TEST_SECRET = "test-secret-key"


def test_token_round_trip(identity, employee):
    token = identity.issue_token(employee.id, employee.email)

    assert identity.verify_token(token) == {"id": employee.id, "email": employee.email}


def test_expired_token_rejected(identity):
    token = create_access_token({"sub": "u1"}, expires_delta=timedelta(minutes=-1), secret_key=TEST_SECRET)

    with pytest.raises(AuthenticationError):
        identity.verify_token(token)


def test_token_signed_with_other_key_rejected(identity):
    token = create_access_token({"sub": "u1"}, secret_key="someone-else")

    with pytest.raises(AuthenticationError):
        identity.verify_token(token)


def test_token_without_subject_rejected(identity):
    token = create_access_token({"email": "x@example.com"}, secret_key=TEST_SECRET)

    with pytest.raises(AuthenticationError):
        identity.verify_token(token)


def test_create_account_and_authenticate(identity, db):
    user_id = identity.create_account("New.Coach@Example.com", "s3cret!", display_name="New Coach", role="employee")

    result = identity.authenticate("new.coach@example.com", "s3cret!")

    assert result["user"]["id"] == user_id
    assert result["user"]["role"] == "employee"
    assert db.get(UserORM, user_id).last_login is not None


def test_create_account_duplicate_email(identity, employee):
    with pytest.raises(ConflictError):
        identity.create_account(employee.email, "whatever")


def test_update_password_and_delete(identity, db, employee):
    identity.update_password(employee.id, "brand-new")
    assert verify_password("brand-new", db.get(UserORM, employee.id).hashed_password)

    identity.delete_account(employee.id)
    with pytest.raises(NotFoundError):
        identity.load_user(employee.id)
