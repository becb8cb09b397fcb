from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import JWTError, jwt

from fastapi import Depends, Request
import bcrypt
import logging
import uuid

from config import get_settings
from database import get_db_session
from errors import AuthenticationError, AuthorizationError, ConflictError, NotFoundError, ValidationError
from models import CurrentUser
from models_orm import UserORM, utcnow

ALGORITHM = "HS256"

logger = logging.getLogger("fitfix")


def verify_password(plain_password, hashed_password):
    # bcrypt requires bytes for both
    if not plain_password or not hashed_password:
        return False
    return bcrypt.checkpw(plain_password.encode('utf-8'), hashed_password.encode('utf-8'))


def get_password_hash(password):
    # bcrypt requires bytes, returns bytes. We store as string.
    salt = bcrypt.gensalt()
    return bcrypt.hashpw(password.encode('utf-8'), salt).decode('utf-8')


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None, secret_key: str = None):
    to_encode = data.copy()
    if expires_delta is None:
        expires_delta = timedelta(minutes=get_settings().access_token_expire_minutes)
    to_encode.update({"exp": datetime.now(timezone.utc) + expires_delta})
    return jwt.encode(to_encode, secret_key or get_settings().secret_key, algorithm=ALGORITHM)


def to_current_user(user: UserORM) -> CurrentUser:
    return CurrentUser(
        id=user.id,
        email=user.email,
        role=user.role,
        display_name=user.display_name,
        is_active=bool(user.is_active),
        assigned_employee_id=user.assigned_employee_id,
    )


class IdentityProvider:
    """Issues and verifies bearer tokens and owns account credentials."""

    def __init__(self, session_factory=None, secret_key: str = None):
        self.session_factory = session_factory or get_db_session
        self.secret_key = secret_key or get_settings().secret_key

    def issue_token(self, user_id: str, email: str) -> str:
        return create_access_token({"sub": user_id, "email": email}, secret_key=self.secret_key)

    def verify_token(self, token: str) -> dict:
        """Decode a bearer token into {id, email}."""
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[ALGORITHM])
        except JWTError as e:
            logger.info(f"AUTH: token rejected: {e}")
            raise AuthenticationError()

        user_id = payload.get("sub")
        if not user_id:
            logger.info("AUTH: token missing 'sub'")
            raise AuthenticationError()
        return {"id": user_id, "email": payload.get("email")}

    def authenticate(self, email: str, password: str) -> dict:
        """Check credentials, record the login and return a token plus profile."""
        db = self.session_factory()
        try:
            user = db.query(UserORM).filter(UserORM.email == (email or "").strip().lower()).first()
            if not user or not verify_password(password, user.hashed_password):
                raise AuthenticationError("Invalid email or password")

            user.last_login = utcnow()
            db.commit()

            logger.info(f"Login successful for user {user.id}")
            return {
                "token": self.issue_token(user.id, user.email),
                "user": to_current_user(user).model_dump(),
            }
        finally:
            db.close()

    def create_account(self, email: str, password: str, display_name: str = None,
                       role: str = "user", **profile) -> str:
        """Create credentials and the user profile row. Returns the new user id."""
        email = (email or "").strip().lower()
        if not email or not password:
            raise ValidationError("Email and password are required")

        db = self.session_factory()
        try:
            if db.query(UserORM).filter(UserORM.email == email).first():
                raise ConflictError("An account with this email already exists")

            user = UserORM(
                id=str(uuid.uuid4()),
                email=email,
                hashed_password=get_password_hash(password),
                display_name=display_name,
                role=role,
                is_active=True,
                subscription_expired=False,
                **profile
            )
            db.add(user)
            db.commit()
            logger.info(f"Created {role} account {user.id}")
            return user.id
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def delete_account(self, user_id: str):
        db = self.session_factory()
        try:
            user = db.query(UserORM).filter(UserORM.id == user_id).first()
            if not user:
                raise NotFoundError("User not found")
            db.delete(user)
            db.commit()
            logger.info(f"Deleted account {user_id}")
        finally:
            db.close()

    def update_password(self, user_id: str, new_password: str):
        if not new_password:
            raise ValidationError("New password is required")
        db = self.session_factory()
        try:
            user = db.query(UserORM).filter(UserORM.id == user_id).first()
            if not user:
                raise NotFoundError("User not found")
            user.hashed_password = get_password_hash(new_password)
            db.commit()
            logger.info(f"Password updated for {user_id}")
        finally:
            db.close()

    def load_user(self, user_id: str) -> CurrentUser:
        db = self.session_factory()
        try:
            user = db.query(UserORM).filter(UserORM.id == user_id).first()
            if user is None:
                raise NotFoundError("User profile not found")
            return to_current_user(user)
        finally:
            db.close()


# Singleton instance
_identity_provider = None


def get_identity_provider() -> IdentityProvider:
    """Dependency injection helper."""
    global _identity_provider
    if _identity_provider is None:
        _identity_provider = IdentityProvider()
    return _identity_provider


def bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization")
    if not header:
        return None
    parts = header.split(" ")
    if len(parts) != 2 or parts[0] != "Bearer":
        return None
    return parts[1]


def get_current_user(request: Request, identity: IdentityProvider = Depends(get_identity_provider)) -> CurrentUser:
    token = bearer_token(request)
    if not token:
        raise AuthenticationError()
    decoded = identity.verify_token(token)
    user = identity.load_user(decoded["id"])
    if not user.email:
        user.email = decoded.get("email")
    return user


async def require_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if user.role != "admin":
        raise AuthorizationError("Forbidden: Admin access required")
    return user


async def require_employee(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if user.role not in ("employee", "admin"):
        raise AuthorizationError("Forbidden: Employee or Admin access required")
    return user
