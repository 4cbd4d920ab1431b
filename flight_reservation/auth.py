"""User registration, login and profile management."""
from __future__ import annotations

import hashlib
import hmac
import os
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Callable, Optional, Tuple

from loguru import logger

from .errors import AuthenticationError, DuplicateKeyError, ForbiddenError, NotFoundError
from .models import Role, User
from .services import new_id
from .store import UserStore

ADMIN_EMAIL_ENV = "FLIGHT_RESERVATION_ADMIN_EMAIL"
ADMIN_PASSWORD_ENV = "FLIGHT_RESERVATION_ADMIN_PASSWORD"

DEFAULT_ADMIN_EMAIL = "admin@sistema.com"
DEFAULT_ADMIN_PASSWORD = "admin123"


def default_admin_credentials() -> Tuple[str, str]:
    """Return the bootstrap administrator's email and password from the environment."""

    return (
        os.environ.get(ADMIN_EMAIL_ENV, DEFAULT_ADMIN_EMAIL),
        os.environ.get(ADMIN_PASSWORD_ENV, DEFAULT_ADMIN_PASSWORD),
    )


def hash_password(plain: str) -> str:
    """Return the SHA-256 hex digest stored in place of a password."""

    return hashlib.sha256(plain.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class Session:
    """The authenticated caller, passed explicitly to operations that need it."""

    user_id: str
    name: str
    email: str
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN

    @classmethod
    def for_user(cls, user: User) -> "Session":
        return cls(user_id=user.id, name=user.name, email=user.email, role=user.role)


def require_admin(session: Session) -> None:
    if not session.is_admin:
        raise ForbiddenError("this operation requires an administrator")


class AuthService:
    def __init__(
        self,
        users: UserStore,
        *,
        id_factory: Callable[[], str] = new_id,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.users = users
        self._id_factory = id_factory
        self._clock = clock

    def register(
        self,
        name: str,
        email: str,
        password: str,
        role: Role = Role.CUSTOMER,
    ) -> str:
        email = email.strip()
        if not name.strip() or not email or not password:
            raise ValueError("name, email and password are required")
        user = User(
            id=self._id_factory(),
            name=name.strip(),
            email=email,
            password_hash=hash_password(password),
            role=role,
            created_at=self._clock(),
        )
        with self.users.transaction() as users:
            if any(existing.email.casefold() == email.casefold() for existing in users):
                raise DuplicateKeyError(f"email '{email}' is already registered")
            if any(existing.id == user.id for existing in users):
                raise DuplicateKeyError(f"user '{user.id}' already exists")
            users.append(user)
        logger.info(f"New user registered: {email} ({role.name.lower()})")
        return user.id

    def login(self, email: str, password: str) -> Session:
        user = self.users.find_by_email(email)
        if user is None or not hmac.compare_digest(user.password_hash, hash_password(password)):
            logger.warning(f"Failed login for {email}")
            raise AuthenticationError("invalid email or password")
        logger.info(f"User {user.email} logged in")
        return Session.for_user(user)

    def update_profile(
        self,
        session: Session,
        *,
        name: Optional[str] = None,
        email: Optional[str] = None,
        password: Optional[str] = None,
    ) -> User:
        with self.users.transaction() as users:
            index = next((i for i, u in enumerate(users) if u.id == session.user_id), None)
            if index is None:
                raise NotFoundError(f"user '{session.user_id}' not found")
            current = users[index]
            changes = {}
            if name:
                changes["name"] = name.strip()
            if email and email.strip().casefold() != current.email.casefold():
                email = email.strip()
                if any(u.email.casefold() == email.casefold() for u in users):
                    raise DuplicateKeyError(f"email '{email}' is already registered")
                changes["email"] = email
            if password:
                changes["password_hash"] = hash_password(password)
            updated = replace(current, **changes)
            users[index] = updated
        logger.info(f"Profile updated for user {session.user_id}")
        return updated

    def delete_user(self, user_id: str) -> User:
        # Reservations referencing the user are left in place.
        removed = self.users.delete(user_id)
        logger.info(f"User {user_id} deleted")
        return removed

    def ensure_admin(
        self,
        email: Optional[str] = None,
        password: Optional[str] = None,
        name: str = "Administrator",
    ) -> Optional[str]:
        """Create the bootstrap administrator unless the email already exists.

        Missing credentials come from ``FLIGHT_RESERVATION_ADMIN_EMAIL`` and
        ``FLIGHT_RESERVATION_ADMIN_PASSWORD``, read at call time.
        """

        env_email, env_password = default_admin_credentials()
        email = email or env_email
        password = password or env_password
        if self.users.find_by_email(email) is not None:
            return None
        try:
            return self.register(name, email, password, Role.ADMIN)
        except DuplicateKeyError:
            return None


__all__ = [
    "AuthService",
    "Session",
    "hash_password",
    "require_admin",
    "DEFAULT_ADMIN_EMAIL",
    "DEFAULT_ADMIN_PASSWORD",
    "default_admin_credentials",
]
