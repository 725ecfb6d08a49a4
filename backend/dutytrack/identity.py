"""
Identity provider backed by the ``users`` table.

Credentials are bcrypt hashes; sessions are stateless bearer tokens issued by
the auth router, so ``sign_out`` only notifies auth-state listeners.
"""

import logging
import re
import uuid
from collections.abc import Callable

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from dutytrack.core.config import settings
from dutytrack.core.errors import (
    EmailInUse,
    InvalidCredentials,
    InvalidEmail,
    PermissionDenied,
    UpstreamUnavailable,
    WeakPassword,
)
from dutytrack.core.roles import Role, normalize_company_key
from dutytrack.core.security import hash_password, verify_password
from dutytrack.db.models import User

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

# Called with (subject_id, user); user is None once the subject signed out
AuthListener = Callable[[uuid.UUID, User | None], None]


class AuthEvents:
    """Process-wide fan-out of sign-in / sign-out notifications."""

    def __init__(self) -> None:
        self._listeners: list[AuthListener] = []

    def subscribe(self, listener: AuthListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def emit(self, subject_id: uuid.UUID, user: User | None) -> None:
        for listener in list(self._listeners):
            try:
                listener(subject_id, user)
            except Exception:
                logger.exception("Auth state listener %r failed", listener)


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class IdentityProvider:
    def __init__(self, db: AsyncSession, events: AuthEvents) -> None:
        self._db = db
        self._events = events

    def on_auth_state_change(self, callback: AuthListener) -> Callable[[], None]:
        return self._events.subscribe(callback)

    async def sign_in(self, email: str, password: str) -> User:
        user = await self._find_by_email(normalize_email(email))
        if user is None or not verify_password(password, user.password_hash):
            logger.warning("Failed sign-in for '%s'", normalize_email(email))
            raise InvalidCredentials("Invalid email or password")
        if not user.is_active:
            raise PermissionDenied("User account is disabled")

        logger.info("Signed in: %s (role=%s)", user.id, user.role)
        self._events.emit(user.id, user)
        return user

    async def sign_up(
        self,
        email: str,
        password: str,
        *,
        role: Role = Role.EMPLOYEE,
        full_name: str | None = None,
        company_name: str | None = None,
        department: str | None = None,
    ) -> User:
        email = normalize_email(email)
        if not _EMAIL_RE.match(email):
            raise InvalidEmail("Invalid email format")
        if len(password or "") < settings.MIN_PASSWORD_LENGTH:
            raise WeakPassword(
                f"Password must be at least {settings.MIN_PASSWORD_LENGTH} characters"
            )
        if await self._find_by_email(email) is not None:
            raise EmailInUse("This email is already in use")

        user = User(
            email=email,
            password_hash=hash_password(password),
            role=role.value,
            full_name=(full_name or "").strip() or None,
            company_name=(company_name or "").strip() or None,
            company_key=normalize_company_key(company_name),
            department=(department or "").strip() or None,
            is_active=True,
        )
        self._db.add(user)
        try:
            await self._db.commit()
        except IntegrityError as exc:
            await self._db.rollback()
            raise EmailInUse("This email is already in use") from exc
        except SQLAlchemyError as exc:
            await self._db.rollback()
            raise UpstreamUnavailable("Could not create account") from exc
        await self._db.refresh(user)

        logger.info("Account created: %s (role=%s, company=%s)", user.id, user.role, user.company_key)
        return user

    async def sign_out(self, subject_id: uuid.UUID) -> None:
        logger.info("Signed out: %s", subject_id)
        self._events.emit(subject_id, None)

    async def _find_by_email(self, email: str) -> User | None:
        try:
            result = await self._db.execute(select(User).where(User.email == email))
        except SQLAlchemyError as exc:
            raise UpstreamUnavailable("Identity lookup failed") from exc
        return result.scalar_one_or_none()
