"""Caller identity and role checks for administrator actions."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
import hashlib
from typing import Awaitable, Callable, Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session

from cratedigger.db import run_session, session_scope
from cratedigger.errors import AuthenticationRequiredError, AuthorizationError
from cratedigger.logging import get_logger
from cratedigger.logging_events import log_event
from cratedigger.models import AuthSession, Profile

logger = get_logger(__name__)


@dataclass(slots=True, frozen=True)
class Identity:
    id: str
    role: str


class IdentityResolver(Protocol):
    async def resolve(self, token: str) -> Identity | None: ...


def token_digest(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _utcnow() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


class SessionIdentityResolver:
    """Resolve opaque session tokens against ``auth_sessions``."""

    def __init__(
        self,
        *,
        session_runner: Callable[[Callable[[Session], Identity | None]], Awaitable[Identity | None]]
        | None = None,
        now_factory: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._run = session_runner or run_session
        self._now_factory = now_factory

    async def resolve(self, token: str) -> Identity | None:
        digest = token_digest(token)
        now = self._now_factory()

        def _lookup(session: Session) -> Identity | None:
            statement = (
                select(Profile.id, Profile.role)
                .join(AuthSession, AuthSession.user_id == Profile.id)
                .where(AuthSession.token_digest == digest)
                .where(AuthSession.expires_at > now)
                .limit(1)
            )
            row = session.execute(statement).first()
            if row is None:
                return None
            return Identity(id=str(row.id), role=str(row.role))

        return await self._run(_lookup)


def issue_session_token(
    user_id: str,
    token: str,
    *,
    ttl: timedelta = timedelta(hours=1),
    now: datetime | None = None,
) -> None:
    """Register ``token`` as a session for ``user_id``."""

    issued_at = now or _utcnow()
    with session_scope() as session:
        session.merge(
            AuthSession(
                token_digest=token_digest(token),
                user_id=user_id,
                expires_at=issued_at + ttl,
                created_at=issued_at,
            )
        )


def _bearer_token(authorization: str | None) -> str | None:
    if authorization is None:
        return None
    value = authorization.strip()
    if value.lower().startswith("bearer "):
        value = value[7:].strip()
    return value or None


class AccessGuard:
    def __init__(self, resolver: IdentityResolver, *, admin_role: str = "admin") -> None:
        self._resolver = resolver
        self._admin_role = admin_role

    async def authorize(self, authorization: str | None) -> Identity:
        """Return the caller identity or raise before any work starts."""

        if authorization is None or not authorization.strip():
            log_event(logger, "auth.unauthorized", reason="missing_header")
            raise AuthenticationRequiredError("No authorization header")

        token = _bearer_token(authorization)
        identity = await self._resolver.resolve(token) if token else None
        if identity is None:
            log_event(logger, "auth.unauthorized", reason="invalid_token")
            raise AuthenticationRequiredError("Unauthorized")

        if identity.role != self._admin_role:
            log_event(logger, "auth.forbidden", user_id=identity.id, role=identity.role)
            raise AuthorizationError("Forbidden: User is not an admin")

        return identity


__all__ = [
    "AccessGuard",
    "Identity",
    "IdentityResolver",
    "SessionIdentityResolver",
    "issue_session_token",
    "token_digest",
]
