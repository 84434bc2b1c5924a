"""Session helpers (issue tokens, cookies, the per-request session context)."""
from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import timedelta
from typing import Optional

from fastapi import Request, Response

from tapinfi.core.config import get_settings
from tapinfi.core.utils import as_utc, utcnow
from tapinfi.repositories.sql_repository import SQLRepository

SESSION_COOKIE_NAME = "session"
ADMIN_SESSION_COOKIE_NAME = "admin_session"

_repo = SQLRepository()


@dataclass(frozen=True)
class SessionContext:
    """Everything a view needs to know about who is asking.

    Built once per request by `get_session_context` and handed to every
    service call, so no view re-derives user/username/admin on its own.
    """

    identity_id: Optional[str]
    email: Optional[str] = None
    username: Optional[str] = None
    is_admin: bool = False
    is_wallet_member: bool = False

    @classmethod
    def anonymous(cls) -> "SessionContext":
        return cls(identity_id=None)

    @property
    def is_authenticated(self) -> bool:
        return bool(self.identity_id)


def issue_session(identity_id: str) -> str:
    """Create a new session token and persist it."""
    settings = get_settings()
    ttl = max(60, settings.session_ttl_seconds)
    return _repo.create_user_session(identity_id, utcnow() + timedelta(seconds=ttl))


def current_identity_id(request: Request) -> str | None:
    """Return the identity bound to the session cookie, if still valid."""
    token = request.cookies.get(SESSION_COOKIE_NAME)
    if not token:
        return None
    entity = _repo.get_user_session(token)
    if not entity:
        return None
    expires_at = as_utc(entity.expires_at)
    if expires_at and expires_at < utcnow():
        _repo.delete_user_session(token)
        return None
    return entity.identity_id


def load_admin_session(token: str | None):
    """Return the admin session row for a token, dropping it once expired."""
    if not token:
        return None
    entity = _repo.get_admin_session(token)
    if not entity:
        return None
    expires_at = as_utc(entity.expires_at)
    if expires_at and expires_at < utcnow():
        _repo.delete_admin_session(token)
        return None
    return entity


def _holds_admin_session(request: Request) -> bool:
    entity = load_admin_session(request.cookies.get(ADMIN_SESSION_COOKIE_NAME))
    if not entity:
        return False
    profile = _repo.get_profile(entity.identity_id)
    return bool(profile and profile.is_admin)


def build_session_context(identity_id: str | None) -> SessionContext:
    if not identity_id:
        return SessionContext.anonymous()
    identity = _repo.get_identity(identity_id)
    if not identity:
        return SessionContext.anonymous()
    profile = _repo.get_profile(identity_id)
    return SessionContext(
        identity_id=identity.id,
        email=identity.email,
        username=profile.username if profile else None,
        is_admin=bool(profile and profile.is_admin),
        is_wallet_member=_repo.get_wallet_user(identity_id) is not None,
    )


def get_session_context(request: Request) -> SessionContext:
    """FastAPI dependency resolving the single session context of a request."""
    cached = getattr(request.state, "session_context", None)
    if cached is not None:
        return cached
    ctx = build_session_context(current_identity_id(request))
    if not ctx.is_admin and _holds_admin_session(request):
        # signed in through /admin only
        ctx = replace(ctx, is_admin=True)
    request.state.session_context = ctx
    return ctx


def set_session_cookie(response: Response, token: str) -> None:
    settings = get_settings()
    response.set_cookie(
        SESSION_COOKIE_NAME,
        token,
        httponly=True,
        secure=settings.app_env == "prod",
        samesite="lax",
        max_age=settings.session_ttl_seconds,
        path="/",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(SESSION_COOKIE_NAME, path="/")


def delete_session(token: str | None) -> None:
    if not token:
        return
    _repo.delete_user_session(token)
