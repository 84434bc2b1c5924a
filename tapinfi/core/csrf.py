"""Double-submit CSRF protection for the HTML forms of the public app.

Every rendered page carries the token both in a cookie and in a hidden
`csrf_token` field; a form post is accepted only when the two match and the
request did not come from another site.
"""
from __future__ import annotations

import hmac
import secrets
from urllib.parse import urlparse

from fastapi import HTTPException, Request, Response

from tapinfi.core.config import get_settings

CSRF_COOKIE_NAME = "csrf_token"
CSRF_HEADER_NAME = "x-csrf-token"
CSRF_COOKIE_MAX_AGE = 7 * 24 * 60 * 60
MIN_TOKEN_LENGTH = 16


class CsrfError(HTTPException):
    def __init__(self, detail: str):
        super().__init__(status_code=403, detail=detail)


def ensure_csrf_token(request: Request) -> str:
    """Reuse the visitor's cookie token, or mint a new one."""
    token = request.cookies.get(CSRF_COOKIE_NAME) or ""
    if len(token) < MIN_TOKEN_LENGTH:
        token = secrets.token_urlsafe(32)
    return token


def set_csrf_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        CSRF_COOKIE_NAME,
        token,
        max_age=CSRF_COOKIE_MAX_AGE,
        httponly=False,
        secure=get_settings().app_env == "prod",
        samesite="strict",
        path="/",
    )


def _allowed_hosts(request: Request) -> set[str]:
    hosts = {(request.headers.get("host") or "").split(":", 1)[0].lower()}
    public = urlparse(get_settings().public_base_url).hostname
    if public:
        hosts.add(public.lower())
    return {h for h in hosts if h}


def _check_origin(request: Request) -> None:
    source = request.headers.get("origin") or request.headers.get("referer")
    if not source:
        return
    try:
        parsed = urlparse(source)
    except ValueError as exc:
        raise CsrfError("Invalid origin.") from exc
    host = (parsed.hostname or "").lower()
    if host and host not in _allowed_hosts(request):
        raise CsrfError("Invalid origin.")
    if parsed.scheme and parsed.scheme != request.url.scheme:
        raise CsrfError("Invalid origin.")


def validate_csrf(request: Request, supplied_token: str | None) -> None:
    cookie_token = request.cookies.get(CSRF_COOKIE_NAME) or ""
    token = (supplied_token or request.headers.get(CSRF_HEADER_NAME) or "").strip()
    if not cookie_token or not token:
        raise CsrfError("Missing CSRF token.")
    if not hmac.compare_digest(cookie_token.encode(), token.encode()):
        raise CsrfError("Invalid CSRF token.")
    _check_origin(request)
