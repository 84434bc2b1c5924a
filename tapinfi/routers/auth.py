from __future__ import annotations

from fastapi import APIRouter, Depends, Form, Request

from tapinfi.core import csrf, rate_limiter
from tapinfi.core.config import get_settings
from tapinfi.core.utils import DEFAULT_AFTER_LOGIN, safe_next_path
from tapinfi.routers.common import redirect, render, sign_in_redirect
from tapinfi.services.auth_service import (
    AccountExistsError,
    AuthError,
    AuthService,
    EmailNotConfirmedError,
    InvalidCredentialsError,
    TokenInvalidError,
)
from tapinfi.services.session_service import (
    SESSION_COOKIE_NAME,
    SessionContext,
    clear_session_cookie,
    get_session_context,
    set_session_cookie,
)

router = APIRouter(prefix="", tags=["auth"])
auth_service = AuthService()


def _signed_in_redirect(next_path: str | None, session_token: str):
    resp = redirect(safe_next_path(next_path))
    set_session_cookie(resp, session_token)
    return resp


@router.get("/")
def index(
    request: Request,
    next: str = "",
    error: str = "",
    message: str = "",
    ctx: SessionContext = Depends(get_session_context),
):
    if ctx.is_authenticated:
        return redirect(safe_next_path(next))
    return render(
        request,
        "index.html",
        {"next": safe_next_path(next, ""), "error": error, "message": message},
    )


@router.post("/auth/login")
def do_login(
    request: Request,
    email: str = Form(""),
    password: str = Form(""),
    next: str = Form(""),
    csrf_token: str = Form(""),
):
    rate_limiter.rate_limit_ip(request, rate_limiter.SIGN_IN)
    csrf.validate_csrf(request, csrf_token)
    try:
        outcome = auth_service.sign_in(email, password)
    except EmailNotConfirmedError as exc:
        return render(
            request,
            "check_email.html",
            {"email": exc.email, "email_sent": exc.email_sent, "confirm_path": "", "pending": True},
        )
    except InvalidCredentialsError as exc:
        return sign_in_redirect(safe_next_path(next, ""), error=exc.message)
    return _signed_in_redirect(next, outcome.session_token)


@router.post("/auth/signup")
def do_signup(
    request: Request,
    email: str = Form(""),
    password: str = Form(""),
    confirm: str = Form(""),
    next: str = Form(""),
    csrf_token: str = Form(""),
):
    rate_limiter.rate_limit_ip(request, rate_limiter.SIGN_UP)
    csrf.validate_csrf(request, csrf_token)
    next_path = safe_next_path(next, "")
    if password != confirm:
        return sign_in_redirect(next_path, error="Passwords do not match.")
    try:
        result = auth_service.sign_up(email, password, next_path or None)
    except AccountExistsError as exc:
        return sign_in_redirect(next_path, error=f"{exc.message} Sign in instead.")
    except AuthError as exc:
        return sign_in_redirect(next_path, error=exc.message)
    show_link = get_settings().app_env != "prod" or not result.email_sent
    return render(
        request,
        "check_email.html",
        {
            "email": result.email,
            "email_sent": result.email_sent,
            "confirm_path": result.confirm_path if show_link else "",
            "pending": False,
        },
    )


@router.get("/confirm-email")
def confirm_email(request: Request, token: str = "", next: str = ""):
    try:
        result = auth_service.confirm_email(token)
    except TokenInvalidError as exc:
        return render(
            request,
            "message.html",
            {"title": "Link expired", "heading": "Link invalid or expired", "body": exc.message,
             "action_href": "/", "action_label": "Back to sign in"},
            status_code=400,
        )
    return _signed_in_redirect(next, result.session_token)


@router.post("/auth/logout")
def logout(request: Request, csrf_token: str = Form("")):
    csrf.validate_csrf(request, csrf_token)
    auth_service.sign_out(request.cookies.get(SESSION_COOKIE_NAME))
    resp = redirect("/")
    clear_session_cookie(resp)
    return resp


@router.get("/forgot-password")
def forgot_password(request: Request, message: str = "", error: str = ""):
    return render(request, "forgot_password.html", {"message": message, "error": error})


@router.post("/forgot-password")
def forgot_password_submit(request: Request, email: str = Form(""), csrf_token: str = Form("")):
    rate_limiter.rate_limit_ip(request, rate_limiter.FORGOT_PASSWORD)
    csrf.validate_csrf(request, csrf_token)
    auth_service.request_password_reset(email)
    return redirect(
        "/forgot-password",
        message="If the email is registered, a reset link is on its way.",
    )


@router.get("/reset-password")
def reset_form(request: Request, token: str = "", error: str = ""):
    if not auth_service.validate_reset_token(token):
        return render(
            request,
            "message.html",
            {"title": "Link expired", "heading": "Link invalid or expired",
             "body": "Request a new link to reset your password.",
             "action_href": "/forgot-password", "action_label": "Request again"},
            status_code=400,
        )
    return render(request, "reset_password.html", {"token": token, "error": error})


@router.post("/reset-password")
def reset_password(
    request: Request,
    token: str = Form(""),
    password: str = Form(""),
    confirm: str = Form(""),
    csrf_token: str = Form(""),
):
    rate_limiter.rate_limit_ip(request, rate_limiter.RESET_PASSWORD)
    csrf.validate_csrf(request, csrf_token)
    if password != confirm:
        return redirect("/reset-password", token=token, error="Passwords do not match.")
    try:
        auth_service.reset_password(token, password)
    except TokenInvalidError:
        return redirect("/forgot-password", error="Link invalid or expired.")
    except AuthError as exc:
        return redirect("/reset-password", token=token, error=exc.message)
    return sign_in_redirect(DEFAULT_AFTER_LOGIN, message="Password updated. Sign in with your new password.")


@router.post("/auth/change-password")
def change_password(
    request: Request,
    current_password: str = Form(""),
    new_password: str = Form(""),
    csrf_token: str = Form(""),
    ctx: SessionContext = Depends(get_session_context),
):
    csrf.validate_csrf(request, csrf_token)
    if not ctx.is_authenticated:
        return sign_in_redirect("/profile")
    try:
        auth_service.change_password(ctx.identity_id, current_password, new_password)
    except AuthError as exc:
        return redirect("/profile", error=exc.message)
    return redirect("/profile", message="Password changed.")
