from __future__ import annotations

from fastapi import APIRouter, Depends, Form, Request

from tapinfi.core import csrf
from tapinfi.routers.common import redirect, render, sign_in_redirect
from tapinfi.services.session_service import SessionContext, get_session_context
from tapinfi.services.theme_service import ThemeError, ThemeService

router = APIRouter(prefix="/themes", tags=["themes"])
theme_service = ThemeService()


@router.get("")
def list_themes(
    request: Request,
    message: str = "",
    error: str = "",
    ctx: SessionContext = Depends(get_session_context),
):
    if not ctx.is_authenticated:
        return sign_in_redirect("/themes")
    themes = theme_service.list_user_themes(ctx.identity_id)
    return render(
        request,
        "themes.html",
        {"ctx": ctx, "themes": themes, "message": message, "error": error},
    )


@router.post("/apply")
def apply_theme(
    request: Request,
    theme_id: str = Form(""),
    csrf_token: str = Form(""),
    ctx: SessionContext = Depends(get_session_context),
):
    csrf.validate_csrf(request, csrf_token)
    if not ctx.is_authenticated:
        return sign_in_redirect("/themes")
    try:
        theme_service.apply_theme(ctx.identity_id, theme_id)
    except ThemeError as exc:
        return redirect("/themes", error=exc.message)
    return redirect("/themes", message="Theme applied.")
