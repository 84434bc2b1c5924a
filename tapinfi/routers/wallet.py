from __future__ import annotations

from fastapi import APIRouter, Depends, Form, Request

from tapinfi.core import csrf
from tapinfi.core.utils import safe_next_path
from tapinfi.routers.common import redirect, render, sign_in_redirect
from tapinfi.services.card_display import resolve_photo
from tapinfi.services.session_service import SessionContext, get_session_context
from tapinfi.services.wallet_service import (
    AuthenticationRequired,
    CardNotFoundError,
    MembershipRequired,
    WalletService,
)

router = APIRouter(prefix="/wallet", tags=["wallet"])
wallet_service = WalletService()


def _join_redirect(next_path: str):
    return redirect("/wallet/join", next=next_path)


def _page_number(value: str) -> int:
    try:
        return max(1, int(value))
    except (TypeError, ValueError):
        return 1


@router.get("")
def wallet_home(
    request: Request,
    search: str = "",
    page: str = "1",
    ctx: SessionContext = Depends(get_session_context),
):
    try:
        wallet_page = wallet_service.list_cards(ctx, search=search, page=_page_number(page))
    except AuthenticationRequired as exc:
        return sign_in_redirect(exc.next_path)
    except MembershipRequired as exc:
        return _join_redirect(exc.next_path)
    return render(
        request,
        "wallet.html",
        {"ctx": ctx, "wallet": wallet_page, "resolve_photo": resolve_photo},
    )


@router.get("/join")
def join_form(request: Request, next: str = "", ctx: SessionContext = Depends(get_session_context)):
    next_path = safe_next_path(next, "/wallet")
    if not ctx.is_authenticated:
        return sign_in_redirect(f"/wallet/join?next={next_path}")
    if ctx.is_wallet_member:
        return redirect(next_path)
    return render(request, "wallet_join.html", {"ctx": ctx, "next": next_path})


@router.post("/join")
def join(
    request: Request,
    next: str = Form(""),
    csrf_token: str = Form(""),
    ctx: SessionContext = Depends(get_session_context),
):
    csrf.validate_csrf(request, csrf_token)
    next_path = safe_next_path(next, "/wallet")
    try:
        wallet_service.ensure_membership(ctx)
    except AuthenticationRequired:
        return sign_in_redirect(f"/wallet/join?next={next_path}")
    return redirect(next_path)


@router.post("/save/{username}")
def save_card(
    request: Request,
    username: str,
    csrf_token: str = Form(""),
    ctx: SessionContext = Depends(get_session_context),
):
    csrf.validate_csrf(request, csrf_token)
    try:
        outcome = wallet_service.save(ctx, username, f"/profile/{username}")
    except AuthenticationRequired as exc:
        return sign_in_redirect(exc.next_path)
    except MembershipRequired as exc:
        return _join_redirect(exc.next_path)
    except CardNotFoundError as exc:
        return render(request, "not_found.html", {"message": exc.message}, status_code=404)
    return redirect(f"/profile/{username}", wallet=outcome.value)


@router.post("/remove/{username}")
def remove_card(
    request: Request,
    username: str,
    csrf_token: str = Form(""),
    ctx: SessionContext = Depends(get_session_context),
):
    csrf.validate_csrf(request, csrf_token)
    try:
        wallet_service.remove(ctx, username)
    except AuthenticationRequired as exc:
        return sign_in_redirect(exc.next_path)
    except MembershipRequired as exc:
        return _join_redirect(exc.next_path)
    return redirect("/wallet")


@router.get("/open/{username}")
def open_card(username: str, ctx: SessionContext = Depends(get_session_context)):
    wallet_service.mark_viewed(ctx, username)
    return redirect(f"/profile/{username}")
