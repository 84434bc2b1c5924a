from __future__ import annotations

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile

from tapinfi.core import csrf
from tapinfi.domain.profile_fields import EDITABLE_FIELDS
from tapinfi.routers.common import redirect, render, sign_in_redirect
from tapinfi.services.card_display import profile_share_url, resolve_photo, social_links
from tapinfi.services.profile_service import ProfileError, ProfileService, ProfileValidationError
from tapinfi.services.resolution_service import ResolutionService, ResolutionState
from tapinfi.services.session_service import SessionContext, get_session_context
from tapinfi.services.wallet_service import SaveOutcome, WalletService

router = APIRouter(prefix="/profile", tags=["profile"])
profile_service = ProfileService()
resolution_service = ResolutionService()
wallet_service = WalletService()

WALLET_MESSAGES = {
    SaveOutcome.SAVED.value: "Saved to your wallet.",
    SaveOutcome.ALREADY_SAVED.value: "Already saved in your wallet.",
}


def _editor(request: Request, ctx: SessionContext, *, values: dict, errors: dict, message: str = "",
            error: str = "", status_code: int = 200):
    profile = profile_service.load_own_profile(ctx)
    return render(
        request,
        "profile_edit.html",
        {
            "ctx": ctx,
            "profile": profile,
            "values": values,
            "errors": errors,
            "message": message,
            "error": error,
            "share_url": profile_share_url(profile.username) if profile.username else "",
        },
        status_code=status_code,
    )


@router.get("")
def edit_profile(
    request: Request,
    message: str = "",
    error: str = "",
    ctx: SessionContext = Depends(get_session_context),
):
    if not ctx.is_authenticated:
        return sign_in_redirect("/profile")
    profile = profile_service.load_own_profile(ctx)
    values = {name: getattr(profile, name) or "" for name in EDITABLE_FIELDS}
    return _editor(request, ctx, values=values, errors={}, message=message, error=error)


@router.post("")
async def save_profile(request: Request, ctx: SessionContext = Depends(get_session_context)):
    form = await request.form()
    csrf.validate_csrf(request, form.get("csrf_token"))
    if not ctx.is_authenticated:
        return sign_in_redirect("/profile")
    fields = {name: str(form.get(name) or "") for name in EDITABLE_FIELDS}
    try:
        profile_service.save_profile(ctx, fields)
    except ProfileValidationError as exc:
        return _editor(request, ctx, values=exc.values, errors=exc.errors, error=exc.message, status_code=400)
    return redirect("/profile", message="Profile saved.")


@router.post("/image/{kind}")
async def upload_image(
    request: Request,
    kind: str,
    file: UploadFile = File(...),
    csrf_token: str = Form(""),
    ctx: SessionContext = Depends(get_session_context),
):
    csrf.validate_csrf(request, csrf_token)
    if not ctx.is_authenticated:
        return sign_in_redirect("/profile")
    data = await file.read()
    try:
        profile_service.upload_image(ctx, kind, data, file.content_type)
    except ProfileError as exc:
        return redirect("/profile", error=exc.message)
    return redirect("/profile", message="Image updated.")


@router.post("/image/{kind}/remove")
def remove_image(
    request: Request,
    kind: str,
    csrf_token: str = Form(""),
    ctx: SessionContext = Depends(get_session_context),
):
    csrf.validate_csrf(request, csrf_token)
    if not ctx.is_authenticated:
        return sign_in_redirect("/profile")
    try:
        profile_service.remove_image(ctx, kind)
    except ProfileError as exc:
        return redirect("/profile", error=exc.message)
    return redirect("/profile", message="Image removed.")


@router.get("/{username}")
def public_profile(
    request: Request,
    username: str,
    wallet: str = "",
    ctx: SessionContext = Depends(get_session_context),
):
    resolution = resolution_service.resolve(username, ctx)
    if resolution.state is ResolutionState.NOT_FOUND:
        return render(request, "not_found.html", {"message": resolution.message}, status_code=404)
    if resolution.state is ResolutionState.UNPUBLISHED:
        return render(request, "unpublished.html", {"message": resolution.message}, status_code=403)
    profile = resolution.profile
    return render(
        request,
        resolution.theme.template,
        {
            "ctx": ctx,
            "profile": profile,
            "theme": resolution.theme,
            "photo_url": resolve_photo(profile.profile_pic_url),
            "socials": social_links(profile),
            "share_url": profile_share_url(profile.username),
            "is_saved": wallet_service.is_saved(ctx, profile.username),
            "wallet_message": WALLET_MESSAGES.get(wallet, ""),
        },
    )
