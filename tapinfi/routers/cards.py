from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response

from tapinfi.services.card_display import build_vcard, profile_share_url, qr_png
from tapinfi.services.resolution_service import ResolutionService
from tapinfi.services.session_service import SessionContext, get_session_context

router = APIRouter(prefix="", tags=["cards"])
resolution_service = ResolutionService()


def _published_profile(username: str, ctx: SessionContext):
    resolution = resolution_service.resolve(username, ctx)
    if not resolution.is_published:
        raise HTTPException(404, resolution.message)
    return resolution.profile


@router.get("/v/{username}.vcf")
def vcard(username: str, ctx: SessionContext = Depends(get_session_context)):
    profile = _published_profile(username, ctx)
    return Response(
        build_vcard(profile),
        media_type="text/vcard; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{profile.username}.vcf"'},
    )


@router.get("/q/{username}.png")
def qr(username: str, ctx: SessionContext = Depends(get_session_context)):
    profile = _published_profile(username, ctx)
    return Response(qr_png(profile_share_url(profile.username)), media_type="image/png")
