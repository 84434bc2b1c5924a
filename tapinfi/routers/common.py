"""Rendering and redirect helpers shared by the routers."""
from __future__ import annotations

from urllib.parse import urlencode

from fastapi import Request
from fastapi.responses import RedirectResponse

from tapinfi.core import csrf


def _templates(request: Request):
    tpl = getattr(getattr(request.app, "state", None), "templates", None)
    if tpl:
        return tpl
    raise RuntimeError("Templates are not configured")


def render(request: Request, name: str, context: dict | None = None, *, status_code: int = 200):
    """Render a template with a fresh CSRF token in both the page and the cookie."""
    token = csrf.ensure_csrf_token(request)
    payload = {"csrf_token": token}
    payload.update(context or {})
    response = _templates(request).TemplateResponse(request, name, payload, status_code=status_code)
    csrf.set_csrf_cookie(response, token)
    return response


def redirect(path: str, **params) -> RedirectResponse:
    query = {k: v for k, v in params.items() if v not in (None, "")}
    dest = path
    if query:
        dest += ("&" if "?" in path else "?") + urlencode(query, safe="/")
    return RedirectResponse(dest, status_code=303)


def sign_in_redirect(next_path: str, **params) -> RedirectResponse:
    """Send the visitor to the sign-in page, carrying where they were going."""
    return redirect("/", next=next_path, **params)
