from __future__ import annotations

import html
import logging
import secrets
from datetime import timedelta
from urllib.parse import quote

from fastapi import FastAPI, Form, HTTPException, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from tapinfi.core.config import get_settings
from tapinfi.core.utils import utcnow
from tapinfi.repositories.sql_repository import SQLRepository
from tapinfi.services.auth_service import AuthError, AuthService, NotAdminError
from tapinfi.services.session_service import ADMIN_SESSION_COOKIE_NAME, load_admin_session
from tapinfi.services.theme_service import ThemeError, ThemeService

logger = logging.getLogger(__name__)

app = FastAPI(title="Tapinfi Admin")
repo = SQLRepository()
auth_service = AuthService()
theme_service = ThemeService()

MESSAGES = {
    "credentials": "Invalid credentials.",
    "not_admin": "This account has no access to the admin dashboard.",
    "not_found": "User not found.",
    "published": "Profile published.",
    "unpublished": "Profile unpublished.",
    "unlocked": "Username and full name unlocked.",
    "assigned": "Theme assigned.",
    "unassigned": "Theme unassigned.",
    "theme_added": "Theme added.",
}


# ---------------------- helpers ----------------------
def _url(request: Request, path: str) -> str:
    """Prefix a path with the mount point of this app (empty when served standalone)."""
    return (request.scope.get("root_path") or "").rstrip("/") + path


def _redirect(request: Request, path: str) -> RedirectResponse:
    return RedirectResponse(_url(request, path), status_code=303)


def _issue_admin_session(identity_id: str) -> tuple[str, str]:
    csrf_token = secrets.token_urlsafe(32)
    expires_at = utcnow() + timedelta(seconds=get_settings().admin_session_ttl_seconds)
    token = repo.create_admin_session(identity_id, csrf_token, expires_at)
    return token, csrf_token


def require_admin(request: Request):
    """Return the admin's profile for a valid admin session, else raise."""
    sess = load_admin_session(request.cookies.get(ADMIN_SESSION_COOKIE_NAME))
    if not sess:
        raise HTTPException(401, "Not signed in.")
    profile = repo.get_profile(sess.identity_id)
    if not profile or not profile.is_admin:
        raise HTTPException(403, "Forbidden.")
    return profile


def _csrf_protect(request: Request, form_token: str) -> None:
    sess = load_admin_session(request.cookies.get(ADMIN_SESSION_COOKIE_NAME))
    if not sess or not form_token or not secrets.compare_digest(sess.csrf_token, form_token):
        raise HTTPException(403, "Invalid CSRF token.")
    profile = repo.get_profile(sess.identity_id)
    if not profile or not profile.is_admin:
        raise HTTPException(403, "Forbidden.")


def _csrf_value(request: Request) -> str:
    sess = load_admin_session(request.cookies.get(ADMIN_SESSION_COOKIE_NAME))
    return sess.csrf_token if sess else ""


def _banner(ok: str, error: str) -> str:
    if error:
        return f"<mark role='alert'>{html.escape(MESSAGES.get(error, error))}</mark>"
    if ok:
        return f"<p><ins>{html.escape(MESSAGES.get(ok, ok))}</ins></p>"
    return ""


def _layout(request: Request, title: str, body: str) -> HTMLResponse:
    return HTMLResponse(
        f"""
        <!doctype html><html lang='en'><head>
        <meta charset='utf-8'><meta name='viewport' content='width=device-width,initial-scale=1'>
        <link rel="stylesheet" href="https://unpkg.com/@picocss/pico@2.0.6/css/pico.min.css">
        <title>{html.escape(title)}</title>
        <style>table {{font-size:14px}} td,th {{white-space:nowrap}} form.inline {{display:inline;margin:0}}</style>
        </head><body>
        <main class="container">
          <nav><ul><li><strong>Tapinfi admin</strong></li></ul>
              <ul><li><a href="{_url(request, '/dashboard')}">Users</a></li>
                  <li><a href="{_url(request, '/themes')}">Themes</a></li>
                  <li><a href="{_url(request, '/logout')}">Sign out</a></li></ul>
          </nav>
          {body}
        </main>
        </body></html>
        """
    )


def _hidden_csrf(token: str) -> str:
    return f"<input type='hidden' name='csrf_token' value='{html.escape(token)}'>"


# ---------------------- auth ----------------------
@app.get("/login", response_class=HTMLResponse)
def login_page(request: Request, error: str = ""):
    msg = MESSAGES.get(error, "")
    return HTMLResponse(
        f"""
        <!doctype html><html lang='en'><head>
        <meta charset='utf-8'><meta name='viewport' content='width=device-width,initial-scale=1'>
        <link rel="stylesheet" href="https://unpkg.com/@picocss/pico@2.0.6/css/pico.min.css">
        <title>Admin | Sign in</title></head>
        <body><main class="container">
          <article>
            <h1>Admin | Sign in</h1>
            {('<mark role="alert">' + html.escape(msg) + '</mark>') if msg else ''}
            <form method='post' action='{_url(request, "/login")}'>
              <label>Email</label><input name='email' type='email' required>
              <label>Password</label><input name='password' type='password' required>
              <button style='margin-top:12px'>Sign in</button>
            </form>
          </article>
        </main></body></html>
        """
    )


@app.post("/login")
def do_login(request: Request, email: str = Form(""), password: str = Form("")):
    try:
        identity = auth_service.authenticate_admin(email, password)
    except NotAdminError:
        return _redirect(request, "/login?error=not_admin")
    except AuthError:
        return _redirect(request, "/login?error=credentials")
    token, _csrf = _issue_admin_session(identity.id)
    resp = _redirect(request, "/dashboard")
    resp.set_cookie(
        ADMIN_SESSION_COOKIE_NAME,
        value=token,
        httponly=True,
        samesite="strict",
        secure=get_settings().app_env == "prod",
        max_age=get_settings().admin_session_ttl_seconds,
        path="/",
    )
    logger.info("Admin %s signed in", identity.email)
    return resp


@app.get("/logout")
def logout(request: Request):
    tok = request.cookies.get(ADMIN_SESSION_COOKIE_NAME)
    if tok:
        repo.delete_admin_session(tok)
    resp = _redirect(request, "/login")
    resp.delete_cookie(ADMIN_SESSION_COOKIE_NAME, path="/")
    return resp


@app.get("/")
def admin_root(request: Request):
    return _redirect(request, "/dashboard")


# ---------------------- dashboard ----------------------
def _user_row(request: Request, profile, csrf_token: str) -> str:
    uid = html.escape(profile.id)
    username = html.escape(profile.username or "")
    publish_to = "0" if profile.publish else "1"
    publish_label = "Unpublish" if profile.publish else "Publish"
    view = (
        f"<a href='/profile/{quote(profile.username)}' class='secondary'>View</a>" if profile.username else ""
    )
    unlock = ""
    if profile.is_username_locked or profile.is_fullname_locked:
        unlock = (
            f"<form class='inline' method='post' action='{_url(request, f'/users/{uid}/unlock')}'>"
            f"{_hidden_csrf(csrf_token)}<button class='secondary outline'>Unlock</button></form>"
        )
    return (
        "<tr>"
        f"<td>{html.escape(profile.user_email or '')}</td>"
        f"<td>{html.escape(profile.phone_number or '')}</td>"
        f"<td>{username}</td>"
        f"<td>{'yes' if profile.publish else 'no'}</td>"
        "<td>"
        f"<form class='inline' method='post' action='{_url(request, f'/users/{uid}/publish')}'>"
        f"{_hidden_csrf(csrf_token)}<input type='hidden' name='publish' value='{publish_to}'>"
        f"<button>{publish_label}</button></form> {unlock} {view}"
        "</td></tr>"
    )


@app.get("/dashboard", response_class=HTMLResponse)
def dashboard(request: Request, search: str = "", ok: str = "", error: str = ""):
    try:
        require_admin(request)
    except HTTPException:
        return _redirect(request, "/login")
    csrf_token = _csrf_value(request)
    profiles = repo.list_profiles(search)
    rows = "".join(_user_row(request, p, csrf_token) for p in profiles)
    if not rows:
        rows = "<tr><td colspan='5'>No users found.</td></tr>"
    body = f"""
      <article>
        <h3>Users</h3>
        {_banner(ok, error)}
        <form method='get' action='{_url(request, "/dashboard")}' role='search'>
          <input name='search' value='{html.escape(search)}' placeholder='Search by email or username'>
          <button>Search</button>
        </form>
        <table>
          <thead><tr><th>Email</th><th>Phone</th><th>Username</th><th>Published</th><th>Actions</th></tr></thead>
          <tbody>{rows}</tbody>
        </table>
      </article>
    """
    return _layout(request, "Admin | Users", body)


@app.post("/users/{user_id}/publish")
def set_publish(user_id: str, request: Request, publish: str = Form("1"), csrf_token: str = Form("")):
    _csrf_protect(request, csrf_token)
    if not repo.get_profile(user_id):
        return _redirect(request, "/dashboard?error=not_found")
    value = publish == "1"
    repo.set_publish(user_id, value)
    return _redirect(request, f"/dashboard?ok={'published' if value else 'unpublished'}")


@app.post("/users/{user_id}/unlock")
def unlock_user(user_id: str, request: Request, csrf_token: str = Form("")):
    _csrf_protect(request, csrf_token)
    if not repo.get_profile(user_id):
        return _redirect(request, "/dashboard?error=not_found")
    repo.unlock_profile(user_id)
    return _redirect(request, "/dashboard?ok=unlocked")


# ---------------------- themes ----------------------
@app.get("/themes", response_class=HTMLResponse)
def list_themes(request: Request, search: str = "", ok: str = "", error: str = ""):
    try:
        require_admin(request)
    except HTTPException:
        return _redirect(request, "/login")
    csrf_token = _csrf_value(request)
    themes = theme_service.list_available()
    assigned = theme_service.assignments()
    head = "".join(f"<th>{html.escape(t.name)}<br><small>{html.escape(t.id)}</small></th>" for t in themes)
    rows = []
    for profile in repo.list_profiles(search):
        cells = []
        for theme in themes:
            is_on = theme.id in assigned.get(profile.id, set())
            cells.append(
                "<td>"
                f"<form class='inline' method='post' action='{_url(request, '/themes/toggle')}'>"
                f"{_hidden_csrf(csrf_token)}"
                f"<input type='hidden' name='user_id' value='{html.escape(profile.id)}'>"
                f"<input type='hidden' name='theme_id' value='{html.escape(theme.id)}'>"
                f"<button class='{'' if is_on else 'secondary outline'}'>{'Assigned' if is_on else 'Assign'}</button>"
                "</form></td>"
            )
        label = html.escape(profile.username or profile.user_email or profile.id)
        rows.append(f"<tr><td>{label}</td>{''.join(cells)}</tr>")
    body = f"""
      <article>
        <h3>Available themes</h3>
        {_banner(ok, error)}
        <form method='post' action='{_url(request, "/themes")}' class='grid'>
          {_hidden_csrf(csrf_token)}
          <input name='theme_id' placeholder='Theme id (e.g. GreenProfile)' required>
          <input name='name' placeholder='Display name' required>
          <input name='image_url' placeholder='Preview image URL (optional)'>
          <button>Add theme</button>
        </form>
      </article>
      <article>
        <h3>Assignments</h3>
        <form method='get' action='{_url(request, "/themes")}' role='search'>
          <input name='search' value='{html.escape(search)}' placeholder='Search by email or username'>
          <button>Search</button>
        </form>
        <table>
          <thead><tr><th>User</th>{head}</tr></thead>
          <tbody>{''.join(rows) or "<tr><td>No users found.</td></tr>"}</tbody>
        </table>
      </article>
    """
    return _layout(request, "Admin | Themes", body)


@app.post("/themes")
def add_theme(
    request: Request,
    theme_id: str = Form(""),
    name: str = Form(""),
    image_url: str = Form(""),
    csrf_token: str = Form(""),
):
    _csrf_protect(request, csrf_token)
    try:
        theme_service.create_theme(theme_id, name, image_url)
    except ThemeError as exc:
        return _redirect(request, f"/themes?error={quote(exc.message)}")
    return _redirect(request, "/themes?ok=theme_added")


@app.post("/themes/toggle")
def toggle_theme(request: Request, user_id: str = Form(""), theme_id: str = Form(""), csrf_token: str = Form("")):
    _csrf_protect(request, csrf_token)
    try:
        now_assigned = theme_service.toggle_assignment(user_id, theme_id)
    except ThemeError as exc:
        return _redirect(request, f"/themes?error={quote(exc.message)}")
    return _redirect(request, f"/themes?ok={'assigned' if now_assigned else 'unassigned'}")
