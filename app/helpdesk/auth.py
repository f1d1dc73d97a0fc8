from __future__ import annotations

import uuid
from collections import defaultdict
from datetime import datetime, timedelta, timezone

from flask import Blueprint, current_app, flash, g, redirect, render_template, request, session, url_for

from app.helpdesk.db import get_repository
from app.helpdesk.errors import AuthenticationFailed, StoreUnavailable
from app.helpdesk.identity import AuthService, IdentityHolder

bp = Blueprint("auth", __name__)
_login_attempts: dict[str, list[datetime]] = defaultdict(list)
_LOGIN_RATE_LIMIT = 5
_LOGIN_RATE_WINDOW = 300  # seconds


def _check_rate_limit(ip: str) -> bool:
    now = datetime.now(timezone.utc)
    cutoff = now - timedelta(seconds=_LOGIN_RATE_WINDOW)
    _login_attempts[ip] = [t for t in _login_attempts[ip] if t > cutoff]
    return len(_login_attempts[ip]) >= _LOGIN_RATE_LIMIT


def _record_attempt(ip: str) -> None:
    _login_attempts[ip].append(datetime.now(timezone.utc))


def auth_service() -> AuthService:
    return AuthService(get_repository(), IdentityHolder(session))


def load_current_user() -> None:
    """
    Loads g.current_user: the session holds a cached profile, the store has
    the final say on whether the user still exists and which role it has.
    Also assigns a simple per-request request_id (for log correlation).
    """
    if not getattr(g, "request_id", None):
        g.request_id = uuid.uuid4().hex
    if request.path.startswith(("/static/", "/health")):
        g.current_user = None
        return

    try:
        g.current_user = auth_service().refresh()
    except StoreUnavailable as e:
        current_app.logger.error("load_current_user store error (clearing session): %s", e.__cause__ or e)
        IdentityHolder(session).clear()
        g.current_user = None


@bp.get("/login")
def login_get():
    if getattr(g, "current_user", None):
        return redirect(url_for("admin.index"))
    nxt = (request.args.get("next") or "").strip()
    return render_template("auth/login.html", next=nxt)


@bp.post("/login")
def login_post():
    email = (request.form.get("email") or "").strip().lower()
    password = request.form.get("password") or ""
    nxt = (request.form.get("next") or "").strip()
    ip = request.remote_addr or "unknown"

    if _check_rate_limit(ip):
        flash("Too many login attempts. Please wait 5 minutes.", "danger")
        return redirect(url_for("auth.login_get"))

    _record_attempt(ip)

    try:
        user = auth_service().login(email, password)
    except AuthenticationFailed as e:
        current_app.logger.info("Login failed (email=%s request_id=%s)", email, getattr(g, "request_id", None))
        flash(e.message, "danger")
        return redirect(url_for("auth.login_get", next=nxt or None))
    except StoreUnavailable as e:
        current_app.logger.error("Login store error (request_id=%s): %s", getattr(g, "request_id", None), e.__cause__ or e)
        flash(e.message, "danger")
        return redirect(url_for("auth.login_get", next=nxt or None))

    _login_attempts[ip].clear()
    current_app.logger.info("Login ok (user_id=%s request_id=%s)", user.id, getattr(g, "request_id", None))
    # Optional "next" redirect (only allow local paths to avoid open redirects).
    if nxt.startswith("/") and not nxt.startswith("//"):
        return redirect(nxt)
    return redirect(url_for("admin.index"))


@bp.get("/logout")
def logout():
    auth_service().logout()
    return redirect(url_for("auth.login_get"))
