import hmac
import secrets

from flask import Request, session

CSRF_SESSION_KEY = "csrf_token"


def ensure_csrf_token() -> str:
    """Return the session's CSRF token, minting one on first use."""
    token = session.get(CSRF_SESSION_KEY)
    if not token:
        token = secrets.token_urlsafe(32)
        session[CSRF_SESSION_KEY] = token
    return token


def validate_csrf(req: Request) -> bool:
    """Accept the token from the X-CSRF-Token header or the csrf_token form field."""
    expected = session.get(CSRF_SESSION_KEY)
    submitted = req.headers.get("X-CSRF-Token") or req.form.get(CSRF_SESSION_KEY)
    if not expected or not submitted:
        return False
    return hmac.compare_digest(str(submitted), str(expected))
