import secrets
from flask import request, jsonify

CSRF_COOKIE = "csrf_token"
CSRF_HEADER = "X-CSRF-Token"

def issue_csrf_token(cookies, expires=None):
    """Queue a fresh double-submit token on the request's cookie jar."""
    token = secrets.token_urlsafe(32)
    cookies.set(
        CSRF_COOKIE,
        token,
        expires=expires,
        httponly=False,  # must be readable by client JS
    )
    return token

def require_csrf():
    cookie_token = request.cookies.get(CSRF_COOKIE)
    header_token = request.headers.get(CSRF_HEADER)
    if not cookie_token or not header_token or not secrets.compare_digest(cookie_token, header_token):
        return jsonify(error="CSRF validation failed"), 403
    return None
