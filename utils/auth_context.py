from functools import wraps
from flask import current_app, g, jsonify, request
from security.binding import SessionBinding
from security.cookies import CookieJar, RequestInfo
from security.errors import SessionValidityError


def get_session_manager():
    return current_app.extensions["session_manager"]


def bind_request():
    cookies = CookieJar(
        request.cookies,
        secure=request.is_secure,
        samesite=current_app.config.get("SESSION_COOKIE_SAMESITE", "Lax"),
    )
    g.cookies = cookies
    g.auth = SessionBinding(get_session_manager(), cookies, RequestInfo.from_flask(request))
    g.auth.ensure_browser_id()


def load_current_user():
    g.session = None
    g.user = None
    try:
        sess = g.auth.touch_session()
    except SessionValidityError as exc:
        # record is already invalidated and the cookie queued for deletion
        current_app.logger.info("Rejected session cookie: %s", exc)
        return
    if not sess:
        return
    g.session = sess
    g.user = sess.user


def set_current_session(sess):
    g.auth.replace_session(sess)
    g.session = sess
    g.user = sess.user if sess else None


def write_cookies(resp):
    cookies = g.get("cookies")
    if cookies is not None:
        cookies.apply(resp)
    return resp


def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if getattr(g, "user", None) is None:
            return jsonify(error="Authentication required"), 401
        return fn(*args, **kwargs)
    return wrapper


def sudo_required(fn):
    """Sensitive actions need a password re-entry within the sudo window."""
    @wraps(fn)
    def wrapper(*args, **kwargs):
        sess = getattr(g, "session", None)
        if sess is None:
            return jsonify(error="Authentication required"), 401
        if not sess.recently_seen_password:
            return jsonify(error="Password confirmation required", sudo_required=True), 403
        return fn(*args, **kwargs)
    return wrapper
