from flask import Blueprint, request, jsonify, g

from models import db
from models.user import User, Role
from security.csrf import CSRF_COOKIE, issue_csrf_token
from security.errors import NoParentSessionForRevert, SessionError, SessionValidityError
from security.password import hash_password, verify_password
from security.rbac import require_roles
from utils.audit import log_event
from utils.auth_context import login_required, set_current_session, sudo_required


auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


def _is_valid_email(email: str) -> bool:
    return isinstance(email, str) and "@" in email and len(email) <= 255


def _isoformat(value):
    return value.isoformat() if value else None


def _session_summary(sess):
    record = sess.record
    return {
        "id": record.id,
        "persistent": sess.persistent,
        "expires_at": _isoformat(record.expires_at),
        "login_at": _isoformat(record.login_at),
        "last_activity_at": _isoformat(record.last_activity_at),
        "requests": record.requests,
        "recently_seen_password": sess.recently_seen_password,
        "two_factored": sess.two_factored,
        "two_factor_required": sess.two_factor_required,
        "impersonating": record.parent_id is not None,
    }


@auth_bp.errorhandler(SessionValidityError)
def _handle_validity_error(exc):
    return jsonify(error=str(exc)), 401


@auth_bp.errorhandler(SessionError)
def _handle_session_error(exc):
    return jsonify(error=str(exc)), 400


@auth_bp.post("/register")
def register():
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""

    if not _is_valid_email(email):
        return jsonify(error="Invalid email"), 400
    if len(password) < 8:
        return jsonify(error="Password must be at least 8 characters"), 400

    if User.query.filter_by(email=email).first():
        log_event("REGISTER_FAIL_EMAIL_EXISTS", metadata={"email": email})
        return jsonify(error="Email already registered"), 409

    user = User(email=email, password_hash=hash_password(password))
    db.session.add(user)
    db.session.flush()

    user_role = Role.query.filter_by(name="USER").first()
    if user_role:
        user.roles.append(user_role)

    db.session.commit()
    log_event("REGISTER_SUCCESS", user_id=user.id)

    return jsonify(message="Registered successfully", id=user.id), 201


@auth_bp.post("/login")
def login():
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    remember = bool(data.get("remember"))

    user = User.query.filter_by(email=email).first()
    if not user or not verify_password(password, user.password_hash):
        log_event(
            "LOGIN_FAIL",
            user_id=user.id if user else None,
            metadata={"email": email},
        )
        return jsonify(error="Invalid credentials"), 401

    # Any session already open in this browser is invalidated by start()
    sess = g.auth.create_session(user, persistent=remember, see_password=True)
    set_current_session(sess)
    issue_csrf_token(g.cookies, expires=sess.record.expires_at)

    return jsonify(message="Login OK", session=_session_summary(sess)), 200


@auth_bp.get("/me")
@login_required
def me():
    return jsonify(
        id=g.user.id,
        email=g.user.email,
        roles=[r.name for r in g.user.roles],
        full_name=g.user.full_name,
        session=_session_summary(g.session),
    ), 200


@auth_bp.post("/logout")
@login_required
def logout():
    user_id = g.user.id
    g.auth.invalidate_session()
    set_current_session(None)
    g.cookies.delete(CSRF_COOKIE)
    log_event("LOGOUT", user_id=user_id)
    return jsonify(message="Logged out"), 200


@auth_bp.post("/logout_others")
@login_required
def logout_others():
    count = g.session.invalidate_others()
    log_event("LOGOUT_OTHERS", user_id=g.user.id, session_id=g.session.id, metadata={"count": count})
    return jsonify(message="Other sessions logged out", revoked_sessions=count), 200


@auth_bp.post("/persist")
@login_required
def persist():
    g.session.persist()
    issue_csrf_token(g.cookies, expires=g.session.record.expires_at)
    return jsonify(session=_session_summary(g.session)), 200


@auth_bp.post("/confirm_password")
@login_required
def confirm_password():
    data = request.get_json(silent=True) or {}
    if not verify_password(data.get("password") or "", g.user.password_hash):
        log_event("SUDO_FAIL", user_id=g.user.id, session_id=g.session.id)
        return jsonify(error="Invalid credentials"), 401

    g.session.see_password()
    return jsonify(session=_session_summary(g.session)), 200


@auth_bp.post("/rotate")
@login_required
def rotate():
    g.session.reset_token()
    return jsonify(message="Session token rotated"), 200


@auth_bp.post("/impersonate/<int:user_id>")
@require_roles("ADMIN")
@sudo_required
def impersonate(user_id: int):
    target = db.session.get(User, user_id)
    if not target:
        return jsonify(error="User not found"), 404

    child = g.session.impersonate(target)
    set_current_session(child)

    return jsonify(message="Impersonating", user_id=target.id, session=_session_summary(child)), 200


@auth_bp.post("/revert")
@login_required
def revert():
    try:
        parent = g.session.revert_to_parent()
    except NoParentSessionForRevert as exc:
        return jsonify(error=str(exc)), 400

    set_current_session(parent)
    return jsonify(message="Reverted", user_id=g.user.id, session=_session_summary(parent)), 200
