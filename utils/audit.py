import json
from flask import has_request_context, request
from models import db
from models.audit_log import AuditLog
from security import events as ev

def log_event(action: str, user_id=None, session_id=None, metadata=None):
    ip = None
    user_agent = None
    if has_request_context():
        ip = request.headers.get("X-Forwarded-For", request.remote_addr)
        user_agent = request.headers.get("User-Agent", "")

    row = AuditLog(
        user_id=user_id,
        session_id=session_id,
        action=action,
        ip=ip,
        user_agent=user_agent[:255] if user_agent else None,
        metadata_json=json.dumps(metadata) if metadata else None
    )
    db.session.add(row)
    db.session.commit()


# event name -> audit action, for events whose payload is a Session
SESSION_AUDIT_ACTIONS = {
    ev.SESSION_START: "SESSION_START",
    ev.INVALIDATED: "SESSION_INVALIDATED",
    ev.BROWSER_ID_MISMATCH_ERROR: "SESSION_BROWSER_ID_MISMATCH",
    ev.INVALID_SESSION_ERROR: "SESSION_INVALID",
    ev.EXPIRED_SESSION_ERROR: "SESSION_EXPIRED",
    ev.INACTIVE_SESSION_ERROR: "SESSION_INACTIVE",
    ev.HOST_MISMATCH_ERROR: "SESSION_HOST_MISMATCH",
    ev.SEE_PASSWORD: "SESSION_PASSWORD_SEEN",
    ev.MARK_AS_TWO_FACTOR: "SESSION_TWO_FACTORED",
    ev.TOKEN_RESET: "SESSION_TOKEN_RESET",
    ev.IMPERSONATE: "SESSION_IMPERSONATE",
    ev.REVERT_TO_PARENT: "SESSION_REVERT",
}


def _session_handler(action: str):
    def handler(session):
        record = session.record
        metadata = None
        if record.parent_id is not None:
            metadata = {"parent_id": record.parent_id}
        log_event(action, user_id=record.user_id, session_id=record.id, metadata=metadata)
    return handler


def register_session_audit(events):
    """Write an AuditLog row for every security-relevant session event."""
    for event_name, action in SESSION_AUDIT_ACTIONS.items():
        events.on(event_name, _session_handler(action))

    events.on(
        ev.AFTER_CLEANUP,
        lambda invalidated: log_event("SESSION_CLEANUP", metadata={"invalidated": len(invalidated or [])}),
    )
