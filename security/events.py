"""In-process publish/subscribe for session lifecycle events."""

import logging
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

EventHandler = Callable[[Any], None]

SET_BROWSER_ID = "set_browser_id"
SESSION_START = "session_start"
TOUCH = "touch"
INVALIDATED = "invalidated"
BROWSER_ID_MISMATCH_ERROR = "browser_id_mismatch_error"
INVALID_SESSION_ERROR = "invalid_session_error"
EXPIRED_SESSION_ERROR = "expired_session_error"
INACTIVE_SESSION_ERROR = "inactive_session_error"
HOST_MISMATCH_ERROR = "host_mismatch_error"
SEE_PASSWORD = "see_password"
MARK_AS_TWO_FACTOR = "mark_as_two_factor"
COOKIE_UPDATED = "cookie_updated"
TOKEN_RESET = "token_reset"
IMPERSONATE = "impersonate"
REVERT_TO_PARENT = "revert_to_parent"
BEFORE_CLEANUP = "before_cleanup"
AFTER_CLEANUP = "after_cleanup"


class EventBus:
    def __init__(self, isolate_errors: bool = False) -> None:
        self._subscribers: Dict[str, List[EventHandler]] = {}
        self.isolate_errors = isolate_errors

    def on(self, event_name: str, handler: EventHandler) -> EventHandler:
        handlers = self._subscribers.setdefault(event_name, [])
        handlers.append(handler)
        return handler

    def remove(self, event_name: str, handler: EventHandler) -> None:
        handlers = self._subscribers.get(event_name)
        if not handlers:
            return
        try:
            handlers.remove(handler)
        except ValueError:
            pass

    def handlers(self, event_name: str) -> List[EventHandler]:
        return list(self._subscribers.get(event_name, []))

    def dispatch(self, event_name: str, payload: Any = None) -> None:
        # Copy so a handler may remove itself while we iterate
        for handler in self.handlers(event_name):
            if not self.isolate_errors:
                handler(payload)
                continue
            try:
                handler(payload)
            except Exception:
                logger.exception("Handler %r for event %s failed", handler, event_name)
