import logging
from datetime import timedelta
from typing import Optional

from security import events as ev
from security.cookies import CookieJar, RequestInfo
from security.errors import SessionValidityError
from security.manager import SessionManager
from security.session import Session

logger = logging.getLogger(__name__)

BROWSER_ID_LIFETIME = timedelta(days=5 * 365)

_NOT_LOADED = object()


class SessionBinding:
    """Joins one request's cookies to the session engine."""

    def __init__(self, manager: SessionManager, cookies: CookieJar, request: RequestInfo):
        self.manager = manager
        self.cookies = cookies
        self.request = request
        self._session = _NOT_LOADED

    @property
    def browser_id(self) -> Optional[str]:
        return self.cookies.get(self.manager.settings.browser_id_cookie_name)

    def ensure_browser_id(self) -> str:
        """
        Return the browser ID cookie, issuing a fresh one if the browser has none.

        A candidate that any stored session already uses is thrown away; two
        browsers must never share session history.
        """
        cookie_name = self.manager.settings.browser_id_cookie_name
        existing = self.cookies.get(cookie_name)
        if existing:
            return existing

        while True:
            proposed = self.manager.tokens.new_browser_id()
            if not self.manager.store.browser_id_exists(proposed):
                break
            logger.warning("Generated browser ID collided with an existing one, retrying")

        self.cookies.set(
            cookie_name,
            proposed,
            expires=self.manager.now() + BROWSER_ID_LIFETIME,
        )
        self.manager.events.dispatch(ev.SET_BROWSER_ID, proposed)
        return proposed

    def current_session(self) -> Optional[Session]:
        """The session named by the token cookie, or None. Never raises for logged-out."""
        if self._session is _NOT_LOADED:
            self._session = Session.lookup(self.manager, self.cookies, self.request)
        return self._session

    @property
    def logged_in(self) -> bool:
        return isinstance(self.current_session(), Session)

    @property
    def current_user(self):
        session = self.current_session()
        if session is None:
            return None
        return session.user

    def touch_session(self) -> Optional[Session]:
        """
        Validate then touch the current session. Validity errors propagate after
        the binding forgets the session, so the rest of the request is anonymous.
        """
        session = self.current_session()
        if session is None:
            return None
        try:
            session.validate()
        except SessionValidityError:
            self._session = None
            raise
        return session.touch()

    def create_session(self, principal, **kwargs) -> Optional[Session]:
        """Start a session for principal; passing None logs the browser out instead."""
        if principal is None:
            self.invalidate_session()
            return None
        self._session = Session.start(
            self.manager, self.cookies, self.request, principal=principal, **kwargs
        )
        return self._session

    def invalidate_session(self) -> bool:
        session = self.current_session()
        if session is None:
            return False
        session.invalidate()
        self._session = None
        return True

    def replace_session(self, session: Optional[Session]) -> None:
        """Point the binding at a session produced by impersonate/revert."""
        self._session = session
