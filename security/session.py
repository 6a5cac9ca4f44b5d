import logging

from models.session import SessionRecord
from security import events as ev
from security.errors import (
    BrowserMismatch,
    ExpiredSession,
    HostMismatch,
    ImpersonationError,
    InactiveSession,
    NoParentSessionForRevert,
)

logger = logging.getLogger(__name__)

_UNRESOLVED = object()


class Session:
    """
    A SessionRecord bound to the cookies and request it was presented with.

    Nothing here runs in the background: expiry and inactivity are computed
    whenever they are asked for, and validate() is the only place that acts
    on them.
    """

    def __init__(self, manager, record, cookies, request, token=None):
        self.manager = manager
        self.record = record
        self.cookies = cookies
        self.request = request
        # Raw bearer token; known only when started or looked up in this request
        self.token = token
        self._user = _UNRESOLVED
        self._parent = _UNRESOLVED

    def __eq__(self, other):
        if not isinstance(other, Session):
            return NotImplemented
        return self.record.id is not None and self.record.id == other.record.id

    def __hash__(self):
        return hash(("Session", self.record.id))

    def __repr__(self):
        return f"<Session id={self.record.id} active={self.record.active}>"

    @property
    def settings(self):
        return self.manager.settings

    @property
    def id(self):
        return self.record.id

    @property
    def active(self) -> bool:
        return bool(self.record.active)

    @property
    def browser_id(self):
        return self.record.browser_id

    @property
    def persistent(self) -> bool:
        return self.record.expires_at is not None

    @property
    def expired(self) -> bool:
        expires_at = self.record.expires_at
        return expires_at is not None and expires_at < self.manager.now()

    @property
    def inactive(self) -> bool:
        # Only browser sessions that have seen a request can go idle
        last_seen = self.record.last_activity_at
        if self.record.expires_at is not None or last_seen is None:
            return False
        return last_seen < self.manager.now() - self.settings.inactivity_timeout

    @property
    def recently_seen_password(self) -> bool:
        seen_at = self.record.password_seen_at
        if seen_at is None:
            return False
        return seen_at >= self.manager.now() - self.settings.sudo_session_timeout

    @property
    def two_factored(self) -> bool:
        # Impersonation children count as two-factored through their parent
        return bool(self.record.two_factored_at or self.record.parent_id)

    @property
    def two_factor_required(self) -> bool:
        return not (self.two_factored or self.record.skip_two_factor)

    @property
    def user(self):
        if self._user is _UNRESOLVED:
            self._user = self.manager.resolver.resolve(self.record.user_type, self.record.user_id)
        return self._user

    @property
    def parent(self):
        if self._parent is _UNRESOLVED:
            parent_record = None
            if self.record.parent_id is not None:
                parent_record = self.manager.store.get(self.record.parent_id)
            self._parent = (
                Session(self.manager, parent_record, self.cookies, self.request)
                if parent_record is not None
                else None
            )
        return self._parent

    @property
    def first_session_for_browser(self) -> bool:
        return self.manager.store.count_before(
            self.record.id,
            user_type=self.record.user_type,
            user_id=self.record.user_id,
            browser_id=self.record.browser_id,
        ) == 0

    @property
    def first_session_for_ip(self) -> bool:
        return self.manager.store.count_before(
            self.record.id,
            user_type=self.record.user_type,
            user_id=self.record.user_id,
            login_ip=self.record.login_ip,
        ) == 0

    def validate(self):
        """
        Raise a SessionValidityError if this session must not be trusted.

        Checks run cheapest and most severe first, so the expected
        inactivity logout can never hide a stolen cookie.
        """
        presented = self.cookies.get(self.settings.browser_id_cookie_name)
        if presented != self.record.browser_id:
            self._fail(ev.BROWSER_ID_MISMATCH_ERROR, BrowserMismatch("Browser ID mismatch"))

        if not self.record.active:
            self._fail(ev.INVALID_SESSION_ERROR, InactiveSession("Session is no longer active"))

        if self.expired:
            self._fail(ev.EXPIRED_SESSION_ERROR, ExpiredSession("Persistent session has expired"))

        if self.inactive:
            self._fail(ev.INACTIVE_SESSION_ERROR, InactiveSession("Non-persistent session has expired"))

        if self.record.host and self.record.host != self.request.host:
            self._fail(
                ev.HOST_MISMATCH_ERROR,
                HostMismatch(
                    f"Session was created on {self.record.host} but accessed using {self.request.host}"
                ),
            )

        return self

    def _fail(self, event_name, error):
        logger.warning("Session %s failed validation: %s", self.record.id, event_name)
        self.invalidate()
        self.manager.events.dispatch(event_name, self)
        raise error

    def touch(self):
        now = self.manager.now()
        record = self.record
        record.last_activity_at = now
        record.last_activity_ip = self.request.ip
        record.last_activity_ip_country = self.manager.country_for(self.request.ip)
        record.last_activity_path = self.request.path
        record.requests = (record.requests or 0) + 1

        extended = False
        if self.settings.extend_on_touch and record.expires_at is not None:
            record.expires_at = now + self.settings.persistent_session_length
            extended = True

        self.manager.store.update(record)
        if extended:
            self._set_cookie()
        self.manager.events.dispatch(ev.TOUCH, self)
        return self

    def persist(self):
        self.record.expires_at = self.manager.now() + self.settings.persistent_session_length
        self.manager.store.update(self.record)
        self._set_cookie()
        return self

    def invalidate(self):
        self.record.active = False
        self.manager.store.update(self.record)
        self.cookies.delete(self.settings.session_cookie_name)
        logger.info("Session %s invalidated", self.record.id)
        self.manager.events.dispatch(ev.INVALIDATED, self)
        return self

    def invalidate_others(self) -> int:
        """Log the same principal out everywhere else."""
        if self.record.user_ref is None:
            return 0
        others = self.manager.store.active_for_user(
            self.record.user_type, self.record.user_id, exclude_id=self.record.id
        )
        for other in others:
            other.active = False
            self.manager.store.update(other)
        logger.info("Session %s invalidated %d other sessions", self.record.id, len(others))
        return len(others)

    def reset_token(self) -> str:
        token = self.manager.tokens.generate()
        self.record.token_hash = self.manager.tokens.hash(token)
        self.manager.store.update(self.record)
        self.token = token
        self._set_cookie()
        self.manager.events.dispatch(ev.TOKEN_RESET, self)
        return token

    def see_password(self):
        self.record.password_seen_at = self.manager.now()
        self.manager.store.update(self.record)
        self.manager.events.dispatch(ev.SEE_PASSWORD, self)
        return self

    def mark_two_factored(self, skip=None):
        record = self.record
        record.two_factored_at = self.manager.now()
        record.two_factored_ip = self.request.ip
        record.two_factored_ip_country = self.manager.country_for(self.request.ip)
        # None leaves the stored preference alone
        if skip is not None:
            record.skip_two_factor = skip
        self.manager.store.update(record)
        self.manager.events.dispatch(ev.MARK_AS_TWO_FACTOR, self)
        return self

    def set(self, key, value):
        data = dict(self.record.data or {})
        data[str(key)] = value
        self.record.data = data
        self.manager.store.update(self.record)
        return value

    def get(self, key):
        return (self.record.data or {}).get(str(key))

    def impersonate(self, principal):
        """
        Start a child session for `principal` on top of this one. The current
        token is parked in the parent cookie so revert_to_parent can restore it.
        """
        if principal is None:
            raise ImpersonationError("A principal is required to impersonate")
        if not self.record.active or not self.token:
            raise ImpersonationError("Only a live session can start an impersonation")

        self._set_cookie(name=self.settings.parent_session_cookie_name)
        child = Session.start(
            self.manager,
            self.cookies,
            self.request,
            principal=principal,
            parent=self,
        )
        self.manager.events.dispatch(ev.IMPERSONATE, child)
        return child

    def revert_to_parent(self):
        parent_cookie_name = self.settings.parent_session_cookie_name
        parent_token = self.cookies.get(parent_cookie_name)
        parent = self.parent
        if parent is None or not parent_token:
            raise NoParentSessionForRevert("Session does not have a parent to revert to")
        if self.manager.tokens.hash(parent_token) != parent.record.token_hash:
            raise NoParentSessionForRevert("Parent session cookie does not match the parent session")

        self.invalidate()

        parent.record.active = True
        self.manager.store.update(parent.record)
        parent.token = parent_token
        parent._set_cookie()
        self.cookies.delete(parent_cookie_name)
        logger.info("Session %s reverted to parent %s", self.record.id, parent.record.id)
        self.manager.events.dispatch(ev.REVERT_TO_PARENT, parent)
        return parent

    def _set_cookie(self, name=None, value=None):
        value = value or self.token
        if not value:
            raise ValueError("No raw token is available for this session")
        self.cookies.set(
            name or self.settings.session_cookie_name,
            value,
            expires=self.record.expires_at,
        )
        self.manager.events.dispatch(ev.COOKIE_UPDATED, self)

    @classmethod
    def start(cls, manager, cookies, request, principal=None, persistent: bool = False,
              see_password: bool = False, parent=None, **fields):
        """
        Begin a new session for the presented browser.

        Every session already active for this browser is invalidated first,
        one row at a time. This is not atomic with the insert below, so two
        racing logins can briefly leave two active rows for one browser.
        """
        now = manager.now()
        browser_id = cookies.get(manager.settings.browser_id_cookie_name)

        for sibling in manager.store.active_for_browser(browser_id):
            sibling.active = False
            manager.store.update(sibling)

        user_type, user_id = manager.resolver.reference(principal)
        record = SessionRecord(**fields)
        record.user_type = user_type
        record.user_id = user_id
        record.browser_id = browser_id
        record.active = True
        record.requests = 0
        record.login_at = now
        record.login_ip = request.ip
        record.login_ip_country = manager.country_for(request.ip)
        record.host = request.host
        record.user_agent = request.user_agent
        if parent is not None:
            record.parent_id = parent.record.id
        if persistent:
            record.expires_at = now + manager.settings.persistent_session_length
        if see_password:
            record.password_seen_at = now

        token = manager.tokens.generate()
        record.token_hash = manager.tokens.hash(token)
        manager.store.create(record)

        session = cls(manager, record, cookies, request, token=token)
        if principal is not None:
            session._user = principal
        if parent is not None:
            session._parent = parent
        session._set_cookie()
        logger.info("Session %s started for browser %s", record.id, browser_id)
        manager.events.dispatch(ev.SESSION_START, session)
        return session

    @classmethod
    def lookup(cls, manager, cookies, request):
        token = cookies.get(manager.settings.session_cookie_name)
        if not token:
            return None
        record = manager.store.find_active_by_token_hash(manager.tokens.hash(token))
        if record is None:
            return None
        return cls(manager, record, cookies, request, token=token)

    @classmethod
    def cleanup(cls, manager, now=None, inactivity_timeout=None):
        """Invalidate stale sessions. Safe to run alongside live traffic."""
        now = now or manager.now()
        if inactivity_timeout is None:
            inactivity_timeout = manager.settings.inactivity_timeout
        manager.events.dispatch(ev.BEFORE_CLEANUP)
        invalidated = manager.store.sweep_expired(now, now - inactivity_timeout)
        logger.info("Session cleanup invalidated %d sessions", len(invalidated))
        manager.events.dispatch(ev.AFTER_CLEANUP, invalidated)
        return invalidated
