class SessionError(Exception):
    """Base class for everything the session engine raises on purpose."""


class SessionValidityError(SessionError):
    """The presented session can no longer be trusted.

    The underlying record has already been invalidated by the time this is
    raised, so swallowing it still leaves the browser logged out.
    """


class BrowserMismatch(SessionValidityError):
    pass


class InactiveSession(SessionValidityError):
    pass


class ExpiredSession(SessionValidityError):
    pass


class HostMismatch(SessionValidityError):
    pass


class NoParentSessionForRevert(SessionError):
    pass


class ImpersonationError(SessionError):
    pass
