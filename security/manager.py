from dataclasses import dataclass
from datetime import timedelta

from models import db
from models.db import utcnow
from security.events import EventBus
from security.store import SessionStore
from security.tokens import TokenManager


@dataclass(frozen=True)
class SessionSettings:
    inactivity_timeout: timedelta = timedelta(hours=12)
    persistent_session_length: timedelta = timedelta(days=60)
    sudo_session_timeout: timedelta = timedelta(minutes=10)
    browser_id_cookie_name: str = "browser_id"
    session_cookie_name: str = "user_session"
    parent_session_cookie_name: str = "parent_user_session"
    token_length: int = 64
    extend_on_touch: bool = False
    isolate_event_errors: bool = False

    @classmethod
    def from_mapping(cls, config):
        """Build settings from a Flask config."""
        defaults = cls()

        def seconds(key, fallback):
            raw = config.get(key)
            return fallback if raw is None else timedelta(seconds=int(raw))

        return cls(
            inactivity_timeout=seconds("SESSION_INACTIVITY_TIMEOUT_SECONDS", defaults.inactivity_timeout),
            persistent_session_length=seconds(
                "PERSISTENT_SESSION_LENGTH_SECONDS", defaults.persistent_session_length
            ),
            sudo_session_timeout=seconds("SUDO_SESSION_TIMEOUT_SECONDS", defaults.sudo_session_timeout),
            browser_id_cookie_name=config.get("BROWSER_ID_COOKIE_NAME", defaults.browser_id_cookie_name),
            session_cookie_name=config.get("SESSION_COOKIE_NAME_AUTH", defaults.session_cookie_name),
            parent_session_cookie_name=config.get(
                "PARENT_SESSION_COOKIE_NAME", defaults.parent_session_cookie_name
            ),
            token_length=int(config.get("SESSION_TOKEN_LENGTH", defaults.token_length)),
            extend_on_touch=bool(config.get("EXTEND_SESSION_EXPIRY_ON_TOUCH", defaults.extend_on_touch)),
            isolate_event_errors=bool(
                config.get("SESSION_EVENTS_ISOLATE_ERRORS", defaults.isolate_event_errors)
            ),
        )


class PrincipalResolver:
    """Maps the (user_type, user_id) pair stored on a session back to an object."""

    def __init__(self):
        self._loaders = {}

    def register(self, model, loader=None, name=None):
        type_name = name or model.__name__
        self._loaders[type_name] = loader or (lambda pk: db.session.get(model, pk))
        return model

    def reference(self, principal):
        if principal is None:
            return None, None
        type_name = type(principal).__name__
        if type_name not in self._loaders:
            raise ValueError(f"{type_name} is not a registered principal type")
        if principal.id is None:
            raise ValueError("Principal must be saved before a session can reference it")
        return type_name, principal.id

    def resolve(self, user_type, user_id):
        if user_type is None or user_id is None:
            return None
        loader = self._loaders.get(user_type)
        if loader is None:
            raise LookupError(f"No loader registered for principal type {user_type}")
        return loader(user_id)


class SessionManager:
    """The collaborators a Session works with, passed around explicitly."""

    def __init__(self, settings=None, store=None, tokens=None, events=None,
                 resolver=None, country_lookup=None, clock=utcnow):
        self.settings = settings or SessionSettings()
        self.store = store or SessionStore()
        self.tokens = tokens or TokenManager(self.settings.token_length)
        self.events = events or EventBus(isolate_errors=self.settings.isolate_event_errors)
        self.resolver = resolver or PrincipalResolver()
        # ip -> ISO country code, or None when not configured
        self.country_lookup = country_lookup
        self.clock = clock

    @classmethod
    def from_config(cls, config, **kwargs):
        return cls(settings=SessionSettings.from_mapping(config), **kwargs)

    def now(self):
        return self.clock()

    def country_for(self, ip):
        if not ip or self.country_lookup is None:
            return None
        return self.country_lookup(ip)
