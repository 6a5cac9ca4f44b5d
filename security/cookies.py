"""Request data and cookie writes, kept apart from Flask so the engine can run without it."""

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Mapping, Optional


@dataclass(frozen=True)
class RequestInfo:
    ip: Optional[str] = None
    host: Optional[str] = None
    path: Optional[str] = None
    user_agent: Optional[str] = None
    secure: bool = False

    @classmethod
    def from_flask(cls, request) -> "RequestInfo":
        return cls(
            ip=request.headers.get("X-Forwarded-For", request.remote_addr),
            host=_hostname(request.host),
            path=request.path,
            user_agent=request.headers.get("User-Agent"),
            secure=request.is_secure,
        )


def _hostname(host: Optional[str]) -> Optional[str]:
    if not host:
        return None
    if host.startswith("["):
        return host.split("]", 1)[0] + "]"
    return host.split(":", 1)[0]


@dataclass
class PendingCookie:
    value: Optional[str]
    expires: Optional[datetime] = None
    httponly: bool = True
    secure: bool = False
    deleted: bool = False


class CookieJar:
    """
    Incoming cookie values plus the writes made while handling a request.
    Reads see earlier writes from the same request.
    """

    def __init__(self, incoming: Optional[Mapping[str, str]] = None, secure: bool = False,
                 samesite: str = "Lax"):
        self._values: Dict[str, str] = dict(incoming or {})
        self._pending: Dict[str, PendingCookie] = {}
        self.secure = secure
        self.samesite = samesite

    def get(self, name: str) -> Optional[str]:
        value = self._values.get(name)
        return value or None

    def __contains__(self, name: str) -> bool:
        return self.get(name) is not None

    def set(self, name: str, value: str, expires: Optional[datetime] = None,
            httponly: bool = True) -> None:
        self._values[name] = value
        self._pending[name] = PendingCookie(
            value=value, expires=expires, httponly=httponly, secure=self.secure
        )

    def delete(self, name: str) -> None:
        self._values.pop(name, None)
        self._pending[name] = PendingCookie(value=None, deleted=True, secure=self.secure)

    def written(self, name: str) -> Optional[PendingCookie]:
        return self._pending.get(name)

    def expiry_for(self, name: str) -> Optional[datetime]:
        pending = self._pending.get(name)
        return pending.expires if pending else None

    def apply(self, response) -> None:
        for name, cookie in self._pending.items():
            if cookie.deleted:
                response.delete_cookie(name, path="/")
                continue
            response.set_cookie(
                name,
                cookie.value,
                expires=cookie.expires,
                httponly=cookie.httponly,
                secure=cookie.secure,
                samesite=self.samesite,
                path="/",
            )
