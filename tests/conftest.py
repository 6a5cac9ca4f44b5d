import sys
from datetime import datetime, timedelta
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app import create_app
from config import TestingConfig
from models import db
from models.user import User
from security.cookies import CookieJar, RequestInfo
from security.manager import PrincipalResolver, SessionManager, SessionSettings
from utils.seed import seed_roles


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: Unit tests (no HTTP layer)")
    config.addinivalue_line("markers", "integration: Integration tests (Flask client, database)")


class FrozenClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture()
def app():
    app = create_app(TestingConfig)
    ctx = app.app_context()
    ctx.push()
    db.create_all()
    seed_roles()
    try:
        yield app
    finally:
        db.session.remove()
        db.drop_all()
        ctx.pop()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def clock():
    return FrozenClock(datetime(2026, 3, 1, 12, 0, 0))


@pytest.fixture()
def settings():
    return SessionSettings()


@pytest.fixture()
def manager(app, clock, settings):
    resolver = PrincipalResolver()
    resolver.register(User)
    return SessionManager(settings=settings, resolver=resolver, clock=clock)


@pytest.fixture()
def make_request():
    """Builds the (cookies, request) pair a browser would present."""
    def _make(browser_id="browser-1", host="app.example.com", ip="203.0.113.5",
              path="/demo", token=None, secure=True, **cookies):
        incoming = dict(cookies)
        if browser_id is not None:
            incoming["browser_id"] = browser_id
        if token is not None:
            incoming["user_session"] = token
        jar = CookieJar(incoming, secure=secure)
        info = RequestInfo(ip=ip, host=host, path=path, user_agent="TestSuite", secure=secure)
        return jar, info
    return _make


@pytest.fixture()
def user(app):
    user = User(email="tester@example.com", password_hash="x")
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture()
def other_user(app):
    user = User(email="other@example.com", password_hash="x")
    db.session.add(user)
    db.session.commit()
    return user
