from datetime import timedelta

import pytest

from models import db
from models.session import SessionRecord
from security import events as ev
from security.session import Session

pytestmark = pytest.mark.integration


def _active(record_id):
    db.session.expire_all()
    return db.session.get(SessionRecord, record_id).active


def _start(manager, make_request, browser_id, **kwargs):
    return Session.start(manager, *make_request(browser_id=browser_id), **kwargs)


def test_cleanup_invalidates_idle_sessions_past_the_timeout(manager, make_request, user, clock):
    timeout = manager.settings.inactivity_timeout
    stale = _start(manager, make_request, "b1", principal=user)
    boundary = _start(manager, make_request, "b2", principal=user)
    fresh = _start(manager, make_request, "b3", principal=user)

    for session, idle in ((stale, timeout + timedelta(seconds=1)),
                          (boundary, timeout),
                          (fresh, timeout - timedelta(seconds=1))):
        session.record.last_activity_at = clock.now - idle
        manager.store.update(session.record)

    invalidated = Session.cleanup(manager)

    assert invalidated == [stale.id]
    assert _active(stale.id) is False
    assert _active(boundary.id) is True
    assert _active(fresh.id) is True


def test_cleanup_invalidates_expired_persistent_sessions(manager, make_request, user, clock):
    expired = _start(manager, make_request, "b1", principal=user, persistent=True)
    current = _start(manager, make_request, "b2", principal=user, persistent=True)
    expired.record.expires_at = clock.now - timedelta(seconds=1)
    expired.record.last_activity_at = clock.now
    manager.store.update(expired.record)
    current.record.last_activity_at = clock.now - timedelta(days=30)
    manager.store.update(current.record)

    assert Session.cleanup(manager) == [expired.id]
    assert _active(expired.id) is False
    assert _active(current.id) is True


def test_cleanup_leaves_sessions_that_were_never_touched(manager, make_request, user, clock):
    session = _start(manager, make_request, "b1", principal=user)
    clock.advance(days=30)

    assert Session.cleanup(manager) == []
    assert _active(session.id) is True


def test_cleanup_skips_already_inactive_sessions(manager, make_request, user, clock):
    session = _start(manager, make_request, "b1", principal=user)
    session.invalidate()
    clock.advance(days=1)

    assert Session.cleanup(manager) == []


def test_cleanup_accepts_an_explicit_time(manager, make_request, user, clock):
    session = _start(manager, make_request, "b1", principal=user)
    session.touch()

    assert Session.cleanup(manager, now=clock.now + timedelta(hours=1)) == []
    assert Session.cleanup(manager, now=clock.now + timedelta(hours=12, seconds=1)) == [session.id]


def test_cleanup_dispatches_before_and_after_events(manager, make_request, user, clock):
    session = _start(manager, make_request, "b1", principal=user)
    session.touch()
    clock.advance(days=1)
    seen = []
    manager.events.on(ev.BEFORE_CLEANUP, lambda payload: seen.append(("before", payload)))
    manager.events.on(ev.AFTER_CLEANUP, lambda payload: seen.append(("after", payload)))

    Session.cleanup(manager)

    assert seen == [("before", None), ("after", [session.id])]


def test_cleanup_accepts_an_explicit_inactivity_timeout(manager, make_request, user, clock):
    session = _start(manager, make_request, "b1", principal=user)
    session.touch()
    clock.advance(hours=2)

    assert Session.cleanup(manager, inactivity_timeout=timedelta(hours=3)) == []
    assert Session.cleanup(manager, inactivity_timeout=timedelta(hours=1)) == [session.id]
    assert _active(session.id) is False
