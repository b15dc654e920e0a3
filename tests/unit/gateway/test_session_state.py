import threading

import pytest

from services.gateway.session import SessionEventType, SessionState


def test_starts_inactive():
    state = SessionState()

    assert state.is_active is False
    assert state.access_token is None
    assert state.snapshot().to_dict()["activated_at"] is None


def test_activate_and_expire():
    state = SessionState()
    state.activate("tok", user_id="AB1234", public_token="pub")

    assert state.is_active
    assert state.access_token == "tok"
    assert state.public_token == "pub"

    assert state.expire() is True
    assert state.is_active is False
    assert state.access_token is None
    # user id is kept for the status view
    assert state.user_id == "AB1234"
    assert state.snapshot().end_reason == "token_expired"


def test_expire_when_inactive_is_noop():
    state = SessionState()

    assert state.expire() is False
    assert state.logout() is False


def test_activate_requires_token():
    with pytest.raises(ValueError):
        SessionState().activate("", user_id="AB1234")


def test_reactivation_clears_end_fields():
    state = SessionState()
    state.activate("tok", user_id="AB1234")
    state.logout()
    state.activate("tok-2", user_id="AB1234")

    snap = state.snapshot()
    assert snap.is_active
    assert snap.ended_at is None
    assert snap.end_reason is None


def test_snapshot_never_exposes_tokens():
    state = SessionState()
    state.activate("secret-token", user_id="AB1234", public_token="pub")

    data = state.snapshot().to_dict()

    assert "secret-token" not in data.values()
    assert set(data) == {"is_active", "user_id", "activated_at", "ended_at", "end_reason"}


def test_listeners_receive_transitions():
    state = SessionState()
    events = []
    unsubscribe = state.subscribe(events.append)

    state.activate("tok", user_id="AB1234")
    state.expire(reason="broker_session_expired")
    unsubscribe()
    state.activate("tok", user_id="AB1234")

    assert [e.type for e in events] == [SessionEventType.ACTIVATED, SessionEventType.EXPIRED]
    assert events[1].reason == "broker_session_expired"


def test_failing_listener_does_not_block_others():
    state = SessionState()
    seen = []

    def broken(event):
        raise RuntimeError("listener bug")

    state.subscribe(broken)
    state.subscribe(seen.append)
    state.activate("tok", user_id="AB1234")

    assert state.is_active
    assert len(seen) == 1


def test_concurrent_expiry_publishes_once():
    state = SessionState()
    state.activate("tok", user_id="AB1234")
    events = []
    state.subscribe(events.append)

    threads = [threading.Thread(target=state.expire) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert state.is_active is False
    assert len(events) == 1
