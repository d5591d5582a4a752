# tests/test_sessions.py
import threading

import pytest

from authcore.services.sessions import SessionAuthority

TTL = 3600


@pytest.fixture
def sessions(store, clock):
    return SessionAuthority(store, ttl_seconds=TTL, clock=clock)


def test_issue_and_validate(sessions, clock):
    token = sessions.issue(1, "alice", "USER")
    s = sessions.validate(token)
    assert s is not None
    assert (s.user_id, s.username, s.role) == (1, "alice", "USER")
    assert s.issued_at == clock.now
    assert s.expires_at == clock.now + TTL


def test_second_issue_evicts_first(sessions):
    first = sessions.issue(1, "alice", "USER")
    second = sessions.issue(1, "alice", "USER")
    assert first != second
    assert sessions.validate(first) is None
    assert sessions.validate(second) is not None
    assert sessions.session_for_user(1).token == second


def test_sessions_of_other_users_are_untouched(sessions):
    a = sessions.issue(1, "alice", "USER")
    b = sessions.issue(2, "bob", "USER")
    sessions.issue(1, "alice", "USER")
    assert sessions.validate(a) is None
    assert sessions.validate(b) is not None


def test_expired_session_is_invalid_and_evicted(sessions, clock, store):
    token = sessions.issue(1, "alice", "USER")
    clock.advance(TTL - 1)
    assert sessions.validate(token) is not None
    clock.advance(1)
    assert sessions.validate(token) is None
    assert sessions.validate(token) is None
    assert sessions.session_for_user(1) is None
    assert store.peek(f"session:token:{token}") is None


def test_validate_unknown_or_blank(sessions):
    assert sessions.validate("nope") is None
    assert sessions.validate("") is None
    assert sessions.validate(None) is None


def test_revoke_is_idempotent(sessions):
    token = sessions.issue(1, "alice", "USER")
    sessions.revoke(token)
    sessions.revoke(token)
    sessions.revoke("never-issued")
    assert sessions.validate(token) is None
    assert sessions.session_for_user(1) is None


def test_revoke_stale_token_keeps_current_session(sessions):
    old = sessions.issue(1, "alice", "USER")
    new = sessions.issue(1, "alice", "USER")
    sessions.revoke(old)
    assert sessions.validate(new) is not None


def test_revoke_by_user(sessions):
    token = sessions.issue(7, "carol", "ADMIN")
    sessions.revoke_by_user(7)
    sessions.revoke_by_user(7)
    assert sessions.validate(token) is None


def test_tokens_are_unique_and_unrelated(sessions):
    tokens = {sessions.issue(i % 3, f"u{i % 3}", "USER") for i in range(60)}
    assert len(tokens) == 60
    assert all(len(t) >= 40 for t in tokens)


def test_concurrent_logins_leave_one_live_session(sessions):
    tokens = []
    lock = threading.Lock()

    def login():
        t = sessions.issue(42, "dave", "USER")
        with lock:
            tokens.append(t)

    threads = [threading.Thread(target=login) for _ in range(16)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    live = [t for t in tokens if sessions.validate(t) is not None]
    assert len(live) == 1
    assert sessions.session_for_user(42).token == live[0]
