# tests/test_security.py
from authcore.core.security import (
    hash_password, is_legacy_hash, legacy_digest, new_session_token, verify_password,
)


def test_legacy_digest_matches_stored_format():
    stored = legacy_digest("admin123")
    assert is_legacy_hash(stored)
    assert verify_password("admin123", stored)
    assert not verify_password("admin124", stored)
    # 不同盐得到不同摘要
    assert not verify_password("admin123", stored, salt="other")


def test_new_hashes_are_not_legacy():
    h = hash_password("admin123")
    assert not is_legacy_hash(h)
    assert h != hash_password("admin123")
    assert verify_password("admin123", h)
    assert not verify_password("nope", h)


def test_unknown_or_empty_hash_never_verifies():
    assert not verify_password("x", "")
    assert not verify_password("x", "plain-text-password")


def test_session_tokens_are_random():
    assert new_session_token() != new_session_token()
