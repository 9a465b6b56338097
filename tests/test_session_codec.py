from __future__ import annotations

import time

from conftest import SESSION_SECRET

from gatekeeper.auth.models import UserClaims
from gatekeeper.auth.session import decode_session, encode_session

ADA = UserClaims(email="ada@example.com", name="Ada Lovelace", picture="https://lh3.googleusercontent.com/a/ada.png")


def test_decode_returns_claims_before_expiry() -> None:
    token = encode_session(ADA, SESSION_SECRET, 3600)
    assert decode_session(token, SESSION_SECRET) == ADA


def test_decode_handles_missing_optional_claims_and_unicode() -> None:
    claims = UserClaims(email="jose@example.com", name="José Ñúñez", picture=None)
    token = encode_session(claims, SESSION_SECRET, 3600)
    assert decode_session(token, SESSION_SECRET) == claims


def test_encode_is_deterministic_for_same_timestamp() -> None:
    now = 1_760_000_000.0
    assert encode_session(ADA, SESSION_SECRET, 3600, now=now) == encode_session(ADA, SESSION_SECRET, 3600, now=now)
    assert encode_session(ADA, SESSION_SECRET, 3600, now=now) != encode_session(ADA, SESSION_SECRET, 3600, now=now + 1)


def test_decode_returns_none_after_ttl() -> None:
    now = time.time()
    token = encode_session(ADA, SESSION_SECRET, 60, now=now)
    assert decode_session(token, SESSION_SECRET, now=now + 59) == ADA
    assert decode_session(token, SESSION_SECRET, now=now + 61) is None


def test_decode_treats_exact_expiry_instant_as_expired() -> None:
    now = 1_760_000_000.0
    token = encode_session(ADA, SESSION_SECRET, 3600, now=now)
    assert decode_session(token, SESSION_SECRET, now=now + 3599) == ADA
    assert decode_session(token, SESSION_SECRET, now=now + 3600) is None


def test_decode_returns_none_for_other_secret() -> None:
    token = encode_session(ADA, SESSION_SECRET, 3600)
    assert decode_session(token, "a-different-secret") is None


def test_decode_returns_none_when_any_character_is_altered() -> None:
    token = encode_session(ADA, SESSION_SECRET, 3600)
    for i, ch in enumerate(token):
        altered = token[:i] + ("A" if ch != "A" else "B") + token[i + 1 :]
        assert decode_session(altered, SESSION_SECRET) is None, f"tampered token accepted (index {i})"


def test_decode_returns_none_for_truncated_or_extended_token() -> None:
    token = encode_session(ADA, SESSION_SECRET, 3600)
    assert decode_session(token[:-1], SESSION_SECRET) is None
    assert decode_session(token + "A", SESSION_SECRET) is None


def test_decode_returns_none_for_missing_or_garbage_token() -> None:
    assert decode_session(None, SESSION_SECRET) is None
    assert decode_session("", SESSION_SECRET) is None
    assert decode_session("not-a-session", SESSION_SECRET) is None
    assert decode_session("....", SESSION_SECRET) is None
