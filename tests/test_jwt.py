"""Token service tests — issue/verify, 24h expiry, tampering.

Learn: Expiry is tested by issuing with a clock set in the past instead of
sleeping: a token "issued" 25 hours ago is already expired now.
"""

import uuid
from datetime import datetime, timedelta, timezone

import jwt
import pytest

from tasktracker.auth.jwt import TOKEN_TTL, TokenService
from tasktracker.errors import ErrorKind, ServerConfigError

SECRET = "unit-test-secret-0123456789abcdefghij"


def _clock(delta: timedelta):
    fixed = datetime.now(timezone.utc) + delta
    return lambda: fixed


def test_issue_and_verify():
    user_id = uuid.uuid4()
    svc = TokenService(SECRET)
    result = svc.verify(svc.issue(user_id))
    assert result.ok
    assert result.value.user_id == user_id


def test_token_window_is_24_hours():
    svc = TokenService(SECRET)
    claims = svc.verify(svc.issue(uuid.uuid4())).value
    assert TOKEN_TTL == timedelta(hours=24)
    assert claims.expires_at - claims.issued_at == timedelta(hours=24)


def test_token_still_valid_just_before_expiry():
    svc = TokenService(SECRET, clock=_clock(-timedelta(hours=23)))
    assert svc.verify(svc.issue(uuid.uuid4())).ok


def test_expired_token_rejected():
    issuer = TokenService(SECRET, clock=_clock(-timedelta(hours=25)))
    token = issuer.issue(uuid.uuid4())

    result = TokenService(SECRET).verify(token)
    assert not result.ok
    assert result.error.kind == ErrorKind.UNAUTHORIZED
    assert result.error.message == "Token has expired"


def test_wrong_secret_rejected():
    token = TokenService("other-secret").issue(uuid.uuid4())
    result = TokenService(SECRET).verify(token)
    assert result.error.kind == ErrorKind.UNAUTHORIZED


def test_malformed_token_rejected():
    result = TokenService(SECRET).verify("not.a.jwt")
    assert result.error.kind == ErrorKind.UNAUTHORIZED


def test_token_without_subject_rejected():
    now = datetime.now(timezone.utc)
    token = jwt.encode({"iat": now, "exp": now + timedelta(hours=1)}, SECRET, algorithm="HS256")
    assert not TokenService(SECRET).verify(token).ok


def test_non_uuid_subject_rejected():
    now = datetime.now(timezone.utc)
    token = jwt.encode(
        {"sub": "alice", "iat": now, "exp": now + timedelta(hours=1)},
        SECRET,
        algorithm="HS256",
    )
    assert not TokenService(SECRET).verify(token).ok


def test_missing_secret_is_config_error():
    with pytest.raises(ServerConfigError):
        TokenService("")


class MovableClock:
    def __init__(self):
        self.now = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now


def test_expiry_follows_injected_clock():
    clock = MovableClock()
    svc = TokenService(SECRET, clock=clock)
    token = svc.issue(uuid.uuid4())

    clock.now += timedelta(hours=23, minutes=59)
    assert svc.verify(token).ok

    clock.now += timedelta(minutes=1)
    result = svc.verify(token)
    assert not result.ok
    assert result.error.message == "Token has expired"


def test_token_from_an_old_clock_is_expired_now():
    """A token minted on 2026-01-01 is long expired for a wall-clock verifier."""
    clock = MovableClock()
    token = TokenService(SECRET, clock=clock).issue(uuid.uuid4())
    assert TokenService(SECRET).verify(token).error.message == "Token has expired"
