"""Bearer token verification."""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from glitch.auth.provider import JWTAuthProvider

SECRET = "unit-test-secret-key-long-enough-for-hs256"


def _token(payload: dict, secret: str = SECRET) -> str:
    return jwt.encode(payload, secret, algorithm="HS256")


def _exp(delta: timedelta = timedelta(hours=1)) -> datetime:
    return datetime.now(timezone.utc) + delta


def test_returns_subject():
    provider = JWTAuthProvider(SECRET)
    assert provider.authenticate(_token({"sub": "user-1", "exp": _exp()})) == "user-1"


def test_rejects_wrong_secret():
    provider = JWTAuthProvider(SECRET)
    with pytest.raises(jwt.InvalidTokenError):
        provider.authenticate(_token({"sub": "user-1", "exp": _exp()}, secret="another-secret-key-long-enough-for-hs256"))


def test_rejects_expired_token():
    provider = JWTAuthProvider(SECRET)
    with pytest.raises(jwt.ExpiredSignatureError):
        provider.authenticate(_token({"sub": "user-1", "exp": _exp(timedelta(minutes=-5))}))


def test_requires_subject():
    provider = JWTAuthProvider(SECRET)
    with pytest.raises(jwt.InvalidTokenError):
        provider.authenticate(_token({"exp": _exp()}))


def test_checks_issuer_when_configured():
    provider = JWTAuthProvider(SECRET, issuer="glitch-accounts")
    good = _token({"sub": "user-1", "exp": _exp(), "iss": "glitch-accounts"})
    bad = _token({"sub": "user-1", "exp": _exp(), "iss": "someone-else"})
    assert provider.authenticate(good) == "user-1"
    with pytest.raises(jwt.InvalidTokenError):
        provider.authenticate(bad)
