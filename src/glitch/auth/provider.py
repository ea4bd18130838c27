"""Bearer token verification.

The quest engine trusts whatever user id the provider returns. Token issuance
lives in the account service; this side only verifies.
"""

from __future__ import annotations

from typing import Any, Protocol

import jwt


class AuthProvider(Protocol):
    def authenticate(self, token: str) -> str:
        """Return the user id for ``token`` or raise ``jwt.InvalidTokenError``."""
        ...


class JWTAuthProvider:
    """Verifies HS256 (or any PyJWT-supported) access tokens; ``sub`` is the user id."""

    def __init__(self, secret: str, algorithm: str = "HS256", issuer: str | None = None) -> None:
        self._secret = secret
        self._algorithm = algorithm
        self._issuer = issuer or None

    def authenticate(self, token: str) -> str:
        options: dict[str, Any] = {"require": ["sub", "exp"]}
        payload = jwt.decode(
            token,
            self._secret,
            algorithms=[self._algorithm],
            issuer=self._issuer,
            options=options,
        )
        subject = payload.get("sub")
        if not isinstance(subject, str) or not subject:
            raise jwt.InvalidTokenError("Token subject is missing")
        return subject
