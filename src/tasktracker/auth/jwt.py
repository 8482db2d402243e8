"""JWT token creation and verification.

Learn: JWT (JSON Web Token) provides stateless authentication. A token is
a signed claim {sub, iat, exp}; anyone holding the secret can check it
without a database lookup. There is no revocation list, so a leaked token
stays valid until it expires (24 hours after issue).

The secret is handed to TokenService at construction and never changes for
the lifetime of the process.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import jwt

from tasktracker.errors import ErrorKind, Result, ServerConfigError

TOKEN_TTL = timedelta(hours=24)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class TokenClaims:
    user_id: uuid.UUID
    issued_at: datetime
    expires_at: datetime


class TokenService:
    """Issues and verifies signed, time-bounded identity assertions."""

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        ttl: timedelta = TOKEN_TTL,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        if not secret:
            raise ServerConfigError("JWT signing secret is not configured")
        self._secret = secret
        self._algorithm = algorithm
        self._ttl = ttl
        self._clock = clock or utcnow

    def issue(self, user_id: uuid.UUID) -> str:
        """Create a token for user_id, valid for the configured window."""
        issued_at = self._clock()
        payload = {
            "sub": str(user_id),
            "iat": issued_at,
            "exp": issued_at + self._ttl,
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def verify(self, token: str) -> Result[TokenClaims]:
        """Verify and decode a token.

        Bad signature, malformed token, missing claims and expiry all
        collapse into the same Unauthorized failure.

        Learn: PyJWT checks the signature and claim presence; the time
        checks run against self._clock so issuance and expiry share one
        notion of "now" (and tests can move it).
        """
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={
                    "require": ["sub", "iat", "exp"],
                    "verify_exp": False,
                    "verify_iat": False,
                },
            )
            user_id = uuid.UUID(payload["sub"])
            issued_at = datetime.fromtimestamp(payload["iat"], timezone.utc)
            expires_at = datetime.fromtimestamp(payload["exp"], timezone.utc)
        except (jwt.InvalidTokenError, ValueError, TypeError, OverflowError):
            return Result.failure(ErrorKind.UNAUTHORIZED, "Invalid token")

        if self._clock() >= expires_at:
            return Result.failure(ErrorKind.UNAUTHORIZED, "Token has expired")

        return Result.success(
            TokenClaims(user_id=user_id, issued_at=issued_at, expires_at=expires_at)
        )
