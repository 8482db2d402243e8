"""FastAPI auth dependencies.

Learn: get_current_principal is the auth gate for every protected route.
It is applied per-router in api/__init__.py and also injected into
handlers that need the caller's user id.

Order of checks:
1. No "Authorization: Bearer <token>" header → 401, token service untouched
2. No signing secret configured → 500 "Server config error" (fail closed)
3. Token fails verification → 401
4. Otherwise the Principal is stored on request.state and returned
"""

import uuid
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, Request

from tasktracker.auth.jwt import TokenService
from tasktracker.errors import ErrorKind, Result, ResultError, ServiceError

BEARER_PREFIX = "Bearer "


@dataclass(frozen=True)
class Principal:
    """The authenticated caller for the duration of one request."""

    user_id: uuid.UUID


def get_token_service(request: Request) -> Optional[TokenService]:
    """The app's TokenService, or None when no signing secret was configured."""
    return getattr(request.app.state, "token_service", None)


def require_token_service(
    tokens: Optional[TokenService] = Depends(get_token_service),
) -> TokenService:
    """Like get_token_service, but a missing secret is a server config error."""
    if tokens is None:
        raise ResultError(
            ServiceError(ErrorKind.SERVER_CONFIG, "JWT signing secret is not configured")
        )
    return tokens


def resolve_principal(
    authorization: Optional[str], tokens: Optional[TokenService]
) -> Result[Principal]:
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        return Result.failure(ErrorKind.UNAUTHORIZED, "Unauthorized")
    token = authorization[len(BEARER_PREFIX):].strip()
    if not token:
        return Result.failure(ErrorKind.UNAUTHORIZED, "Unauthorized")

    if tokens is None:
        return Result.failure(ErrorKind.SERVER_CONFIG, "JWT signing secret is not configured")

    claims = tokens.verify(token)
    if not claims.ok:
        return Result.failure(ErrorKind.UNAUTHORIZED, "Unauthorized")
    return Result.success(Principal(user_id=claims.value.user_id))


async def get_current_principal(
    request: Request,
    authorization: Optional[str] = Header(None),
    tokens: Optional[TokenService] = Depends(get_token_service),
) -> Principal:
    """Resolve the caller from the bearer token (required — 401 if missing)."""
    principal = resolve_principal(authorization, tokens).unwrap()
    request.state.principal = principal
    return principal
