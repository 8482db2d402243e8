"""Auth API — registration, login, profile.

Learn: Routes for user authentication:
- POST /auth/register → create a new user account
- POST /auth/login → email/password → JWT token + user
- GET /auth/profile → current user info
- PUT /auth/profile → change username and/or email

Request bodies are validated by pydantic before the handler runs (400 on
failure, see api/errors.py). Handlers only translate HTTP to service calls.
"""

import uuid
from datetime import datetime
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Request
from pydantic import AfterValidator, BaseModel, EmailStr, Field, StringConstraints

from tasktracker.auth.dependencies import (
    Principal,
    get_current_principal,
    require_token_service,
)
from tasktracker.auth.jwt import TokenService
from tasktracker.services.user_service import CredentialStore

router = APIRouter(prefix="/auth")


def _credentials(request: Request) -> CredentialStore:
    return request.app.state.credentials


def _check_username(v: str) -> str:
    v = v.strip()
    if len(v) < 3:
        raise ValueError("must be at least 3 characters")
    return v


# EmailStr (email-validator) checks syntax and the 254-char limit; stored lowercased.
Email = Annotated[EmailStr, AfterValidator(str.lower)]
Username = Annotated[str, StringConstraints(max_length=100), AfterValidator(_check_username)]


# ─── Schemas ─────────────────────────────────────────────


class RegisterRequest(BaseModel):
    username: Username
    email: Email
    password: str = Field(min_length=6)


class LoginRequest(BaseModel):
    email: Email
    password: str = Field(min_length=6)


class ProfileUpdate(BaseModel):
    username: Optional[Username] = None
    email: Optional[Email] = None


class UserRead(BaseModel):
    id: uuid.UUID
    username: str
    email: str
    created_at: datetime


class LoginResponse(BaseModel):
    token: str
    user: UserRead


# ─── Register ────────────────────────────────────────────


@router.post("/register", response_model=UserRead, status_code=201)
async def register(body: RegisterRequest, svc: CredentialStore = Depends(_credentials)):
    """Create a new user account."""
    result = await svc.register(body.username, body.email, body.password)
    return result.unwrap()


# ─── Login ───────────────────────────────────────────────


@router.post("/login", response_model=LoginResponse)
async def login(
    body: LoginRequest,
    svc: CredentialStore = Depends(_credentials),
    tokens: TokenService = Depends(require_token_service),
):
    """Login with email and password → JWT token."""
    user = (await svc.verify_credentials(body.email, body.password)).unwrap()
    return {"token": tokens.issue(user["id"]), "user": user}


# ─── Profile ─────────────────────────────────────────────


@router.get("/profile", response_model=UserRead)
async def get_profile(
    principal: Principal = Depends(get_current_principal),
    svc: CredentialStore = Depends(_credentials),
):
    """Get the current authenticated user's info."""
    return (await svc.get_profile(principal.user_id)).unwrap()


@router.put("/profile", response_model=UserRead)
async def update_profile(
    body: ProfileUpdate,
    principal: Principal = Depends(get_current_principal),
    svc: CredentialStore = Depends(_credentials),
):
    """Update username and/or email. Omitted fields are left alone."""
    result = await svc.update_profile(
        principal.user_id, username=body.username, email=body.email
    )
    return result.unwrap()
