"""Credential store — user registration, login, and profile updates.

Learn: This service is the only owner of User documents and the only place
a plaintext password is ever seen. The plaintext is bcrypt-hashed before
the insert and never stored, logged, or returned.

Registration is "check, then insert" without a transaction. Two concurrent
registrations with the same email can both pass the check; the store's
unique index rejects the second insert and we report it as a Conflict,
exactly like the check itself would have.
"""

import asyncio
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Optional

import structlog

from tasktracker.auth.password import DEFAULT_ROUNDS, hash_password, verify_password
from tasktracker.db.store import DocumentStore, DuplicateKeyError
from tasktracker.errors import ErrorKind, Result

logger = structlog.get_logger()

USERS = "users"

# Fields safe to hand back to callers.
PUBLIC_FIELDS = ("id", "username", "email", "created_at")


def public_user(document: dict[str, Any]) -> dict[str, Any]:
    """Project a stored user onto its public shape (no password hash)."""
    return {field: document[field] for field in PUBLIC_FIELDS}


def normalize_email(email: str) -> str:
    return email.strip().lower()


class CredentialStore:
    """Business logic for user identity records."""

    def __init__(
        self,
        store: DocumentStore,
        bcrypt_rounds: int = DEFAULT_ROUNDS,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.bcrypt_rounds = bcrypt_rounds
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        # Hash checked on the unknown-email path so a miss costs one bcrypt
        # verify, same as a wrong password. Built on first use.
        self._dummy_hash: Optional[str] = None

    # ─── Register ────────────────────────────────────────

    async def register(self, username: str, email: str, password: str) -> Result[dict]:
        """Create a user. Conflict if the username or email is taken."""
        username = username.strip()
        email = normalize_email(email)

        existing = await self.store.find_any(
            USERS, [{"username": username}, {"email": email}]
        )
        if existing:
            return Result.failure(ErrorKind.CONFLICT, "User already exists")

        # bcrypt is CPU-bound; keep the event loop free while it runs.
        password_hash = await asyncio.to_thread(
            hash_password, password, self.bcrypt_rounds
        )
        document = {
            "id": uuid.uuid4(),
            "username": username,
            "email": email,
            "password_hash": password_hash,
            "created_at": self._clock(),
        }
        try:
            user = await self.store.insert(USERS, document)
        except DuplicateKeyError:
            logger.info("auth.register_race_lost", username=username)
            return Result.failure(ErrorKind.CONFLICT, "User already exists")

        logger.info("auth.registered", user_id=str(user["id"]))
        return Result.success(public_user(user))

    # ─── Login ───────────────────────────────────────────

    async def verify_credentials(self, email: str, password: str) -> Result[dict]:
        """Check email + password.

        Unknown email and wrong password fail identically so callers can't
        tell which emails are registered, by body or by timing.
        """
        user = await self.store.find_one(USERS, {"email": normalize_email(email)})
        if user is None:
            await asyncio.to_thread(verify_password, password, await self._unknown_user_hash())
        else:
            ok = await asyncio.to_thread(verify_password, password, user["password_hash"])
            if ok:
                return Result.success(public_user(user))

        logger.info("auth.login_failed")
        return Result.failure(ErrorKind.UNAUTHORIZED, "Invalid credentials")

    async def _unknown_user_hash(self) -> str:
        if self._dummy_hash is None:
            self._dummy_hash = await asyncio.to_thread(
                hash_password, "unknown-user-placeholder", self.bcrypt_rounds
            )
        return self._dummy_hash

    # ─── Profile ─────────────────────────────────────────

    async def get_profile(self, user_id: uuid.UUID) -> Result[dict]:
        user = await self.store.find_one(USERS, {"id": user_id})
        if user is None:
            return Result.failure(ErrorKind.NOT_FOUND, "User not found")
        return Result.success(public_user(user))

    async def update_profile(
        self,
        user_id: uuid.UUID,
        username: Optional[str] = None,
        email: Optional[str] = None,
    ) -> Result[dict]:
        """Change username and/or email. The password hash is never touched."""
        changes: dict[str, Any] = {}
        if username:
            changes["username"] = username.strip()
        if email:
            changes["email"] = normalize_email(email)

        if not changes:
            return await self.get_profile(user_id)

        try:
            user = await self.store.update_one(USERS, {"id": user_id}, changes)
        except DuplicateKeyError:
            return Result.failure(ErrorKind.CONFLICT, "Username or email already in use")

        if user is None:
            return Result.failure(ErrorKind.NOT_FOUND, "User not found")

        logger.info("auth.profile_updated", user_id=str(user_id), fields=sorted(changes))
        return Result.success(public_user(user))
