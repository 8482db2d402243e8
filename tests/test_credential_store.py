"""Credential store tests — hashing invariant, uniqueness, uniform login errors.

Learn: These run the service directly against MemoryDocumentStore, so the
stored documents can be inspected (the API never exposes password_hash).
"""

import asyncio
import uuid

import pytest

from tasktracker.auth.password import verify_password
from tasktracker.db.store import MemoryDocumentStore
from tasktracker.errors import ErrorKind
from tasktracker.services.user_service import CredentialStore


@pytest.fixture
def store():
    return MemoryDocumentStore()


@pytest.fixture
def creds(store):
    return CredentialStore(store, bcrypt_rounds=4)


# ═══════════════════════════════════════════════════════════
# Registration
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_register_stores_hash_not_plaintext(creds, store):
    result = await creds.register("alice", "alice@x.com", "secret1")
    assert result.ok

    stored = await store.find_one("users", {"email": "alice@x.com"})
    assert stored["password_hash"] != "secret1"
    assert verify_password("secret1", stored["password_hash"])


@pytest.mark.asyncio
async def test_register_returns_public_projection(creds):
    user = (await creds.register("alice", "alice@x.com", "secret1")).value
    assert set(user) == {"id", "username", "email", "created_at"}
    assert isinstance(user["id"], uuid.UUID)


@pytest.mark.asyncio
async def test_register_normalizes_email(creds, store):
    user = (await creds.register("alice", "  Alice@X.com ", "secret1")).value
    assert user["email"] == "alice@x.com"


@pytest.mark.asyncio
async def test_duplicate_email_conflicts(creds):
    first = await creds.register("alice", "alice@x.com", "secret1")
    second = await creds.register("someone-else", "ALICE@x.com", "secret2")
    assert first.ok
    assert second.error.kind == ErrorKind.CONFLICT


@pytest.mark.asyncio
async def test_duplicate_username_conflicts(creds):
    await creds.register("alice", "alice@x.com", "secret1")
    result = await creds.register("alice", "other@x.com", "secret1")
    assert result.error.kind == ErrorKind.CONFLICT


@pytest.mark.asyncio
async def test_concurrent_registrations_one_wins(creds, store):
    """Both requests pass the existence check while hashing; the store's
    unique index rejects the second insert and it surfaces as a Conflict."""
    results = await asyncio.gather(
        creds.register("alice", "alice@x.com", "secret1"),
        creds.register("alice2", "alice@x.com", "secret1"),
    )
    kinds = sorted("ok" if r.ok else r.error.kind.value for r in results)
    assert kinds == ["conflict", "ok"]
    assert len(await store.find("users", {"email": "alice@x.com"})) == 1


# ═══════════════════════════════════════════════════════════
# Login
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_verify_credentials_success(creds):
    registered = (await creds.register("alice", "alice@x.com", "secret1")).value
    result = await creds.verify_credentials("Alice@x.com", "secret1")
    assert result.ok
    assert result.value["id"] == registered["id"]
    assert "password_hash" not in result.value


@pytest.mark.asyncio
async def test_wrong_password_and_unknown_email_fail_identically(creds):
    await creds.register("alice", "alice@x.com", "secret1")
    wrong_pw = await creds.verify_credentials("alice@x.com", "nope-nope")
    unknown = await creds.verify_credentials("bob@x.com", "secret1")
    assert wrong_pw.error == unknown.error
    assert wrong_pw.error.kind == ErrorKind.UNAUTHORIZED


# ═══════════════════════════════════════════════════════════
# Profile
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_update_profile_only_supplied_fields(creds):
    user = (await creds.register("alice", "alice@x.com", "secret1")).value
    updated = (await creds.update_profile(user["id"], username="alice2")).value
    assert updated["username"] == "alice2"
    assert updated["email"] == "alice@x.com"
    assert updated["created_at"] == user["created_at"]


@pytest.mark.asyncio
async def test_update_profile_does_not_rehash(creds, store):
    user = (await creds.register("alice", "alice@x.com", "secret1")).value
    before = (await store.find_one("users", {"id": user["id"]}))["password_hash"]

    await creds.update_profile(user["id"], email="NEW@x.com")

    after = await store.find_one("users", {"id": user["id"]})
    assert after["password_hash"] == before
    assert after["email"] == "new@x.com"
    assert (await creds.verify_credentials("new@x.com", "secret1")).ok


@pytest.mark.asyncio
async def test_update_profile_unknown_user(creds):
    result = await creds.update_profile(uuid.uuid4(), username="ghost")
    assert result.error.kind == ErrorKind.NOT_FOUND


@pytest.mark.asyncio
async def test_update_profile_email_taken(creds):
    await creds.register("alice", "alice@x.com", "secret1")
    bob = (await creds.register("bob", "bob@x.com", "secret1")).value
    result = await creds.update_profile(bob["id"], email="alice@x.com")
    assert result.error.kind == ErrorKind.CONFLICT


@pytest.mark.asyncio
async def test_get_profile(creds):
    user = (await creds.register("alice", "alice@x.com", "secret1")).value
    assert (await creds.get_profile(user["id"])).value == user
    assert (await creds.get_profile(uuid.uuid4())).error.kind == ErrorKind.NOT_FOUND


@pytest.mark.asyncio
async def test_unknown_email_still_runs_a_bcrypt_check(creds, monkeypatch):
    """Unknown email does the same bcrypt work as a wrong password."""
    from tasktracker.services import user_service

    checked = []

    def recording_verify(password, password_hash):
        checked.append(password_hash)
        return verify_password(password, password_hash)

    monkeypatch.setattr(user_service, "verify_password", recording_verify)
    await creds.register("alice", "alice@x.com", "secret1")

    unknown = await creds.verify_credentials("nobody@x.com", "secret1")
    wrong = await creds.verify_credentials("alice@x.com", "wrong-password")

    assert unknown.error == wrong.error
    assert len(checked) == 2
    assert all(h.startswith("$2") for h in checked)
