"""
Shared fixtures: the app wired to an in-memory store and a fake identity provider.
"""

import asyncio
import os
import uuid
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

# Settings are read when carehub.app is imported
os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("MONGO_BACKEND", "memory")
os.environ.setdefault("FIREBASE_PROJECT_ID", "carehub-test")
os.environ.setdefault("LOG_FORMAT", "text")

import pytest
from fastapi.testclient import TestClient

from carehub.adapters.db.memory.document_store import InMemoryDocumentStore
from carehub.api.deps import get_document_store, get_identity_provider
from carehub.app import app
from carehub.application.ports.identity_provider import CreatedAccount, IdentityProvider, VerifiedToken
from carehub.core.exceptions import IdentityProviderError, TokenVerificationError


class FakeIdentityProvider(IdentityProvider):
    """Tokens look like ``token-<uid>``; ``expired`` and ``revoked`` fail accordingly."""

    def __init__(self):
        self.accounts: Dict[str, CreatedAccount] = {}
        self.roles: Dict[str, str] = {}

    def issue(self, uid: str, role: str, email: Optional[str] = None) -> str:
        self.roles[uid] = role
        self.accounts.setdefault(uid, CreatedAccount(uid=uid, email=email or f"{uid}@example.com"))
        return f"token-{uid}"

    async def verify_token(self, token: str) -> VerifiedToken:
        if token == "expired":
            raise TokenVerificationError(TokenVerificationError.EXPIRED, "expired")
        if token == "revoked":
            raise TokenVerificationError(TokenVerificationError.REVOKED, "revoked")
        uid = token[len("token-"):] if token.startswith("token-") else None
        if uid not in self.accounts:
            raise TokenVerificationError(TokenVerificationError.INVALID, "unknown token")
        claims = {"role": self.roles[uid]} if uid in self.roles else {}
        return VerifiedToken(uid=uid, email=self.accounts[uid].email, email_verified=True, claims=claims)

    async def create_account(self, email, password, display_name, phone_number=None) -> CreatedAccount:
        if any(account.email == email for account in self.accounts.values()):
            raise IdentityProviderError("email_exists", "Email already in use")
        uid = uuid.uuid4().hex[:20]
        account = CreatedAccount(uid=uid, email=email, display_name=display_name)
        self.accounts[uid] = account
        return account

    async def set_role(self, uid: str, role: str) -> None:
        self.roles[uid] = role


def run(coro):
    return asyncio.run(coro)


def future(days: int = 1, hour: int = 10, minute: int = 0) -> datetime:
    base = datetime.now(timezone.utc) + timedelta(days=days)
    return base.replace(hour=hour, minute=minute, second=0, microsecond=0)


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def identity():
    return FakeIdentityProvider()


@pytest.fixture
def client(store, identity):
    app.dependency_overrides[get_document_store] = lambda: store
    app.dependency_overrides[get_identity_provider] = lambda: identity
    yield TestClient(app)
    app.dependency_overrides.clear()


class Seeder:
    """Writes users and profiles straight into the store and hands back auth headers."""

    def __init__(self, store: InMemoryDocumentStore, identity: FakeIdentityProvider):
        self.store = store
        self.identity = identity

    def user(self, uid: str, role: str, first_name: str = "Test", last_name: str = "User", **extra) -> Dict[str, str]:
        run(
            self.store.set(
                "users",
                uid,
                {
                    "email": f"{uid}@example.com",
                    "firstName": first_name,
                    "lastName": last_name,
                    "role": role,
                    "isActive": True,
                    **extra,
                },
            )
        )
        return self.headers(uid, role)

    def headers(self, uid: str, role: str) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.identity.issue(uid, role)}"}

    def doctor(self, uid: str, first_name: str = "Gregory", last_name: str = "House", **profile) -> Dict[str, str]:
        headers = self.user(uid, "doctor", first_name, last_name)
        run(
            self.store.set(
                "doctors",
                uid,
                {
                    "userId": uid,
                    "licenseNumber": f"LIC-{uid}",
                    "specialties": ["general_practice"],
                    "isActive": True,
                    "isVerified": True,
                    "isProfileComplete": True,
                    "rating": 0,
                    "reviewCount": 0,
                    **profile,
                },
            )
        )
        return headers

    def patient(self, uid: str, first_name: str = "Ana", last_name: str = "Lopez", **profile) -> Dict[str, str]:
        headers = self.user(uid, "patient", first_name, last_name)
        run(
            self.store.set(
                "patients",
                uid,
                {
                    "userId": uid,
                    "dateOfBirth": datetime(1990, 5, 1, tzinfo=timezone.utc),
                    "gender": "female",
                    "allergies": [],
                    "chronicConditions": [],
                    "medications": [],
                    "isActive": True,
                    "isProfileComplete": True,
                    **profile,
                },
            )
        )
        return headers

    def admin(self, uid: str = "admin-1") -> Dict[str, str]:
        return self.user(uid, "admin", "Ada", "Admin")

    def doc(self, collection: str, doc_id: str, data: dict) -> dict:
        return run(self.store.set(collection, doc_id, data))


@pytest.fixture
def seed(store, identity):
    return Seeder(store, identity)
