# tests/conftest.py

"""
Pytest configuration and shared fixtures for testing.
"""

import os

# Settings are read at import time
os.environ["SUPABASE_URL"] = "http://localhost:54321"
os.environ["SUPABASE_ANON_KEY"] = "test-anon-key"
os.environ["SUPABASE_SERVICE_ROLE_KEY"] = "test-service-role-key"
os.environ["IMPERSONATION_SECRET"] = "test-impersonation-secret"
os.environ["STAFF_ADMIN_EMAILS"] = "staff@blockclub.test, other-staff@blockclub.test"

import uuid
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from typing import Generator, Optional

import pytest
from fastapi.testclient import TestClient

from core.auth_context import AuthContextResolver, get_auth_resolver
from core.cache import SimpleCache, session_registry_clear
from core.config import settings
from core.errors import StoreFailure
from core.impersonation import ImpersonationManager, get_impersonation_manager
from dependencies.auth import get_optional_principal
from main import create_app
from models.enums import MembershipRole, MembershipStatus
from models.membership import Membership, Neighborhood
from models.user import Principal, UserRecord


STAFF_EMAIL = "staff@blockclub.test"
OTHER_STAFF_EMAIL = "other-staff@blockclub.test"


# ============================================================
# In-memory membership store
# ============================================================
class FakeStore:
    """
    Same surface as core.membership_store.MembershipStore, backed by dicts.
    `fail_on` names methods that should raise StoreFailure.
    """

    def __init__(self):
        self.users = {}
        self.neighborhoods = {}
        self.memberships = {}
        self.items = []
        self.posts = []
        self.fail_on = set()
        self.last_user_write = None
        self._clock = datetime(2026, 1, 1, tzinfo=timezone.utc)

    # -----------------------------------------------------
    # Seeding helpers
    # -----------------------------------------------------
    def add_user(self, user_id: str, email: str, name: Optional[str] = None) -> UserRecord:
        user = UserRecord(id=user_id, email=email, name=name or user_id)
        self.users[user_id] = user
        return user

    def add_neighborhood(self, neighborhood_id: str, require_approval=None) -> Neighborhood:
        settings_ = {} if require_approval is None else {"require_approval": require_approval}
        neighborhood = Neighborhood(
            id=neighborhood_id, slug=neighborhood_id, name=neighborhood_id.title(), settings=settings_
        )
        self.neighborhoods[neighborhood_id] = neighborhood
        return neighborhood

    def add_membership(
        self,
        user_id: str,
        neighborhood_id: str,
        role=MembershipRole.member,
        status=MembershipStatus.active,
        membership_id: Optional[str] = None,
        deleted: bool = False,
    ) -> Membership:
        membership = Membership(
            id=membership_id or f"m-{user_id}-{neighborhood_id}",
            user_id=user_id,
            neighborhood_id=neighborhood_id,
            role=role,
            status=status,
            joined_at=self._tick(),
            deleted_at=self._clock if deleted else None,
        )
        self.memberships[membership.id] = membership
        return membership

    def add_item(self, owner_id: str, neighborhood_id: str) -> None:
        self.items.append({"owner_id": owner_id, "neighborhood_id": neighborhood_id})

    def _tick(self) -> datetime:
        self._clock = self._clock + timedelta(seconds=1)
        return self._clock

    def _check(self, method: str) -> None:
        if method in self.fail_on:
            raise StoreFailure(f"{method} failed")

    # -----------------------------------------------------
    # MembershipStore surface
    # -----------------------------------------------------
    def find_membership(self, user_id, neighborhood_id):
        self._check("find_membership")
        for m in self.memberships.values():
            if m.user_id == user_id and m.neighborhood_id == neighborhood_id and not m.is_deleted:
                return m
        return None

    def get_membership(self, membership_id):
        self._check("get_membership")
        return self.memberships.get(membership_id)

    def update_membership(self, membership_id, changes):
        self._check("update_membership")
        current = self.memberships.get(membership_id)
        if current is None:
            raise StoreFailure("Membership update affected no rows", membership_id=membership_id)
        updated = Membership(**{**current.model_dump(), **changes})
        self.memberships[membership_id] = updated
        return updated

    def update_membership_status(self, membership_id, status, extra=None):
        changes = {"status": str(status)}
        if extra:
            changes.update(extra)
        return self.update_membership(membership_id, changes)

    def insert_membership(self, user_id, neighborhood_id, role, status, extra=None):
        self._check("insert_membership")
        data = {
            "id": f"m-{uuid.uuid4().hex[:8]}",
            "user_id": user_id,
            "neighborhood_id": neighborhood_id,
            "role": str(role),
            "status": str(status),
            "joined_at": self._tick(),
        }
        if extra:
            data.update(extra)
        membership = Membership(**data)
        self.memberships[membership.id] = membership
        return membership

    def count_active_members(self, neighborhood_id):
        return sum(
            1 for m in self.memberships.values()
            if m.neighborhood_id == neighborhood_id and m.is_active
        )

    def claim_bootstrap_activation(self, membership):
        if self.count_active_members(membership.neighborhood_id) > 0:
            return membership
        live = sorted(
            (
                m for m in self.memberships.values()
                if m.neighborhood_id == membership.neighborhood_id
                and not m.is_deleted
                and m.status in (MembershipStatus.pending, MembershipStatus.active)
            ),
            key=lambda m: (m.joined_at, m.id),
        )
        if not live or live[0].id != membership.id:
            return membership
        return self.update_membership_status(membership.id, MembershipStatus.active)

    def delete_member_items(self, user_id, neighborhood_id):
        self._check("delete_member_items")
        self.items = [
            i for i in self.items
            if not (i["owner_id"] == user_id and i["neighborhood_id"] == neighborhood_id)
        ]

    def get_neighborhood(self, neighborhood_id):
        self._check("get_neighborhood")
        return self.neighborhoods.get(neighborhood_id)

    def get_neighborhood_by_slug(self, slug):
        return next((n for n in self.neighborhoods.values() if n.slug == slug), None)

    def insert_neighborhood(self, data):
        self._check("insert_neighborhood")
        neighborhood = Neighborhood(id=f"n-{uuid.uuid4().hex[:8]}", **data)
        self.neighborhoods[neighborhood.id] = neighborhood
        return neighborhood

    def get_user(self, user_id):
        self._check("get_user")
        return self.users.get(user_id)

    def ensure_user_profile(self, principal):
        existing = self.users.get(principal.id)
        if existing:
            return existing
        return self.add_user(principal.id, principal.email or "", principal.name)

    def update_user(self, user_id, changes):
        self._check("update_user")
        current = self.users.get(user_id)
        if current is None:
            raise StoreFailure("User update affected no rows", user_id=user_id)
        updated = UserRecord(**{**current.model_dump(), **changes})
        self.users[user_id] = updated
        # Audit column is not part of UserRecord
        self.last_user_write = dict(changes)
        return updated

    def insert_post(self, payload):
        self._check("insert_post")
        row = {"id": f"p-{len(self.posts) + 1}", **payload}
        self.posts.append(row)
        return row


# ============================================================
# Principals
# ============================================================
@pytest.fixture
def staff_principal():
    return Principal(id="staff-1", email=STAFF_EMAIL, name="Staff", access_token="staff-token")


@pytest.fixture
def other_staff_principal():
    return Principal(id="staff-2", email=OTHER_STAFF_EMAIL, name="Other Staff", access_token="staff2-token")


@pytest.fixture
def alice():
    """Neighborhood admin of `maple`."""
    return Principal(id="alice", email="alice@example.com", name="Alice", access_token="alice-token")


@pytest.fixture
def bob():
    """Active member of `maple`."""
    return Principal(id="bob", email="bob@example.com", name="Bob", access_token="bob-token")


@pytest.fixture
def carol():
    """Pending in `maple`."""
    return Principal(id="carol", email="carol@example.com", name="Carol", access_token="carol-token")


# ============================================================
# Store / managers
# ============================================================
@pytest.fixture
def store(staff_principal, other_staff_principal, alice, bob, carol):
    s = FakeStore()
    for p in (staff_principal, other_staff_principal, alice, bob, carol):
        s.add_user(p.id, p.email, p.name)
    s.add_user("dave", "dave@example.com", "Dave")

    s.add_neighborhood("maple")
    s.add_neighborhood("oak", require_approval=False)
    s.add_neighborhood("elm")

    s.add_membership("alice", "maple", role=MembershipRole.admin)
    s.add_membership("bob", "maple")
    s.add_membership("carol", "maple", status=MembershipStatus.pending)
    return s


@pytest.fixture
def registry():
    return SimpleCache()


@pytest.fixture
def manager(registry, store):
    return ImpersonationManager(registry=registry, config=settings, admin_store_factory=lambda: store)


@pytest.fixture
def store_calls():
    """Every AuthContext the resolver built a store for."""
    return []


@pytest.fixture
def elevated_calls():
    """One entry per elevated store the resolver handed out."""
    return []


@pytest.fixture
def resolver(manager, store, store_calls, elevated_calls):
    def factory(ctx):
        store_calls.append(ctx)
        return store

    def elevated():
        elevated_calls.append(store)
        return store

    return AuthContextResolver(impersonation=manager, store_factory=factory, elevated_store_factory=elevated)


@pytest.fixture
def make_request():
    """Stand-in for a Starlette request: per-request state plus cookies."""
    def _make(cookies=None):
        return SimpleNamespace(state=SimpleNamespace(), cookies=dict(cookies or {}))
    return _make


# ============================================================
# HTTP
# ============================================================
@pytest.fixture
def auth_state():
    """Mutable holder for the principal the API sees."""
    return SimpleNamespace(principal=None)


@pytest.fixture(scope="function")
def app(resolver, manager, auth_state):
    """Create a test FastAPI application instance."""
    application = create_app()
    application.dependency_overrides[get_optional_principal] = lambda: auth_state.principal
    application.dependency_overrides[get_auth_resolver] = lambda: resolver
    application.dependency_overrides[get_impersonation_manager] = lambda: manager
    return application


@pytest.fixture(scope="function")
def client(app) -> Generator[TestClient, None, None]:
    """Create a test client for the FastAPI application."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture(autouse=True)
def reset_sessions():
    """Reset the global session registry before each test."""
    session_registry_clear()
    yield
    session_registry_clear()
