"""
Test configuration and fixtures.

Provides:
- In-memory SQLite database (tables created and dropped per test)
- In-memory key-value store shared by the app and the test
- Token minting for authenticated tests
- HTTPX AsyncClient wired to the app with dependency overrides
"""
import os
import uuid
from dataclasses import dataclass
from typing import AsyncGenerator, Generator

# Configure before any app import reads settings
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["REDIS_URL"] = "memory://"
os.environ["TESTING"] = "1"
os.environ["ENV"] = "test"
os.environ["JWT_SECRET"] = "test-jwt-secret-for-formweaver-suite"
os.environ["SENTRY_DSN"] = ""

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.orm import Session

from formweaver.main import app
from formweaver.core import passwords
from formweaver.core.config import settings
from formweaver.core.deps import get_db
from formweaver.core.kv_store import MemoryKeyValueStore, get_kv_store
from formweaver.core.security import TokenSubject, issue_token_pair
from formweaver.db.base import Base
from formweaver.db.enums import FormStatus, Role
from formweaver.db.models import Form, User, Workspace, WorkspaceMember, now_ms
from formweaver.db.session import SessionLocal, engine
from formweaver.services import auth_service


DEFAULT_PASSWORD = "Passw0rd123"

CONTACT_SCHEMA = [
    {"id": "name", "type": "text", "label": "Name", "required": True},
    {"id": "email", "type": "email", "label": "Email", "required": True},
    {"id": "message", "type": "textarea", "label": "Message"},
]


# =============================================================================
# Speed
# =============================================================================

@pytest.fixture(autouse=True)
def fast_password_hashing(monkeypatch):
    """Minimum bcrypt cost keeps signup/login tests fast."""
    monkeypatch.setattr(passwords, "BCRYPT_ROUNDS", 4)


# =============================================================================
# Stores
# =============================================================================

@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Fresh schema per test on the shared in-memory connection."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()

    yield session

    session.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def kv_store() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


# =============================================================================
# Accounts
# =============================================================================

@dataclass
class TestAccount:
    """A user with a workspace membership and a live token pair."""
    user: User
    workspace: Workspace
    role: Role
    access_token: str
    refresh_token: str

    @property
    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.access_token}"}


def mint_tokens(user: User, workspace: Workspace, role: Role):
    subject = TokenSubject(
        user_id=str(user.id),
        email=user.email,
        workspace_id=str(workspace.id),
        role=role.value,
    )
    return issue_token_pair(subject, settings.JWT_SECRET)


def create_account(db: Session, email: str | None = None, name: str = "Test Owner") -> TestAccount:
    """Sign up through the service: user, workspace, and owner membership."""
    email = email or f"owner-{uuid.uuid4().hex[:8]}@example.com"
    result = auth_service.signup(db, email, DEFAULT_PASSWORD, name)
    assert result.ok, result.failure
    bundle = result.value
    tokens = mint_tokens(bundle.user, bundle.workspace, bundle.role)
    return TestAccount(
        user=bundle.user,
        workspace=bundle.workspace,
        role=bundle.role,
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
    )


def add_member(db: Session, workspace: Workspace, role: Role) -> TestAccount:
    """Add a user to an existing workspace with the given role."""
    user = User(
        email=f"{role.value}-{uuid.uuid4().hex[:8]}@example.com",
        password_hash="not-a-real-hash",
        name=f"Test {role.value.title()}",
    )
    db.add(user)
    db.flush()
    db.add(
        WorkspaceMember(
            user_id=user.id,
            workspace_id=workspace.id,
            role=role.value,
            joined_at=now_ms(),
        )
    )
    db.commit()
    db.refresh(user)

    tokens = mint_tokens(user, workspace, role)
    return TestAccount(
        user=user,
        workspace=workspace,
        role=role,
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
    )


def create_form(
    db: Session,
    account: TestAccount,
    *,
    title: str = "Contact us",
    status: FormStatus = FormStatus.DRAFT,
    schema: list | None = None,
    created_at: int | None = None,
) -> Form:
    timestamp = created_at or now_ms()
    form = Form(
        workspace_id=account.workspace.id,
        title=title,
        description="Test form",
        schema_json=schema if schema is not None else CONTACT_SCHEMA,
        status=status.value,
        version=1,
        created_by=account.user.id,
        created_at=timestamp,
        updated_at=timestamp,
    )
    db.add(form)
    db.commit()
    db.refresh(form)
    return form


@pytest.fixture(scope="function")
def test_account(db: Session) -> TestAccount:
    """Workspace owner."""
    return create_account(db)


@pytest.fixture(scope="function")
def make_account(db: Session):
    def _make(email: str | None = None, name: str = "Test Owner") -> TestAccount:
        return create_account(db, email=email, name=name)
    return _make


@pytest.fixture(scope="function")
def make_member(db: Session):
    def _make(workspace: Workspace, role: Role) -> TestAccount:
        return add_member(db, workspace, role)
    return _make


@pytest.fixture(scope="function")
def make_form(db: Session):
    def _make(account: TestAccount, **kwargs) -> Form:
        return create_form(db, account, **kwargs)
    return _make


# =============================================================================
# Client Fixtures
# =============================================================================

@pytest.fixture(scope="function")
async def client(db: Session, kv_store: MemoryKeyValueStore) -> AsyncGenerator[AsyncClient, None]:
    """
    Create unauthenticated AsyncClient for testing public endpoints.
    """
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_kv_store] = lambda: kv_store

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def authed_client(
    db: Session,
    kv_store: MemoryKeyValueStore,
    test_account: TestAccount,
) -> AsyncGenerator[AsyncClient, None]:
    """
    Create AsyncClient authenticated as the workspace owner.
    """
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_kv_store] = lambda: kv_store

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers=test_account.headers,
    ) as c:
        yield c

    app.dependency_overrides.clear()
