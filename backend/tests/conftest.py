"""Shared test fixtures for all test modules."""

import contextlib
from concurrent.futures import Future
from datetime import UTC, datetime
from typing import Any

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core import database as db_module
from app.core.database import Base, get_db
from app.core.dependencies import get_dispatcher
from app.core.locks import contract_locks
from app.main import app
from app.repositories.customer_repository import CustomerRepository
from app.schemas.contract import ContractCreate
from app.schemas.customer import CustomerCreate
from app.services.contract_service import ContractService
from app.services.webhook_service import WebhookDispatcher, WebhookService

# Create an in-memory SQLite engine with StaticPool so all connections
# share the same database state and there are no file-locking issues.
_test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
_TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=_test_engine)


class RecordingDispatcher(WebhookDispatcher):
    """Dispatcher without targets that keeps every event it is handed."""

    def __init__(self) -> None:
        super().__init__(targets=[])
        self.events: list[dict[str, Any]] = []

    def emit(self, event: dict[str, Any]) -> Future[dict[str, Any]]:
        future: Future[dict[str, Any]] = Future()
        future.set_result(self.dispatch(event))
        return future

    def dispatch(self, event: dict[str, Any]) -> dict[str, Any]:
        event = super().dispatch(event)
        self.events.append(event)
        return event

    def of_type(self, event_type: str) -> list[dict[str, Any]]:
        return [e for e in self.events if e.get("type") == event_type]


@pytest.fixture(autouse=True)
def setup_database():
    """Create tables before each test and truncate all data after.

    Patches the module-level engine and SessionLocal so all application code
    uses the in-memory test database. Clears data after each test.
    """
    original_engine = db_module.engine
    original_session = db_module.SessionLocal
    db_module.engine = _test_engine
    db_module.SessionLocal = _TestSessionLocal

    Base.metadata.create_all(bind=_test_engine)

    yield
    with _test_engine.connect() as conn:
        conn.execute(text("PRAGMA foreign_keys = OFF"))
        for table in reversed(Base.metadata.sorted_tables):
            with contextlib.suppress(OperationalError):
                conn.execute(table.delete())
        conn.execute(text("PRAGMA foreign_keys = ON"))
        conn.commit()
    contract_locks.reset()

    db_module.engine = original_engine
    db_module.SessionLocal = original_session


@pytest.fixture
def db_session():
    """Create a database session for direct service testing."""
    gen = get_db()
    db = next(gen)
    try:
        yield db
    finally:
        for _ in gen:
            pass


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def webhooks(db_session, dispatcher):
    return WebhookService(db_session, dispatcher)


@pytest.fixture
def client(dispatcher):
    """Test client whose webhook events land in ``dispatcher``."""
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.pop(get_dispatcher, None)


@pytest.fixture
def customer(db_session):
    return CustomerRepository(db_session).create(
        CustomerCreate(name="Acme", ingest_aliases=["acme"], custom_fields={"team": "core"})
    )


@pytest.fixture
def contract(db_session, webhooks, customer):
    """A contract starting 2024-01-01 with an empty aggregate."""
    return ContractService(db_session, webhooks).create_contract(
        ContractCreate(
            name="Acme contract",
            customer_id=customer.id,
            starting_at=datetime(2024, 1, 1, tzinfo=UTC),
            rate_card_id="rc_default",
        )
    )
