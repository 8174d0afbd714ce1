"""
Shared fixtures for the scheduling engine tests.

Every test gets a fresh in-memory SQLite database built from the models'
metadata, so the partial unique index on active sessions behaves the same
way it does in production.
"""

from decimal import Decimal
from typing import Any, Callable, Dict, Optional

from fastapi.testclient import TestClient
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.api.dependencies.database import get_db
from app.core.enums import ActorRole
from app.core.permissions import SYSTEM_ACTOR, Actor
from app.database import Base
from app.main import app as fastapi_app

# Import models so Base.metadata is populated for create_all.
import app.models  # noqa: F401
from app.models.account import Account
from app.models.expert import Expert

WEEKDAY_SCHEDULE: Dict[str, Any] = {
    "Monday": [{"start": "09:00", "end": "17:00"}],
    "Wednesday": [{"start": "09:00", "end": "12:00"}],
}


@pytest.fixture(scope="function")
def engine():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False, future=True)


@pytest.fixture(scope="function")
def db(session_factory) -> Session:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_account(db: Session) -> Callable[..., Account]:
    counter = {"n": 0}

    def _make(
        role: str = "client",
        credit_balance: Decimal = Decimal("0.00"),
        display_name: Optional[str] = None,
    ) -> Account:
        counter["n"] += 1
        account = Account(
            email=f"{role}{counter['n']}@example.com",
            display_name=display_name or f"{role.title()} {counter['n']}",
            role=role,
            credit_balance=credit_balance,
        )
        db.add(account)
        db.commit()
        return account

    return _make


@pytest.fixture
def make_expert(db: Session, make_account) -> Callable[..., Expert]:
    def _make(
        hourly_rate: Decimal = Decimal("100.00"),
        availability: Optional[Dict[str, Any]] = None,
        break_times: Optional[list] = None,
        slot_duration: int = 60,
        timezone_name: str = "UTC",
        is_approved: bool = True,
        is_accepting_clients: bool = True,
        **stats: Any,
    ) -> Expert:
        account = make_account(role="expert")
        expert = Expert(
            account_id=account.id,
            hourly_rate=hourly_rate,
            currency="USD",
            availability=WEEKDAY_SCHEDULE if availability is None else availability,
            break_times=[] if break_times is None else break_times,
            slot_duration=slot_duration,
            timezone=timezone_name,
            is_approved=is_approved,
            is_accepting_clients=is_accepting_clients,
            **stats,
        )
        db.add(expert)
        db.commit()
        return expert

    return _make


@pytest.fixture
def client_account(make_account) -> Account:
    return make_account(role="client", display_name="Dana Client")


@pytest.fixture
def expert(make_expert) -> Expert:
    return make_expert()


@pytest.fixture
def client_actor(client_account: Account) -> Actor:
    return Actor(id=client_account.id, role=ActorRole.CLIENT)


@pytest.fixture
def expert_actor(expert: Expert) -> Actor:
    return Actor(id=expert.account_id, role=ActorRole.EXPERT)


@pytest.fixture
def admin_actor() -> Actor:
    return Actor(id="admin-1", role=ActorRole.ADMIN)


@pytest.fixture
def system_actor() -> Actor:
    return SYSTEM_ACTOR


@pytest.fixture
def api_client(db: Session):
    """Test client whose requests share the test database session."""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    fastapi_app.dependency_overrides[get_db] = override_get_db
    test_client = TestClient(fastapi_app)

    yield test_client

    fastapi_app.dependency_overrides.clear()
    test_client.close()


@pytest.fixture
def headers_for() -> Callable[[Actor], Dict[str, str]]:
    """Trusted identity headers for an actor."""

    def _headers(actor: Actor) -> Dict[str, str]:
        return {"X-Actor-Id": actor.id, "X-Actor-Role": actor.role.value}

    return _headers
