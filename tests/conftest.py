import os

# Settings are read at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SUPABASE_URL"] = "http://localhost:54321"
os.environ["SUPABASE_KEY"] = "test-anon-key"
os.environ["SUPABASE_JWT_SECRET"] = "test-jwt-secret"

import uuid

import pytest
from fastapi import Depends
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from app.core.auth import get_current_user
from app.core.events import OrderEventBroadcaster
from app.database import get_session
from app.main import app
from app.models.user import User
from tests.factories import make_user


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def tenant_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def manager(session, tenant_id) -> User:
    return make_user(session, tenant_id, role="manager", email="manager@bistro.test")


@pytest.fixture
def cashier(session, tenant_id) -> User:
    return make_user(session, tenant_id, role="cashier", email="cashier@bistro.test")


@pytest.fixture
def events() -> OrderEventBroadcaster:
    return OrderEventBroadcaster()


@pytest.fixture
def acting(manager) -> dict:
    """
    Mutable holder for the user the test client acts as.
    """
    return {"user_id": manager.id}


@pytest.fixture
def client(engine, acting):
    def override_get_session():
        with Session(engine) as session:
            yield session

    def override_current_user(session: Session = Depends(get_session)):
        return session.get(User, acting["user_id"])

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_current_user] = override_current_user
    yield TestClient(app)
    app.dependency_overrides.clear()
