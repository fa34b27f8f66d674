"""
Shared fixtures.

Settings and the engine are built at import time, so the environment is
populated before any application module is imported. Every test gets a fresh
in-memory SQLite database (StaticPool keeps the single connection alive) and
the API client shares the test's session through a ``get_db`` override.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("CREATE_TABLES_ON_STARTUP", "false")

from datetime import datetime
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import shared.models  # noqa: F401
from shared.constants import (
    ADMIN, MANAGER, STOREKEEPER, PACKER, LOADER, DRIVER, DRIVER_ASSISTANT, RECEPTIONIST,
)
from shared.database import Base, get_db
from shared.models import Employee
from services.auth_service.authenticator import hash_pin
from services.auth_service.token_manager import create_access_token

TEST_PIN = "1234"


# =============================================================================
# Database
# =============================================================================


@pytest.fixture(scope="session")
def pin_hash():
    """bcrypt is deliberately slow; hash the shared test PIN once."""
    return hash_pin(TEST_PIN)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.rollback()
    session.close()


# =============================================================================
# Employees
# =============================================================================


@pytest.fixture
def make_employee(db, pin_hash):
    counter = {"n": 0}

    def _make(role: str, name: str | None = None, status: str = "active") -> Employee:
        counter["n"] += 1
        employee = Employee(
            name=name or f"{role} {counter['n']}",
            email=f"{role.lower().replace(' ', '.')}{counter['n']}@matsplash.com",
            role=role,
            pin_hash=pin_hash,
            status=status,
            created_at=datetime.utcnow(),
            updated_at=datetime.utcnow(),
        )
        db.add(employee)
        db.commit()
        return employee

    return _make


@pytest.fixture
def staff(make_employee):
    """One active employee per role the workflows need, plus a second packer and storekeeper."""
    return SimpleNamespace(
        admin=make_employee(ADMIN, "Ada Admin"),
        manager=make_employee(MANAGER, "Mo Manager"),
        storekeeper=make_employee(STOREKEEPER, "Sam Store"),
        storekeeper2=make_employee(STOREKEEPER, "Sol Store"),
        packer=make_employee(PACKER, "Pat Packer"),
        packer2=make_employee(PACKER, "Pia Packer"),
        loader=make_employee(LOADER, "Lee Loader"),
        driver=make_employee(DRIVER, "Dan Driver"),
        assistant=make_employee(DRIVER_ASSISTANT, "Ari Assistant"),
        receptionist=make_employee(RECEPTIONIST, "Rae Reception"),
    )


# =============================================================================
# API client
# =============================================================================


@pytest.fixture
def client(db):
    from main import app

    def override_get_db():
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db
    # Not entered as a context manager: the lifespan (scheduler, create_all) stays off.
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def headers():
    def _headers(employee: Employee) -> dict:
        token = create_access_token(employee.id, employee.role)
        return {"Authorization": f"Bearer {token}"}

    return _headers
