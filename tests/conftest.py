"""
Pytest fixtures for the reimbursement API.

Every test gets a fresh in-memory SQLite database, a receipt store rooted in
tmp_path and factories for users and requests.
"""

import os

os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("SECRET_KEY", "test-secret")

from datetime import date, datetime
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from reimburse.core.security import create_access_token
from reimburse.db.base import Base
from reimburse.db.session import get_db
from reimburse.main import app
from reimburse.models.reimbursement_request import ReimbursementRequest, RequestStatus
from reimburse.models.user import User, UserRole
from reimburse.services.blob_store import LocalBlobStore, get_blob_store

YEAR = 2025


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
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def blob_store(tmp_path):
    return LocalBlobStore(str(tmp_path / "blobs"), "http://files.test")


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(role=UserRole.employee, budget="1000", manager=None, name=None):
        counter["n"] += 1
        user = User(
            email=f"user{counter['n']}@example.com",
            name=name or f"User {counter['n']}",
            role=role,
            manager_id=manager.id if manager else None,
            reimbursement_budget=Decimal(budget),
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def manager(make_user):
    return make_user(role=UserRole.manager, budget="5000", name="Maya Manager")


@pytest.fixture
def employee(make_user, manager):
    return make_user(role=UserRole.employee, budget="1000", manager=manager, name="Eli Employee")


@pytest.fixture
def make_request(db):
    def _make(
        user,
        amount="100",
        status=RequestStatus.pending,
        expense_date=date(YEAR, 3, 10),
        category="Transportation",
        description="Taxi to client",
        merchant="City Cabs",
    ):
        request = ReimbursementRequest(
            user_id=user.id,
            approver=user.manager_id or user.id,
            amount=Decimal(amount),
            category=category,
            expense_date=expense_date,
            status=status,
            description=description,
            merchant=merchant,
            created_at=datetime(YEAR, 3, 11, 9, 30),
        )
        db.add(request)
        db.commit()
        db.refresh(request)
        return request

    return _make


@pytest.fixture
def client(db, blob_store):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_blob_store] = lambda: blob_store
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    def _headers(user):
        token = create_access_token({"sub": str(user.id)})
        return {"Authorization": f"Bearer {token}"}

    return _headers
