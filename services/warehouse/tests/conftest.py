"""
Pytest fixtures for the Warehouse service test suite.

Provides:
- A fresh file-backed SQLite database per test
- Seeded catalog products
- Admin and rider principals, plus signed JWTs for API tests
"""
import os
import tempfile

# app.database builds its engine at import time
os.environ["DATABASE_URL"] = "sqlite:///" + os.path.join(tempfile.mkdtemp(prefix="warehouse-tests-"), "app.db")

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy.orm import sessionmaker

from app import models
from app.auth import CurrentUser
from app.config import ALGORITHM, SECRET_KEY
from app.database import Base, build_engine, get_db
from app.ledger import StockLedger


ADMIN_ID = 1
RIDER_A_ID = 101
RIDER_B_ID = 102


@pytest.fixture
def engine(tmp_path):
    test_engine = build_engine(f"sqlite:///{tmp_path / 'warehouse.db'}")
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def products(db):
    """
    Catalog product ids keyed by SKU.

    The seeding transaction is committed and nothing is left open on
    ``db``, so other sessions can write right away.
    """
    seeded = [
        models.Product(sku="SKU-1", name="Roti Coklat"),
        models.Product(sku="SKU-2", name="Roti Keju"),
    ]
    db.add_all(seeded)
    db.flush()
    ids = {product.sku: product.id for product in seeded}
    db.commit()
    return ids


@pytest.fixture
def ledger(db):
    return StockLedger(db, retry_backoff=0)


@pytest.fixture
def admin():
    return CurrentUser(id=ADMIN_ID, email="admin@example.com", role="admin")


@pytest.fixture
def rider_a():
    return CurrentUser(id=RIDER_A_ID, email="rider.a@example.com", role="rider")


@pytest.fixture
def rider_b():
    return CurrentUser(id=RIDER_B_ID, email="rider.b@example.com", role="rider")


def make_token(user: CurrentUser) -> str:
    """Sign a token the way the Users service does."""
    return jwt.encode({"sub": str(user.id), "email": user.email, "role": user.role}, SECRET_KEY, algorithm=ALGORITHM)


def auth_headers(user: CurrentUser) -> dict:
    return {"Authorization": f"Bearer {make_token(user)}"}


@pytest.fixture
def client(session_factory):
    from app.main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
