from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

import marketplace.persistence.db as db
from marketplace.demo import seed_demo_catalog
from marketplace.events import get_event_bus
from marketplace.persistence.models import Base


@pytest.fixture(scope="session")
def test_db_path(tmp_path_factory: pytest.TempPathFactory) -> Path:
    return tmp_path_factory.mktemp("db") / "test.sqlite"


@pytest.fixture(scope="session")
def test_engine(test_db_path: Path):
    engine = create_engine(
        f"sqlite+pysqlite:///{test_db_path}",
        future=True,
        connect_args={"check_same_thread": False},
    )
    TestSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)

    db.engine = engine
    db.SessionLocal = TestSessionLocal
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(autouse=True)
def fresh_schema(test_engine):
    Base.metadata.drop_all(bind=test_engine)
    Base.metadata.create_all(bind=test_engine)
    get_event_bus().reset()
    yield
    get_event_bus().reset()


@pytest.fixture()
def client(test_engine):
    from marketplace.main import app

    with TestClient(app) as c:
        yield c


@pytest.fixture()
def session(test_engine):
    s = db.SessionLocal()
    try:
        yield s
    finally:
        s.rollback()
        s.close()


@pytest.fixture()
def seeded(test_engine) -> dict:
    with db.session_scope() as s:
        return seed_demo_catalog(s)


@pytest.fixture()
def place_order(seeded):
    from marketplace.domain.orders import CreateOrderRequest, create_order

    def _place(lines: list[tuple[str, int]] | None = None, delivery_zone_id: str = "cairo"):
        lines = lines or [("prod-silver-ring", 2), ("prod-woven-rug", 1)]
        request = CreateOrderRequest(
            customer_id=seeded["customer_id"],
            delivery_address="12 Tahrir St, Cairo",
            delivery_zone_id=delivery_zone_id,
            items=[{"product_id": product_id, "quantity": qty} for product_id, qty in lines],
        )
        with db.session_scope() as s:
            return create_order(s, request)

    return _place
