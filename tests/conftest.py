from decimal import Decimal
from typing import Generator
import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from foodorder import crud, models
from foodorder.auth import create_access_token
from foodorder.db import Base
from foodorder.main import app, get_db


@pytest.fixture(scope="function")
def db_session() -> Generator:
    # Use in-memory SQLite with a single connection
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )

    @event.listens_for(engine, "connect")
    def _fk_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="function")
def client(db_session):
    # Override dependency to use the same session
    def override_get_db():
        try:
            yield db_session
        finally:
            pass
    app.dependency_overrides[get_db] = override_get_db
    from fastapi.testclient import TestClient
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def auth_header(user: models.User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.user_id, user.role)}"}


@pytest.fixture
def users(db_session):
    return {
        "owner": crud.create_user(db_session, "Owner", email="owner@example.com"),
        "other": crud.create_user(db_session, "Other", email="other@example.com"),
        "staff": crud.create_user(db_session, "Sam", role="staff"),
        "admin": crud.create_user(db_session, "Ada", role="Admin"),
    }


@pytest.fixture
def order(db_session, users):
    burger = models.MenuItem(name="Burger", price=Decimal("19.99"))
    burger.images = [models.ItemImage(url="https://cdn.example.com/burger.jpg"),
                     models.ItemImage(url="https://cdn.example.com/burger-2.jpg")]
    # price missing: unit amount falls back to subtotal / quantity
    special = models.MenuItem(name="Daily special", price=None)
    db_session.add_all([burger, special])
    db_session.flush()

    o = models.Order(user_id=users["owner"].user_id, status="pending")
    o.items = [
        models.OrderItem(menu_item_id=burger.menu_item_id, quantity=2, subtotal=Decimal("39.98")),
        models.OrderItem(menu_item_id=special.menu_item_id, quantity=2, subtotal=Decimal("39.98")),
    ]
    db_session.add(o)
    db_session.commit()
    db_session.refresh(o)
    return o
