import io
from datetime import datetime

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import create_engine

from karigardesk.db.session import create_tables
from karigardesk.models.order import OrderRead, OrderStatus, OrderType
from karigardesk.services.store import OrderStore


@pytest.fixture
def engine():
    eng = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    create_tables(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def store(engine):
    return OrderStore(engine)


@pytest.fixture
def client(store):
    from fastapi.testclient import TestClient

    from karigardesk.main import app
    from karigardesk.services.store import get_store

    app.dependency_overrides[get_store] = lambda: store
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def make_order(order_id="ORD1-1-0", order_type=OrderType.RB, quantity=10, status=OrderStatus.PENDING, **overrides):
    when = overrides.pop("created_at", datetime(2026, 1, 1, 9, 0))
    data = dict(
        order_id=order_id,
        order_no=order_id.split("-")[0],
        order_type=order_type,
        product="Ring",
        design="DS100",
        weight=4.5,
        size=12.0,
        quantity=quantity,
        remarks="",
        status=status,
        created_at=when,
        updated_at=overrides.pop("updated_at", when),
    )
    data.update(overrides)
    return OrderRead(**data)


def png_bytes(size=(2, 2), color=(200, 160, 40), fmt="PNG"):
    from PIL import Image

    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format=fmt)
    return buffer.getvalue()
