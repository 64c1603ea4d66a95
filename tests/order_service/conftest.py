from decimal import Decimal

import pytest
from sqlalchemy.orm import Session


class FakeCatalog:
    """In-process ProductValidator with a mutable product table."""

    def __init__(self):
        self.products = {}
        self.calls = []
        self.down = False

    def add(self, product_id, name, price):
        from orders.app.schemas import ProductRef

        self.products[product_id] = ProductRef(id=product_id, name=name, price=Decimal(price))

    def remove(self, product_id):
        self.products.pop(product_id, None)

    def validate(self, product_ids):
        from orders.app.errors import CatalogUnavailable

        ids = set(product_ids)
        self.calls.append(ids)
        if self.down:
            raise CatalogUnavailable("connection refused")
        return [self.products[i] for i in sorted(ids) if i in self.products]


@pytest.fixture
def catalog():
    fake = FakeCatalog()
    fake.add("P1", "Widget", "10")
    fake.add("P2", "Gadget", "5")
    fake.add("P3", "Thingamajig", "19.99")
    return fake


@pytest.fixture
def session(orders_engine):
    s = Session(orders_engine, autoflush=False)
    yield s
    s.close()


@pytest.fixture
def store(session, catalog):
    from orders.app.store import OrderStore

    return OrderStore(session, catalog)


@pytest.fixture
def client(orders_session_override, catalog):
    from fastapi.testclient import TestClient
    from orders.app.db import get_session
    from orders.app.main import app, get_validator

    app.dependency_overrides[get_session] = orders_session_override
    app.dependency_overrides[get_validator] = lambda: catalog
    yield TestClient(app)
    app.dependency_overrides.clear()
