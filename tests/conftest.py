import os

# The service modules build their engines at import time; keep them off Postgres.
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool


def _memory_engine(base):
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    base.metadata.create_all(engine)
    return engine


def _session_dependency(engine, commit=True):
    """Same contract as the services' get_session, bound to `engine`.

    The orders service commits inside OrderStore, so its override passes commit=False.
    """
    factory = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

    def _get_session():
        s = factory()
        try:
            yield s
            if commit:
                s.commit()
        except Exception:
            s.rollback()
            raise
        finally:
            s.close()

    return _get_session


@pytest.fixture
def orders_engine():
    from orders.app.models import Base

    engine = _memory_engine(Base)
    yield engine
    engine.dispose()


@pytest.fixture
def catalog_engine():
    from catalog.app.models import Base

    engine = _memory_engine(Base)
    yield engine
    engine.dispose()


@pytest.fixture
def orders_session_override(orders_engine):
    return _session_dependency(orders_engine, commit=False)


@pytest.fixture
def catalog_app(catalog_engine):
    from catalog.app.db import get_session
    from catalog.app.main import app

    app.dependency_overrides[get_session] = _session_dependency(catalog_engine)
    yield app
    app.dependency_overrides.clear()
