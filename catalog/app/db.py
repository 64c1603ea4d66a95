import os
from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker, Session

DB_SCHEMA = os.getenv("DB_SCHEMA", "catalog")

def database_url() -> str:
    """
    DATABASE_URL if set, else a psycopg3 URL built from the DB_* variables
    whose search_path puts the catalog schema ahead of public.
    """
    explicit = os.getenv("DATABASE_URL")
    if explicit:
        return explicit
    user = os.getenv("DB_USER", "app")
    password = os.getenv("DB_PASS", "app")
    host = os.getenv("DB_HOST", "localhost")
    port = os.getenv("DB_PORT", "5432")
    name = os.getenv("DB_NAME", "appdb")
    return (
        f"postgresql+psycopg://{user}:{password}@{host}:{port}/{name}"
        f"?options=-csearch_path={DB_SCHEMA},public"
    )

engine = create_engine(database_url(), pool_pre_ping=True, future=True)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

def init_db():
    """Create the catalog schema (Postgres only) and the products table."""
    from .models import Base  # noqa

    with engine.begin() as conn:
        if conn.dialect.name == "postgresql":
            conn.execute(text(f'CREATE SCHEMA IF NOT EXISTS "{DB_SCHEMA}"'))
        Base.metadata.create_all(bind=conn)

def get_session() -> Session:
    """Request-scoped session; the catalog's writes commit when the request succeeds."""
    with SessionLocal() as s:
        try:
            yield s
            s.commit()
        except Exception:
            s.rollback()
            raise
