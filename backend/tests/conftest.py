"""
Test configuration and shared fixtures for the clinic booking test suite.

Uses an in-memory SQLite database by default (set TEST_DATABASE_URL to run
against PostgreSQL). Each test gets a freshly created schema.
"""

import os

# Must be set before core.database creates the application engine
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import NullPool, StaticPool

from core.database import Base
# Import all models to ensure they're registered with SQLAlchemy before any relationships are resolved
import models  # noqa: F401


# Test database URL
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite://")


def make_engine(url: str) -> Engine:
    """
    Create an engine for tests.

    In-memory SQLite shares one connection across threads (StaticPool);
    file-based SQLite and PostgreSQL get a fresh connection per checkout.
    """
    if url.startswith("sqlite"):
        in_memory = url in ("sqlite://", "sqlite:///:memory:")
        engine = create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool if in_memory else NullPool,
        )

        @event.listens_for(engine, "connect")
        def enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    return create_engine(url, poolclass=NullPool)


@pytest.fixture(scope="function")
def db_engine() -> Generator[Engine, None, None]:
    """Create a database engine with a fresh schema for one test."""
    engine = make_engine(TEST_DATABASE_URL)
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

    yield engine

    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(db_engine) -> Generator[Session, None, None]:
    """
    Provide a database session for a test.

    Application code commits normally; isolation comes from the per-test
    schema in ``db_engine``.
    """
    TestingSession = sessionmaker(bind=db_engine, autoflush=False, expire_on_commit=False)
    session = TestingSession()

    yield session

    session.close()
