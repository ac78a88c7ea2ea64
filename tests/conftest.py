from typing import Generator

import pytest
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from db.models import Base
from db.repositories import AssetRepository
from tests.helpers.clocks import FakeMonotonic, FakeUtcClock

# One shared in-memory connection so API worker threads see the same tables.
engine: Engine = create_engine(
    "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
)
session_factory = sessionmaker(engine)


@pytest.fixture(scope="function")
def test_session() -> Generator[Session, None, None]:
    with session_factory() as session:
        yield session


@pytest.fixture(scope="function", autouse=True)
def reset_db() -> Generator[None, None, None]:
    Base.metadata.create_all(engine)
    yield
    Base.metadata.drop_all(engine)


@pytest.fixture(scope="function")
def asset_repository(test_session: Session) -> AssetRepository:
    return AssetRepository(test_session)


@pytest.fixture(scope="function")
def utc_clock() -> FakeUtcClock:
    return FakeUtcClock()


@pytest.fixture(scope="function")
def monotonic() -> FakeMonotonic:
    return FakeMonotonic()


@pytest.fixture(scope="function")
def db_sessionmaker() -> sessionmaker[Session]:
    return session_factory
