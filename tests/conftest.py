from __future__ import annotations

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from resource_planner.db.base import Base
from resource_planner.db.dependencies import get_db_session
import resource_planner.models.entities  # noqa: F401
from resource_planner.main import create_app
from resource_planner.models.entities import (
    Allocation,
    AllocationHistory,
    AppUser,
    Calendar,
    CalendarHoliday,
    Consultant,
    Customer,
    Project,
    Role,
    Team,
)

TEST_TABLES = [
    Team.__table__,
    Role.__table__,
    Calendar.__table__,
    CalendarHoliday.__table__,
    Customer.__table__,
    Project.__table__,
    Consultant.__table__,
    Allocation.__table__,
    AllocationHistory.__table__,
    AppUser.__table__,
]


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=engine, tables=TEST_TABLES)
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine, tables=TEST_TABLES)


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    app = create_app()

    def override_db() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[get_db_session] = override_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
