"""Request-scoped database session for FastAPI endpoints."""

from collections.abc import Iterator

from sqlalchemy.orm import Session

from resource_planner.core.logging import logger
from resource_planner.db.session import SessionLocal


def get_db_session() -> Iterator[Session]:
    """Yield a planner session; uncommitted work is rolled back when a handler fails."""

    with SessionLocal() as session:
        try:
            yield session
        except Exception:
            logger.debug("Rolling back planner session after request error")
            session.rollback()
            raise
