"""Allocation audit history endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from resource_planner.core.auth import RequestUserContext, get_current_user_context
from resource_planner.db.dependencies import get_db_session
from resource_planner.services.allocation_history_service import AllocationHistoryService

router = APIRouter(tags=["history"])


@router.get("/allocation-history")
def get_allocation_history(
    limit: int | None = Query(default=None, ge=1, le=1000),
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> list[dict[str, object]]:
    service = AllocationHistoryService(db)
    return [service.serialize_entry(entry) for entry in service.list_history(limit)]
