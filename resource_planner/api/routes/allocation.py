"""Allocation page, pivot view and allocation write endpoints."""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from resource_planner.core.auth import (
    WRITE_ROLES,
    RequestUserContext,
    get_current_user_context,
    require_roles,
)
from resource_planner.db.dependencies import get_db_session
from resource_planner.services.allocation_facts import (
    CreateAllocationOp,
    DeleteAllocationOp,
    UpdateAllocationOp,
    serialize_fact,
    serialize_page_data,
)
from resource_planner.services.allocation_page_service import AllocationPageService, AllocationRangeData
from resource_planner.services.allocation_views import (
    DisplayPolicy,
    PivotAxis,
    ProbabilityMode,
    VisibilityMode,
    build_view,
    filter_consultants_by_team,
    serialize_pivot_row,
)
from resource_planner.services.weeks import serialize_week_header

router = APIRouter(tags=["allocation"])

require_writer = require_roles(*WRITE_ROLES)


class AllocationCreatePayload(BaseModel):
    consultant_id: UUID | None = None
    project_id: UUID
    role_id: UUID | None = None
    year: int = Field(ge=1900, le=9999)
    week: int = Field(ge=1, le=53)
    hours: Decimal


class AllocationUpdatePayload(BaseModel):
    hours: Decimal | None = None
    role_id: UUID | None = None


class AllocationRangePayload(BaseModel):
    consultant_id: UUID | None = None
    project_id: UUID
    role_id: UUID | None = None
    year: int = Field(ge=1900, le=9999)
    week_from: int = Field(ge=1, le=53)
    week_to: int = Field(ge=1, le=53)
    hours: Decimal | None = None
    percent: Decimal | None = None


class AllocationBulkDeletePayload(BaseModel):
    allocation_ids: list[UUID] = Field(min_length=1)


def _allocation_service(db: Session) -> AllocationPageService:
    return AllocationPageService(db)


@router.get("/allocation")
def get_allocation_page(
    year: int = Query(ge=1900, le=9999),
    week_from: int = Query(ge=1, le=53),
    week_to: int = Query(ge=1, le=53),
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _allocation_service(db)
    return serialize_page_data(service.fetch_facts(year, week_from, week_to))


@router.get("/allocation/views/{axis}")
def get_allocation_view(
    axis: PivotAxis,
    year: int = Query(ge=1900, le=9999),
    week_from: int = Query(ge=1, le=53),
    week_to: int = Query(ge=1, le=53),
    probability_mode: ProbabilityMode = Query(default=ProbabilityMode.NONE),
    visibility_mode: VisibilityMode = Query(default=VisibilityMode.ALL),
    team_id: UUID | None = Query(default=None),
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _allocation_service(db)
    data = filter_consultants_by_team(service.fetch_facts(year, week_from, week_to), team_id)
    policy = DisplayPolicy(probability_mode=probability_mode, visibility_mode=visibility_mode)
    return {
        "axis": axis.value,
        **serialize_week_header(data.weeks),
        "rows": [serialize_pivot_row(row) for row in build_view(axis, data, policy)],
    }


@router.post("/allocations", status_code=status.HTTP_201_CREATED)
def create_allocation(
    payload: AllocationCreatePayload,
    context: RequestUserContext = Depends(require_writer),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _allocation_service(db)
    fact = service.write_fact(
        CreateAllocationOp(
            consultant_id=payload.consultant_id,
            project_id=payload.project_id,
            role_id=payload.role_id,
            year=payload.year,
            week=payload.week,
            hours=payload.hours,
        ),
        context=context,
    )
    return serialize_fact(fact)


@router.patch("/allocations/{allocation_id}")
def update_allocation(
    allocation_id: UUID,
    payload: AllocationUpdatePayload,
    context: RequestUserContext = Depends(require_writer),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _allocation_service(db)
    fact = service.write_fact(
        UpdateAllocationOp(
            allocation_id=allocation_id,
            hours=payload.hours,
            role_id=payload.role_id,
            replace_role="role_id" in payload.model_fields_set,
        ),
        context=context,
    )
    return serialize_fact(fact)


@router.delete("/allocations/{allocation_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_allocation(
    allocation_id: UUID,
    context: RequestUserContext = Depends(require_writer),
    db: Session = Depends(get_db_session),
) -> Response:
    service = _allocation_service(db)
    service.write_fact(DeleteAllocationOp(allocation_id=allocation_id), context=context)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/allocations/range")
def create_allocations_for_range(
    payload: AllocationRangePayload,
    context: RequestUserContext = Depends(require_writer),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _allocation_service(db)
    facts = service.create_allocations_for_range(
        AllocationRangeData(
            consultant_id=payload.consultant_id,
            project_id=payload.project_id,
            role_id=payload.role_id,
            year=payload.year,
            week_from=payload.week_from,
            week_to=payload.week_to,
            hours=payload.hours,
            percent=payload.percent,
        ),
        context=context,
    )
    return {"allocations": [serialize_fact(fact) for fact in facts]}


@router.post("/allocations/bulk-delete")
def bulk_delete_allocations(
    payload: AllocationBulkDeletePayload,
    context: RequestUserContext = Depends(require_writer),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _allocation_service(db)
    deleted = service.delete_allocations(payload.allocation_ids, context=context)
    return {"deleted": deleted}
