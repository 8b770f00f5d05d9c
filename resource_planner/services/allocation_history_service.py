"""Read side of the allocation audit log."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from resource_planner.core.config import get_settings
from resource_planner.models.entities import AllocationHistory, HistoryAction
from resource_planner.repositories.allocation_repository import AllocationRepository
from resource_planner.services.allocation_facts import TO_PLAN_NAME
from resource_planner.services.weeks import WeekRef, format_week_range

MISSING_PROJECT_NAME = "—"


@dataclass(slots=True)
class _AllocationSummary:
    project_name: str
    customer_name: str | None
    consultant_name: str | None
    year: int
    week: int
    hours: float


@dataclass(slots=True)
class AllocationHistoryEntry:
    id: UUID
    allocation_id: UUID | None
    action: HistoryAction
    changed_by_email: str
    changed_at: datetime
    details: dict[str, Any] | None
    project_name: str | None
    customer_name: str | None
    consultant_name: str | None
    year: int | None
    week: int | None
    hours: float | None
    week_range: str | None
    total_hours: float | None


def _first_present(*values: Any) -> Any:
    for value in values:
        if value is not None:
            return value
    return None


class AllocationHistoryService:
    """Enrich history rows with names of the allocations they still point to."""

    def __init__(self, db: Session) -> None:
        self.db = db
        self.repo = AllocationRepository(db)

    @staticmethod
    def serialize_entry(entry: AllocationHistoryEntry) -> dict[str, object]:
        return {
            "id": str(entry.id),
            "allocation_id": str(entry.allocation_id) if entry.allocation_id is not None else None,
            "action": entry.action.value,
            "changed_by_email": entry.changed_by_email,
            "changed_at": entry.changed_at.isoformat(),
            "details": entry.details,
            "project_name": entry.project_name,
            "customer_name": entry.customer_name,
            "consultant_name": entry.consultant_name,
            "year": entry.year,
            "week": entry.week,
            "hours": entry.hours,
            "week_range": entry.week_range,
            "total_hours": entry.total_hours,
        }

    def list_history(self, limit: int | None = None) -> list[AllocationHistoryEntry]:
        rows = self.repo.list_history(limit=limit or get_settings().history_default_limit)
        summaries = self._load_summaries(rows)
        return [self._to_entry(row, summaries) for row in rows]

    def _load_summaries(self, rows: list[AllocationHistory]) -> dict[UUID, _AllocationSummary]:
        referenced: set[UUID] = set()
        for row in rows:
            if row.allocation_id is not None:
                referenced.add(row.allocation_id)
            for raw_id in (row.details or {}).get("allocation_ids", []) or []:
                referenced.add(UUID(str(raw_id)))

        allocations = self.repo.list_allocations_by_ids(referenced)
        if not allocations:
            return {}

        projects = {project.id: project for project in self.repo.list_projects_by_ids({a.project_id for a in allocations})}
        customers = {
            customer.id: customer.name
            for customer in self.repo.list_customers({project.customer_id for project in projects.values()})
        }
        consultants = {
            consultant.id: consultant.name
            for consultant in self.repo.list_consultants_by_ids(
                {a.consultant_id for a in allocations if a.consultant_id is not None}
            )
        }

        summaries: dict[UUID, _AllocationSummary] = {}
        for allocation in allocations:
            project = projects.get(allocation.project_id)
            summaries[allocation.id] = _AllocationSummary(
                project_name=project.name if project is not None else MISSING_PROJECT_NAME,
                customer_name=customers.get(project.customer_id) if project is not None else None,
                consultant_name=(
                    consultants.get(allocation.consultant_id) if allocation.consultant_id is not None else TO_PLAN_NAME
                ),
                year=allocation.year,
                week=allocation.week,
                hours=float(Decimal(allocation.hours)),
            )
        return summaries

    @staticmethod
    def _to_entry(row: AllocationHistory, summaries: dict[UUID, _AllocationSummary]) -> AllocationHistoryEntry:
        details = row.details or {}
        bulk_ids = [UUID(str(raw_id)) for raw_id in details.get("allocation_ids", []) or []]

        if row.allocation_id is not None:
            summary = summaries.get(row.allocation_id)
        elif bulk_ids:
            summary = summaries.get(bulk_ids[0])
        else:
            summary = None

        bulk_summaries = (
            [summaries[item] for item in bulk_ids if item in summaries] if row.action == HistoryAction.BULK else []
        )

        if row.action == HistoryAction.DELETE and details.get("week_range_removed"):
            week_range = details["week_range_removed"]
        elif row.action == HistoryAction.BULK and details.get("week_range"):
            week_range = details["week_range"]
        else:
            week_range = format_week_range([WeekRef(item.year, item.week) for item in bulk_summaries])

        total_hours = sum(item.hours for item in bulk_summaries) if bulk_summaries else None
        hours = _first_present(
            details.get("hours_after"),
            details.get("hours"),
            details.get("hours_removed"),
            summary.hours if summary is not None else None,
            total_hours,
        )

        return AllocationHistoryEntry(
            id=row.id,
            allocation_id=row.allocation_id,
            action=row.action,
            changed_by_email=row.changed_by_email,
            changed_at=row.changed_at,
            details=row.details,
            project_name=_first_present(details.get("project_name"), summary.project_name if summary else None),
            customer_name=_first_present(details.get("customer_name"), summary.customer_name if summary else None),
            consultant_name=_first_present(
                details.get("consultant_name"), summary.consultant_name if summary else None
            ),
            year=_first_present(details.get("year"), summary.year if summary else None),
            week=_first_present(details.get("week"), summary.week if summary else None),
            hours=hours,
            week_range=week_range,
            total_hours=total_hours,
        )
