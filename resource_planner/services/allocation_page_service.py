"""Allocation fact store: page data reads and audited allocation writes."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from resource_planner.core.auth import RequestUserContext
from resource_planner.core.config import get_settings
from resource_planner.core.logging import logger
from resource_planner.models.entities import (
    Allocation,
    AllocationHistory,
    Consultant,
    HistoryAction,
)
from resource_planner.repositories.allocation_repository import AllocationRepository
from resource_planner.services.allocation_facts import (
    TO_PLAN_NAME,
    UNKNOWN_NAME,
    AllocationConsultant,
    AllocationCustomer,
    AllocationFact,
    AllocationPageData,
    AllocationProject,
    AllocationWriteOp,
    CreateAllocationOp,
    DeleteAllocationOp,
    NamedRef,
    UpdateAllocationOp,
    is_to_plan,
    make_to_plan_consultant,
)
from resource_planner.services.capacity import (
    available_hours_by_week,
    initials,
    unavailable_by_week,
    work_fraction,
)
from resource_planner.services.weeks import WeekRef, build_week_window, format_week_range

ZERO = Decimal("0.00")
Q2 = Decimal("0.01")
HUNDRED = Decimal("100")


def _q2(value: Decimal) -> Decimal:
    return value.quantize(Q2, rounding=ROUND_HALF_UP)


@dataclass(slots=True)
class AllocationRangeData:
    """Create-or-add request across a week window.

    Exactly one of ``hours`` (fixed per week) or ``percent`` (share of each
    week's available capacity) is set.
    """

    consultant_id: UUID | None
    project_id: UUID
    role_id: UUID | None
    year: int
    week_from: int
    week_to: int
    hours: Decimal | None = None
    percent: Decimal | None = None


def fact_from_allocation(allocation: Allocation) -> AllocationFact:
    return AllocationFact(
        id=allocation.id,
        consultant_id=allocation.consultant_id,
        project_id=allocation.project_id,
        role_id=allocation.role_id,
        year=allocation.year,
        week=allocation.week,
        hours=_q2(Decimal(allocation.hours)),
    )


class AllocationPageService:
    """Read the allocation page for a week window and apply allocation writes."""

    def __init__(self, db: Session) -> None:
        self.db = db
        self.repo = AllocationRepository(db)
        self.settings = get_settings()

    # ---------- Reads ----------
    def fetch_facts(self, year: int, week_from: int, week_to: int) -> AllocationPageData:
        weeks = build_week_window(year, week_from, week_to)
        window = set(weeks)

        allocations = [
            fact_from_allocation(row)
            for row in self.repo.list_allocations_for_weeks(weeks)
            if WeekRef(row.year, row.week) in window
        ]

        projects: list[AllocationProject] = []
        for project, customer in self.repo.list_projects_with_customers():
            projects.append(
                AllocationProject(
                    id=project.id,
                    customer_id=project.customer_id,
                    name=project.name,
                    customer_name=customer.name if customer is not None else UNKNOWN_NAME,
                    customer_color=customer.color if customer is not None else None,
                    probability=project.probability,
                    is_active=project.is_active,
                    customer_is_active=customer.is_active if customer is not None else True,
                )
            )

        customer_by_project = {project.id: project.customer_id for project in projects}
        booked_customer_ids = {
            customer_by_project[fact.project_id] for fact in allocations if fact.project_id in customer_by_project
        }
        customers = [
            AllocationCustomer(id=customer.id, name=customer.name, color=customer.color)
            for customer in self.repo.list_customers(booked_customer_ids)
        ]
        customers.sort(key=lambda item: item.name)

        roles = [NamedRef(id=role.id, name=role.name) for role in self.repo.list_roles()]
        teams = [NamedRef(id=team.id, name=team.name) for team in self.repo.list_teams()]

        consultants = self._build_consultants(weeks, roles=roles, teams=teams)

        return AllocationPageData(
            consultants=consultants,
            projects=projects,
            customers=customers,
            roles=roles,
            teams=teams,
            allocations=allocations,
            year=year,
            week_from=week_from,
            week_to=week_to,
            weeks=weeks,
        )

    def _build_consultants(
        self,
        weeks: list[WeekRef],
        *,
        roles: list[NamedRef],
        teams: list[NamedRef],
    ) -> list[AllocationConsultant]:
        rows = self.repo.list_consultants()
        role_names = {role.id: role.name for role in roles}
        team_names = {team.id: team.name for team in teams}
        calendar_hours = {calendar.id: Decimal(calendar.hours_per_week) for calendar in self.repo.list_calendars()}

        holidays: dict[UUID, list[date]] = defaultdict(list)
        for holiday in self.repo.list_holidays(calendar_hours.keys()):
            holidays[holiday.calendar_id].append(holiday.holiday_date)

        consultants = [make_to_plan_consultant(len(weeks))]
        for row in sorted(rows, key=lambda item: item.name):
            hours = self._calendar_hours(row, calendar_hours)
            consultants.append(
                AllocationConsultant(
                    id=row.id,
                    name=row.name,
                    initials=initials(row.name),
                    hours_per_week=_q2(hours * work_fraction(row.work_percentage)),
                    default_role_name=role_names.get(row.role_id, UNKNOWN_NAME),
                    team_id=row.team_id,
                    team_name=team_names.get(row.team_id) if row.team_id is not None else None,
                    is_external=row.is_external,
                    available_hours_by_week=available_hours_by_week(
                        calendar_hours=hours,
                        holidays=holidays.get(row.calendar_id, []),
                        work_percentage=row.work_percentage,
                        overhead_percentage=row.overhead_percentage,
                        weeks=weeks,
                        hours_per_holiday=self.settings.hours_per_holiday,
                    ),
                    unavailable_by_week=unavailable_by_week(
                        start_date=row.start_date,
                        end_date=row.end_date,
                        weeks=weeks,
                    ),
                )
            )
        return consultants

    def _calendar_hours(self, consultant: Consultant, calendar_hours: dict[UUID, Decimal]) -> Decimal:
        if consultant.calendar_id is not None and consultant.calendar_id in calendar_hours:
            return calendar_hours[consultant.calendar_id]
        return Decimal(self.settings.default_hours_per_week)

    def available_hours_for_week(self, consultant: Consultant, ref: WeekRef) -> Decimal:
        calendar_hours: dict[UUID, Decimal] = {}
        holidays: list[date] = []
        if consultant.calendar_id is not None:
            calendar = self.repo.get_calendar(consultant.calendar_id)
            if calendar is not None:
                calendar_hours[calendar.id] = Decimal(calendar.hours_per_week)
                holidays = [item.holiday_date for item in self.repo.list_holidays([calendar.id])]
        return available_hours_by_week(
            calendar_hours=self._calendar_hours(consultant, calendar_hours),
            holidays=holidays,
            work_percentage=consultant.work_percentage,
            overhead_percentage=consultant.overhead_percentage,
            weeks=[ref],
            hours_per_holiday=self.settings.hours_per_holiday,
        )[0]

    # ---------- History ----------
    def _describe(self, allocation: Allocation) -> dict[str, object]:
        project = self.repo.get_project(allocation.project_id)
        customer_name = None
        if project is not None:
            customer = next(iter(self.repo.list_customers([project.customer_id])), None)
            customer_name = customer.name if customer is not None else None

        if allocation.consultant_id is None:
            consultant_name = TO_PLAN_NAME
        else:
            consultant = self.repo.get_consultant(allocation.consultant_id)
            consultant_name = consultant.name if consultant is not None else None

        return {
            "project_name": project.name if project is not None else None,
            "customer_name": customer_name,
            "consultant_name": consultant_name,
            "year": allocation.year,
            "week": allocation.week,
        }

    def _record_history(
        self,
        *,
        context: RequestUserContext,
        action: HistoryAction,
        allocation_id: UUID | None,
        details: dict[str, object],
    ) -> None:
        self.repo.add_history(
            AllocationHistory(
                allocation_id=allocation_id,
                action=action,
                changed_by_email=context.email,
                details=details,
            )
        )

    # ---------- Validation ----------
    @staticmethod
    def _normalize_hours(hours: Decimal) -> Decimal:
        if hours < ZERO:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="hours must be greater or equal zero.",
            )
        return _q2(hours)

    @staticmethod
    def _ensure_week(week: int) -> None:
        if week < 1 or week > 53:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="week must be between 1 and 53.",
            )

    def _resolve_consultant(self, consultant_id: UUID | None) -> Consultant | None:
        if is_to_plan(consultant_id):
            return None
        consultant = self.repo.get_consultant(consultant_id)
        if consultant is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Consultant not found.")
        return consultant

    def _ensure_project(self, project_id: UUID) -> None:
        if self.repo.get_project(project_id) is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found.")

    def _ensure_role(self, role_id: UUID | None) -> None:
        if role_id is not None and self.repo.get_role(role_id) is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Role not found.")

    def _get_allocation(self, allocation_id: UUID) -> Allocation:
        allocation = self.repo.get_allocation(allocation_id)
        if allocation is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Allocation not found.")
        return allocation

    def _commit(self, detail: str) -> None:
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=detail) from exc

    # ---------- Single writes ----------
    def write_fact(self, op: AllocationWriteOp, *, context: RequestUserContext) -> AllocationFact | None:
        """Apply one create, update or delete and return the stored fact.

        Deletes return ``None``.
        """

        if isinstance(op, CreateAllocationOp):
            return self.create_allocation(op, context=context)
        if isinstance(op, UpdateAllocationOp):
            return self.update_allocation(op, context=context)
        if isinstance(op, DeleteAllocationOp):
            self.delete_allocation(op.allocation_id, context=context)
            return None
        raise TypeError(f"Unsupported allocation write: {type(op).__name__}")

    def create_allocation(self, op: CreateAllocationOp, *, context: RequestUserContext) -> AllocationFact:
        self._ensure_week(op.week)
        hours = self._normalize_hours(op.hours)
        consultant = self._resolve_consultant(op.consultant_id)
        self._ensure_project(op.project_id)
        self._ensure_role(op.role_id)

        allocation = self.repo.add_allocation(
            Allocation(
                consultant_id=consultant.id if consultant is not None else None,
                project_id=op.project_id,
                role_id=op.role_id,
                year=op.year,
                week=op.week,
                hours=hours,
            )
        )
        self._record_history(
            context=context,
            action=HistoryAction.CREATE,
            allocation_id=allocation.id,
            details={**self._describe(allocation), "hours": float(hours)},
        )
        self._commit("Allocation could not be created.")
        self.db.refresh(allocation)

        logger.info(
            "Allocation %s created by %s (%s-W%02d, %sh)",
            allocation.id,
            context.email,
            allocation.year,
            allocation.week,
            hours,
        )
        return fact_from_allocation(allocation)

    def update_allocation(self, op: UpdateAllocationOp, *, context: RequestUserContext) -> AllocationFact:
        allocation = self._get_allocation(op.allocation_id)
        hours_before = _q2(Decimal(allocation.hours))

        if op.hours is not None:
            allocation.hours = self._normalize_hours(op.hours)
        if op.replace_role:
            self._ensure_role(op.role_id)
            allocation.role_id = op.role_id

        hours_after = _q2(Decimal(allocation.hours))
        self._record_history(
            context=context,
            action=HistoryAction.UPDATE,
            allocation_id=allocation.id,
            details={
                **self._describe(allocation),
                "hours_before": float(hours_before),
                "hours_after": float(hours_after),
            },
        )
        self._commit("Allocation could not be updated.")
        self.db.refresh(allocation)

        logger.info("Allocation %s updated by %s (%sh -> %sh)", allocation.id, context.email, hours_before, hours_after)
        return fact_from_allocation(allocation)

    def delete_allocation(self, allocation_id: UUID, *, context: RequestUserContext) -> None:
        allocation = self._get_allocation(allocation_id)
        details = {
            **self._describe(allocation),
            "hours_removed": float(_q2(Decimal(allocation.hours))),
            "week_range_removed": format_week_range([WeekRef(allocation.year, allocation.week)]),
        }

        self.repo.delete_allocation(allocation)
        self._record_history(
            context=context,
            action=HistoryAction.DELETE,
            allocation_id=allocation_id,
            details=details,
        )
        self._commit("Allocation could not be deleted.")
        logger.info("Allocation %s deleted by %s", allocation_id, context.email)

    # ---------- Bulk writes ----------
    def create_allocations_for_range(
        self,
        data: AllocationRangeData,
        *,
        context: RequestUserContext,
    ) -> list[AllocationFact]:
        """Add hours to every week of the window, creating missing allocations.

        The whole range is written in one nested transaction.
        """

        if (data.hours is None) == (data.percent is None):
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="Provide exactly one of hours or percent.",
            )

        weeks = build_week_window(data.year, data.week_from, data.week_to)
        for ref in weeks:
            self._ensure_week(ref.week)

        consultant = self._resolve_consultant(data.consultant_id)
        self._ensure_project(data.project_id)
        self._ensure_role(data.role_id)

        if data.percent is not None:
            if consultant is None:
                raise HTTPException(
                    status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                    detail="percent allocation requires a consultant.",
                )
            share = max(ZERO, min(HUNDRED, Decimal(data.percent))) / HUNDRED
            hours_by_week = {ref: _q2(self.available_hours_for_week(consultant, ref) * share) for ref in weeks}
        else:
            fixed_hours = self._normalize_hours(data.hours)
            hours_by_week = {ref: fixed_hours for ref in weeks}

        consultant_id = consultant.id if consultant is not None else None
        touched: list[Allocation] = []
        try:
            with self.db.begin_nested():
                for ref in weeks:
                    existing = self.repo.find_allocation(
                        consultant_id=consultant_id,
                        project_id=data.project_id,
                        role_id=data.role_id,
                        year=ref.year,
                        week=ref.week,
                    )
                    if existing is not None:
                        existing.hours = _q2(Decimal(existing.hours) + hours_by_week[ref])
                        touched.append(existing)
                    else:
                        touched.append(
                            self.repo.add_allocation(
                                Allocation(
                                    consultant_id=consultant_id,
                                    project_id=data.project_id,
                                    role_id=data.role_id,
                                    year=ref.year,
                                    week=ref.week,
                                    hours=hours_by_week[ref],
                                )
                            )
                        )
                self.db.flush()

                total = sum(hours_by_week.values(), ZERO)
                self._record_history(
                    context=context,
                    action=HistoryAction.BULK,
                    allocation_id=None,
                    details={
                        **self._describe(touched[0]),
                        "operation": "range_create",
                        "allocation_ids": [str(row.id) for row in touched],
                        "week_range": format_week_range(weeks),
                        "hours": float(total),
                    },
                )

            self.db.commit()
        except HTTPException:
            self.db.rollback()
            raise
        except IntegrityError as exc:
            self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Range allocation violated allocation constraints.",
            ) from exc

        for row in touched:
            self.db.refresh(row)
        logger.info(
            "Range allocation by %s touched %d allocations (%s)",
            context.email,
            len(touched),
            format_week_range(weeks),
        )
        return [fact_from_allocation(row) for row in touched]

    def delete_allocations(self, allocation_ids: list[UUID], *, context: RequestUserContext) -> int:
        """Delete all listed allocations or none of them."""

        unique_ids = list(dict.fromkeys(allocation_ids))
        if not unique_ids:
            return 0

        rows = {row.id: row for row in self.repo.list_allocations_by_ids(unique_ids)}
        missing = [str(allocation_id) for allocation_id in unique_ids if allocation_id not in rows]
        if missing:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Allocations not found: {', '.join(missing)}.",
            )

        ordered = [rows[allocation_id] for allocation_id in unique_ids]
        details: dict[str, object] = {
            **self._describe(ordered[0]),
            "operation": "bulk_delete",
            "allocation_ids": [str(row.id) for row in ordered],
            "week_range": format_week_range([WeekRef(row.year, row.week) for row in ordered]),
            "hours_removed": float(sum((_q2(Decimal(row.hours)) for row in ordered), ZERO)),
        }

        try:
            with self.db.begin_nested():
                for row in ordered:
                    self.repo.delete_allocation(row)
                self._record_history(
                    context=context,
                    action=HistoryAction.BULK,
                    allocation_id=None,
                    details=details,
                )
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Bulk delete violated allocation constraints.",
            ) from exc

        logger.info("Bulk delete by %s removed %d allocations", context.email, len(ordered))
        return len(ordered)
