"""Repository helpers for allocation planning data."""

from __future__ import annotations

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session

from resource_planner.models.entities import (
    Allocation,
    AllocationHistory,
    Calendar,
    CalendarHoliday,
    Consultant,
    Customer,
    Project,
    Role,
    Team,
)
from resource_planner.services.weeks import WeekRef


class AllocationRepository:
    """Persistence operations used by the allocation page and history services."""

    def __init__(self, db: Session) -> None:
        self.db = db

    # ---------- Reference data ----------
    def list_consultants(self) -> list[Consultant]:
        return self.db.scalars(select(Consultant).order_by(Consultant.name.asc())).all()

    def list_calendars(self) -> list[Calendar]:
        return self.db.scalars(select(Calendar)).all()

    def list_holidays(self, calendar_ids: Iterable[UUID]) -> list[CalendarHoliday]:
        ids = list(calendar_ids)
        if not ids:
            return []
        return self.db.scalars(
            select(CalendarHoliday)
            .where(CalendarHoliday.calendar_id.in_(ids))
            .order_by(CalendarHoliday.holiday_date.asc())
        ).all()

    def list_projects_with_customers(self) -> list[tuple[Project, Customer | None]]:
        rows = self.db.execute(
            select(Project, Customer)
            .outerjoin(Customer, Customer.id == Project.customer_id)
            .order_by(Project.name.asc())
        ).all()
        return [(project, customer) for project, customer in rows]

    def list_customers(self, customer_ids: Iterable[UUID] | None = None) -> list[Customer]:
        query = select(Customer).order_by(Customer.name.asc())
        if customer_ids is not None:
            ids = list(customer_ids)
            if not ids:
                return []
            query = query.where(Customer.id.in_(ids))
        return self.db.scalars(query).all()

    def list_roles(self) -> list[Role]:
        return self.db.scalars(select(Role).order_by(Role.name.asc())).all()

    def list_teams(self) -> list[Team]:
        return self.db.scalars(select(Team).order_by(Team.name.asc())).all()

    def get_consultant(self, consultant_id: UUID) -> Consultant | None:
        return self.db.scalar(select(Consultant).where(Consultant.id == consultant_id))

    def get_project(self, project_id: UUID) -> Project | None:
        return self.db.scalar(select(Project).where(Project.id == project_id))

    def get_role(self, role_id: UUID) -> Role | None:
        return self.db.scalar(select(Role).where(Role.id == role_id))

    def get_calendar(self, calendar_id: UUID) -> Calendar | None:
        return self.db.scalar(select(Calendar).where(Calendar.id == calendar_id))

    def list_projects_by_ids(self, project_ids: Iterable[UUID]) -> list[Project]:
        ids = list(project_ids)
        if not ids:
            return []
        return self.db.scalars(select(Project).where(Project.id.in_(ids))).all()

    def list_consultants_by_ids(self, consultant_ids: Iterable[UUID]) -> list[Consultant]:
        ids = list(consultant_ids)
        if not ids:
            return []
        return self.db.scalars(select(Consultant).where(Consultant.id.in_(ids))).all()

    # ---------- Allocations ----------
    def list_allocations_for_weeks(self, weeks: Iterable[WeekRef]) -> list[Allocation]:
        weeks_by_year: dict[int, list[int]] = {}
        for ref in weeks:
            weeks_by_year.setdefault(ref.year, []).append(ref.week)
        if not weeks_by_year:
            return []

        conditions = [
            and_(Allocation.year == year, Allocation.week.in_(week_numbers))
            for year, week_numbers in weeks_by_year.items()
        ]
        return self.db.scalars(
            select(Allocation)
            .where(or_(*conditions))
            .order_by(Allocation.year.asc(), Allocation.week.asc())
        ).all()

    def list_allocations_by_ids(self, allocation_ids: Iterable[UUID]) -> list[Allocation]:
        ids = list(allocation_ids)
        if not ids:
            return []
        return self.db.scalars(select(Allocation).where(Allocation.id.in_(ids))).all()

    def get_allocation(self, allocation_id: UUID) -> Allocation | None:
        return self.db.scalar(select(Allocation).where(Allocation.id == allocation_id))

    def find_allocation(
        self,
        *,
        consultant_id: UUID | None,
        project_id: UUID,
        role_id: UUID | None,
        year: int,
        week: int,
    ) -> Allocation | None:
        consultant_clause = (
            Allocation.consultant_id.is_(None) if consultant_id is None else Allocation.consultant_id == consultant_id
        )
        role_clause = Allocation.role_id.is_(None) if role_id is None else Allocation.role_id == role_id
        return self.db.scalar(
            select(Allocation)
            .where(
                and_(
                    consultant_clause,
                    Allocation.project_id == project_id,
                    role_clause,
                    Allocation.year == year,
                    Allocation.week == week,
                )
            )
            .limit(1)
        )

    def add_allocation(self, allocation: Allocation) -> Allocation:
        self.db.add(allocation)
        self.db.flush()
        return allocation

    def delete_allocation(self, allocation: Allocation) -> None:
        self.db.delete(allocation)
        self.db.flush()

    # ---------- History ----------
    def add_history(self, entry: AllocationHistory) -> AllocationHistory:
        self.db.add(entry)
        self.db.flush()
        return entry

    def list_history(self, *, limit: int) -> list[AllocationHistory]:
        return self.db.scalars(
            select(AllocationHistory).order_by(AllocationHistory.changed_at.desc()).limit(limit)
        ).all()
