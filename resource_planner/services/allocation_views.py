"""Pivot views of allocation facts: per consultant, per customer and per project.

All three views share one grouping algorithm. An axis definition supplies the
outer grouping key, the sub-row key, ordering and row filtering; the builders
never raise on dangling references and fall back to display defaults instead.
"""

from __future__ import annotations

from collections.abc import Callable, Hashable, Iterable
from dataclasses import dataclass, field, replace
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from resource_planner.core.config import get_settings
from resource_planner.services.allocation_facts import (
    DEFAULT_PROBABILITY,
    TO_PLAN_CONSULTANT_ID,
    TO_PLAN_NAME,
    UNKNOWN_NAME,
    AllocationConsultant,
    AllocationFact,
    AllocationPageData,
    AllocationProject,
    is_to_plan,
)
from resource_planner.services.weeks import WeekRef

if TYPE_CHECKING:
    from resource_planner.services.allocation_overlay import PendingEditOverlay

ZERO = Decimal("0.00")
ONE = Decimal("1")
HUNDRED = Decimal("100")


class ProbabilityMode(str, Enum):
    WEIGHTED = "weighted"
    NONE = "none"


class VisibilityMode(str, Enum):
    ALL = "all"
    HIDE_NON_100 = "hideNon100"
    HIDE_100 = "hide100"


class PivotAxis(str, Enum):
    CONSULTANT = "consultant"
    CUSTOMER = "customer"
    PROJECT = "project"


@dataclass(frozen=True, slots=True)
class DisplayPolicy:
    probability_mode: ProbabilityMode = ProbabilityMode.NONE
    visibility_mode: VisibilityMode = VisibilityMode.ALL


@dataclass(frozen=True, slots=True)
class DisplayHours:
    display_hours: Decimal
    is_hidden: bool


def get_display_hours(hours: Decimal, probability: int | None, policy: DisplayPolicy) -> DisplayHours:
    """Transform raw hours for display under ``policy``.

    Visibility rules win over weighting. Weighted hours are rounded half up
    to whole hours.
    """

    pct = DEFAULT_PROBABILITY if probability is None else probability
    if policy.visibility_mode == VisibilityMode.HIDE_NON_100 and pct != 100:
        return DisplayHours(display_hours=ZERO, is_hidden=True)
    if policy.visibility_mode == VisibilityMode.HIDE_100 and pct == 100:
        return DisplayHours(display_hours=ZERO, is_hidden=True)
    if policy.probability_mode == ProbabilityMode.WEIGHTED:
        weighted = (hours * Decimal(pct) / HUNDRED).quantize(ONE, rounding=ROUND_HALF_UP)
        return DisplayHours(display_hours=weighted, is_hidden=False)
    return DisplayHours(display_hours=hours, is_hidden=False)


@dataclass(slots=True)
class ViewCell:
    id: UUID | None
    hours: Decimal
    display_hours: Decimal
    is_hidden: bool
    role_id: UUID | None
    role_name: str


@dataclass(slots=True)
class WeekSlot:
    week: WeekRef
    cells: list[ViewCell] = field(default_factory=list)

    @property
    def hours(self) -> Decimal:
        return sum((cell.hours for cell in self.cells), ZERO)

    @property
    def display_total(self) -> Decimal:
        return sum((cell.display_hours for cell in self.cells if not cell.is_hidden), ZERO)


@dataclass(slots=True)
class SubRow:
    key: tuple[Hashable, ...]
    consultant_id: UUID | None
    consultant_name: str
    project_id: UUID
    project_name: str
    customer_id: UUID | None
    customer_name: str
    role_id: UUID | None
    role_name: str
    probability: int
    weeks: list[WeekSlot]

    @property
    def has_hours(self) -> bool:
        return any(slot.hours > ZERO for slot in self.weeks)


@dataclass(slots=True)
class PercentDetail:
    total: Decimal
    available: Decimal
    pct: int


@dataclass(slots=True)
class PivotRow:
    axis: PivotAxis
    id: UUID | None
    name: str
    sub_rows: list[SubRow]
    total_by_week: list[Decimal]
    color: str | None = None
    consultant: AllocationConsultant | None = None
    project: AllocationProject | None = None
    percent_by_week: list[PercentDetail] = field(default_factory=list)


# ---------- Lookups ----------
@dataclass(slots=True)
class _Lookups:
    consultants: dict[UUID, AllocationConsultant]
    projects: dict[UUID, AllocationProject]
    customer_names: dict[UUID, str]
    customer_colors: dict[UUID, str | None]
    role_names: dict[UUID, str]
    default_color: str

    @classmethod
    def from_page(cls, data: AllocationPageData) -> _Lookups:
        return cls(
            consultants={consultant.id: consultant for consultant in data.consultants},
            projects={project.id: project for project in data.projects},
            customer_names={customer.id: customer.name for customer in data.customers},
            customer_colors={customer.id: customer.color for customer in data.customers},
            role_names={role.id: role.name for role in data.roles},
            default_color=get_settings().default_customer_color,
        )

    def consultant_name(self, consultant_id: UUID | None) -> str:
        if is_to_plan(consultant_id):
            consultant = self.consultants.get(TO_PLAN_CONSULTANT_ID)
            return consultant.name if consultant is not None else TO_PLAN_NAME
        consultant = self.consultants.get(consultant_id)
        return consultant.name if consultant is not None else UNKNOWN_NAME

    def role_name(self, role_id: UUID | None) -> str:
        if role_id is None:
            return ""
        return self.role_names.get(role_id, UNKNOWN_NAME)

    def project_name(self, project_id: UUID) -> str:
        project = self.projects.get(project_id)
        return project.name if project is not None else UNKNOWN_NAME

    def probability(self, project_id: UUID) -> int:
        project = self.projects.get(project_id)
        return project.effective_probability if project is not None else DEFAULT_PROBABILITY

    def customer_id(self, project_id: UUID) -> UUID | None:
        project = self.projects.get(project_id)
        return project.customer_id if project is not None else None

    def customer_name(self, customer_id: UUID | None) -> str:
        if customer_id is None:
            return UNKNOWN_NAME
        if customer_id in self.customer_names:
            return self.customer_names[customer_id]
        for project in self.projects.values():
            if project.customer_id == customer_id:
                return project.customer_name
        return UNKNOWN_NAME

    def customer_color(self, customer_id: UUID | None) -> str:
        color: str | None = None
        if customer_id is not None:
            color = self.customer_colors.get(customer_id)
            if color is None:
                color = next(
                    (p.customer_color for p in self.projects.values() if p.customer_id == customer_id),
                    None,
                )
        return color or self.default_color


# ---------- Axis definitions ----------
@dataclass(frozen=True, slots=True)
class _AxisSpec:
    axis: PivotAxis
    outer_key: Callable[[AllocationFact], UUID | None]
    sub_key: Callable[[AllocationFact], tuple[Hashable, ...]]
    sub_sort_key: Callable[[SubRow], tuple[str, ...]]
    include_sub_row: Callable[[SubRow], bool]


def _consultant_key(fact: AllocationFact) -> UUID:
    return TO_PLAN_CONSULTANT_ID if is_to_plan(fact.consultant_id) else fact.consultant_id


def _consultant_sub_key(fact: AllocationFact) -> tuple[Hashable, ...]:
    # The "To plan" pool may carry the same project under several roles.
    if is_to_plan(fact.consultant_id):
        return (fact.project_id, fact.role_id)
    return (fact.project_id,)


def _people_sub_key(fact: AllocationFact) -> tuple[Hashable, ...]:
    return (_consultant_key(fact), fact.role_id)


def _by_consultant_then_role(row: SubRow) -> tuple[str, ...]:
    return (row.consultant_name, row.role_name)


def _by_project_then_role(row: SubRow) -> tuple[str, ...]:
    return (row.project_name, row.role_name)


def _always(_row: SubRow) -> bool:
    return True


def _consultant_axis() -> _AxisSpec:
    return _AxisSpec(
        axis=PivotAxis.CONSULTANT,
        outer_key=_consultant_key,
        sub_key=_consultant_sub_key,
        sub_sort_key=_by_project_then_role,
        include_sub_row=lambda row: row.has_hours,
    )


def _customer_axis(lookups: _Lookups) -> _AxisSpec:
    return _AxisSpec(
        axis=PivotAxis.CUSTOMER,
        outer_key=lambda fact: lookups.customer_id(fact.project_id),
        sub_key=_people_sub_key,
        sub_sort_key=_by_consultant_then_role,
        include_sub_row=_always,
    )


def _project_axis() -> _AxisSpec:
    return _AxisSpec(
        axis=PivotAxis.PROJECT,
        outer_key=lambda fact: fact.project_id,
        sub_key=_people_sub_key,
        sub_sort_key=_by_consultant_then_role,
        include_sub_row=_always,
    )


# ---------- Generic pivot ----------
def _effective_facts(data: AllocationPageData, overlay: PendingEditOverlay | None) -> list[AllocationFact]:
    if overlay is None:
        return list(data.allocations)
    return overlay.apply(data.allocations)


def _new_sub_row(fact: AllocationFact, key: tuple[Hashable, ...], weeks: list[WeekRef], lookups: _Lookups) -> SubRow:
    customer_id = lookups.customer_id(fact.project_id)
    return SubRow(
        key=key,
        consultant_id=None if is_to_plan(fact.consultant_id) else fact.consultant_id,
        consultant_name=lookups.consultant_name(fact.consultant_id),
        project_id=fact.project_id,
        project_name=lookups.project_name(fact.project_id),
        customer_id=customer_id,
        customer_name=lookups.customer_name(customer_id),
        role_id=fact.role_id,
        role_name=lookups.role_name(fact.role_id),
        probability=lookups.probability(fact.project_id),
        weeks=[WeekSlot(week=ref) for ref in weeks],
    )


def _group(
    facts: Iterable[AllocationFact],
    weeks: list[WeekRef],
    spec: _AxisSpec,
    lookups: _Lookups,
    policy: DisplayPolicy,
) -> dict[UUID | None, dict[tuple[Hashable, ...], SubRow]]:
    week_index = {ref: index for index, ref in enumerate(weeks)}
    grouped: dict[UUID | None, dict[tuple[Hashable, ...], SubRow]] = {}

    for fact in facts:
        index = week_index.get(WeekRef(fact.year, fact.week))
        if index is None:
            continue

        sub_rows = grouped.setdefault(spec.outer_key(fact), {})
        key = spec.sub_key(fact)
        sub_row = sub_rows.get(key)
        if sub_row is None:
            sub_row = _new_sub_row(fact, key, weeks, lookups)
            sub_rows[key] = sub_row

        shown = get_display_hours(fact.hours, lookups.probability(fact.project_id), policy)
        sub_row.weeks[index].cells.append(
            ViewCell(
                id=fact.id,
                hours=fact.hours,
                display_hours=shown.display_hours,
                is_hidden=shown.is_hidden,
                role_id=fact.role_id,
                role_name=lookups.role_name(fact.role_id),
            )
        )
    return grouped


def _finish_sub_rows(spec: _AxisSpec, sub_rows: dict[tuple[Hashable, ...], SubRow] | None) -> list[SubRow]:
    rows = [row for row in (sub_rows or {}).values() if spec.include_sub_row(row)]
    rows.sort(key=spec.sub_sort_key)
    return rows


def _total_by_week(sub_rows: list[SubRow], week_count: int) -> list[Decimal]:
    return [sum((row.weeks[index].display_total for row in sub_rows), ZERO) for index in range(week_count)]


def _percent_by_week(consultant: AllocationConsultant, totals: list[Decimal]) -> list[PercentDetail]:
    details: list[PercentDetail] = []
    for index, total in enumerate(totals):
        if index < len(consultant.available_hours_by_week):
            available = consultant.available_hours_by_week[index]
        else:
            available = consultant.hours_per_week
        if available > ZERO:
            pct = int((total / available * HUNDRED).quantize(ONE, rounding=ROUND_HALF_UP))
        else:
            pct = 0
        details.append(PercentDetail(total=total, available=available, pct=pct))
    return details


def _sorted_consultants(consultants: Iterable[AllocationConsultant]) -> list[AllocationConsultant]:
    return sorted(consultants, key=lambda item: (not item.is_to_plan, item.name))


# ---------- Public builders ----------
def build_per_consultant_view(
    data: AllocationPageData,
    policy: DisplayPolicy,
    overlay: PendingEditOverlay | None = None,
) -> list[PivotRow]:
    """One row per consultant, "To plan" first, with project sub-rows."""

    lookups = _Lookups.from_page(data)
    spec = _consultant_axis()
    grouped = _group(_effective_facts(data, overlay), data.weeks, spec, lookups, policy)

    consultants = _sorted_consultants(data.consultants)
    known = {consultant.id for consultant in consultants}
    for key in grouped:
        if key not in known:
            consultants.append(
                AllocationConsultant(
                    id=key,
                    name=lookups.consultant_name(key),
                    initials="",
                    hours_per_week=ZERO,
                    default_role_name=UNKNOWN_NAME,
                    team_id=None,
                    team_name=None,
                    is_external=False,
                )
            )
    consultants = _sorted_consultants(consultants)

    rows: list[PivotRow] = []
    for consultant in consultants:
        sub_rows = _finish_sub_rows(spec, grouped.get(consultant.id))
        totals = _total_by_week(sub_rows, len(data.weeks))
        rows.append(
            PivotRow(
                axis=PivotAxis.CONSULTANT,
                id=consultant.id,
                name=consultant.name,
                sub_rows=sub_rows,
                total_by_week=totals,
                consultant=consultant,
                percent_by_week=_percent_by_week(consultant, totals),
            )
        )
    return rows


def build_per_customer_view(
    data: AllocationPageData,
    policy: DisplayPolicy,
    overlay: PendingEditOverlay | None = None,
) -> list[PivotRow]:
    """One row per booked customer with consultant/role sub-rows."""

    lookups = _Lookups.from_page(data)
    spec = _customer_axis(lookups)
    grouped = _group(_effective_facts(data, overlay), data.weeks, spec, lookups, policy)

    rows: list[PivotRow] = []
    for customer_id, sub_row_map in grouped.items():
        sub_rows = _finish_sub_rows(spec, sub_row_map)
        rows.append(
            PivotRow(
                axis=PivotAxis.CUSTOMER,
                id=customer_id,
                name=lookups.customer_name(customer_id),
                sub_rows=sub_rows,
                total_by_week=_total_by_week(sub_rows, len(data.weeks)),
                color=lookups.customer_color(customer_id),
            )
        )
    rows.sort(key=lambda row: row.name)
    return rows


def build_per_project_view(
    data: AllocationPageData,
    policy: DisplayPolicy,
    overlay: PendingEditOverlay | None = None,
) -> list[PivotRow]:
    """One row per booked project; inactive projects and customers are left out."""

    lookups = _Lookups.from_page(data)
    spec = _project_axis()
    grouped = _group(_effective_facts(data, overlay), data.weeks, spec, lookups, policy)

    rows: list[PivotRow] = []
    for project_id, sub_row_map in grouped.items():
        project = lookups.projects.get(project_id)
        if project is not None and not (project.is_active and project.customer_is_active):
            continue
        sub_rows = _finish_sub_rows(spec, sub_row_map)
        customer_id = project.customer_id if project is not None else None
        rows.append(
            PivotRow(
                axis=PivotAxis.PROJECT,
                id=project_id,
                name=lookups.project_name(project_id),
                sub_rows=sub_rows,
                total_by_week=_total_by_week(sub_rows, len(data.weeks)),
                color=lookups.customer_color(customer_id),
                project=project,
            )
        )
    rows.sort(key=lambda row: row.name)
    return rows


VIEW_BUILDERS: dict[PivotAxis, Callable[..., list[PivotRow]]] = {
    PivotAxis.CONSULTANT: build_per_consultant_view,
    PivotAxis.CUSTOMER: build_per_customer_view,
    PivotAxis.PROJECT: build_per_project_view,
}


def build_view(
    axis: PivotAxis,
    data: AllocationPageData,
    policy: DisplayPolicy,
    overlay: PendingEditOverlay | None = None,
) -> list[PivotRow]:
    return VIEW_BUILDERS[axis](data, policy, overlay)


def filter_consultants_by_team(data: AllocationPageData, team_id: UUID | None) -> AllocationPageData:
    """Narrow the page to one team's consultants; "To plan" always stays."""

    if team_id is None:
        return data

    consultants = [c for c in data.consultants if c.is_to_plan or c.team_id == team_id]
    kept = {consultant.id for consultant in consultants}
    allocations = [fact for fact in data.allocations if is_to_plan(fact.consultant_id) or fact.consultant_id in kept]
    return replace(data, consultants=consultants, allocations=allocations)


# ---------- Serialization ----------
def _serialize_sub_row(row: SubRow) -> dict[str, object]:
    return {
        "consultant_id": str(row.consultant_id) if row.consultant_id is not None else None,
        "consultant_name": row.consultant_name,
        "project_id": str(row.project_id),
        "project_name": row.project_name,
        "customer_id": str(row.customer_id) if row.customer_id is not None else None,
        "customer_name": row.customer_name,
        "role_id": str(row.role_id) if row.role_id is not None else None,
        "role_name": row.role_name,
        "probability": row.probability,
        "weeks": [
            {
                "year": slot.week.year,
                "week": slot.week.week,
                "cells": [
                    {
                        "id": str(cell.id) if cell.id is not None else None,
                        "hours": str(cell.hours),
                        "display_hours": str(cell.display_hours),
                        "is_hidden": cell.is_hidden,
                        "role_id": str(cell.role_id) if cell.role_id is not None else None,
                        "role_name": cell.role_name,
                    }
                    for cell in slot.cells
                ],
            }
            for slot in row.weeks
        ],
    }


def serialize_pivot_row(row: PivotRow) -> dict[str, object]:
    payload: dict[str, object] = {
        "axis": row.axis.value,
        "id": str(row.id) if row.id is not None else None,
        "name": row.name,
        "color": row.color,
        "total_by_week": [str(total) for total in row.total_by_week],
        "sub_rows": [_serialize_sub_row(sub_row) for sub_row in row.sub_rows],
    }
    if row.axis == PivotAxis.CONSULTANT:
        payload["percent_by_week"] = [
            {"total": str(detail.total), "available": str(detail.available), "pct": detail.pct}
            for detail in row.percent_by_week
        ]
    return payload
