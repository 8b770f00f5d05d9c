"""Value types exchanged between the allocation store, the views and the grid."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Union
from uuid import UUID

from resource_planner.services.weeks import WeekRef, serialize_week_header

TO_PLAN_CONSULTANT_ID = UUID("00000000-0000-0000-0000-000000000000")
TO_PLAN_NAME = "To plan"

UNKNOWN_NAME = "Unknown"
DEFAULT_PROBABILITY = 100


def is_to_plan(consultant_id: UUID | None) -> bool:
    return consultant_id is None or consultant_id == TO_PLAN_CONSULTANT_ID


@dataclass(frozen=True, slots=True)
class AllocationFact:
    """One weekly hours record. ``consultant_id`` is ``None`` for the "To plan" pool."""

    id: UUID | None
    consultant_id: UUID | None
    project_id: UUID
    role_id: UUID | None
    year: int
    week: int
    hours: Decimal


@dataclass(slots=True)
class AllocationConsultant:
    id: UUID
    name: str
    initials: str
    hours_per_week: Decimal
    default_role_name: str
    team_id: UUID | None
    team_name: str | None
    is_external: bool
    available_hours_by_week: list[Decimal] = field(default_factory=list)
    unavailable_by_week: list[bool] = field(default_factory=list)

    @property
    def is_to_plan(self) -> bool:
        return self.id == TO_PLAN_CONSULTANT_ID


@dataclass(slots=True)
class AllocationProject:
    id: UUID
    customer_id: UUID
    name: str
    customer_name: str
    customer_color: str | None
    probability: int | None
    is_active: bool = True
    customer_is_active: bool = True

    @property
    def effective_probability(self) -> int:
        return DEFAULT_PROBABILITY if self.probability is None else self.probability


@dataclass(slots=True)
class AllocationCustomer:
    id: UUID
    name: str
    color: str | None


@dataclass(slots=True)
class NamedRef:
    id: UUID
    name: str


@dataclass(slots=True)
class AllocationPageData:
    consultants: list[AllocationConsultant]
    projects: list[AllocationProject]
    customers: list[AllocationCustomer]
    roles: list[NamedRef]
    teams: list[NamedRef]
    allocations: list[AllocationFact]
    year: int
    week_from: int
    week_to: int
    weeks: list[WeekRef]


@dataclass(slots=True)
class CreateAllocationOp:
    consultant_id: UUID | None
    project_id: UUID
    role_id: UUID | None
    year: int
    week: int
    hours: Decimal


@dataclass(slots=True)
class UpdateAllocationOp:
    allocation_id: UUID
    hours: Decimal | None = None
    role_id: UUID | None = None
    # ``role_id`` is written only when set, so ``None`` can clear the role.
    replace_role: bool = False


@dataclass(slots=True)
class DeleteAllocationOp:
    allocation_id: UUID


AllocationWriteOp = Union[CreateAllocationOp, UpdateAllocationOp, DeleteAllocationOp]


def make_to_plan_consultant(week_count: int) -> AllocationConsultant:
    return AllocationConsultant(
        id=TO_PLAN_CONSULTANT_ID,
        name=TO_PLAN_NAME,
        initials="TP",
        hours_per_week=Decimal("0.00"),
        default_role_name="",
        team_id=None,
        team_name=None,
        is_external=False,
        available_hours_by_week=[Decimal("0.00")] * week_count,
        unavailable_by_week=[False] * week_count,
    )


# ---------- JSON payloads ----------
def _str_or_none(value: object | None) -> str | None:
    return None if value is None else str(value)


def _uuid_or_none(value: str | None) -> UUID | None:
    return None if value is None else UUID(value)


def serialize_fact(fact: AllocationFact) -> dict[str, object]:
    return {
        "id": _str_or_none(fact.id),
        "consultant_id": _str_or_none(fact.consultant_id),
        "project_id": str(fact.project_id),
        "role_id": _str_or_none(fact.role_id),
        "year": fact.year,
        "week": fact.week,
        "hours": str(fact.hours),
    }


def fact_from_payload(payload: dict[str, Any]) -> AllocationFact:
    return AllocationFact(
        id=_uuid_or_none(payload.get("id")),
        consultant_id=_uuid_or_none(payload.get("consultant_id")),
        project_id=UUID(payload["project_id"]),
        role_id=_uuid_or_none(payload.get("role_id")),
        year=int(payload["year"]),
        week=int(payload["week"]),
        hours=Decimal(str(payload["hours"])),
    )


def serialize_page_data(data: AllocationPageData) -> dict[str, object]:
    return {
        "year": data.year,
        "week_from": data.week_from,
        "week_to": data.week_to,
        **serialize_week_header(data.weeks),
        "consultants": [
            {
                "id": str(consultant.id),
                "name": consultant.name,
                "initials": consultant.initials,
                "hours_per_week": str(consultant.hours_per_week),
                "default_role_name": consultant.default_role_name,
                "team_id": _str_or_none(consultant.team_id),
                "team_name": consultant.team_name,
                "is_external": consultant.is_external,
                "available_hours_by_week": [str(value) for value in consultant.available_hours_by_week],
                "unavailable_by_week": list(consultant.unavailable_by_week),
            }
            for consultant in data.consultants
        ],
        "projects": [
            {
                "id": str(project.id),
                "customer_id": str(project.customer_id),
                "name": project.name,
                "customer_name": project.customer_name,
                "customer_color": project.customer_color,
                "probability": project.probability,
                "is_active": project.is_active,
                "customer_is_active": project.customer_is_active,
            }
            for project in data.projects
        ],
        "customers": [
            {"id": str(customer.id), "name": customer.name, "color": customer.color}
            for customer in data.customers
        ],
        "roles": [{"id": str(role.id), "name": role.name} for role in data.roles],
        "teams": [{"id": str(team.id), "name": team.name} for team in data.teams],
        "allocations": [serialize_fact(fact) for fact in data.allocations],
    }


def page_data_from_payload(payload: dict[str, Any]) -> AllocationPageData:
    """Rebuild page data from the JSON returned by ``GET /allocation``."""

    return AllocationPageData(
        consultants=[
            AllocationConsultant(
                id=UUID(item["id"]),
                name=item["name"],
                initials=item["initials"],
                hours_per_week=Decimal(item["hours_per_week"]),
                default_role_name=item["default_role_name"],
                team_id=_uuid_or_none(item.get("team_id")),
                team_name=item.get("team_name"),
                is_external=bool(item["is_external"]),
                available_hours_by_week=[Decimal(value) for value in item["available_hours_by_week"]],
                unavailable_by_week=[bool(value) for value in item["unavailable_by_week"]],
            )
            for item in payload["consultants"]
        ],
        projects=[
            AllocationProject(
                id=UUID(item["id"]),
                customer_id=UUID(item["customer_id"]),
                name=item["name"],
                customer_name=item["customer_name"],
                customer_color=item.get("customer_color"),
                probability=item.get("probability"),
                is_active=bool(item["is_active"]),
                customer_is_active=bool(item["customer_is_active"]),
            )
            for item in payload["projects"]
        ],
        customers=[
            AllocationCustomer(id=UUID(item["id"]), name=item["name"], color=item.get("color"))
            for item in payload["customers"]
        ],
        roles=[NamedRef(id=UUID(item["id"]), name=item["name"]) for item in payload["roles"]],
        teams=[NamedRef(id=UUID(item["id"]), name=item["name"]) for item in payload["teams"]],
        allocations=[fact_from_payload(item) for item in payload["allocations"]],
        year=int(payload["year"]),
        week_from=int(payload["week_from"]),
        week_to=int(payload["week_to"]),
        weeks=[WeekRef(int(item["year"]), int(item["week"])) for item in payload["weeks"]],
    )
