"""Optimistic pending-edit overlay for allocation cells."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, replace
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from uuid import UUID

from resource_planner.services.allocation_facts import AllocationFact, is_to_plan
from resource_planner.services.weeks import WeekRef

ZERO = Decimal("0.00")
Q2 = Decimal("0.01")


def _q2(value: Decimal) -> Decimal:
    return value.quantize(Q2, rounding=ROUND_HALF_UP)


@dataclass(frozen=True, slots=True)
class CellKey:
    """Identity of one grid cell. The "To plan" sentinel id is stored as ``None``."""

    consultant_id: UUID | None
    project_id: UUID
    role_id: UUID | None
    year: int
    week: int

    def __post_init__(self) -> None:
        if self.consultant_id is not None and is_to_plan(self.consultant_id):
            object.__setattr__(self, "consultant_id", None)

    @classmethod
    def from_fact(cls, fact: AllocationFact) -> CellKey:
        return cls(
            consultant_id=fact.consultant_id,
            project_id=fact.project_id,
            role_id=fact.role_id,
            year=fact.year,
            week=fact.week,
        )


class EditState(str, Enum):
    CONFIRMED = "confirmed"
    PENDING = "pending"
    ROLLING_BACK = "rolling_back"


@dataclass(slots=True)
class PendingEdit:
    hours: Decimal
    generation: int
    state: EditState = EditState.PENDING


class PendingEditOverlay:
    """Per-cell state machine ``Confirmed -> Pending -> Confirmed``.

    A pending value is shown in place of fetched data until a fetch agrees
    with it, or until its write fails. Every submission gets a new generation
    so a late failure of an older write cannot drop a newer pending value.
    """

    def __init__(self) -> None:
        self._entries: dict[CellKey, PendingEdit] = {}
        self._generation = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def keys(self) -> list[CellKey]:
        return list(self._entries)

    def state_for(self, key: CellKey) -> EditState:
        entry = self._entries.get(key)
        return entry.state if entry is not None else EditState.CONFIRMED

    def value_for(self, key: CellKey) -> Decimal | None:
        entry = self._entries.get(key)
        return entry.hours if entry is not None else None

    def submit(self, key: CellKey, hours: Decimal) -> int:
        self._generation += 1
        self._entries[key] = PendingEdit(hours=_q2(Decimal(hours)), generation=self._generation)
        return self._generation

    def reconcile(
        self,
        facts: Iterable[AllocationFact],
        weeks: Iterable[WeekRef] | None = None,
    ) -> list[CellKey]:
        """Drop entries the fetched ``facts`` confirm and return their keys.

        A key is confirmed when its facts sum to the pending value, or when
        the pending value is zero and no fact exists for it any more. With
        ``weeks`` given, keys outside that fetched window are left pending.
        """

        window = set(weeks) if weeks is not None else None
        totals: dict[CellKey, Decimal] = {}
        for fact in facts:
            key = CellKey.from_fact(fact)
            totals[key] = totals.get(key, ZERO) + fact.hours

        confirmed: list[CellKey] = []
        for key, entry in list(self._entries.items()):
            if window is not None and WeekRef(key.year, key.week) not in window:
                continue
            total = totals.get(key)
            if total is None:
                agrees = entry.hours == ZERO
            else:
                agrees = _q2(total) == entry.hours
            if agrees:
                del self._entries[key]
                confirmed.append(key)
        return confirmed

    def fail(self, key: CellKey, generation: int) -> bool:
        """Roll back the entry written by ``generation``; newer submissions are kept."""

        entry = self._entries.get(key)
        if entry is None or entry.generation != generation:
            return False
        entry.state = EditState.ROLLING_BACK
        del self._entries[key]
        return True

    def clear(self) -> None:
        self._entries.clear()

    def apply(self, facts: Iterable[AllocationFact]) -> list[AllocationFact]:
        """Project pending values onto ``facts``.

        Facts of a pending key collapse into one fact carrying the pending
        value. Pending keys without any fact become facts without an id.
        """

        result: list[AllocationFact] = []
        seen: set[CellKey] = set()
        for fact in facts:
            key = CellKey.from_fact(fact)
            entry = self._entries.get(key)
            if entry is None:
                result.append(fact)
                continue
            if key in seen:
                continue
            seen.add(key)
            result.append(replace(fact, hours=entry.hours))

        for key, entry in self._entries.items():
            if key in seen or entry.hours == ZERO:
                continue
            result.append(
                AllocationFact(
                    id=None,
                    consultant_id=key.consultant_id,
                    project_id=key.project_id,
                    role_id=key.role_id,
                    year=key.year,
                    week=key.week,
                    hours=entry.hours,
                )
            )
        return result
