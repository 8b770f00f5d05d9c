"""Allocation grid controller: fetches, optimistic edits and view building."""

from __future__ import annotations

import asyncio
from collections import defaultdict
from dataclasses import dataclass, field, replace
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Protocol
from uuid import UUID

from resource_planner.core.logging import logger
from resource_planner.services.allocation_facts import (
    AllocationFact,
    AllocationPageData,
    AllocationWriteOp,
    CreateAllocationOp,
    DeleteAllocationOp,
    UpdateAllocationOp,
)
from resource_planner.services.allocation_overlay import CellKey, PendingEditOverlay
from resource_planner.services.allocation_views import (
    DisplayPolicy,
    PivotAxis,
    PivotRow,
    build_view,
    filter_consultants_by_team,
)
from resource_planner.services.weeks import (
    SHIFT_WEEKS,
    WeekRef,
    add_weeks,
    build_week_window,
    current_year_week,
    shift_window,
)

ZERO = Decimal("0.00")
Q2 = Decimal("0.01")

DEFAULT_WINDOW_WEEKS = 12


class AllocationWriteError(Exception):
    """A create, update or delete was rejected by the allocation store."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AllocationFetchError(Exception):
    """Allocation page data could not be read from the store."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AllocationStore(Protocol):
    async def fetch_facts(self, year: int, week_from: int, week_to: int) -> AllocationPageData: ...

    async def write_fact(self, op: AllocationWriteOp) -> AllocationFact | None: ...


@dataclass(frozen=True, slots=True)
class ViewState:
    """Everything the grid shows besides the data itself."""

    year: int
    week_from: int
    week_to: int
    policy: DisplayPolicy = DisplayPolicy()
    team_id: UUID | None = None
    active_tab: PivotAxis = PivotAxis.CONSULTANT
    expanded_rows: frozenset[tuple[PivotAxis, UUID | None]] = field(default_factory=frozenset)

    @classmethod
    def starting_at(cls, today: date | None = None, *, span: int = DEFAULT_WINDOW_WEEKS) -> ViewState:
        start = current_year_week(today)
        end = add_weeks(start, span - 1)
        return cls(year=start.year, week_from=start.week, week_to=end.week)

    @property
    def weeks(self) -> list[WeekRef]:
        return build_week_window(self.year, self.week_from, self.week_to)

    def shifted(self, delta: int) -> ViewState:
        year, week_from, week_to = shift_window(self.year, self.week_from, self.week_to, delta)
        return replace(self, year=year, week_from=week_from, week_to=week_to)

    def previous(self) -> ViewState:
        return self.shifted(-SHIFT_WEEKS)

    def following(self) -> ViewState:
        return self.shifted(SHIFT_WEEKS)

    def with_policy(self, policy: DisplayPolicy) -> ViewState:
        return replace(self, policy=policy)

    def with_team(self, team_id: UUID | None) -> ViewState:
        return replace(self, team_id=team_id)

    def with_tab(self, tab: PivotAxis) -> ViewState:
        return replace(self, active_tab=tab)

    def toggle_expanded(self, axis: PivotAxis, row_id: UUID | None) -> ViewState:
        key = (axis, row_id)
        if key in self.expanded_rows:
            return replace(self, expanded_rows=self.expanded_rows - {key})
        return replace(self, expanded_rows=self.expanded_rows | {key})

    def is_expanded(self, axis: PivotAxis, row_id: UUID | None) -> bool:
        return (axis, row_id) in self.expanded_rows


class AllocationGridController:
    """Owns the pending-edit overlay of one grid and keeps it in step with the store.

    Fetch results arriving out of order are dropped through a monotonic fetch
    generation. Writes to one cell run one at a time, so each edit resolves
    against the facts its predecessor left behind. After ``close()`` no result
    of an in-flight call touches the overlay or the cached page.
    """

    def __init__(self, store: AllocationStore, view_state: ViewState) -> None:
        self.store = store
        self.view_state = view_state
        self.overlay = PendingEditOverlay()
        self.data: AllocationPageData | None = None
        self._fetch_generation = 0
        self._closed = False
        self._cell_locks: defaultdict[CellKey, asyncio.Lock] = defaultdict(asyncio.Lock)

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        self._closed = True

    async def refresh(self) -> AllocationPageData | None:
        if self._closed:
            return self.data

        self._fetch_generation += 1
        generation = self._fetch_generation
        state = self.view_state
        data = await self.store.fetch_facts(state.year, state.week_from, state.week_to)

        if self._closed or generation != self._fetch_generation:
            logger.debug("Dropping stale allocation fetch (generation %d)", generation)
            return self.data

        self.data = data
        confirmed = self.overlay.reconcile(data.allocations, data.weeks)
        if confirmed:
            logger.debug("Confirmed %d pending allocation edits", len(confirmed))
        return data

    async def navigate(self, view_state: ViewState) -> AllocationPageData | None:
        self.view_state = view_state
        return await self.refresh()

    async def show_previous(self) -> AllocationPageData | None:
        return await self.navigate(self.view_state.previous())

    async def show_following(self) -> AllocationPageData | None:
        return await self.navigate(self.view_state.following())

    def _matching_facts(self, key: CellKey) -> list[AllocationFact]:
        if self.data is None:
            return []
        return [fact for fact in self.data.allocations if fact.id is not None and CellKey.from_fact(fact) == key]

    def _resolve_ops(self, key: CellKey, hours: Decimal) -> list[AllocationWriteOp]:
        existing = self._matching_facts(key)
        if not existing:
            if hours == ZERO:
                return []
            return [
                CreateAllocationOp(
                    consultant_id=key.consultant_id,
                    project_id=key.project_id,
                    role_id=key.role_id,
                    year=key.year,
                    week=key.week,
                    hours=hours,
                )
            ]

        if hours == ZERO:
            return [DeleteAllocationOp(allocation_id=fact.id) for fact in existing]

        # Duplicates for one cell collapse into the first allocation.
        ops: list[AllocationWriteOp] = [UpdateAllocationOp(allocation_id=existing[0].id, hours=hours)]
        ops.extend(DeleteAllocationOp(allocation_id=fact.id) for fact in existing[1:])
        return ops

    def _remember_write(self, op: AllocationWriteOp, result: AllocationFact | None) -> None:
        """Fold a completed write into the cached facts until the next fetch replaces them."""

        if self.data is None:
            return
        facts = self.data.allocations
        if isinstance(op, DeleteAllocationOp):
            facts = [fact for fact in facts if fact.id != op.allocation_id]
        elif result is not None and result.id is not None:
            facts = [fact for fact in facts if fact.id != result.id]
            facts.append(result)
        self.data = replace(self.data, allocations=facts)

    def cell_hours(self, key: CellKey) -> Decimal:
        """Raw hours the grid currently shows for ``key``."""

        pending = self.overlay.value_for(key)
        if pending is not None:
            return pending
        return sum((fact.hours for fact in self._matching_facts(key)), ZERO)

    async def submit_cell_edit(self, key: CellKey, new_hours: Decimal | int | float | str) -> None:
        """Show ``new_hours`` at once, write it, then refresh from the store.

        A rejected write rolls the cell back to the last fetched value and
        raises ``AllocationWriteError``.
        """

        if self._closed:
            raise RuntimeError("Allocation grid controller is closed.")

        hours = Decimal(str(new_hours)).quantize(Q2, rounding=ROUND_HALF_UP)
        if hours < ZERO:
            raise ValueError("hours must be greater or equal zero.")

        generation = self.overlay.submit(key, hours)
        async with self._cell_locks[key]:
            try:
                for op in self._resolve_ops(key, hours):
                    result = await self.store.write_fact(op)
                    if not self._closed:
                        self._remember_write(op, result)
            except Exception as exc:
                if not self._closed:
                    self.overlay.fail(key, generation)
                logger.warning("Allocation edit for %s rolled back: %s", key, exc)
                if isinstance(exc, AllocationWriteError):
                    raise
                raise AllocationWriteError(str(exc)) from exc

            if not self._closed:
                await self.refresh()

    def views(self, axis: PivotAxis | None = None) -> list[PivotRow]:
        """Build the active tab (or ``axis``) with pending edits applied."""

        if self.data is None:
            return []
        state = self.view_state
        # Pending edits go in first so the team filter also drops other teams' edits.
        data = replace(self.data, allocations=self.overlay.apply(self.data.allocations))
        data = filter_consultants_by_team(data, state.team_id)
        return build_view(axis or state.active_tab, data, state.policy)
