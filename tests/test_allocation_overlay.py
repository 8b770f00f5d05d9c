from __future__ import annotations

import uuid
from decimal import Decimal

from resource_planner.services.allocation_facts import TO_PLAN_CONSULTANT_ID, AllocationFact
from resource_planner.services.allocation_overlay import CellKey, EditState, PendingEditOverlay
from resource_planner.services.weeks import build_week_window

CONSULTANT = uuid.uuid4()
PROJECT = uuid.uuid4()
ROLE = uuid.uuid4()


def _key(week: int = 10, role_id: uuid.UUID | None = ROLE) -> CellKey:
    return CellKey(consultant_id=CONSULTANT, project_id=PROJECT, role_id=role_id, year=2026, week=week)


def _fact(hours: str, week: int = 10, role_id: uuid.UUID | None = ROLE) -> AllocationFact:
    return AllocationFact(
        id=uuid.uuid4(),
        consultant_id=CONSULTANT,
        project_id=PROJECT,
        role_id=role_id,
        year=2026,
        week=week,
        hours=Decimal(hours),
    )


def test_cell_key_equality_is_structural() -> None:
    assert _key() == CellKey(CONSULTANT, PROJECT, ROLE, 2026, 10)
    assert _key(role_id=None) != _key()
    assert CellKey.from_fact(_fact("1")) == _key()


def test_cell_key_normalizes_to_plan_sentinel() -> None:
    sentinel = CellKey(TO_PLAN_CONSULTANT_ID, PROJECT, None, 2026, 10)

    assert sentinel.consultant_id is None
    assert sentinel == CellKey(None, PROJECT, None, 2026, 10)


def test_pending_value_survives_stale_fetch_and_clears_on_match() -> None:
    overlay = PendingEditOverlay()
    overlay.submit(_key(), Decimal("8"))

    assert overlay.reconcile([_fact("5")]) == []
    assert overlay.value_for(_key()) == Decimal("8.00")
    assert overlay.state_for(_key()) == EditState.PENDING

    assert overlay.reconcile([_fact("8")]) == [_key()]
    assert overlay.value_for(_key()) is None
    assert overlay.state_for(_key()) == EditState.CONFIRMED


def test_confirmation_sums_duplicate_facts_after_rounding() -> None:
    overlay = PendingEditOverlay()
    overlay.submit(_key(), Decimal("7.5"))

    assert overlay.reconcile([_fact("3.25"), _fact("4.25")]) == [_key()]


def test_zero_edit_confirmed_by_missing_fact() -> None:
    overlay = PendingEditOverlay()
    overlay.submit(_key(), Decimal("0"))

    assert overlay.reconcile([_fact("5")]) == []
    assert overlay.reconcile([_fact("5", week=11)]) == [_key()]
    assert len(overlay) == 0


def test_failed_write_rolls_back_only_its_own_generation() -> None:
    overlay = PendingEditOverlay()
    first = overlay.submit(_key(), Decimal("8"))
    second = overlay.submit(_key(), Decimal("9"))

    assert overlay.fail(_key(), first) is False
    assert overlay.value_for(_key()) == Decimal("9.00")

    assert overlay.fail(_key(), second) is True
    assert _key() not in overlay


def test_apply_projects_pending_values_onto_facts() -> None:
    overlay = PendingEditOverlay()
    overlay.submit(_key(), Decimal("8"))
    overlay.submit(_key(week=11), Decimal("3"))
    overlay.submit(_key(week=12), Decimal("0"))
    other = _fact("2", role_id=None)

    applied = overlay.apply([_fact("2"), _fact("3"), other])

    by_key = {(CellKey.from_fact(fact)): fact for fact in applied}
    assert len(applied) == 3
    assert by_key[_key()].hours == Decimal("8.00")
    assert by_key[_key(week=11)].id is None
    assert by_key[_key(role_id=None)] is other
    assert _key(week=12) not in by_key


def test_keys_outside_fetched_window_stay_pending() -> None:
    overlay = PendingEditOverlay()
    overlay.submit(_key(), Decimal("0"))
    overlay.submit(_key(week=14), Decimal("2"))

    assert overlay.reconcile([], weeks=build_week_window(2026, 14, 16)) == []
    assert overlay.value_for(_key()) == Decimal("0.00")

    assert overlay.reconcile([_fact("2", week=14)], weeks=build_week_window(2026, 14, 16)) == [_key(week=14)]
    assert overlay.reconcile([], weeks=build_week_window(2026, 10, 12)) == [_key()]
