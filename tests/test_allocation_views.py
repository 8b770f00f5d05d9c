from __future__ import annotations

import uuid
from decimal import Decimal

from resource_planner.services.allocation_facts import (
    TO_PLAN_CONSULTANT_ID,
    AllocationConsultant,
    AllocationCustomer,
    AllocationFact,
    AllocationPageData,
    AllocationProject,
    NamedRef,
    make_to_plan_consultant,
)
from resource_planner.services.allocation_overlay import CellKey, PendingEditOverlay
from resource_planner.services.allocation_views import (
    DisplayPolicy,
    PivotAxis,
    ProbabilityMode,
    VisibilityMode,
    build_per_consultant_view,
    build_per_customer_view,
    build_per_project_view,
    build_view,
    filter_consultants_by_team,
    get_display_hours,
    serialize_pivot_row,
)
from resource_planner.services.weeks import build_week_window

WEEKS = build_week_window(2026, 10, 12)

TEAM_A = uuid.uuid4()
TEAM_B = uuid.uuid4()
CUSTOMER_ACME = uuid.uuid4()
CUSTOMER_BETA = uuid.uuid4()
PROJECT_ALPHA = uuid.uuid4()
PROJECT_BRAVO = uuid.uuid4()
PROJECT_OLD = uuid.uuid4()
ROLE_DEV = uuid.uuid4()
ROLE_PM = uuid.uuid4()


def _consultant(name: str, team_id: uuid.UUID | None = TEAM_A, available: str = "40") -> AllocationConsultant:
    return AllocationConsultant(
        id=uuid.uuid4(),
        name=name,
        initials=name[:2].upper(),
        hours_per_week=Decimal("40"),
        default_role_name="Developer",
        team_id=team_id,
        team_name=None,
        is_external=False,
        available_hours_by_week=[Decimal(available)] * len(WEEKS),
        unavailable_by_week=[False] * len(WEEKS),
    )


def _fact(
    consultant_id: uuid.UUID | None,
    project_id: uuid.UUID,
    week: int,
    hours: str,
    role_id: uuid.UUID | None = None,
) -> AllocationFact:
    return AllocationFact(
        id=uuid.uuid4(),
        consultant_id=consultant_id,
        project_id=project_id,
        role_id=role_id,
        year=2026,
        week=week,
        hours=Decimal(hours),
    )


def _page(consultants: list[AllocationConsultant], facts: list[AllocationFact]) -> AllocationPageData:
    return AllocationPageData(
        consultants=consultants,
        projects=[
            AllocationProject(
                id=PROJECT_ALPHA,
                customer_id=CUSTOMER_ACME,
                name="Alpha",
                customer_name="Acme",
                customer_color="#ff0000",
                probability=None,
            ),
            AllocationProject(
                id=PROJECT_BRAVO,
                customer_id=CUSTOMER_BETA,
                name="Bravo",
                customer_name="Beta",
                customer_color=None,
                probability=50,
            ),
            AllocationProject(
                id=PROJECT_OLD,
                customer_id=CUSTOMER_ACME,
                name="Legacy",
                customer_name="Acme",
                customer_color="#ff0000",
                probability=100,
                is_active=False,
            ),
        ],
        customers=[
            AllocationCustomer(id=CUSTOMER_BETA, name="Beta", color=None),
            AllocationCustomer(id=CUSTOMER_ACME, name="Acme", color="#ff0000"),
        ],
        roles=[NamedRef(id=ROLE_DEV, name="Developer"), NamedRef(id=ROLE_PM, name="Project Manager")],
        teams=[NamedRef(id=TEAM_A, name="Team A"), NamedRef(id=TEAM_B, name="Team B")],
        allocations=facts,
        year=2026,
        week_from=10,
        week_to=12,
        weeks=WEEKS,
    )


# ---------- Display transform ----------
def test_weighted_hours_round_half_up() -> None:
    policy = DisplayPolicy(probability_mode=ProbabilityMode.WEIGHTED)

    shown = get_display_hours(Decimal("10"), 33, policy)

    assert shown.display_hours == Decimal("3")
    assert shown.is_hidden is False
    assert get_display_hours(Decimal("5"), 50, policy).display_hours == Decimal("3")


def test_display_is_identity_without_weighting_or_filters() -> None:
    policy = DisplayPolicy(probability_mode=ProbabilityMode.NONE, visibility_mode=VisibilityMode.ALL)

    for probability in (None, 0, 33, 100):
        shown = get_display_hours(Decimal("7.5"), probability, policy)
        assert shown.display_hours == Decimal("7.5")
        assert shown.is_hidden is False


def test_visibility_rules_win_over_weighting() -> None:
    hide_uncertain = DisplayPolicy(ProbabilityMode.WEIGHTED, VisibilityMode.HIDE_NON_100)
    hide_certain = DisplayPolicy(ProbabilityMode.WEIGHTED, VisibilityMode.HIDE_100)

    assert get_display_hours(Decimal("8"), 50, hide_uncertain).is_hidden is True
    assert get_display_hours(Decimal("8"), None, hide_uncertain).is_hidden is False
    assert get_display_hours(Decimal("8"), None, hide_certain).is_hidden is True
    hidden = get_display_hours(Decimal("8"), 100, hide_certain)
    assert hidden.display_hours == Decimal("0")


# ---------- Per consultant ----------
def test_pivot_keeps_every_raw_hour() -> None:
    anna = _consultant("Anna")
    facts = [
        _fact(anna.id, PROJECT_ALPHA, 10, "8", ROLE_DEV),
        _fact(anna.id, PROJECT_ALPHA, 11, "4.5", ROLE_PM),
        _fact(anna.id, PROJECT_ALPHA, 11, "2", ROLE_PM),
        _fact(anna.id, PROJECT_BRAVO, 12, "16"),
        _fact(anna.id, PROJECT_BRAVO, 20, "99"),
    ]

    rows = build_per_consultant_view(_page([anna], facts), DisplayPolicy())

    alpha = next(row for row in rows[0].sub_rows if row.project_id == PROJECT_ALPHA)
    assert sum(cell.hours for slot in alpha.weeks for cell in slot.cells) == Decimal("14.5")
    assert len(alpha.weeks[1].cells) == 2
    bravo = next(row for row in rows[0].sub_rows if row.project_id == PROJECT_BRAVO)
    assert sum(slot.hours for slot in bravo.weeks) == Decimal("16")


def test_to_plan_consultant_always_first() -> None:
    aaron = _consultant("Aaron")
    zed = _consultant("Zed")
    to_plan = make_to_plan_consultant(len(WEEKS))

    rows = build_per_consultant_view(_page([zed, to_plan, aaron], []), DisplayPolicy())

    assert [row.id for row in rows] == [TO_PLAN_CONSULTANT_ID, aaron.id, zed.id]
    assert rows[0].name == "To plan"


def test_unassigned_facts_land_on_to_plan_row_split_by_role() -> None:
    to_plan = make_to_plan_consultant(len(WEEKS))
    facts = [
        _fact(None, PROJECT_ALPHA, 10, "8", ROLE_DEV),
        _fact(None, PROJECT_ALPHA, 10, "4", ROLE_PM),
    ]

    rows = build_per_consultant_view(_page([to_plan], facts), DisplayPolicy())

    assert [(row.project_name, row.role_name) for row in rows[0].sub_rows] == [
        ("Alpha", "Developer"),
        ("Alpha", "Project Manager"),
    ]


def test_named_consultant_merges_roles_into_one_project_row() -> None:
    anna = _consultant("Anna")
    facts = [
        _fact(anna.id, PROJECT_ALPHA, 10, "8", ROLE_DEV),
        _fact(anna.id, PROJECT_ALPHA, 11, "4", ROLE_PM),
    ]

    rows = build_per_consultant_view(_page([anna], facts), DisplayPolicy())

    assert len(rows[0].sub_rows) == 1


def test_consultant_view_drops_rows_without_hours() -> None:
    anna = _consultant("Anna")
    facts = [
        _fact(anna.id, PROJECT_ALPHA, 10, "0", ROLE_DEV),
        _fact(anna.id, PROJECT_BRAVO, 10, "3"),
    ]

    rows = build_per_consultant_view(_page([anna], facts), DisplayPolicy())

    assert [row.project_id for row in rows[0].sub_rows] == [PROJECT_BRAVO]


def test_totals_skip_hidden_cells_and_feed_percentages() -> None:
    anna = _consultant("Anna", available="20")
    facts = [
        _fact(anna.id, PROJECT_ALPHA, 10, "8"),
        _fact(anna.id, PROJECT_BRAVO, 10, "6"),
    ]
    policy = DisplayPolicy(ProbabilityMode.WEIGHTED, VisibilityMode.HIDE_NON_100)

    row = build_per_consultant_view(_page([anna], facts), policy)[0]

    assert row.total_by_week == [Decimal("8"), Decimal("0"), Decimal("0")]
    for index, total in enumerate(row.total_by_week):
        visible = sum(
            cell.display_hours for sub in row.sub_rows for cell in sub.weeks[index].cells if not cell.is_hidden
        )
        assert total == visible
    assert row.percent_by_week[0].pct == 40
    assert row.percent_by_week[0].available == Decimal("20")


def test_percent_falls_back_to_weekly_hours() -> None:
    anna = _consultant("Anna")
    anna.available_hours_by_week = []

    row = build_per_consultant_view(_page([anna], [_fact(anna.id, PROJECT_ALPHA, 11, "10")]), DisplayPolicy())[0]

    assert row.percent_by_week[1].available == Decimal("40")
    assert row.percent_by_week[1].pct == 25
    assert row.percent_by_week[0].pct == 0


# ---------- Per customer / per project ----------
def test_customer_view_splits_roles_into_separate_rows() -> None:
    anna = _consultant("Anna")
    facts = [
        _fact(anna.id, PROJECT_ALPHA, 10, "8", ROLE_DEV),
        _fact(anna.id, PROJECT_ALPHA, 10, "4", ROLE_PM),
    ]

    rows = build_per_customer_view(_page([anna], facts), DisplayPolicy())

    acme = next(row for row in rows if row.id == CUSTOMER_ACME)
    assert len(acme.sub_rows) == 2
    assert [sub.weeks[0].cells[0].hours for sub in acme.sub_rows] == [Decimal("8"), Decimal("4")]


def test_customer_view_sorting_and_colors() -> None:
    anna = _consultant("Anna")
    bob = _consultant("Bob")
    facts = [
        _fact(bob.id, PROJECT_ALPHA, 10, "1", ROLE_DEV),
        _fact(anna.id, PROJECT_ALPHA, 10, "1", ROLE_PM),
        _fact(anna.id, PROJECT_ALPHA, 11, "1"),
        _fact(anna.id, PROJECT_BRAVO, 10, "1"),
    ]

    rows = build_per_customer_view(_page([anna, bob], facts), DisplayPolicy())

    assert [row.name for row in rows] == ["Acme", "Beta"]
    assert rows[0].color == "#ff0000"
    assert rows[1].color == "#3b82f6"
    assert [(sub.consultant_name, sub.role_name) for sub in rows[0].sub_rows] == [
        ("Anna", ""),
        ("Anna", "Project Manager"),
        ("Bob", "Developer"),
    ]


def test_project_view_excludes_inactive_projects() -> None:
    anna = _consultant("Anna")
    facts = [
        _fact(anna.id, PROJECT_OLD, 10, "5"),
        _fact(anna.id, PROJECT_BRAVO, 10, "5"),
    ]
    data = _page([anna], facts)

    project_rows = build_per_project_view(data, DisplayPolicy())
    customer_rows = build_per_customer_view(data, DisplayPolicy())

    assert [row.name for row in project_rows] == ["Bravo"]
    assert {row.name for row in customer_rows} == {"Acme", "Beta"}


def test_dangling_references_fall_back_to_unknown() -> None:
    ghost_project = uuid.uuid4()
    ghost_role = uuid.uuid4()
    ghost_consultant = uuid.uuid4()
    facts = [_fact(ghost_consultant, ghost_project, 10, "3", ghost_role)]
    data = _page([], facts)

    consultant_rows = build_per_consultant_view(data, DisplayPolicy())
    customer_rows = build_per_customer_view(data, DisplayPolicy())
    project_rows = build_per_project_view(data, DisplayPolicy())

    assert consultant_rows[0].name == "Unknown"
    assert consultant_rows[0].sub_rows[0].project_name == "Unknown"
    assert consultant_rows[0].sub_rows[0].role_name == "Unknown"
    assert customer_rows[0].name == "Unknown"
    assert customer_rows[0].color == "#3b82f6"
    assert project_rows[0].name == "Unknown"


# ---------- Overlay and filters ----------
def test_overlay_replaces_hours_and_adds_new_cells() -> None:
    anna = _consultant("Anna")
    fact = _fact(anna.id, PROJECT_ALPHA, 10, "5")
    overlay = PendingEditOverlay()
    overlay.submit(CellKey.from_fact(fact), Decimal("8"))
    overlay.submit(CellKey(anna.id, PROJECT_BRAVO, None, 2026, 12), Decimal("2"))

    row = build_per_consultant_view(_page([anna], [fact]), DisplayPolicy(), overlay)[0]

    assert row.total_by_week == [Decimal("8.00"), Decimal("0"), Decimal("2.00")]
    new_cell = next(sub for sub in row.sub_rows if sub.project_id == PROJECT_BRAVO).weeks[2].cells[0]
    assert new_cell.id is None


def test_zero_overlay_suppresses_confirmed_hours() -> None:
    anna = _consultant("Anna")
    fact = _fact(anna.id, PROJECT_ALPHA, 10, "5")
    overlay = PendingEditOverlay()
    overlay.submit(CellKey.from_fact(fact), Decimal("0"))

    rows = build_view(PivotAxis.CUSTOMER, _page([anna], [fact]), DisplayPolicy(), overlay)

    assert rows[0].total_by_week == [Decimal("0"), Decimal("0"), Decimal("0")]


def test_team_filter_keeps_to_plan_pool() -> None:
    to_plan = make_to_plan_consultant(len(WEEKS))
    anna = _consultant("Anna", team_id=TEAM_A)
    bob = _consultant("Bob", team_id=TEAM_B)
    facts = [
        _fact(None, PROJECT_ALPHA, 10, "1"),
        _fact(anna.id, PROJECT_ALPHA, 10, "2"),
        _fact(bob.id, PROJECT_ALPHA, 10, "4"),
    ]

    data = filter_consultants_by_team(_page([to_plan, anna, bob], facts), TEAM_A)

    assert [consultant.name for consultant in data.consultants] == ["To plan", "Anna"]
    rows = build_per_project_view(data, DisplayPolicy())
    assert rows[0].total_by_week[0] == Decimal("3")


def test_serialized_consultant_row_carries_percentages() -> None:
    anna = _consultant("Anna")

    payload = serialize_pivot_row(
        build_per_consultant_view(_page([anna], [_fact(anna.id, PROJECT_ALPHA, 10, "10")]), DisplayPolicy())[0]
    )

    assert payload["axis"] == "consultant"
    assert payload["percent_by_week"][0] == {"total": "10.00", "available": "40", "pct": 25}
    assert payload["sub_rows"][0]["weeks"][0]["cells"][0]["hours"] == "10"
