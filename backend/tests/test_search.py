import threading

import pytest

from timegrid.core.exceptions import Infeasible, SearchAborted
from timegrid.services.conflict_index import FacultyConflictIndex, Reservation
from timegrid.services.grid import EntryKind, Grid, GridShape
from timegrid.services.rotation import build_rotation_plan
from timegrid.services.search import BacktrackingSearch
from timegrid.services.sections import Requirement, Section

SHAPE = GridShape(
    days=("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"),
    periods=6,
    break_periods=frozenset({3}),
    lunch_period=5,
)


def make_section(branch, requirements, shape=SHAPE):
    return Section(
        academic_year="2025-26",
        year=2,
        branch=branch,
        course_name="B.Tech",
        semester=3,
        room_number=f"{branch}-101",
        shape=shape,
        requirements=tuple(requirements),
    )


def make_search(sections, reserved=(), **options):
    grids = [Grid.create(section.shape) for section in sections]
    index = FacultyConflictIndex(reserved)
    return BacktrackingSearch(sections, grids, index, **options), grids, index


def test_single_section_is_filled_exactly():
    section = make_section("CSE", [Requirement("Maths", "F1", 4), Requirement("Physics", "F2", 3)])
    search, grids, index = make_search([section])
    stats = search.run()

    counts = {}
    for _, _, entry in grids[0].teaching_cells():
        counts[entry.subject_name] = counts.get(entry.subject_name, 0) + 1
    assert counts == {"Maths": 4, "Physics": 3}
    assert len(index) == 7
    assert stats.nodes_visited >= 7


def test_shared_faculty_never_double_booked():
    sections = [
        make_section("CSE", [Requirement("Maths", "F1", 10)]),
        make_section("ECE", [Requirement("Maths", "F1", 10)]),
    ]
    search, grids, _ = make_search(sections)
    search.run()

    cse = {(day, period) for day, period, _ in grids[0].teaching_cells()}
    ece = {(day, period) for day, period, _ in grids[1].teaching_cells()}
    assert len(cse) == 10
    assert len(ece) == 10
    assert not cse & ece


def test_faculty_overload_is_infeasible_and_names_faculty():
    sections = [
        make_section("CSE", [Requirement("Maths", "F1", 20)]),
        make_section("ECE", [Requirement("Maths", "F1", 20)]),
    ]
    search, _, _ = make_search(sections)
    with pytest.raises(Infeasible) as exc_info:
        search.run()
    assert exc_info.value.details["faculty_id"] == "F1"
    assert exc_info.value.details["kind"] == "faculty"
    assert "F1" in exc_info.value.message


def test_reserved_slots_are_avoided():
    reserved = [Reservation(day="Monday", period=1, faculty_id="F1", section="OTHER")]
    section = make_section("CSE", [Requirement("Maths", "F1", 3)])
    search, grids, index = make_search([section], reserved=reserved)
    search.run()
    assert grids[0].is_open("Monday", 1)
    assert index.holder("Monday", 1, "F1") == "OTHER"


def test_search_is_deterministic():
    def solve():
        sections = [
            make_section("CSE", [Requirement("Maths", "F1", 5), Requirement("Physics", "F2", 4)]),
            make_section("ECE", [Requirement("Maths", "F1", 5), Requirement("Circuits", "F3", 6)]),
        ]
        search, grids, _ = make_search(sections)
        search.run()
        return grids

    assert solve() == solve()


def test_lab_blocks_are_contiguous():
    shape = GridShape(
        days=("Monday", "Tuesday"),
        periods=6,
        break_periods=frozenset({3}),
        lunch_period=5,
        lab_contiguous_periods=2,
    )
    section = make_section("CSE", [Requirement("Chem Lab", "F4", 4, is_lab=True)], shape=shape)
    plans = {(0, "Chem Lab"): build_rotation_plan(1, 4)}
    grids = [Grid.create(shape)]
    BacktrackingSearch([section], grids, FacultyConflictIndex(), plans).run()

    lab_cells = [(day, period) for day, period, entry in grids[0].teaching_cells() if entry.kind == EntryKind.lab]
    assert lab_cells == [("Monday", 1), ("Monday", 2), ("Tuesday", 1), ("Tuesday", 2)]


def test_search_rolls_back_after_dead_end():
    # CSE and ECE split F1 and F2 across the same four periods.
    shape = GridShape(days=("Monday",), periods=4)
    sections = [
        make_section("CSE", [Requirement("Maths", "F1", 2), Requirement("Physics", "F2", 2)], shape=shape),
        make_section("ECE", [Requirement("Maths", "F1", 2), Requirement("Circuits", "F2", 2)], shape=shape),
    ]
    search, grids, index = make_search(sections)
    search.run()

    for grid in grids:
        assert sum(1 for _ in grid.teaching_cells()) == 4
    assert len(index) == 8
    assert search.stats.backtracks > 0
    for period in range(1, 5):
        faculty = {grids[0].entry("Monday", period).faculty_id, grids[1].entry("Monday", period).faculty_id}
        assert faculty == {"F1", "F2"}


def test_time_limit_aborts_search():
    shape = GridShape(days=("Monday",), periods=4)
    sections = [
        make_section("CSE", [Requirement("Maths", "F1", 2), Requirement("Physics", "F2", 2)], shape=shape),
        make_section("ECE", [Requirement("Maths", "F1", 2), Requirement("Circuits", "F2", 2)], shape=shape),
    ]
    search, _, _ = make_search(sections, time_limit_seconds=1e-9)
    with pytest.raises(SearchAborted) as exc_info:
        search.run()
    assert exc_info.value.details["reason"] == "time_limit"


def test_node_budget_aborts_search():
    section = make_section("CSE", [Requirement("Maths", "F1", 4)])
    search, _, _ = make_search([section], node_budget=1)
    with pytest.raises(SearchAborted) as exc_info:
        search.run()
    assert exc_info.value.details["reason"] == "node_budget"
    assert exc_info.value.status_code == 503


def test_cancel_event_aborts_search():
    cancel = threading.Event()
    cancel.set()
    section = make_section("CSE", [Requirement("Maths", "F1", 4)])
    search, _, _ = make_search([section], cancel_event=cancel)
    with pytest.raises(SearchAborted) as exc_info:
        search.run()
    assert exc_info.value.details["reason"] == "cancelled"
