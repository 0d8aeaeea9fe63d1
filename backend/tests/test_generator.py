import pytest

from timegrid.core.exceptions import (
    Infeasible,
    InsufficientStations,
    InvalidRequirement,
    RequirementExceedsCapacity,
    SchedulerError,
)
from timegrid.services.conflict_index import Reservation
from timegrid.services.generator import TimetableGenerator, generate
from timegrid.services.grid import EntryKind, GridShape
from timegrid.services.sections import Requirement, Section
from timegrid.services.validator import detect_conflicts

SHAPE = GridShape(
    days=("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"),
    periods=6,
    break_periods=frozenset({3}),
    lunch_period=5,
)


def make_section(branch, requirements, shape=SHAPE, lab_station_count=None):
    return Section(
        academic_year="2025-26",
        year=2,
        branch=branch,
        course_name="B.Tech",
        semester=3,
        room_number=f"{branch}-101",
        shape=shape,
        requirements=tuple(requirements),
        lab_station_count=lab_station_count,
    )


def test_generate_meets_every_requirement():
    sections = [
        make_section("CSE", [Requirement("Maths", "F1", 5), Requirement("Physics", "F2", 4)]),
        make_section("ECE", [Requirement("Maths", "F1", 5), Requirement("Circuits", "F3", 6)]),
    ]
    result = generate(sections)

    assert [item.section.key for item in result.timetables] == [section.key for section in sections]
    assert detect_conflicts(result.timetables).ok
    assert result.stats.nodes_visited >= 20


def test_lab_rotation_labels_follow_the_plan():
    section = make_section(
        "CSE",
        [Requirement("Maths", "F1", 4), Requirement("Chem Lab", "F4", 3, is_lab=True, batch_count=3)],
    )
    result = TimetableGenerator().run([section])

    plan = result.rotation_plans[(section.key, "Chem Lab")]
    assert plan.batch_count == 3
    assert plan.station_count == 4

    grid = result.timetable_for(section.key).grid
    labels = [entry.batch_label for _, _, entry in grid.teaching_cells() if entry.kind == EntryKind.lab]
    assert labels == [plan.label(0), plan.label(1), plan.label(2)]
    assert labels[0] == "B1:S1,B2:S2,B3:S3"


def test_insufficient_stations_stops_before_search():
    section = make_section(
        "CSE",
        [Requirement("Chem Lab", "F4", 3, is_lab=True, batch_count=3)],
        lab_station_count=2,
    )
    with pytest.raises(InsufficientStations) as exc_info:
        generate([section])
    assert exc_info.value.details["section"] == section.key


def test_requirement_larger_than_grid_is_rejected():
    section = make_section("CSE", [Requirement("Maths", "F1", 25)])
    with pytest.raises(RequirementExceedsCapacity) as exc_info:
        generate([section])
    assert exc_info.value.details["capacity"] == 24


def test_lab_hours_must_split_into_blocks():
    shape = GridShape(days=SHAPE.days, periods=6, break_periods=frozenset({3}), lunch_period=5, lab_contiguous_periods=2)
    section = make_section("CSE", [Requirement("Chem Lab", "F4", 3, is_lab=True)], shape=shape)
    with pytest.raises(InvalidRequirement):
        generate([section])


def test_duplicate_sections_are_rejected():
    section = make_section("CSE", [Requirement("Maths", "F1", 2)])
    with pytest.raises(SchedulerError):
        generate([section, section])


def test_shared_faculty_overload_is_infeasible():
    sections = [
        make_section("CSE", [Requirement("Maths", "F1", 20)]),
        make_section("ECE", [Requirement("Maths", "F1", 20)]),
    ]
    with pytest.raises(Infeasible) as exc_info:
        generate(sections)
    assert exc_info.value.status_code == 422
    assert exc_info.value.details["faculty_id"] == "F1"


def test_reserved_faculty_time_is_respected():
    reserved = [Reservation(day=day, period=1, faculty_id="F1", section="MECH") for day in SHAPE.days]
    section = make_section("CSE", [Requirement("Maths", "F1", 6)])
    result = generate([section], reserved=reserved)
    grid = result.timetables[0].grid
    assert all(grid.is_open(day, 1) for day in SHAPE.days)


def test_empty_requirements_produce_blank_grid():
    section = make_section("CSE", [])
    result = generate([section])
    assert list(result.timetables[0].grid.teaching_cells()) == []
    assert result.stats.nodes_visited == 0


def test_five_day_section_gets_exact_hours():
    shape = GridShape(
        days=("Monday", "Tuesday", "Wednesday", "Thursday", "Friday"),
        periods=6,
        break_periods=frozenset({3}),
        lunch_period=5,
    )
    section = make_section("CSE", [Requirement("MathA", "F1", 3), Requirement("PhysB", "F2", 2)], shape=shape)
    result = generate([section])
    grid = result.timetables[0].grid

    subjects = [entry.subject_name for _, _, entry in grid.teaching_cells()]
    assert subjects.count("MathA") == 3
    assert subjects.count("PhysB") == 2
    assert detect_conflicts(result.timetables).ok


def test_generation_is_reproducible():
    sections = [
        make_section("CSE", [Requirement("Maths", "F1", 6), Requirement("Chem Lab", "F4", 2, is_lab=True, batch_count=2)]),
        make_section("ECE", [Requirement("Maths", "F1", 6), Requirement("Circuits", "F3", 5)]),
    ]
    first = generate(sections)
    second = generate(sections)
    assert [item.grid for item in first.timetables] == [item.grid for item in second.timetables]


def test_clashing_reserved_slots_do_not_block_unrelated_run():
    reserved = [
        Reservation(day="Monday", period=1, faculty_id="F1", section="CSE"),
        Reservation(day="Monday", period=1, faculty_id="F1", section="ECE"),
    ]
    section = make_section("MECH", [Requirement("Drawing", "F9", 2)])
    result = generate([section], reserved=reserved)
    assert detect_conflicts(result.timetables).ok
