import pytest

from timegrid.core.config import Settings
from timegrid.core.exceptions import InvalidSlot
from timegrid.schemas.generator import EntryPayload
from timegrid.schemas.section import SectionPayload
from timegrid.services.grid import LUNCH, Entry, GridShape
from timegrid.services.serialization import grid_from_entries, grid_to_entries, section_from_payload

SHAPE = GridShape(days=("Monday",), periods=4, break_periods=frozenset({2}), lunch_period=4)


def test_section_without_grid_uses_configured_defaults():
    settings = Settings(
        default_days=["Monday", "Tuesday"],
        default_periods_per_day=5,
        default_break_periods=[2],
        default_lunch_period=4,
    )
    payload = SectionPayload(
        academicYear="2025-26",
        year=1,
        branch="CSE",
        courseName="B.Tech",
        semester=1,
        roomNumber="101",
        requirements=[{"subjectName": "Maths", "facultyId": "F1", "weeklyHours": 2}],
    )
    section = section_from_payload(payload, settings)
    assert section.shape.days == ("Monday", "Tuesday")
    assert section.shape.periods == 5
    assert section.shape.fixed_entry(4) == LUNCH
    assert section.key == "B.Tech/CSE/Y1/S1/2025-26"
    assert section.requirements[0].weekly_hours == 2


def test_grid_from_entries_skips_omitted_cells():
    entries = [
        EntryPayload(day="Mon", period=1, kind="class", subjectName="Maths", facultyId="F1"),
        EntryPayload(day="Monday", period=2, kind="break"),
    ]
    grid = grid_from_entries(SHAPE, entries)
    assert grid.entry("Monday", 1) == Entry.lecture("Maths", "F1")
    assert grid.is_open("Monday", 3)
    assert [item.kind for item in grid_to_entries(grid)] == ["class", "break", "empty", "lunch"]


def test_grid_from_entries_rejects_misplaced_break():
    entries = [EntryPayload(day="Monday", period=3, kind="break")]
    with pytest.raises(InvalidSlot):
        grid_from_entries(SHAPE, entries)


def test_entry_payload_rejects_faculty_on_lunch():
    with pytest.raises(ValueError):
        EntryPayload(day="Monday", period=4, kind="lunch", facultyId="F1")
