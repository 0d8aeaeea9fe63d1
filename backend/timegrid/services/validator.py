from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from timegrid.core.exceptions import FacultyConflict, RequirementUnmet, ValidationFailed
from timegrid.services.conflict_index import FacultyConflictIndex, Reservation
from timegrid.services.grid import EntryKind
from timegrid.services.sections import ScheduledSection


@dataclass(frozen=True)
class FacultyCollision:
    day: str
    period: int
    faculty_id: str
    section_a: str
    section_b: str

    def as_dict(self) -> dict:
        return {
            "day": self.day,
            "period": self.period,
            "faculty_id": self.faculty_id,
            "section_a": self.section_a,
            "section_b": self.section_b,
        }


@dataclass(frozen=True)
class RequirementShortfall:
    section: str
    subject: str
    faculty_id: str
    expected: int
    placed: int

    @property
    def hours_short(self) -> int:
        return self.expected - self.placed

    def as_dict(self) -> dict:
        return {
            "section": self.section,
            "subject": self.subject,
            "faculty_id": self.faculty_id,
            "expected": self.expected,
            "placed": self.placed,
            "hours_short": self.hours_short,
        }


@dataclass
class ValidationReport:
    collisions: list[FacultyCollision] = field(default_factory=list)
    shortfalls: list[RequirementShortfall] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.collisions and not self.shortfalls


def _register(
    index: FacultyConflictIndex,
    collisions: list[FacultyCollision],
    *,
    day: str,
    period: int,
    faculty_id: str,
    section: str,
) -> None:
    try:
        index.reserve(day, period, faculty_id, section)
    except FacultyConflict as exc:
        collisions.append(
            FacultyCollision(
                day=day,
                period=period,
                faculty_id=faculty_id,
                section_a=exc.existing_section,
                section_b=section,
            )
        )


def _shortfalls(item: ScheduledSection) -> list[RequirementShortfall]:
    key = item.section.key
    placed: Counter[tuple[str, str, bool]] = Counter()
    for _, _, entry in item.grid.teaching_cells():
        placed[(entry.subject_name, entry.faculty_id, entry.kind == EntryKind.lab)] += 1

    result: list[RequirementShortfall] = []
    expected_keys: set[tuple[str, str, bool]] = set()
    for requirement in item.section.requirements:
        signature = (requirement.subject_name, requirement.faculty_id, requirement.is_lab)
        expected_keys.add(signature)
        count = placed.get(signature, 0)
        if count != requirement.weekly_hours:
            result.append(
                RequirementShortfall(
                    section=key,
                    subject=requirement.subject_name,
                    faculty_id=requirement.faculty_id,
                    expected=requirement.weekly_hours,
                    placed=count,
                )
            )

    for (subject, faculty_id, is_lab), count in sorted(placed.items()):
        if (subject, faculty_id, is_lab) in expected_keys:
            continue
        result.append(
            RequirementShortfall(section=key, subject=subject, faculty_id=faculty_id, expected=0, placed=count)
        )
    return result


def detect_conflicts(
    timetables: Sequence[ScheduledSection],
    *,
    reserved: Iterable[Reservation] = (),
) -> ValidationReport:
    """Re-derive faculty occupancy from scratch and compare every grid with its requirements.

    Clashes among ``reserved`` alone are not reported; only cells of
    ``timetables`` can collide.
    """
    index = FacultyConflictIndex()
    report = ValidationReport()
    index.seed(reserved)
    for item in timetables:
        for day, period, entry in item.grid.teaching_cells():
            _register(
                index,
                report.collisions,
                day=day,
                period=period,
                faculty_id=entry.faculty_id,
                section=item.section.key,
            )
    for item in timetables:
        report.shortfalls.extend(_shortfalls(item))
    return report


def validate(
    timetables: Sequence[ScheduledSection],
    *,
    reserved: Iterable[Reservation] = (),
) -> ValidationReport:
    report = detect_conflicts(timetables, reserved=reserved)
    if report.collisions:
        raise ValidationFailed(report.collisions)
    if report.shortfalls:
        first = report.shortfalls[0]
        raise RequirementUnmet(first.section, first.subject, first.hours_short)
    return report
