from __future__ import annotations

from dataclasses import dataclass

from timegrid.services.grid import Grid, GridShape


@dataclass(frozen=True)
class Requirement:
    subject_name: str
    faculty_id: str
    weekly_hours: int
    is_lab: bool = False
    batch_count: int | None = None

    def __post_init__(self) -> None:
        if self.weekly_hours <= 0:
            raise ValueError(f"{self.subject_name}: weekly hours must be positive")
        if self.batch_count is not None:
            if not self.is_lab:
                raise ValueError(f"{self.subject_name}: only labs can be split into batches")
            if self.batch_count < 1:
                raise ValueError(f"{self.subject_name}: batch count must be at least 1")

    @property
    def effective_batch_count(self) -> int:
        return self.batch_count or 1


@dataclass(frozen=True)
class Section:
    academic_year: str
    year: int
    branch: str
    course_name: str
    semester: int
    room_number: str
    shape: GridShape
    requirements: tuple[Requirement, ...] = ()
    lab_station_count: int | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "requirements", tuple(self.requirements))
        seen: set[str] = set()
        duplicates: set[str] = set()
        for requirement in self.requirements:
            if requirement.subject_name in seen:
                duplicates.add(requirement.subject_name)
            seen.add(requirement.subject_name)
        if duplicates:
            raise ValueError(f"Duplicate subject(s) in {self.key}: {', '.join(sorted(duplicates))}")

    @property
    def key(self) -> str:
        return f"{self.course_name}/{self.branch}/Y{self.year}/S{self.semester}/{self.academic_year}"

    def block_size(self, requirement: Requirement) -> int:
        return self.shape.lab_contiguous_periods if requirement.is_lab else 1


@dataclass(frozen=True)
class ScheduledSection:
    """A section paired with its weekly grid."""

    section: Section
    grid: Grid
