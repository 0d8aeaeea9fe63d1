from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
import logging
import threading

from timegrid.core.exceptions import InvalidRequirement, RequirementExceedsCapacity, SchedulerError
from timegrid.services.conflict_index import FacultyConflictIndex, Reservation
from timegrid.services.grid import Grid
from timegrid.services.rotation import RotationPlan, build_rotation_plan
from timegrid.services.search import BacktrackingSearch, SearchStats
from timegrid.services.sections import ScheduledSection, Section
from timegrid.services.validator import validate

logger = logging.getLogger(__name__)

DEFAULT_LAB_STATION_COUNT = 4


@dataclass
class GenerationResult:
    timetables: list[ScheduledSection]
    rotation_plans: dict[tuple[str, str], RotationPlan] = field(default_factory=dict)
    stats: SearchStats = field(default_factory=SearchStats)

    def timetable_for(self, section_key: str) -> ScheduledSection:
        for item in self.timetables:
            if item.section.key == section_key:
                return item
        raise KeyError(section_key)


class TimetableGenerator:
    """Runs precondition checks, the assignment search and the final validation for one batch of sections."""

    def __init__(
        self,
        *,
        node_budget: int | None = None,
        time_limit_seconds: float | None = None,
        default_lab_station_count: int = DEFAULT_LAB_STATION_COUNT,
        reserved: Iterable[Reservation] = (),
        cancel_event: threading.Event | None = None,
    ) -> None:
        self.node_budget = node_budget
        self.time_limit_seconds = time_limit_seconds
        self.default_lab_station_count = default_lab_station_count
        self.reserved = list(reserved)
        self.cancel_event = cancel_event

    def _validate_section_keys(self, sections: Sequence[Section]) -> None:
        seen: set[str] = set()
        duplicates: set[str] = set()
        for section in sections:
            if section.key in seen:
                duplicates.add(section.key)
            seen.add(section.key)
        if duplicates:
            raise SchedulerError(
                f"Duplicate section(s) in one generation run: {', '.join(sorted(duplicates))}",
                details={"duplicates": sorted(duplicates)},
            )

    def _validate_capacity(self, section: Section) -> None:
        shape = section.shape
        for requirement in section.requirements:
            block_size = section.block_size(requirement)
            if requirement.weekly_hours % block_size != 0:
                raise InvalidRequirement(
                    section.key,
                    requirement.subject_name,
                    f"{requirement.weekly_hours} lab hours cannot be split into {block_size}-period blocks",
                )
            capacity = shape.max_disjoint_blocks(block_size) * block_size
            if requirement.weekly_hours > capacity:
                raise RequirementExceedsCapacity(
                    section.key,
                    requirement.subject_name,
                    requirement.weekly_hours,
                    capacity,
                )

    def _build_rotation_plans(self, sections: Sequence[Section]) -> dict[tuple[int, str], RotationPlan]:
        plans: dict[tuple[int, str], RotationPlan] = {}
        for section_index, section in enumerate(sections):
            station_count = section.lab_station_count or self.default_lab_station_count
            for requirement in section.requirements:
                if not requirement.is_lab:
                    continue
                plans[(section_index, requirement.subject_name)] = build_rotation_plan(
                    requirement.effective_batch_count,
                    station_count,
                    section=section.key,
                    subject=requirement.subject_name,
                )
        return plans

    def run(self, sections: Sequence[Section]) -> GenerationResult:
        sections = list(sections)
        logger.info(
            "Generation run sections=%s requirements=%s reserved=%s",
            len(sections),
            sum(len(section.requirements) for section in sections),
            len(self.reserved),
        )
        self._validate_section_keys(sections)
        for section in sections:
            self._validate_capacity(section)
        rotation_plans = self._build_rotation_plans(sections)

        grids = [Grid.create(section.shape) for section in sections]
        index = FacultyConflictIndex(self.reserved)
        search = BacktrackingSearch(
            sections,
            grids,
            index,
            rotation_plans,
            node_budget=self.node_budget,
            time_limit_seconds=self.time_limit_seconds,
            cancel_event=self.cancel_event,
        )
        stats = search.run()

        timetables = [ScheduledSection(section=section, grid=grid) for section, grid in zip(sections, grids)]
        validate(timetables, reserved=self.reserved)
        return GenerationResult(
            timetables=timetables,
            rotation_plans={
                (sections[section_index].key, subject): plan
                for (section_index, subject), plan in rotation_plans.items()
            },
            stats=stats,
        )


def generate(sections: Sequence[Section], **options) -> GenerationResult:
    return TimetableGenerator(**options).run(sections)
