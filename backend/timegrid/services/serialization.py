from __future__ import annotations

from timegrid.core.config import Settings
from timegrid.core.exceptions import InvalidSlot, SchedulerError
from timegrid.schemas.generator import (
    EntryPayload,
    GenerateTimetableResponse,
    GenerationStatsOut,
    RotationPlanOut,
    SectionTimetablePayload,
)
from timegrid.schemas.section import GridShapePayload, RequirementPayload, SectionPayload
from timegrid.services.generator import GenerationResult
from timegrid.services.grid import Entry, EntryKind, Grid, GridShape, grid_matrix
from timegrid.services.sections import Requirement, ScheduledSection, Section


def default_shape_payload(settings: Settings) -> GridShapePayload:
    return GridShapePayload(
        days=settings.default_days,
        periods=settings.default_periods_per_day,
        break_periods=settings.default_break_periods,
        lunch_period=settings.default_lunch_period,
        lab_contiguous_periods=settings.default_lab_contiguous_periods,
    )


def shape_from_payload(payload: GridShapePayload) -> GridShape:
    return GridShape(
        days=tuple(payload.days),
        periods=payload.periods,
        break_periods=frozenset(payload.break_periods),
        lunch_period=payload.lunch_period,
        lab_contiguous_periods=payload.lab_contiguous_periods,
    )


def shape_to_payload(shape: GridShape) -> GridShapePayload:
    return GridShapePayload(
        days=list(shape.days),
        periods=shape.periods,
        break_periods=sorted(shape.break_periods),
        lunch_period=shape.lunch_period,
        lab_contiguous_periods=shape.lab_contiguous_periods,
    )


def requirement_from_payload(payload: RequirementPayload) -> Requirement:
    return Requirement(
        subject_name=payload.subject_name,
        faculty_id=payload.faculty_id,
        weekly_hours=payload.weekly_hours,
        is_lab=payload.is_lab,
        batch_count=payload.batch_count,
    )


def requirement_to_payload(requirement: Requirement) -> RequirementPayload:
    return RequirementPayload(
        subject_name=requirement.subject_name,
        faculty_id=requirement.faculty_id,
        weekly_hours=requirement.weekly_hours,
        is_lab=requirement.is_lab,
        batch_count=requirement.batch_count,
    )


def section_from_payload(payload: SectionPayload, settings: Settings) -> Section:
    shape_payload = payload.grid or default_shape_payload(settings)
    return Section(
        academic_year=payload.academic_year,
        year=payload.year,
        branch=payload.branch,
        course_name=payload.course_name,
        semester=payload.semester,
        room_number=payload.room_number,
        shape=shape_from_payload(shape_payload),
        requirements=tuple(requirement_from_payload(item) for item in payload.requirements),
        lab_station_count=payload.lab_station_count,
    )


def section_to_payload(section: Section) -> SectionPayload:
    return SectionPayload(
        academic_year=section.academic_year,
        year=section.year,
        branch=section.branch,
        course_name=section.course_name,
        semester=section.semester,
        room_number=section.room_number,
        lab_station_count=section.lab_station_count,
        grid=shape_to_payload(section.shape),
        requirements=[requirement_to_payload(item) for item in section.requirements],
    )


def entry_to_payload(day: str, period: int, entry: Entry) -> EntryPayload:
    return EntryPayload(
        day=day,
        period=period,
        kind=entry.kind.value,
        subject_name=entry.subject_name,
        faculty_id=entry.faculty_id,
        batch_label=entry.batch_label,
    )


def entry_from_payload(payload: EntryPayload) -> Entry:
    return Entry(
        EntryKind(payload.kind),
        subject_name=payload.subject_name,
        faculty_id=payload.faculty_id,
        batch_label=payload.batch_label,
    )


def grid_from_entries(shape: GridShape, entries: list[EntryPayload]) -> Grid:
    """Rebuild a grid from serialized cells.

    Empty cells may be omitted and each cell may appear at most once. Break and
    lunch cells must sit on the shape's fixed periods; class and lab cells go
    through ``Grid.place`` so every cell rule still applies.
    """
    grid = Grid.create(shape)
    seen: set[tuple[str, int]] = set()
    for item in entries:
        if (item.day, item.period) in seen:
            raise SchedulerError(
                f"Duplicate entry for {item.day} P{item.period}",
                details={"day": item.day, "period": item.period},
            )
        seen.add((item.day, item.period))
        entry = entry_from_payload(item)
        if entry.kind == EntryKind.empty:
            continue
        if not entry.is_teaching:
            if grid.entry(item.day, item.period) != entry:
                raise InvalidSlot(item.day, item.period, reason=f"{entry.kind.value} is not fixed at this period")
            continue
        grid.place(item.day, item.period, entry)
    return grid


def grid_to_entries(grid: Grid) -> list[EntryPayload]:
    return [entry_to_payload(day, period, entry) for day, period, entry in grid.cells()]


def timetable_to_payload(item: ScheduledSection) -> SectionTimetablePayload:
    return SectionTimetablePayload(
        section=section_to_payload(item.section),
        entries=grid_to_entries(item.grid),
        matrix=grid_matrix(item.grid),
    )


def scheduled_from_payload(payload: SectionTimetablePayload, settings: Settings) -> ScheduledSection:
    section = section_from_payload(payload.section, settings)
    return ScheduledSection(section=section, grid=grid_from_entries(section.shape, payload.entries))


def generation_response(result: GenerationResult, committed_ids: list[str] | None = None) -> GenerateTimetableResponse:
    rotation_plans = []
    for (section_key, subject), plan in result.rotation_plans.items():
        summary = plan.as_dict()
        rotation_plans.append(
            RotationPlanOut(
                section=section_key,
                subject=subject,
                batch_count=summary["batch_count"],
                station_count=summary["station_count"],
                weeks=summary["weeks"],
            )
        )
    return GenerateTimetableResponse(
        timetables=[timetable_to_payload(item) for item in result.timetables],
        rotation_plans=rotation_plans,
        stats=GenerationStatsOut(
            nodes_visited=result.stats.nodes_visited,
            backtracks=result.stats.backtracks,
            max_depth=result.stats.max_depth,
            runtime_ms=result.stats.runtime_ms,
        ),
        committed_ids=committed_ids or [],
    )
