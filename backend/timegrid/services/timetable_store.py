from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from timegrid.core.config import Settings
from timegrid.core.exceptions import ResourceNotFoundError
from timegrid.models.timetable import Timetable, TimetableEntry
from timegrid.schemas.generator import EntryPayload
from timegrid.schemas.section import GridShapePayload, RequirementPayload, SectionPayload
from timegrid.schemas.timetable import FacultyScheduleEntryOut, FacultyScheduleOut, TimetableOut
from timegrid.services.conflict_index import Reservation
from timegrid.services.generator import GenerationResult
from timegrid.services.sections import ScheduledSection
from timegrid.services.serialization import (
    grid_from_entries,
    requirement_to_payload,
    section_from_payload,
    shape_to_payload,
)
from timegrid.services.validator import validate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TimetableFilters:
    branch: str | None = None
    year: int | None = None
    semester: int | None = None
    academic_year: str | None = None


def _entry_rows(item: ScheduledSection) -> list[TimetableEntry]:
    rows: list[TimetableEntry] = []
    for position, (day, period, entry) in enumerate(item.grid.cells()):
        rows.append(
            TimetableEntry(
                position=position,
                day=day,
                period=period,
                kind=entry.kind,
                subject_name=entry.subject_name,
                faculty_id=entry.faculty_id,
                batch_label=entry.batch_label,
            )
        )
    return rows


def _load_by_key(db: Session, section_key: str) -> Timetable | None:
    return db.execute(select(Timetable).where(Timetable.section_key == section_key)).scalar_one_or_none()


def save_timetable(db: Session, item: ScheduledSection) -> Timetable:
    """Insert or replace the stored timetable for ``item``'s section key. Caller commits."""
    section = item.section
    record = _load_by_key(db, section.key)
    if record is None:
        record = Timetable(section_key=section.key)
        db.add(record)
    else:
        record.entries.clear()
        db.flush()
    record.academic_year = section.academic_year
    record.year = section.year
    record.branch = section.branch
    record.course_name = section.course_name
    record.semester = section.semester
    record.room_number = section.room_number
    record.lab_station_count = section.lab_station_count
    record.grid_shape = shape_to_payload(section.shape).model_dump(by_alias=True)
    record.requirements = [requirement_to_payload(req).model_dump(by_alias=True) for req in section.requirements]
    record.entries.extend(_entry_rows(item))
    return record


def commit_generation(db: Session, result: GenerationResult) -> list[Timetable]:
    records = [save_timetable(db, item) for item in result.timetables]
    db.flush()
    logger.info("Stored generated timetables count=%s ids=%s", len(records), [record.id for record in records])
    return records


def list_timetables(db: Session, filters: TimetableFilters | None = None) -> list[Timetable]:
    filters = filters or TimetableFilters()
    query = select(Timetable).options(selectinload(Timetable.entries))
    if filters.branch:
        query = query.where(Timetable.branch == filters.branch)
    if filters.year is not None:
        query = query.where(Timetable.year == filters.year)
    if filters.semester is not None:
        query = query.where(Timetable.semester == filters.semester)
    if filters.academic_year:
        query = query.where(Timetable.academic_year == filters.academic_year)
    query = query.order_by(Timetable.academic_year, Timetable.branch, Timetable.year, Timetable.semester)
    return list(db.execute(query).scalars().all())


def get_timetable(db: Session, timetable_id: str) -> Timetable:
    record = db.get(Timetable, timetable_id)
    if record is None:
        raise ResourceNotFoundError("Timetable", timetable_id)
    return record


def delete_timetable(db: Session, timetable_id: str) -> None:
    record = get_timetable(db, timetable_id)
    db.delete(record)
    db.flush()
    logger.info("Deleted timetable id=%s section=%s", timetable_id, record.section_key)


def timetables_for_faculty(db: Session, faculty_id: str) -> list[Timetable]:
    timetable_ids = select(TimetableEntry.timetable_id).where(TimetableEntry.faculty_id == faculty_id).distinct()
    query = (
        select(Timetable)
        .where(Timetable.id.in_(timetable_ids))
        .options(selectinload(Timetable.entries))
        .order_by(Timetable.section_key)
    )
    return list(db.execute(query).scalars().all())


def faculty_schedule(db: Session, faculty_id: str) -> FacultyScheduleOut:
    rows = db.execute(
        select(TimetableEntry, Timetable)
        .join(Timetable, Timetable.id == TimetableEntry.timetable_id)
        .where(TimetableEntry.faculty_id == faculty_id)
        .order_by(Timetable.section_key, TimetableEntry.position)
    ).all()
    entries = [
        FacultyScheduleEntryOut(
            timetable_id=record.id,
            section_key=record.section_key,
            branch=record.branch,
            year=record.year,
            semester=record.semester,
            room_number=record.room_number,
            day=row.day,
            period=row.period,
            kind=row.kind.value,
            subject_name=row.subject_name,
            batch_label=row.batch_label,
        )
        for row, record in rows
    ]
    return FacultyScheduleOut(faculty_id=faculty_id, total_periods=len(entries), entries=entries)


def committed_reservations(db: Session, exclude_keys: Iterable[str] = ()) -> list[Reservation]:
    """Faculty occupancy of every stored timetable except the excluded section keys."""
    excluded = set(exclude_keys)
    rows = db.execute(
        select(TimetableEntry.day, TimetableEntry.period, TimetableEntry.faculty_id, Timetable.section_key)
        .join(Timetable, Timetable.id == TimetableEntry.timetable_id)
        .where(TimetableEntry.faculty_id.is_not(None))
        .order_by(Timetable.section_key, TimetableEntry.position)
    ).all()
    return [
        Reservation(day=day, period=period, faculty_id=faculty_id, section=section_key)
        for day, period, faculty_id, section_key in rows
        if section_key not in excluded
    ]


def _entry_payloads(record: Timetable) -> list[EntryPayload]:
    return [
        EntryPayload(
            day=row.day,
            period=row.period,
            kind=row.kind.value,
            subject_name=row.subject_name,
            faculty_id=row.faculty_id,
            batch_label=row.batch_label,
        )
        for row in record.entries
    ]


def _section_payload(record: Timetable) -> SectionPayload:
    return SectionPayload(
        academic_year=record.academic_year,
        year=record.year,
        branch=record.branch,
        course_name=record.course_name,
        semester=record.semester,
        room_number=record.room_number,
        lab_station_count=record.lab_station_count,
        grid=GridShapePayload.model_validate(record.grid_shape),
        requirements=[RequirementPayload.model_validate(item) for item in record.requirements],
    )


def replace_entries(db: Session, timetable_id: str, entries: list[EntryPayload], settings: Settings) -> Timetable:
    """Apply a manual edit to a stored timetable.

    The edited grid must still meet every requirement and must not collide
    with any other stored timetable; otherwise nothing is written.
    """
    record = get_timetable(db, timetable_id)
    section = section_from_payload(_section_payload(record), settings)
    edited = ScheduledSection(section=section, grid=grid_from_entries(section.shape, entries))
    validate([edited], reserved=committed_reservations(db, exclude_keys=[record.section_key]))
    save_timetable(db, edited)
    db.flush()
    logger.info("Replaced timetable entries id=%s section=%s", record.id, record.section_key)
    return record


def timetable_out(record: Timetable) -> TimetableOut:
    return TimetableOut(
        id=record.id,
        section_key=record.section_key,
        academic_year=record.academic_year,
        year=record.year,
        branch=record.branch,
        course_name=record.course_name,
        semester=record.semester,
        room_number=record.room_number,
        lab_station_count=record.lab_station_count,
        grid=GridShapePayload.model_validate(record.grid_shape),
        requirements=[RequirementPayload.model_validate(item) for item in record.requirements],
        entries=_entry_payloads(record),
        created_at=record.created_at,
        updated_at=record.updated_at,
    )

