from contextlib import nullcontext
import logging
from threading import Lock
from time import perf_counter

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from timegrid.api.deps import get_db
from timegrid.core.config import Settings, get_settings
from timegrid.core.exceptions import SchedulerError
from timegrid.schemas.conflict import (
    FacultyCollisionOut,
    RequirementShortfallOut,
    ValidateTimetableRequest,
    ValidationReportOut,
)
from timegrid.schemas.generator import GenerateTimetableRequest, GenerateTimetableResponse
from timegrid.services.generator import TimetableGenerator
from timegrid.services.serialization import generation_response, scheduled_from_payload, section_from_payload
from timegrid.services.timetable_store import commit_generation, committed_reservations
from timegrid.services.validator import detect_conflicts

router = APIRouter()
logger = logging.getLogger(__name__)

# Runs that read or write stored timetables must not interleave.
_store_lock = Lock()


def _store_guard(payload: GenerateTimetableRequest, settings: Settings):
    if settings.serialize_generation_runs and (payload.persist or payload.respect_committed):
        return _store_lock
    return nullcontext()


@router.post("/generate", response_model=GenerateTimetableResponse)
def generate_timetable(
    payload: GenerateTimetableRequest,
    db: Session = Depends(get_db),
) -> GenerateTimetableResponse:
    settings = get_settings()
    started = perf_counter()
    logger.info(
        "TIMETABLE GENERATION START | sections=%s | persist=%s | respect_committed=%s",
        len(payload.sections),
        payload.persist,
        payload.respect_committed,
    )
    try:
        sections = [section_from_payload(item, settings) for item in payload.sections]
    except ValueError as exc:
        raise SchedulerError(str(exc)) from exc

    override = payload.settings_override
    node_budget = settings.search_node_budget
    time_limit_seconds = settings.search_time_limit_seconds
    if override is not None:
        node_budget = override.node_budget or node_budget
        time_limit_seconds = override.time_limit_seconds or time_limit_seconds

    with _store_guard(payload, settings):
        reserved = []
        # Saved output must not double-book anyone already in the store.
        if payload.respect_committed or payload.persist:
            reserved = committed_reservations(db, exclude_keys=[section.key for section in sections])
        generator = TimetableGenerator(
            node_budget=node_budget,
            time_limit_seconds=time_limit_seconds,
            default_lab_station_count=settings.default_lab_station_count,
            reserved=reserved,
        )
        result = generator.run(sections)

        committed_ids: list[str] = []
        if payload.persist:
            try:
                records = commit_generation(db, result)
                db.commit()
            except Exception:
                db.rollback()
                logger.exception("TIMETABLE GENERATION PERSIST FAILED | sections=%s", len(sections))
                raise
            committed_ids = [record.id for record in records]

    logger.info(
        "TIMETABLE GENERATION END | sections=%s | nodes=%s | backtracks=%s | persisted=%s | duration_ms=%.2f",
        len(sections),
        result.stats.nodes_visited,
        result.stats.backtracks,
        len(committed_ids),
        (perf_counter() - started) * 1000,
    )
    return generation_response(result, committed_ids)


@router.post("/validate", response_model=ValidationReportOut)
def validate_timetables(
    payload: ValidateTimetableRequest,
    db: Session = Depends(get_db),
) -> ValidationReportOut:
    settings = get_settings()
    try:
        timetables = [scheduled_from_payload(item, settings) for item in payload.timetables]
    except ValueError as exc:
        raise SchedulerError(str(exc)) from exc

    reserved = []
    if payload.include_committed:
        reserved = committed_reservations(db, exclude_keys=[item.section.key for item in timetables])
    report = detect_conflicts(timetables, reserved=reserved)
    logger.info(
        "Timetable validation | sections=%s | collisions=%s | shortfalls=%s",
        len(timetables),
        len(report.collisions),
        len(report.shortfalls),
    )
    return ValidationReportOut(
        ok=report.ok,
        collisions=[FacultyCollisionOut(**item.as_dict()) for item in report.collisions],
        shortfalls=[RequirementShortfallOut(**item.as_dict()) for item in report.shortfalls],
    )
