from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from timegrid.api.deps import get_db
from timegrid.core.config import get_settings
from timegrid.core.exceptions import SchedulerError
from timegrid.schemas.timetable import FacultyScheduleOut, TimetableEntriesUpdate, TimetableOut
from timegrid.services.timetable_store import (
    TimetableFilters,
    delete_timetable,
    faculty_schedule,
    get_timetable,
    list_timetables,
    replace_entries,
    timetable_out,
    timetables_for_faculty,
)

router = APIRouter()


@router.get("/timetables", response_model=list[TimetableOut])
def list_stored_timetables(
    branch: str | None = Query(default=None),
    year: int | None = Query(default=None, ge=1, le=6),
    semester: int | None = Query(default=None, ge=1, le=12),
    academic_year: str | None = Query(default=None, alias="academicYear"),
    db: Session = Depends(get_db),
) -> list[TimetableOut]:
    filters = TimetableFilters(branch=branch, year=year, semester=semester, academic_year=academic_year)
    return [timetable_out(record) for record in list_timetables(db, filters)]


@router.get("/timetables/{timetable_id}", response_model=TimetableOut)
def get_stored_timetable(timetable_id: str, db: Session = Depends(get_db)) -> TimetableOut:
    return timetable_out(get_timetable(db, timetable_id))


@router.put("/timetables/{timetable_id}/entries", response_model=TimetableOut)
def update_timetable_entries(
    timetable_id: str,
    payload: TimetableEntriesUpdate,
    db: Session = Depends(get_db),
) -> TimetableOut:
    try:
        record = replace_entries(db, timetable_id, payload.entries, get_settings())
        db.commit()
    except ValueError as exc:
        db.rollback()
        raise SchedulerError(str(exc)) from exc
    except Exception:
        db.rollback()
        raise
    db.refresh(record)
    return timetable_out(record)


@router.delete("/timetables/{timetable_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_stored_timetable(timetable_id: str, db: Session = Depends(get_db)) -> None:
    delete_timetable(db, timetable_id)
    db.commit()


@router.get("/faculty/{faculty_id}/timetables", response_model=list[TimetableOut])
def faculty_timetables(faculty_id: str, db: Session = Depends(get_db)) -> list[TimetableOut]:
    return [timetable_out(record) for record in timetables_for_faculty(db, faculty_id)]


@router.get("/faculty/{faculty_id}/schedule", response_model=FacultyScheduleOut)
def faculty_weekly_schedule(faculty_id: str, db: Session = Depends(get_db)) -> FacultyScheduleOut:
    return faculty_schedule(db, faculty_id)
