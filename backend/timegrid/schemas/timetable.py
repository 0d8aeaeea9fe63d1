from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from timegrid.schemas.generator import EntryPayload
from timegrid.schemas.section import GridShapePayload, RequirementPayload


class TimetableOut(BaseModel):
    id: str
    section_key: str = Field(alias="sectionKey")
    academic_year: str = Field(alias="academicYear")
    year: int
    branch: str
    course_name: str = Field(alias="courseName")
    semester: int
    room_number: str = Field(alias="roomNumber")
    lab_station_count: int | None = Field(default=None, alias="labStationCount")
    grid: GridShapePayload
    requirements: list[RequirementPayload] = Field(default_factory=list)
    entries: list[EntryPayload] = Field(default_factory=list)
    created_at: datetime | None = Field(default=None, alias="createdAt")
    updated_at: datetime | None = Field(default=None, alias="updatedAt")

    model_config = {
        "populate_by_name": True,
        "from_attributes": True,
    }


class TimetableEntriesUpdate(BaseModel):
    entries: list[EntryPayload] = Field(default_factory=list, max_length=7 * 16)


class FacultyScheduleEntryOut(BaseModel):
    timetable_id: str = Field(alias="timetableId")
    section_key: str = Field(alias="sectionKey")
    branch: str
    year: int
    semester: int
    room_number: str = Field(alias="roomNumber")
    day: str
    period: int
    kind: str
    subject_name: str = Field(alias="subjectName")
    batch_label: str | None = Field(default=None, alias="batchLabel")

    model_config = {
        "populate_by_name": True,
        "from_attributes": True,
    }


class FacultyScheduleOut(BaseModel):
    faculty_id: str = Field(alias="facultyId")
    total_periods: int = Field(alias="totalPeriods")
    entries: list[FacultyScheduleEntryOut] = Field(default_factory=list)

    model_config = {
        "populate_by_name": True,
    }
