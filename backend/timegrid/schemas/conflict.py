from pydantic import BaseModel, Field
from typing import List

from timegrid.schemas.generator import SectionTimetablePayload


class FacultyCollisionOut(BaseModel):
    day: str
    period: int
    faculty_id: str
    section_a: str
    section_b: str


class RequirementShortfallOut(BaseModel):
    section: str
    subject: str
    faculty_id: str
    expected: int
    placed: int
    hours_short: int


class ValidationReportOut(BaseModel):
    ok: bool
    collisions: List[FacultyCollisionOut]
    shortfalls: List[RequirementShortfallOut]


class ValidateTimetableRequest(BaseModel):
    timetables: List[SectionTimetablePayload] = Field(min_length=1, max_length=40)
    include_committed: bool = False
