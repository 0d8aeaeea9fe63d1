from __future__ import annotations

from pydantic import BaseModel, Field, field_validator, model_validator

DAY_VALUES = {
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
}

DAY_SHORT_MAP = {
    "Mon": "Monday",
    "Tue": "Tuesday",
    "Wed": "Wednesday",
    "Thu": "Thursday",
    "Fri": "Friday",
    "Sat": "Saturday",
    "Sun": "Sunday",
}


def normalize_day(value: str) -> str:
    day = value.strip()
    return DAY_SHORT_MAP.get(day, day)


class GridShapePayload(BaseModel):
    days: list[str] = Field(min_length=1, max_length=7)
    periods: int = Field(ge=1, le=16)
    break_periods: list[int] = Field(default_factory=list, alias="breakPeriods", max_length=8)
    lunch_period: int | None = Field(default=None, alias="lunchPeriod")
    lab_contiguous_periods: int = Field(default=1, alias="labContiguousPeriods", ge=1, le=8)

    model_config = {
        "populate_by_name": True,
        "from_attributes": True,
    }

    @field_validator("days")
    @classmethod
    def validate_days(cls, value: list[str]) -> list[str]:
        cleaned = [normalize_day(day) for day in value if day.strip()]
        invalid = [day for day in cleaned if day not in DAY_VALUES]
        if invalid:
            raise ValueError(f"Invalid day(s): {', '.join(invalid)}")
        if len(set(cleaned)) != len(cleaned):
            raise ValueError("Grid days must be unique")
        return cleaned

    @field_validator("break_periods")
    @classmethod
    def normalize_break_periods(cls, value: list[int]) -> list[int]:
        return sorted(set(value))

    @model_validator(mode="after")
    def validate_fixed_periods(self) -> "GridShapePayload":
        out_of_range = [p for p in self.break_periods if not 1 <= p <= self.periods]
        if out_of_range:
            raise ValueError(f"Break periods must be within 1..{self.periods}")
        if self.lunch_period is not None:
            if not 1 <= self.lunch_period <= self.periods:
                raise ValueError(f"Lunch period must be within 1..{self.periods}")
            if self.lunch_period in self.break_periods:
                raise ValueError("Lunch period cannot also be a break period")
        if self.lab_contiguous_periods > self.periods:
            raise ValueError("Lab blocks cannot be longer than the day")
        return self


class RequirementPayload(BaseModel):
    subject_name: str = Field(alias="subjectName", min_length=1, max_length=200)
    faculty_id: str = Field(alias="facultyId", min_length=1, max_length=100)
    weekly_hours: int = Field(alias="weeklyHours", ge=1, le=60)
    is_lab: bool = Field(default=False, alias="isLab")
    batch_count: int | None = Field(default=None, alias="batchCount", ge=1, le=12)

    model_config = {
        "populate_by_name": True,
        "from_attributes": True,
    }

    @field_validator("subject_name", "faculty_id")
    @classmethod
    def strip_text(cls, value: str) -> str:
        trimmed = value.strip()
        if not trimmed:
            raise ValueError("Value cannot be blank")
        return trimmed

    @model_validator(mode="after")
    def validate_batches(self) -> "RequirementPayload":
        if self.batch_count is not None and not self.is_lab:
            raise ValueError("batchCount is only allowed for lab requirements")
        return self


class SectionPayload(BaseModel):
    academic_year: str = Field(alias="academicYear", min_length=1, max_length=20)
    year: int = Field(ge=1, le=6)
    branch: str = Field(min_length=1, max_length=100)
    course_name: str = Field(alias="courseName", min_length=1, max_length=200)
    semester: int = Field(ge=1, le=12)
    room_number: str = Field(alias="roomNumber", min_length=1, max_length=50)
    lab_station_count: int | None = Field(default=None, alias="labStationCount", ge=1, le=50)
    grid: GridShapePayload | None = None
    requirements: list[RequirementPayload] = Field(default_factory=list, max_length=40)

    model_config = {
        "populate_by_name": True,
        "from_attributes": True,
    }

    @model_validator(mode="after")
    def validate_unique_subjects(self) -> "SectionPayload":
        seen: set[str] = set()
        duplicates: set[str] = set()
        for item in self.requirements:
            if item.subject_name in seen:
                duplicates.add(item.subject_name)
            else:
                seen.add(item.subject_name)
        if duplicates:
            raise ValueError(f"Duplicate subject(s): {', '.join(sorted(duplicates))}")
        return self
