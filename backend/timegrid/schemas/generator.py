from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from timegrid.schemas.section import DAY_VALUES, SectionPayload, normalize_day

EntryKindValue = Literal["empty", "break", "lunch", "class", "lab"]


class EntryPayload(BaseModel):
    day: str
    period: int = Field(ge=1, le=16)
    kind: EntryKindValue
    subject_name: str | None = Field(default=None, alias="subjectName", max_length=200)
    faculty_id: str | None = Field(default=None, alias="facultyId", max_length=100)
    batch_label: str | None = Field(default=None, alias="batchLabel", max_length=200)

    model_config = {
        "populate_by_name": True,
        "from_attributes": True,
    }

    @field_validator("day")
    @classmethod
    def validate_day(cls, value: str) -> str:
        day = normalize_day(value)
        if day not in DAY_VALUES:
            raise ValueError("Invalid day value")
        return day

    @model_validator(mode="after")
    def validate_variant(self) -> "EntryPayload":
        if self.kind in {"class", "lab"}:
            if not self.subject_name or not self.faculty_id:
                raise ValueError(f"{self.kind} entries require subjectName and facultyId")
            if self.kind == "lab" and not self.batch_label:
                raise ValueError("lab entries require batchLabel")
            if self.kind == "class" and self.batch_label is not None:
                raise ValueError("class entries cannot carry batchLabel")
        elif any(value is not None for value in (self.subject_name, self.faculty_id, self.batch_label)):
            raise ValueError(f"{self.kind} entries cannot carry subjectName, facultyId or batchLabel")
        return self


class SectionTimetablePayload(BaseModel):
    section: SectionPayload
    entries: list[EntryPayload] = Field(default_factory=list, max_length=7 * 16)
    matrix: dict[str, dict[str, str]] | None = None


class GenerationSettingsBase(BaseModel):
    node_budget: int | None = Field(default=None, ge=1, le=50_000_000)
    time_limit_seconds: float | None = Field(default=None, gt=0.0, le=600.0)


class GenerateTimetableRequest(BaseModel):
    sections: list[SectionPayload] = Field(min_length=1, max_length=40)
    persist: bool = False
    respect_committed: bool = False
    settings_override: GenerationSettingsBase | None = None


class RotationPlanOut(BaseModel):
    section: str
    subject: str
    batch_count: int
    station_count: int
    weeks: list[dict[str, str]]


class GenerationStatsOut(BaseModel):
    nodes_visited: int
    backtracks: int
    max_depth: int
    runtime_ms: int


class GenerateTimetableResponse(BaseModel):
    timetables: list[SectionTimetablePayload]
    rotation_plans: list[RotationPlanOut] = Field(default_factory=list)
    stats: GenerationStatsOut
    committed_ids: list[str] = Field(default_factory=list)
