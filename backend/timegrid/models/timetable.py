from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import JSON, DateTime, Enum as SAEnum, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from timegrid.db.base import Base
from timegrid.services.grid import EntryKind


class Timetable(Base):
    __tablename__ = "timetables"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    section_key: Mapped[str] = mapped_column(String(400), unique=True, index=True, nullable=False)
    academic_year: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    branch: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    course_name: Mapped[str] = mapped_column(String(200), nullable=False)
    semester: Mapped[int] = mapped_column(Integer, nullable=False)
    room_number: Mapped[str] = mapped_column(String(50), nullable=False)
    lab_station_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    grid_shape: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    requirements: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())

    entries: Mapped[list["TimetableEntry"]] = relationship(
        back_populates="timetable",
        cascade="all, delete-orphan",
        order_by="TimetableEntry.position",
    )


class TimetableEntry(Base):
    __tablename__ = "timetable_entries"
    __table_args__ = (
        UniqueConstraint("timetable_id", "day", "period", name="uq_timetable_entries_cell"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    timetable_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("timetables.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # Row-major cell index within the weekly grid.
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    day: Mapped[str] = mapped_column(String(20), nullable=False)
    period: Mapped[int] = mapped_column(Integer, nullable=False)
    kind: Mapped[EntryKind] = mapped_column(SAEnum(EntryKind, name="timetable_entry_kind"), nullable=False)
    subject_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    faculty_id: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    batch_label: Mapped[str | None] = mapped_column(String(200), nullable=True)

    timetable: Mapped[Timetable] = relationship(back_populates="entries")
