from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from enum import Enum

from timegrid.core.exceptions import CellNotAssignable, CellOccupied, InvalidSlot


class EntryKind(str, Enum):
    empty = "empty"
    break_ = "break"
    lunch = "lunch"
    class_ = "class"
    lab = "lab"


FIXED_KINDS = frozenset({EntryKind.break_, EntryKind.lunch})
TEACHING_KINDS = frozenset({EntryKind.class_, EntryKind.lab})


@dataclass(frozen=True)
class Entry:
    """Content of one grid cell.

    Break, lunch and empty cells never name a subject or faculty; class and lab
    cells always do, and only lab cells carry a batch label.
    """

    kind: EntryKind
    subject_name: str | None = None
    faculty_id: str | None = None
    batch_label: str | None = None

    def __post_init__(self) -> None:
        if self.kind in TEACHING_KINDS:
            if not self.subject_name or not self.faculty_id:
                raise ValueError(f"{self.kind.value} entries require a subject and a faculty id")
            if self.kind == EntryKind.lab and not self.batch_label:
                raise ValueError("lab entries require a batch label")
            if self.kind == EntryKind.class_ and self.batch_label is not None:
                raise ValueError("class entries cannot carry a batch label")
        elif any(value is not None for value in (self.subject_name, self.faculty_id, self.batch_label)):
            raise ValueError(f"{self.kind.value} entries cannot carry subject, faculty or batch")

    @classmethod
    def lecture(cls, subject_name: str, faculty_id: str) -> "Entry":
        return cls(EntryKind.class_, subject_name=subject_name, faculty_id=faculty_id)

    @classmethod
    def lab_session(cls, subject_name: str, faculty_id: str, batch_label: str) -> "Entry":
        return cls(EntryKind.lab, subject_name=subject_name, faculty_id=faculty_id, batch_label=batch_label)

    @property
    def is_teaching(self) -> bool:
        return self.kind in TEACHING_KINDS

    def label(self) -> str:
        if self.kind == EntryKind.class_:
            return self.subject_name
        if self.kind == EntryKind.lab:
            return f"{self.subject_name} (Lab {self.batch_label})"
        if self.kind in FIXED_KINDS:
            return self.kind.value.upper()
        return ""


EMPTY = Entry(EntryKind.empty)
BREAK = Entry(EntryKind.break_)
LUNCH = Entry(EntryKind.lunch)


@dataclass(frozen=True)
class GridShape:
    days: tuple[str, ...]
    periods: int
    break_periods: frozenset[int] = field(default_factory=frozenset)
    lunch_period: int | None = None
    lab_contiguous_periods: int = 1

    def __post_init__(self) -> None:
        if not self.days:
            raise ValueError("A grid needs at least one day")
        if len(set(self.days)) != len(self.days):
            raise ValueError("Grid days must be unique")
        if self.periods < 1:
            raise ValueError("A grid needs at least one period per day")
        object.__setattr__(self, "days", tuple(self.days))
        object.__setattr__(self, "break_periods", frozenset(self.break_periods))
        out_of_range = sorted(p for p in self.break_periods if not 1 <= p <= self.periods)
        if out_of_range:
            raise ValueError(f"Break periods outside 1..{self.periods}: {out_of_range}")
        if self.lunch_period is not None:
            if not 1 <= self.lunch_period <= self.periods:
                raise ValueError(f"Lunch period must be within 1..{self.periods}")
            if self.lunch_period in self.break_periods:
                raise ValueError("Lunch period cannot also be a break period")
        if self.lab_contiguous_periods < 1:
            raise ValueError("Lab blocks must span at least one period")

    def fixed_entry(self, period: int) -> Entry | None:
        if period == self.lunch_period:
            return LUNCH
        if period in self.break_periods:
            return BREAK
        return None

    def contains(self, day: str, period: int) -> bool:
        return day in self.days and 1 <= period <= self.periods

    def slots(self) -> Iterator[tuple[str, int]]:
        for day in self.days:
            for period in range(1, self.periods + 1):
                yield day, period

    def slot_order(self, day: str, period: int) -> int:
        return self.days.index(day) * self.periods + (period - 1)

    def teaching_periods(self) -> list[int]:
        return [p for p in range(1, self.periods + 1) if self.fixed_entry(p) is None]

    def max_disjoint_blocks(self, length: int) -> int:
        """Most non-overlapping runs of ``length`` teaching periods the week can hold."""
        per_day = 0
        run = 0
        for period in range(1, self.periods + 1):
            if self.fixed_entry(period) is None:
                run += 1
                continue
            per_day += run // length
            run = 0
        per_day += run // length
        return per_day * len(self.days)


class Grid:
    """Weekly day x period matrix of entries for one section."""

    def __init__(self, shape: GridShape) -> None:
        self.shape = shape
        self._cells: dict[tuple[str, int], Entry] = {}
        for day, period in shape.slots():
            self._cells[(day, period)] = shape.fixed_entry(period) or EMPTY

    @classmethod
    def create(cls, shape: GridShape) -> "Grid":
        return cls(shape)

    def _require_slot(self, day: str, period: int) -> None:
        if not self.shape.contains(day, period):
            raise InvalidSlot(day, period, reason="outside the grid")

    def entry(self, day: str, period: int) -> Entry:
        self._require_slot(day, period)
        return self._cells[(day, period)]

    def is_open(self, day: str, period: int) -> bool:
        entry = self._cells.get((day, period))
        return entry is not None and entry.kind == EntryKind.empty

    def place(self, day: str, period: int, entry: Entry) -> None:
        self._require_slot(day, period)
        fixed = self.shape.fixed_entry(period)
        if fixed is not None:
            raise InvalidSlot(day, period, reason=f"{fixed.kind.value} period")
        if not entry.is_teaching:
            raise ValueError("Only class or lab entries can be placed")
        current = self._cells[(day, period)]
        if current.kind != EntryKind.empty:
            raise CellOccupied(day, period, occupant=current.subject_name)
        self._cells[(day, period)] = entry

    def remove(self, day: str, period: int) -> Entry:
        self._require_slot(day, period)
        current = self._cells[(day, period)]
        if not current.is_teaching:
            raise CellNotAssignable(day, period, current.kind.value)
        self._cells[(day, period)] = EMPTY
        return current

    def block_fits(self, day: str, period: int, length: int) -> bool:
        if not self.shape.contains(day, period) or period + length - 1 > self.shape.periods:
            return False
        return all(self.is_open(day, period + offset) for offset in range(length))

    def slots(self) -> Iterator[tuple[str, int]]:
        return self.shape.slots()

    def open_slots(self) -> list[tuple[str, int]]:
        return [slot for slot in self.shape.slots() if self._cells[slot].kind == EntryKind.empty]

    def assignable_count(self) -> int:
        return len(self.shape.teaching_periods()) * len(self.shape.days)

    def cells(self) -> Iterator[tuple[str, int, Entry]]:
        for day, period in self.shape.slots():
            yield day, period, self._cells[(day, period)]

    def teaching_cells(self) -> Iterator[tuple[str, int, Entry]]:
        return ((day, period, entry) for day, period, entry in self.cells() if entry.is_teaching)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Grid):
            return NotImplemented
        return self.shape == other.shape and self._cells == other._cells

    def __repr__(self) -> str:
        used = sum(1 for _ in self.teaching_cells())
        return f"Grid(days={len(self.shape.days)}, periods={self.shape.periods}, assigned={used})"


def create(
    days: Iterable[str],
    periods: int,
    break_periods: Iterable[int] = (),
    lunch_period: int | None = None,
    *,
    lab_contiguous_periods: int = 1,
) -> Grid:
    shape = GridShape(
        days=tuple(days),
        periods=periods,
        break_periods=frozenset(break_periods),
        lunch_period=lunch_period,
        lab_contiguous_periods=lab_contiguous_periods,
    )
    return Grid(shape)


def grid_matrix(grid: Grid) -> dict[str, dict[str, str]]:
    matrix: dict[str, dict[str, str]] = {}
    for day, period, entry in grid.cells():
        matrix.setdefault(day, {})[str(period)] = entry.label()
    return matrix
