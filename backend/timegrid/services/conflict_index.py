from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
import logging

from timegrid.core.exceptions import FacultyConflict, NoSuchReservation

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Reservation:
    day: str
    period: int
    faculty_id: str
    section: str


class FacultyConflictIndex:
    """Which section holds each faculty member at each (day, period).

    One instance is scoped to one generation run. Callers pair every
    ``reserve`` with a grid placement and roll both back together.
    """

    def __init__(self, reservations: Iterable[Reservation] = ()) -> None:
        self._holders: dict[tuple[str, int, str], str] = {}
        self.seed(reservations)

    def seed(self, reservations: Iterable[Reservation]) -> list[Reservation]:
        """Hold pre-existing reservations. On a clash the first holder keeps the slot.

        Returns the reservations that were not held.
        """
        skipped: list[Reservation] = []
        for item in reservations:
            key = (item.day, item.period, item.faculty_id)
            if key in self._holders:
                skipped.append(item)
                continue
            self._holders[key] = item.section
        if skipped:
            logger.warning(
                "Seed reservations already clash count=%s first=%s/%s/P%s",
                len(skipped),
                skipped[0].faculty_id,
                skipped[0].day,
                skipped[0].period,
            )
        return skipped

    def reserve(self, day: str, period: int, faculty_id: str, section: str) -> None:
        key = (day, period, faculty_id)
        existing = self._holders.get(key)
        if existing is not None:
            raise FacultyConflict(day, period, faculty_id, existing)
        self._holders[key] = section

    def release(self, day: str, period: int, faculty_id: str) -> str:
        key = (day, period, faculty_id)
        if key not in self._holders:
            raise NoSuchReservation(day, period, faculty_id)
        return self._holders.pop(key)

    def holder(self, day: str, period: int, faculty_id: str) -> str | None:
        return self._holders.get((day, period, faculty_id))

    def is_free(self, day: str, period: int, faculty_id: str) -> bool:
        return (day, period, faculty_id) not in self._holders

    def reservations(self) -> list[Reservation]:
        return [
            Reservation(day=day, period=period, faculty_id=faculty_id, section=section)
            for (day, period, faculty_id), section in sorted(self._holders.items())
        ]

    def __contains__(self, key: tuple[str, int, str]) -> bool:
        return key in self._holders

    def __len__(self) -> int:
        return len(self._holders)
