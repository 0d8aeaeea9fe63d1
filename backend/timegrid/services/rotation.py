from __future__ import annotations

from dataclasses import dataclass

from timegrid.core.exceptions import InsufficientStations

SHARED_BATCH_LABEL = "ALL"


def station_for(batch_index: int, week_offset: int, batch_count: int) -> int:
    """Round-robin station of ``batch_index`` in rotation week ``week_offset``."""
    if batch_count < 1:
        raise ValueError("batch_count must be at least 1")
    return (batch_index + week_offset) % batch_count


def batch_labels(batch_count: int) -> tuple[str, ...]:
    return tuple(f"B{index + 1}" for index in range(batch_count))


def station_labels(station_count: int) -> tuple[str, ...]:
    return tuple(f"S{index + 1}" for index in range(station_count))


@dataclass(frozen=True)
class RotationPlan:
    batch_count: int
    station_count: int
    # assignments[week_offset][batch_index] -> station index
    assignments: tuple[tuple[int, ...], ...]

    @property
    def cycle_length(self) -> int:
        return len(self.assignments)

    @property
    def batch_labels(self) -> tuple[str, ...]:
        return batch_labels(self.batch_count)

    @property
    def station_labels(self) -> tuple[str, ...]:
        return station_labels(self.station_count)

    def stations_for_batch(self, batch_index: int) -> tuple[int, ...]:
        return tuple(week[batch_index] for week in self.assignments)

    def pairs(self) -> list[tuple[int, int, int]]:
        return [
            (batch_index, station, week_offset)
            for week_offset, week in enumerate(self.assignments)
            for batch_index, station in enumerate(week)
        ]

    def label(self, week_offset: int) -> str:
        if self.batch_count == 1:
            return SHARED_BATCH_LABEL
        week = self.assignments[week_offset % self.cycle_length]
        stations = self.station_labels
        return ",".join(f"{batch}:{stations[station]}" for batch, station in zip(self.batch_labels, week))

    def as_dict(self) -> dict:
        return {
            "batch_count": self.batch_count,
            "station_count": self.station_count,
            "weeks": [
                {self.batch_labels[batch]: self.station_labels[station] for batch, station in enumerate(week)}
                for week in self.assignments
            ],
        }


def build_rotation_plan(
    batch_count: int,
    station_count: int,
    *,
    section: str | None = None,
    subject: str | None = None,
) -> RotationPlan:
    """One full rotation cycle: every batch visits every station exactly once.

    Raises ``InsufficientStations`` when there are fewer stations than batches.
    """
    if batch_count < 1:
        raise ValueError("batch_count must be at least 1")
    if station_count < batch_count:
        raise InsufficientStations(batch_count, station_count, section=section, subject=subject)
    assignments = tuple(
        tuple(station_for(batch_index, week_offset, batch_count) for batch_index in range(batch_count))
        for week_offset in range(batch_count)
    )
    return RotationPlan(batch_count=batch_count, station_count=station_count, assignments=assignments)
