import pytest

from timegrid.core.exceptions import InsufficientStations
from timegrid.services.rotation import SHARED_BATCH_LABEL, build_rotation_plan, station_for


def test_station_for_is_round_robin():
    assert [station_for(i, 0, 3) for i in range(3)] == [0, 1, 2]
    assert [station_for(i, 1, 3) for i in range(3)] == [1, 2, 0]
    assert [station_for(i, 2, 3) for i in range(3)] == [2, 0, 1]


def test_every_batch_visits_every_station_once_per_cycle():
    plan = build_rotation_plan(3, 4)
    assert plan.cycle_length == 3
    for batch_index in range(3):
        assert sorted(plan.stations_for_batch(batch_index)) == [0, 1, 2]
    for week in plan.assignments:
        assert len(set(week)) == 3


def test_labels_and_summary():
    plan = build_rotation_plan(2, 2)
    assert plan.label(0) == "B1:S1,B2:S2"
    assert plan.label(1) == "B1:S2,B2:S1"
    assert plan.label(2) == plan.label(0)
    assert plan.as_dict() == {
        "batch_count": 2,
        "station_count": 2,
        "weeks": [{"B1": "S1", "B2": "S2"}, {"B1": "S2", "B2": "S1"}],
    }


def test_single_batch_uses_shared_label():
    plan = build_rotation_plan(1, 4)
    assert plan.label(0) == SHARED_BATCH_LABEL
    assert plan.pairs() == [(0, 0, 0)]


def test_too_few_stations_raises():
    with pytest.raises(InsufficientStations) as exc_info:
        build_rotation_plan(3, 2, section="CSE-A", subject="Chem Lab")
    assert exc_info.value.details["batch_count"] == 3
    assert exc_info.value.details["station_count"] == 2
    assert exc_info.value.details["subject"] == "Chem Lab"
