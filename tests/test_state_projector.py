"""Unit tests for projecting vehicle state from movement history."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from datetime import date, time
from types import SimpleNamespace
from app.exceptions import StateDriftDetected
from app.models.movement import Movement
from app.services.state_projector import ProjectedState, assert_consistent, detect_drift, project


def initial(mileage=1000, day=date(2026, 3, 1), at=time(7, 0)):
    return Movement(vehicle_id=1, type="initial", status="yard", driver="Sistema",
                    initial_mileage=mileage, departure_unit_id=1,
                    departure_date=day, departure_time=at)


def open_exit(mileage=1000, day=date(2026, 3, 2), at=time(8, 0)):
    return Movement(vehicle_id=1, type="exit", status="out", driver="Ana", destination="Depot B",
                    initial_mileage=mileage, departure_unit_id=1,
                    departure_date=day, departure_time=at)


def entry(initial_km=1000, final_km=1050, day=date(2026, 3, 2), at=time(8, 0)):
    return Movement(vehicle_id=1, type="entry", status="yard", driver="Ana", destination="Depot B",
                    initial_mileage=initial_km, final_mileage=final_km, mileage_run=final_km - initial_km,
                    departure_unit_id=1, departure_date=day, departure_time=at,
                    arrival_unit_id=1, arrival_date=day, arrival_time=time(18, 0), duration="10:00")


class TestProject:
    def test_empty_history(self):
        assert project([]) is None

    def test_only_initial_record(self):
        assert project([initial(1000)]) == ProjectedState("yard", 1000)

    def test_open_exit_is_out_at_its_initial_mileage(self):
        assert project([initial(1000), open_exit(1010)]) == ProjectedState("out", 1010)

    def test_finalized_entry_is_yard_at_final_mileage(self):
        assert project([initial(1000), entry(1000, 1050)]) == ProjectedState("yard", 1050)

    def test_uses_departure_timestamp_not_list_order(self):
        later = open_exit(1050, day=date(2026, 3, 3))
        earlier = entry(1000, 1050, day=date(2026, 3, 2))
        assert project([later, initial(1000), earlier]) == ProjectedState("out", 1050)

    def test_equal_timestamps_take_last_inserted(self):
        first = entry(1000, 1050, day=date(2026, 3, 2), at=time(8, 0))
        second = open_exit(1050, day=date(2026, 3, 2), at=time(8, 0))
        assert project([initial(1000), first, second]).location == "out"


class TestDrift:
    def test_consistent_vehicle(self):
        vehicle = SimpleNamespace(id=1, location="yard", mileage=1050)
        assert detect_drift(vehicle, [initial(1000), entry(1000, 1050)]) is None

    def test_location_drift(self):
        vehicle = SimpleNamespace(id=1, location="yard", mileage=1000)
        report = detect_drift(vehicle, [initial(1000), open_exit(1000)])
        assert report.location_drift
        assert not report.mileage_drift
        assert "location stored=yard projected=out" in report.describe()

    def test_mileage_drift(self):
        vehicle = SimpleNamespace(id=1, location="yard", mileage=1000)
        report = detect_drift(vehicle, [initial(1000), entry(1000, 1050)])
        assert report.mileage_drift
        assert report.projected == ProjectedState("yard", 1050)

    def test_assert_consistent_raises(self):
        vehicle = SimpleNamespace(id=7, location="out", mileage=1000)
        with pytest.raises(StateDriftDetected) as exc:
            assert_consistent(vehicle, [initial(1000)])
        assert exc.value.report.vehicle_id == 7
