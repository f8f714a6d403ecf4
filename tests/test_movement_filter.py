"""Unit tests for the pure movement filters and aggregations."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from datetime import date, time
from types import SimpleNamespace
from app.services import movement_filter
from app.services.movement_filter import MovementFilter


def make_movement(mid, vehicle_id=1, plate="ABC1D23", driver="Ana", destination="Depot B",
                  dep_unit=1, arr_unit=None, day=date(2026, 3, 2), at=time(8, 0),
                  status="out", type="exit"):
    return SimpleNamespace(id=mid, vehicle_id=vehicle_id, vehicle_plate=plate, driver=driver,
                           destination=destination, departure_unit_id=dep_unit,
                           arrival_unit_id=arr_unit, departure_date=day, departure_time=at,
                           status=status, type=type)


def ids(movements):
    return [m.id for m in movements]


class TestByUnit:
    def setup_method(self):
        self.movements = [
            make_movement(1, dep_unit=1, arr_unit=1),
            make_movement(2, dep_unit=2, arr_unit=None),
            make_movement(3, dep_unit=1, arr_unit=2),
            make_movement(4, dep_unit=3, arr_unit=3),
        ]

    def test_departure_or_arrival_matches(self):
        assert ids(movement_filter.by_unit(self.movements, 2, include_all=False)) == [2, 3]

    def test_include_all_keeps_everything(self):
        assert ids(movement_filter.by_unit(self.movements, 2, include_all=True)) == [1, 2, 3, 4]


class TestFreeText:
    def setup_method(self):
        self.movements = [
            make_movement(1, plate="ABC1D23", driver="Ana Souza", destination="Depot B"),
            make_movement(2, plate="XYZ9K88", driver="Bruno", destination="Porto"),
            make_movement(3, plate="QWE4R56", driver="Carla", destination=None),
        ]

    def test_plate_case_insensitive(self):
        assert ids(movement_filter.by_free_text(self.movements, "xyz")) == [2]

    def test_driver(self):
        assert ids(movement_filter.by_free_text(self.movements, "SOUZA")) == [1]

    def test_destination(self):
        assert ids(movement_filter.by_free_text(self.movements, "port")) == [2]

    def test_blank_term_keeps_everything(self):
        assert ids(movement_filter.by_free_text(self.movements, "  ")) == [1, 2, 3]


def test_by_date_range_is_inclusive():
    movements = [make_movement(i, day=date(2026, 3, i)) for i in range(1, 6)]
    assert ids(movement_filter.by_date_range(movements, date(2026, 3, 2), date(2026, 3, 4))) == [2, 3, 4]
    assert ids(movement_filter.by_date_range(movements, date_to=date(2026, 3, 2))) == [1, 2]


def test_by_status():
    movements = [make_movement(1, status="out"), make_movement(2, status="yard")]
    assert ids(movement_filter.by_status(movements, "yard")) == [2]
    assert ids(movement_filter.by_status(movements, None)) == [1, 2]


def test_sort_most_recent_first_is_stable():
    movements = [
        make_movement(1, day=date(2026, 3, 1)),
        make_movement(2, day=date(2026, 3, 2), at=time(9, 0)),
        make_movement(3, day=date(2026, 3, 2), at=time(9, 0)),
        make_movement(4, day=date(2026, 3, 2), at=time(7, 0)),
    ]
    assert ids(movement_filter.sort_most_recent_first(movements)) == [2, 3, 4, 1]


def test_frequency_skips_initial_records():
    movements = [
        make_movement(1, vehicle_id=10, type="initial"),
        make_movement(2, vehicle_id=20),
        make_movement(3, vehicle_id=10),
        make_movement(4, vehicle_id=20, type="entry"),
        make_movement(5, vehicle_id=20),
    ]
    assert movement_filter.aggregate_frequency_by_vehicle(movements) == {20: 3, 10: 1}


def test_rank_frequent_vehicles_ties_keep_vehicle_order():
    vehicles = [SimpleNamespace(id=1), SimpleNamespace(id=2), SimpleNamespace(id=3)]
    movements = [make_movement(1, vehicle_id=3), make_movement(2, vehicle_id=2),
                 make_movement(3, vehicle_id=3), make_movement(4, vehicle_id=2)]
    ranked = movement_filter.rank_frequent_vehicles(vehicles, movements)
    assert [(v.id, n) for v, n in ranked] == [(2, 2), (3, 2), (1, 0)]
    assert len(movement_filter.rank_frequent_vehicles(vehicles, movements, limit=1)) == 1


def test_apply_filter_combines_predicates():
    movements = [
        make_movement(1, dep_unit=1, status="out", day=date(2026, 3, 1)),
        make_movement(2, dep_unit=2, status="out", day=date(2026, 3, 2), driver="Bruno"),
        make_movement(3, dep_unit=1, arr_unit=2, status="yard", day=date(2026, 3, 3)),
        make_movement(4, dep_unit=2, status="out", day=date(2026, 3, 4)),
    ]
    f = MovementFilter(unit_id=2, include_all_units=False, status="out", limit=5)
    assert ids(movement_filter.apply_filter(movements, f)) == [4, 2]

    f = MovementFilter(unit_id=2, include_all_units=False, search="bruno")
    assert ids(movement_filter.apply_filter(movements, f)) == [2]
