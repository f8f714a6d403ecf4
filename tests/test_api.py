"""API tests: routers + error handlers over an in-memory database."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from datetime import datetime
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from app.database import get_db
from app.dependencies import get_clock
from app.main import app
from app.models.alert import Alert
from app.models.vehicle import Vehicle

API = "/api/v1"

# Fixed API clock: vehicles are registered the day before the 2026-03-02 trips below
REGISTERED_AT = datetime(2026, 3, 1, 7, 0)


@pytest.fixture
def client(engine):
    Session = sessionmaker(bind=engine, autocommit=False, autoflush=False)

    def override_get_db():
        db = Session()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: (lambda: REGISTERED_AT)
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def vehicle_id(client, units):
    resp = client.post(f"{API}/vehicles", json={
        "plate": "abc 1d23", "make": "Fiat", "model": "Strada",
        "unit_id": units[0].id, "mileage": 1000,
    })
    assert resp.status_code == 201
    return resp.json()["id"]


def exit_body(unit_id, mileage=1000, **extra):
    body = {"driver": "Ana", "destination": "Depot B", "initial_mileage": mileage,
            "departure_unit_id": unit_id, "departure_date": "2026-03-02", "departure_time": "08:00:00"}
    body.update(extra)
    return body


def entry_body(unit_id, mileage=1050):
    return {"final_mileage": mileage, "arrival_unit_id": unit_id,
            "arrival_date": "2026-03-02", "arrival_time": "10:30:00"}


class TestVehicles:
    def test_register_vehicle(self, client, vehicle_id):
        body = client.get(f"{API}/vehicles/{vehicle_id}").json()
        assert body["plate"] == "ABC1D23"
        assert body["location"] == "yard"
        assert body["mileage"] == 1000

    def test_duplicate_plate(self, client, vehicle_id, units):
        resp = client.post(f"{API}/vehicles", json={
            "plate": "ABC1D23", "make": "VW", "model": "Gol", "unit_id": units[0].id})
        assert resp.status_code == 409
        assert resp.json()["error"] == "DuplicatePlate"

    def test_lookup(self, client, vehicle_id):
        assert client.get(f"{API}/vehicles/lookup/abc1d23").json()["registered"] is True
        assert client.get(f"{API}/vehicles/lookup/zzz0000").json()["registered"] is False

    def test_unknown_vehicle(self, client, units):
        resp = client.get(f"{API}/vehicles/999")
        assert resp.status_code == 404
        assert resp.json()["error"] == "VehicleNotFound"


class TestMovementFlow:
    def test_exit_then_entry(self, client, vehicle_id, units):
        resp = client.post(f"{API}/vehicles/{vehicle_id}/exit", json=exit_body(units[0].id))
        assert resp.status_code == 201
        assert resp.json()["status"] == "out"
        assert resp.json()["vehicle_plate"] == "ABC1D23"
        assert client.get(f"{API}/vehicles/{vehicle_id}").json()["location"] == "out"

        resp = client.post(f"{API}/vehicles/{vehicle_id}/exit", json=exit_body(units[0].id))
        assert resp.status_code == 409
        assert resp.json()["error"] == "VehicleAlreadyOut"

        resp = client.post(f"{API}/vehicles/{vehicle_id}/entry", json=entry_body(units[0].id))
        assert resp.status_code == 200
        body = resp.json()
        assert body["mileage_run"] == 50
        assert body["duration"] == "02:30"
        assert body["type"] == "entry"

        vehicle = client.get(f"{API}/vehicles/{vehicle_id}").json()
        assert (vehicle["location"], vehicle["mileage"]) == ("yard", 1050)

        projection = client.get(f"{API}/vehicles/{vehicle_id}/projection").json()
        assert projection["consistent"] is True

    def test_exit_below_current_mileage(self, client, vehicle_id, units):
        resp = client.post(f"{API}/vehicles/{vehicle_id}/exit", json=exit_body(units[0].id, mileage=900))
        assert resp.status_code == 422
        assert resp.json()["error"] == "InvalidMileage"

    def test_exit_dated_before_registration(self, client, vehicle_id, units):
        resp = client.post(f"{API}/vehicles/{vehicle_id}/exit",
                           json=exit_body(units[0].id, departure_date="2026-02-01"))
        assert resp.status_code == 422
        assert resp.json()["error"] == "InvalidTimeRange"
        assert client.get(f"{API}/vehicles/{vehicle_id}").json()["location"] == "yard"

    def test_entry_without_exit(self, client, vehicle_id, units):
        resp = client.post(f"{API}/vehicles/{vehicle_id}/entry", json=entry_body(units[0].id))
        assert resp.status_code == 409
        assert resp.json()["error"] == "NoOpenMovement"

    def test_delete_initial_record(self, client, vehicle_id):
        initial = client.get(f"{API}/vehicles/{vehicle_id}/movements").json()[0]
        resp = client.delete(f"{API}/movements/{initial['id']}", params={"confirm": True})
        assert resp.status_code == 409
        assert resp.json()["error"] == "CannotDeleteInitialRecord"

    def test_edit_and_audit_log(self, client, vehicle_id, units):
        movement = client.post(f"{API}/vehicles/{vehicle_id}/exit", json=exit_body(units[0].id)).json()
        resp = client.patch(f"{API}/movements/{movement['id']}", json={"driver": "Bruno"},
                            headers={"X-User-Id": "op-7"})
        assert resp.status_code == 200
        assert resp.json()["driver"] == "Bruno"

        logs = client.get(f"{API}/movements/logs", params={"movement_id": movement["id"]}).json()
        assert [(l["action_type"], l["user_id"]) for l in logs] == [("edit", "op-7")]

    def test_edit_rejects_lifecycle_fields(self, client, vehicle_id, units):
        movement = client.post(f"{API}/vehicles/{vehicle_id}/exit", json=exit_body(units[0].id)).json()
        resp = client.patch(f"{API}/movements/{movement['id']}", json={"status": "yard"})
        assert resp.status_code == 422

    def test_delete_requires_confirmation(self, client, vehicle_id, units):
        movement = client.post(f"{API}/vehicles/{vehicle_id}/exit", json=exit_body(units[0].id)).json()
        assert client.delete(f"{API}/movements/{movement['id']}").status_code == 422
        assert client.delete(f"{API}/movements/{movement['id']}", params={"confirm": True}).status_code == 200
        assert client.get(f"{API}/vehicles/{vehicle_id}").json()["location"] == "yard"


class TestListingAndDashboard:
    def test_unit_filter(self, client, vehicle_id, units):
        u1, u2 = units
        other = client.post(f"{API}/vehicles", json={
            "plate": "XYZ9K88", "make": "VW", "model": "Saveiro", "unit_id": u2.id, "mileage": 300,
        }).json()["id"]
        client.post(f"{API}/vehicles/{vehicle_id}/exit", json=exit_body(u1.id))
        client.post(f"{API}/vehicles/{other}/exit", json=exit_body(u2.id, mileage=300, driver="Bruno"))

        resp = client.get(f"{API}/movements", params={"unit_id": u2.id, "include_all_units": False,
                                                      "status": "out"})
        assert resp.status_code == 200
        movements = resp.json()
        assert [m["driver"] for m in movements] == ["Bruno"]
        assert all(u2.id in (m["departure_unit_id"], m["arrival_unit_id"]) for m in movements)

    def test_stats(self, client, vehicle_id, units):
        client.post(f"{API}/vehicles/{vehicle_id}/exit", json=exit_body(units[0].id))
        stats = client.get(f"{API}/dashboard/stats", params={"target_date": "2026-03-02"}).json()
        assert stats == {"total_vehicles": 1, "vehicles_in_yard": 0,
                         "vehicles_out": 1, "movements_today": 1}

    def test_frequent_vehicles(self, client, vehicle_id, units):
        client.post(f"{API}/vehicles/{vehicle_id}/exit", json=exit_body(units[0].id))
        ranked = client.get(f"{API}/dashboard/frequent-vehicles").json()
        assert ranked[0]["vehicle"]["id"] == vehicle_id
        assert ranked[0]["movement_count"] == 1

    def test_list_limit(self, client, vehicle_id, units):
        other = client.post(f"{API}/vehicles", json={
            "plate": "XYZ9K88", "make": "VW", "model": "Saveiro", "unit_id": units[0].id, "mileage": 300,
        }).json()["id"]
        client.post(f"{API}/vehicles/{vehicle_id}/exit", json=exit_body(units[0].id))
        client.post(f"{API}/vehicles/{other}/exit", json=exit_body(units[0].id, mileage=300))

        assert len(client.get(f"{API}/movements").json()) == 4
        assert len(client.get(f"{API}/movements", params={"limit": 1}).json()) == 1
        assert client.get(f"{API}/movements", params={"limit": 0}).status_code == 422

    def test_list_limit_is_documented(self, client):
        params = client.get("/openapi.json").json()["paths"][f"{API}/movements"]["get"]["parameters"]
        limit = next(p for p in params if p["name"] == "limit")
        assert "MOVEMENT_LIST_LIMIT (100)" in limit["description"]


class TestDriftAlerts:
    def test_reconcile_repairs_and_alerts(self, client, db, vehicle_id):
        db.query(Vehicle).filter(Vehicle.id == vehicle_id).update({"location": "out"})
        db.commit()

        resp = client.get(f"{API}/vehicles/{vehicle_id}/projection", params={"strict": True})
        assert resp.status_code == 409
        assert resp.json()["error"] == "StateDriftDetected"

        body = client.post(f"{API}/vehicles/{vehicle_id}/reconcile", params={"repair": True}).json()
        assert body["consistent"] is False
        assert body["repaired"] is True
        assert body["projected"] == {"location": "yard", "mileage": 1000}
        assert client.get(f"{API}/vehicles/{vehicle_id}").json()["location"] == "yard"

        alerts = client.get(f"{API}/alerts", params={"vehicle_id": vehicle_id}).json()
        assert [a["alert_type"] for a in alerts] == ["state_drift"]

        resolved = client.put(f"{API}/alerts/{alerts[0]['id']}/resolve").json()
        assert resolved["is_resolved"] == 1
        assert resolved["resolved_at"] is not None

    def test_resolve_unknown_alert(self, client, units):
        resp = client.put(f"{API}/alerts/999/resolve")
        assert resp.status_code == 404
        assert resp.json()["error"] == "AlertNotFound"

    def test_projection_reads_do_not_raise_alerts(self, client, db, vehicle_id):
        db.query(Vehicle).filter(Vehicle.id == vehicle_id).update({"location": "out"})
        db.commit()

        for _ in range(3):
            body = client.get(f"{API}/vehicles/{vehicle_id}/projection").json()
            assert body["consistent"] is False
        assert db.query(Alert).count() == 0

        for _ in range(2):
            client.post(f"{API}/vehicles/{vehicle_id}/reconcile", params={"repair": False})
        assert db.query(Alert).count() == 1


def test_permissions_header_limits_writes(client, vehicle_id, units):
    resp = client.post(f"{API}/vehicles/{vehicle_id}/exit", json=exit_body(units[0].id),
                       headers={"X-Permissions": "canViewMovements"})
    assert resp.status_code == 403
    assert resp.json()["error"] == "PermissionDenied"


def test_health(client):
    body = client.get(f"{API}/health").json()
    assert body["database"] == "ok"
    assert body["open_movements"] == 0
