"""Tests for the HTTP layer.

Covers:
- Reservation status codes (201 / 409 / 422 / 404 / 503)
- Check, suggestions and release endpoints
- Buffer policy endpoints, time-of-day and weekday rules
- Offset-aware and naive timestamps mixed across requests
- Suggestion step and limit bounds
- Appointment feed endpoints
- Health
"""

from __future__ import annotations

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from conftest import at
from staff_availability.dependencies import get_availability_service
from staff_availability.main import app
from staff_availability.services.availability import (
    AppointmentIndex,
    AvailabilityService,
    BufferPolicy,
    BufferPolicyStore,
    StaffLocks,
    StoreUnavailable,
)


@pytest.fixture()
def client(service):
    # Lifespan is not run; the service is injected directly
    app.state.availability = service
    app.dependency_overrides[get_availability_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


def _utc(value) -> str:
    return value.isoformat() + "Z"


def _reservation(appointment_id="a1", start=None, end=None, **overrides):
    body = {
        "id": appointment_id,
        "staff_id": "S1",
        "location_id": "L1",
        "start": (start or at(10)).isoformat(),
        "end": (end or at(11)).isoformat(),
        "participant_ids": ["c1"],
    }
    body.update(overrides)
    return body


class TestReservations:
    def test_reserve_created(self, client):
        response = client.post("/availability/reservations", json=_reservation())
        assert response.status_code == 201
        data = response.json()
        assert data["ok"] is True
        assert data["conflict"] is False
        assert data["appointment"]["status"] == "confirmed"

    def test_reserve_conflict(self, client):
        client.post("/availability/reservations", json=_reservation("a1"))
        response = client.post(
            "/availability/reservations",
            json=_reservation("a2", start=at(10, 30), end=at(11, 30), location_id="L2"),
        )
        assert response.status_code == 409
        data = response.json()
        assert data["conflict"] is True
        assert [c["id"] for c in data["conflicts"]] == ["a1"]

    def test_group_booking(self, client):
        response = client.post(
            "/availability/reservations",
            json=_reservation("g1", participant_ids=["c1", "c2", "c3"]),
        )
        assert response.status_code == 201
        assert response.json()["appointment"]["participant_ids"] == ["c1", "c2", "c3"]

    def test_inverted_interval_rejected(self, client):
        response = client.post(
            "/availability/reservations", json=_reservation(start=at(11), end=at(10)),
        )
        assert response.status_code == 422

    def test_missing_participants_rejected(self, client):
        response = client.post("/availability/reservations", json=_reservation(participant_ids=[]))
        assert response.status_code == 422

    def test_duplicate_id_for_other_staff(self, client):
        client.post("/availability/reservations", json=_reservation("a1"))
        response = client.post(
            "/availability/reservations",
            json=_reservation("a1", start=at(14), end=at(15), staff_id="S2"),
        )
        assert response.status_code == 409

    def test_store_unavailable_is_503(self, client, service):
        with patch.object(service, "reserve", side_effect=StoreUnavailable("lock timeout")):
            response = client.post("/availability/reservations", json=_reservation())
        assert response.status_code == 503
        assert "retry" in response.json()["detail"]

    def test_reschedule(self, client):
        client.post("/availability/reservations", json=_reservation("a1"))
        response = client.post(
            "/availability/reservations/a1/reschedule",
            json={"start": at(13).isoformat(), "end": at(14).isoformat(), "location_id": "home"},
        )
        assert response.status_code == 200
        assert response.json()["appointment"]["location_id"] == "home"

    def test_reschedule_unknown(self, client):
        response = client.post(
            "/availability/reservations/missing/reschedule",
            json={"start": at(13).isoformat(), "end": at(14).isoformat()},
        )
        assert response.status_code == 404

    def test_utc_suffixed_after_naive_is_conflict(self, client):
        client.post("/availability/reservations", json=_reservation("a1"))
        response = client.post(
            "/availability/reservations",
            json={**_reservation("a2"), "start": _utc(at(10, 30)), "end": _utc(at(11, 30))},
        )
        assert response.status_code == 409
        assert [c["id"] for c in response.json()["conflicts"]] == ["a1"]

    def test_offset_times_converted_to_utc(self, client):
        client.post("/availability/reservations", json=_reservation("a1"))
        # 12:30+02:00 is 10:30 UTC
        response = client.post(
            "/availability/reservations",
            json={
                **_reservation("a2"),
                "start": at(12, 30).isoformat() + "+02:00",
                "end": at(13, 30).isoformat() + "+02:00",
            },
        )
        assert response.status_code == 409

    def test_naive_after_utc_suffixed_is_free_when_touching(self, client):
        client.post(
            "/availability/reservations",
            json={**_reservation("a1"), "start": _utc(at(10)), "end": _utc(at(11))},
        )
        response = client.post("/availability/reservations", json=_reservation("a2", start=at(11), end=at(12)))
        assert response.status_code == 201

    def test_release_is_idempotent(self, client):
        client.post("/availability/reservations", json=_reservation("a1"))
        first = client.delete("/availability/reservations/a1")
        second = client.delete("/availability/reservations/a1")
        unknown = client.delete("/availability/reservations/never")
        assert first.json() == {"ok": True, "released": True}
        assert second.json() == {"ok": True, "released": False}
        assert unknown.status_code == 200


class TestQueries:
    def test_check_available(self, client):
        response = client.get(
            "/availability/check",
            params={"staff_id": "S1", "start": at(10).isoformat(), "end": at(11).isoformat()},
        )
        assert response.status_code == 200
        assert response.json()["available"] is True

    def test_check_reports_conflicts(self, client):
        client.post("/availability/reservations", json=_reservation("a1"))
        response = client.get(
            "/availability/check",
            params={
                "staff_id": "S1",
                "start": at(10, 30).isoformat(),
                "end": at(11, 30).isoformat(),
                "location_id": "L2",
            },
        )
        data = response.json()
        assert data["available"] is False
        assert data["conflicts"][0]["id"] == "a1"

    def test_check_with_exclusion(self, client):
        client.post("/availability/reservations", json=_reservation("a1"))
        response = client.get(
            "/availability/check",
            params={
                "staff_id": "S1",
                "start": at(10).isoformat(),
                "end": at(11).isoformat(),
                "exclude_appointment_id": "a1",
            },
        )
        assert response.json()["available"] is True

    def test_check_invalid_interval(self, client):
        response = client.get(
            "/availability/check",
            params={"staff_id": "S1", "start": at(11).isoformat(), "end": at(11).isoformat()},
        )
        assert response.status_code == 422

    def test_suggestions(self, client):
        client.post("/availability/reservations", json=_reservation("a1"))
        response = client.get(
            "/availability/suggestions",
            params={
                "staff_id": "S1",
                "window_start": at(9).isoformat(),
                "window_end": at(12).isoformat(),
                "duration_minutes": 60,
            },
        )
        assert response.status_code == 200
        data = response.json()
        assert data["step_minutes"] == 15
        assert len(data["start_times"]) == 2

    def test_check_with_utc_suffix(self, client):
        client.post("/availability/reservations", json=_reservation("a1"))
        response = client.get(
            "/availability/check",
            params={"staff_id": "S1", "start": _utc(at(10, 30)), "end": _utc(at(11, 30))},
        )
        assert response.status_code == 200
        assert response.json()["available"] is False

    def test_suggestions_off_grid_step_rejected(self, client):
        response = client.get(
            "/availability/suggestions",
            params={
                "staff_id": "S1",
                "window_start": at(9).isoformat(),
                "window_end": at(12).isoformat(),
                "duration_minutes": 30,
                "step_minutes": 7,
            },
        )
        assert response.status_code == 422

    def test_suggestions_limit_capped(self, client):
        response = client.get(
            "/availability/suggestions",
            params={
                "staff_id": "S1",
                "window_start": at(0).isoformat(),
                "window_end": at(23).isoformat(),
                "duration_minutes": 15,
                "step_minutes": 5,
                "limit": 1_000_000,
            },
        )
        assert response.status_code == 200
        assert len(response.json()["start_times"]) == 20


class TestBufferPolicy:
    def test_get_defaults(self, client):
        data = client.get("/buffer-policy/").json()
        assert data["enforced"] is False
        assert data["strict"] is True

    def test_update_applies_to_checks(self, client):
        client.post("/availability/reservations", json=_reservation("a1", start=at(14), end=at(15)))
        response = client.put(
            "/buffer-policy/",
            json={"global_before_minutes": 15, "global_after_minutes": 15, "enforced": True},
        )
        assert response.status_code == 200

        check = client.get(
            "/availability/check",
            params={"staff_id": "S1", "start": at(15, 10).isoformat(), "end": at(16, 10).isoformat()},
        )
        assert check.json()["available"] is False

    def test_negative_minutes_rejected(self, client):
        response = client.put(
            "/buffer-policy/",
            json={"global_before_minutes": -1, "global_after_minutes": 0, "enforced": True},
        )
        assert response.status_code == 422

    def test_staff_override_and_clear(self, client):
        response = client.put("/buffer-policy/staff/S1", json={"before_minutes": 5, "after_minutes": 10})
        assert response.json()["per_staff_overrides"]["S1"] == {"before_minutes": 5, "after_minutes": 10}

        response = client.delete("/buffer-policy/staff/S1")
        assert response.json()["per_staff_overrides"] == {}

    def test_reset(self, client):
        client.put(
            "/buffer-policy/",
            json={"global_before_minutes": 30, "global_after_minutes": 30, "enforced": True},
        )
        data = client.post("/buffer-policy/reset").json()
        assert data["global_before_minutes"] == 0
        assert data["enforced"] is False

    def test_reset_returns_to_startup_policy(self):
        service = AvailabilityService(
            AppointmentIndex(),
            BufferPolicyStore(BufferPolicy(10, 10, enforced=True)),
            StaffLocks(1.0),
        )
        app.dependency_overrides[get_availability_service] = lambda: service
        try:
            client = TestClient(app)
            client.put(
                "/buffer-policy/",
                json={"global_before_minutes": 30, "global_after_minutes": 0, "enforced": False},
            )
            data = client.post("/buffer-policy/reset").json()
        finally:
            app.dependency_overrides.clear()

        assert data["global_before_minutes"] == 10
        assert data["global_after_minutes"] == 10
        assert data["enforced"] is True

    def test_time_rules_apply_to_checks(self, client):
        client.post("/availability/reservations", json=_reservation("a1", start=at(14), end=at(15)))
        client.put("/buffer-policy/", json={"global_before_minutes": 0, "global_after_minutes": 0, "enforced": True})
        response = client.put(
            "/buffer-policy/time-rules",
            json=[{"start_time": "14:00", "end_time": "16:00", "before_minutes": 0, "after_minutes": 30}],
        )
        assert response.status_code == 200
        assert response.json()["time_rules"][0]["after_minutes"] == 30

        check = client.get(
            "/availability/check",
            params={"staff_id": "S1", "start": at(15, 20).isoformat(), "end": at(16).isoformat()},
        )
        assert check.json()["available"] is False

        cleared = client.put("/buffer-policy/time-rules", json=[])
        assert cleared.json()["time_rules"] == []

    def test_inverted_time_rule_rejected(self, client):
        response = client.put(
            "/buffer-policy/time-rules",
            json=[{"start_time": "18:00", "end_time": "09:00", "before_minutes": 5, "after_minutes": 5}],
        )
        assert response.status_code == 422

    def test_day_rule_set_and_clear(self, client):
        response = client.put("/buffer-policy/day-rules/Monday", json={"before_minutes": 0, "after_minutes": 20})
        assert response.status_code == 200
        assert response.json()["day_rules"] == {"monday": {"before_minutes": 0, "after_minutes": 20}}

        response = client.delete("/buffer-policy/day-rules/monday")
        assert response.json()["day_rules"] == {}

    def test_unknown_day_rejected(self, client):
        response = client.put("/buffer-policy/day-rules/someday", json={"before_minutes": 5, "after_minutes": 5})
        assert response.status_code == 422

    def test_warn_on_violation_round_trips(self, client):
        response = client.put(
            "/buffer-policy/",
            json={
                "global_before_minutes": 5,
                "global_after_minutes": 5,
                "enforced": True,
                "warn_on_violation": False,
            },
        )
        assert response.json()["warn_on_violation"] is False


class TestFeed:
    def test_sync_then_status_change(self, client):
        response = client.post(
            "/availability/feed/appointments",
            json={
                "id": "ext-1",
                "staff_id": "S1",
                "start": at(10).isoformat(),
                "end": at(11).isoformat(),
                "status": "pending",
            },
        )
        assert response.status_code == 200
        assert response.json()["status"] == "pending"

        response = client.post("/availability/feed/appointments/ext-1/status", json={"status": "cancelled"})
        assert response.json()["status"] == "cancelled"

        check = client.get(
            "/availability/check",
            params={"staff_id": "S1", "start": at(10).isoformat(), "end": at(11).isoformat()},
        )
        assert check.json()["available"] is True

    def test_status_change_unknown(self, client):
        response = client.post("/availability/feed/appointments/missing/status", json={"status": "confirmed"})
        assert response.status_code == 404


def test_health(client):
    assert client.get("/health").json()["index"] == "memory"
