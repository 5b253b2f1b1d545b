import os
import sys

import pytest
from fastapi.testclient import TestClient

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from salon_agenda.main import app
from salon_agenda.services.mock_store import reset_mock_store


SALON_ID = "salon-bela-vista"
BOOKING_DAY = "2030-01-08"
CUSTOMER_HEADERS = {"X-User-Id": "cliente-rita"}
STAFF_HEADERS = {"X-User-Id": "staff-lia", "X-User-Role": "staff", "X-Salon-Id": SALON_ID}
OTHER_STAFF_HEADERS = {
    "X-User-Id": "staff-caio",
    "X-User-Role": "staff",
    "X-Salon-Id": "salon-barbearia-centro",
}


@pytest.fixture(autouse=True)
def _reset_store() -> None:
    reset_mock_store()
    yield
    reset_mock_store()


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


def _create(client: TestClient, start_time: str = "10:00", service_id: str = "svc-corte-feminino", headers=None):
    return client.post(
        "/bookings",
        json={
            "salon_id": SALON_ID,
            "service_id": service_id,
            "date": BOOKING_DAY,
            "start_time": start_time,
        },
        headers=headers or CUSTOMER_HEADERS,
    )


def test_health_reports_mock_store(client) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"ok": True, "store": "mock"}


def test_search_and_detail_of_salons(client) -> None:
    search = client.get("/salons", params={"city": "Rio de Janeiro"})
    detail = client.get(f"/salons/{SALON_ID}")

    assert search.status_code == 200
    assert [item["id"] for item in search.json()["items"]] == ["salon-barbearia-centro"]
    assert detail.status_code == 200
    service_ids = {service["id"] for service in detail.json()["services"]}
    assert "svc-manicure" in service_ids
    assert "svc-hidratacao" not in service_ids


def test_unknown_salon_returns_404(client) -> None:
    assert client.get("/salons/salon-x").status_code == 404
    availability = client.get(
        "/salons/salon-x/availability", params={"service_id": "svc-manicure", "date": BOOKING_DAY}
    )
    assert availability.status_code == 404


def test_availability_excludes_booked_time(client) -> None:
    params = {"service_id": "svc-manicure", "date": BOOKING_DAY}
    before = client.get(f"/salons/{SALON_ID}/availability", params=params).json()

    assert _create(client).status_code == 201
    after = client.get(f"/salons/{SALON_ID}/availability", params=params).json()

    before_times = [slot["start_time"] for slot in before["slots"]]
    after_times = [slot["start_time"] for slot in after["slots"]]
    assert before_times[0] == "09:00:00"
    assert before_times[-1] == "18:30:00"
    assert "10:00:00" in before_times
    assert "10:00:00" not in after_times
    assert "10:30:00" not in after_times
    assert "11:00:00" in after_times


def test_closed_day_is_reported(client) -> None:
    response = client.get(
        f"/salons/{SALON_ID}/availability",
        params={"service_id": "svc-manicure", "date": "2030-01-06"},
    )

    assert response.status_code == 200
    assert response.json()["closed"] is True
    assert response.json()["slots"] == []


def test_create_booking_then_conflict(client) -> None:
    created = _create(client)
    conflict = _create(client, start_time="10:30", service_id="svc-manicure")

    assert created.status_code == 201
    assert created.json()["status"] == "pending"
    assert created.json()["customer_id"] == "cliente-rita"
    assert conflict.status_code == 409
    assert conflict.json()["detail"]["error"] == "slot_taken"


def test_business_rejection_maps_to_422(client) -> None:
    response = _create(client, start_time="18:30")

    assert response.status_code == 422
    assert response.json()["detail"]["error"] == "outside_operating_window"


def test_missing_principal_is_unauthorized(client) -> None:
    response = client.post(
        "/bookings",
        json={
            "salon_id": SALON_ID,
            "service_id": "svc-manicure",
            "date": BOOKING_DAY,
            "start_time": "10:00",
        },
    )

    assert response.status_code == 401


def test_my_bookings_lists_only_own_bookings(client) -> None:
    _create(client)
    _create(client, start_time="14:00", headers={"X-User-Id": "cliente-outra"})

    response = client.get("/bookings/mine", headers=CUSTOMER_HEADERS)

    assert response.status_code == 200
    assert response.json()["total"] == 1
    assert response.json()["items"][0]["start_time"] == "10:00:00"


def test_status_changes_are_reserved_to_staff(client) -> None:
    booking_id = _create(client).json()["id"]

    denied = client.patch(
        f"/bookings/{booking_id}/status", json={"status": "confirmed"}, headers=CUSTOMER_HEADERS
    )
    other_salon = client.patch(
        f"/bookings/{booking_id}/status", json={"status": "confirmed"}, headers=OTHER_STAFF_HEADERS
    )
    allowed = client.patch(
        f"/bookings/{booking_id}/status", json={"status": "confirmed"}, headers=STAFF_HEADERS
    )
    invalid = client.patch(
        f"/bookings/{booking_id}/status", json={"status": "pending"}, headers=STAFF_HEADERS
    )

    assert denied.status_code == 403
    assert other_salon.status_code == 403
    assert allowed.status_code == 200
    assert allowed.json()["status"] == "confirmed"
    assert invalid.status_code == 422
    assert invalid.json()["detail"]["error"] == "invalid_transition"


def test_customer_cancellation_and_staff_cancellation(client) -> None:
    first = _create(client).json()["id"]
    second = _create(client, start_time="15:00").json()["id"]

    cancelled = client.post(f"/bookings/{first}/cancel", headers=CUSTOMER_HEADERS)
    not_owner = client.post(f"/bookings/{second}/cancel", headers={"X-User-Id": "cliente-outra"})
    staff_cancelled = client.post(f"/bookings/{second}/staff-cancel", headers=STAFF_HEADERS)
    missing = client.post("/bookings/BKG-99999/cancel", headers=CUSTOMER_HEADERS)

    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "cancelled"
    assert not_owner.status_code == 403
    assert staff_cancelled.json()["status"] == "cancelled"
    assert missing.status_code == 404


def test_reschedule_booking(client) -> None:
    booking_id = _create(client).json()["id"]

    response = client.post(
        f"/bookings/{booking_id}/reschedule",
        json={"date": BOOKING_DAY, "start_time": "11:00"},
        headers=CUSTOMER_HEADERS,
    )

    assert response.status_code == 200
    assert response.json()["id"] == booking_id
    assert response.json()["start_time"] == "11:00:00"


def test_salon_agenda_is_restricted_to_its_staff(client) -> None:
    _create(client)
    params = {"date": BOOKING_DAY}

    agenda = client.get(f"/salons/{SALON_ID}/bookings", params=params, headers=STAFF_HEADERS)
    summary = client.get(f"/salons/{SALON_ID}/agenda-summary", params=params, headers=STAFF_HEADERS)
    denied = client.get(f"/salons/{SALON_ID}/bookings", params=params, headers=CUSTOMER_HEADERS)

    assert agenda.status_code == 200
    assert agenda.json()["total"] == 1
    assert summary.status_code == 200
    assert summary.json()["total"] == 1
    assert summary.json()["counts"]["pending"] == 1
    assert summary.json()["counts"]["cancelled"] == 0
    assert denied.status_code == 403


def test_start_time_with_seconds_is_rejected(client) -> None:
    response = _create(client, start_time="09:30:45", service_id="svc-manicure")

    assert response.status_code == 422
    assert client.get("/bookings/mine", headers=CUSTOMER_HEADERS).json()["total"] == 0
