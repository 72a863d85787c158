# backend/tests/routes/test_booking_routes.py
"""
Tests for the tenant booking routes under /api/v1/bookings.
"""

from datetime import time

import pytest

from fleetbook.core.ulid_helper import generate_ulid

BASE = "/api/v1/bookings"
PROBLEM = "application/problem+json"


@pytest.fixture
def booking_payload(catalog):
    return {
        "partner_id": catalog.partner.id,
        "service_id": catalog.service.id,
        "vehicle_id": catalog.vehicle.id,
        "scheduled_date": "2025-01-13",
        "scheduled_time": "09:00",
        "customer_notes": "Front left tyre",
    }


def test_create_booking(client, tenant_headers, booking_payload, catalog) -> None:
    response = client.post(BASE, json=booking_payload, headers=tenant_headers)

    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "pending"
    assert data["payment_status"] == "pending"
    assert data["partner_id"] == catalog.partner.id
    assert data["scheduled_time"] == "09:00:00"
    assert data["end_time"] == "10:00:00"
    assert data["price"] == 80.0
    assert data["commission_amount"] is None
    assert response.headers["X-Request-ID"]


def test_create_requires_caller_identity(client, booking_payload) -> None:
    response = client.post(BASE, json=booking_payload)

    assert response.status_code == 401
    assert response.headers["content-type"].startswith(PROBLEM)
    assert response.json()["detail"] == "Missing caller identity"


def test_double_booking_returns_slot_unavailable(client, tenant_headers, booking_payload) -> None:
    assert client.post(BASE, json=booking_payload, headers=tenant_headers).status_code == 201

    response = client.post(BASE, json=booking_payload, headers=tenant_headers)

    assert response.status_code == 409
    assert response.headers["content-type"].startswith(PROBLEM)
    problem = response.json()
    assert problem["code"] == "SLOT_UNAVAILABLE"
    assert problem["status"] == 409
    assert problem["instance"] == BASE
    assert problem["errors"]["scheduled_time"] == "09:00"
    assert problem["request_id"] == response.headers["X-Request-ID"]


def test_request_id_is_echoed(client, tenant_headers, booking_payload) -> None:
    headers = {**tenant_headers, "X-Request-ID": "req-123"}

    response = client.post(BASE, json=booking_payload, headers=headers)

    assert response.headers["X-Request-ID"] == "req-123"


def test_unknown_fields_are_rejected(client, tenant_headers, booking_payload) -> None:
    response = client.post(BASE, json={**booking_payload, "price": 1}, headers=tenant_headers)

    assert response.status_code == 422
    assert response.json()["code"] == "validation_error"


def test_past_date_is_a_validation_error(client, tenant_headers, booking_payload) -> None:
    payload = {**booking_payload, "scheduled_date": "2025-01-01"}

    response = client.post(BASE, json=payload, headers=tenant_headers)

    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_non_positive_request_timeout_is_rejected(client, tenant_headers, booking_payload) -> None:
    headers = {**tenant_headers, "X-Request-Timeout": "0"}

    response = client.post(BASE, json=booking_payload, headers=headers)

    assert response.status_code == 400


def test_my_bookings_lists_only_own(client, tenant_headers, book, other_tenant_caller) -> None:
    book(time(9, 0))
    book(time(10, 0))

    response = client.get(f"{BASE}/my-bookings", headers=tenant_headers, params={"per_page": 1})

    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 2
    assert data["has_next"] is True
    assert len(data["items"]) == 1

    other = {"X-User-Id": other_tenant_caller.user_id, "X-Tenant-Id": other_tenant_caller.tenant_id}
    assert client.get(f"{BASE}/my-bookings", headers=other).json()["total"] == 0

    filtered = client.get(
        f"{BASE}/my-bookings", headers=tenant_headers, params={"status": "cancelled"}
    )
    assert filtered.json()["items"] == []


def test_upcoming(client, tenant_headers, book) -> None:
    booking = book(time(9, 0))

    response = client.get(f"{BASE}/upcoming", headers=tenant_headers)

    assert response.status_code == 200
    assert [b["id"] for b in response.json()] == [booking.id]


def test_get_booking_hidden_from_other_tenants(
    client, tenant_headers, book, other_tenant_caller
) -> None:
    booking = book(time(9, 0))

    assert client.get(f"{BASE}/{booking.id}", headers=tenant_headers).status_code == 200

    other = {"X-User-Id": other_tenant_caller.user_id, "X-Tenant-Id": other_tenant_caller.tenant_id}
    response = client.get(f"{BASE}/{booking.id}", headers=other)
    assert response.status_code == 404
    assert response.json()["code"] == "NOT_FOUND"


def test_malformed_booking_id_is_rejected(client, tenant_headers) -> None:
    response = client.get(f"{BASE}/not-a-ulid", headers=tenant_headers)

    assert response.status_code == 422


def test_cancel_requires_reason_then_frees_slot(
    client, tenant_headers, book, booking_payload
) -> None:
    booking = book(time(9, 0))

    missing = client.patch(f"{BASE}/{booking.id}/cancel", json={}, headers=tenant_headers)
    assert missing.status_code == 400
    assert missing.json()["code"] == "VALIDATION_ERROR"

    response = client.patch(
        f"{BASE}/{booking.id}/cancel", json={"reason": "Vehicle sold"}, headers=tenant_headers
    )
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"
    assert response.json()["cancellation_reason"] == "Vehicle sold"

    again = client.post(BASE, json=booking_payload, headers=tenant_headers)
    assert again.status_code == 201


def test_cancel_twice_is_an_invalid_transition(client, tenant_headers, book) -> None:
    booking = book(time(9, 0))
    url = f"{BASE}/{booking.id}/cancel"
    client.patch(url, json={"reason": "First"}, headers=tenant_headers)

    response = client.patch(url, json={"reason": "Second"}, headers=tenant_headers)

    assert response.status_code == 409
    problem = response.json()
    assert problem["code"] == "INVALID_TRANSITION"
    assert problem["errors"]["current_status"] == "cancelled"


def test_reschedule(client, tenant_headers, book) -> None:
    booking = book(time(9, 0))
    book(time(11, 0))
    url = f"{BASE}/{booking.id}/reschedule"

    moved = client.patch(
        url, json={"scheduled_date": "2025-01-13", "scheduled_time": "14:00"}, headers=tenant_headers
    )
    assert moved.status_code == 200
    assert moved.json()["scheduled_time"] == "14:00:00"

    clash = client.patch(
        url, json={"scheduled_date": "2025-01-13", "scheduled_time": "11:00"}, headers=tenant_headers
    )
    assert clash.status_code == 409
    assert clash.json()["code"] == "SLOT_UNAVAILABLE"


def test_notes(client, tenant_headers, partner_headers, book) -> None:
    booking = book(time(9, 0))
    url = f"{BASE}/{booking.id}/notes"

    response = client.patch(url, json={"customer_notes": "Call first"}, headers=tenant_headers)
    assert response.status_code == 200
    assert response.json()["customer_notes"] == "Call first"

    forbidden = client.patch(url, json={"customer_notes": "Nope"}, headers=partner_headers)
    assert forbidden.status_code == 403


def test_payment_status_is_admin_only(client, tenant_headers, admin_headers, book) -> None:
    booking = book(time(9, 0))
    url = f"{BASE}/{booking.id}/payment-status"

    assert client.patch(url, json={"payment_status": "paid"}, headers=tenant_headers).status_code == 403

    response = client.patch(url, json={"payment_status": "paid"}, headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["payment_status"] == "paid"
    assert response.json()["paid_at"] is not None


def test_delete_only_finished_bookings(client, tenant_headers, book) -> None:
    booking = book(time(9, 0))
    url = f"{BASE}/{booking.id}"

    live = client.delete(url, headers=tenant_headers)
    assert live.status_code == 422
    assert live.json()["code"] == "BOOKING_NOT_TERMINAL"

    client.patch(f"{url}/cancel", json={"reason": "Sold"}, headers=tenant_headers)
    assert client.delete(url, headers=tenant_headers).status_code == 204
    assert client.get(url, headers=tenant_headers).status_code == 404


def test_unknown_booking(client, tenant_headers) -> None:
    response = client.get(f"{BASE}/{generate_ulid()}", headers=tenant_headers)

    assert response.status_code == 404
