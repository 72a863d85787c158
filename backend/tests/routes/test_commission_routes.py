from datetime import time

import pytest

from fleetbook.core.caller_context import CallerContext
from fleetbook.core.ulid_helper import generate_ulid

BASE = "/api/v1/commissions"


@pytest.fixture
def commission_ids(book, booking_service, partner_caller, commission_service):
    ids = []
    for start in (time(9, 0), time(10, 0)):
        booking = book(start)
        booking_service.confirm_booking(partner_caller, booking.id)
        booking_service.start_booking(partner_caller, booking.id)
        booking_service.complete_booking(partner_caller, booking.id)
        ids.append(commission_service.repository.get_by_booking_id(booking.id).id)
    return ids


def test_partner_sees_own_ledger(client, partner_headers, commission_ids) -> None:
    response = client.get(BASE, headers=partner_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 2
    assert {c["id"] for c in data["items"]} == set(commission_ids)
    assert all(c["amount"] == 8.0 and c["status"] == "pending" for c in data["items"])


def test_tenants_have_no_ledger(client, tenant_headers) -> None:
    assert client.get(BASE, headers=tenant_headers).status_code == 403


def test_pending_is_admin_only(client, partner_headers, admin_headers, commission_ids) -> None:
    assert client.get(f"{BASE}/pending", headers=partner_headers).status_code == 403

    response = client.get(f"{BASE}/pending", headers=admin_headers)

    assert response.status_code == 200
    assert {c["id"] for c in response.json()} == set(commission_ids)


def test_mark_paid(client, admin_headers, partner_headers, commission_ids) -> None:
    url = f"{BASE}/{commission_ids[0]}/mark-paid"
    body = {"payment_reference": "SEPA-2025-001"}

    assert client.patch(url, json=body, headers=partner_headers).status_code == 403

    paid = client.patch(url, json=body, headers=admin_headers)
    assert paid.status_code == 200
    assert paid.json()["status"] == "paid"
    assert paid.json()["payment_reference"] == "SEPA-2025-001"

    again = client.patch(url, json=body, headers=admin_headers)
    assert again.status_code == 500
    assert again.json()["code"] == "ALREADY_PAID"


def test_stats_and_totals(client, admin_headers, partner_headers, commission_ids, catalog) -> None:
    client.patch(
        f"{BASE}/{commission_ids[0]}/mark-paid",
        json={"payment_reference": "SEPA-1"},
        headers=admin_headers,
    )

    stats = client.get(f"{BASE}/stats", headers=admin_headers).json()
    assert stats["total_amount"] == 16.0
    assert stats["paid_count"] == 1
    assert stats["pending_count"] == 1
    assert stats["period_amount"] == 16.0
    assert stats["platform_revenue"] == 160.0
    assert len(stats["evolution"]) == 12
    assert stats["evolution"][-1]["commissions"] == 16.0
    assert stats["top_partners"][0]["partner_id"] == catalog.partner.id
    assert stats["top_partners"][0]["bookings_count"] == 2

    totals = client.get(f"{BASE}/partners/{catalog.partner.id}/totals", headers=partner_headers)
    assert totals.status_code == 200
    assert totals.json()["pending"] == {"total": 8.0, "count": 1}
    assert totals.json()["paid"] == {"total": 8.0, "count": 1}


def test_partner_cannot_read_other_partner_totals(client, partner_headers) -> None:
    response = client.get(f"{BASE}/partners/{generate_ulid()}/totals", headers=partner_headers)

    assert response.status_code == 404


def test_export_csv(client, partner_headers, commission_ids) -> None:
    response = client.get(f"{BASE}/export", headers=partner_headers)

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert "attachment" in response.headers["content-disposition"]
    lines = response.text.strip().splitlines()
    assert lines[0].startswith("id,")
    assert len(lines) == 3


def test_commission_hidden_from_other_partners(client, commission_ids, make_partner) -> None:
    stranger = CallerContext(user_id=generate_ulid(), partner_id=make_partner().id)
    headers = {"X-User-Id": stranger.user_id, "X-Partner-Id": stranger.partner_id}

    response = client.get(f"{BASE}/{commission_ids[0]}", headers=headers)

    assert response.status_code == 404


def test_stats_period_query(client, admin_headers, commission_ids) -> None:
    response = client.get(
        f"{BASE}/stats",
        params={"start": "2020-01-01T00:00:00Z", "end": "2020-02-01T00:00:00Z"},
        headers=admin_headers,
    )

    assert response.status_code == 200
    stats = response.json()
    assert stats["period_amount"] == 0.0
    assert stats["top_partners"] == []
    assert stats["total_amount"] == 16.0


def test_stats_inverted_period_is_rejected(client, admin_headers) -> None:
    response = client.get(
        f"{BASE}/stats",
        params={"start": "2025-02-01T00:00:00Z", "end": "2025-01-01T00:00:00Z"},
        headers=admin_headers,
    )

    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"
