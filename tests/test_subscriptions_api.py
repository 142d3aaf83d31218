from datetime import datetime

import pytest

from app.models import Subscription
from app.services.delivery_automation import advance_due_deliveries

from .conftest import OTHER_TOKEN


def create(client, auth_headers, payload) -> dict:
    response = client.post("/subscriptions", json=payload, headers=auth_headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


# ============================================================================
# CREATE
# ============================================================================


def test_create_weekly_subscription(client, auth_headers, weekly_payload, seed):
    response = client.post("/subscriptions", json=weekly_payload, headers=auth_headers)

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Subscription created"

    data = body["data"]
    assert data["status"] == "active"
    assert data["frequency"] == "weekly"
    assert data["deliveryDays"] == [1, 3, 5]
    assert data["deliveryDate"] is None
    assert data["schedule"] == "Weekly on Mon, Wed, Fri at 08:00"
    # Wednesday 10:00, today's 08:00 slot has passed -> Friday
    assert data["nextDeliveryDate"] == "2026-10-16T08:00:00"
    assert data["pausedUntil"] is None
    assert data["deliveryAddressId"] == seed["address_id"]
    assert data["items"] == [
        {
            "productId": seed["milk_id"],
            "name": "Toned Milk 1L",
            "quantity": 2,
            "price": 60.0,
            "lineTotal": 120.0,
        }
    ]
    assert data["totalAmount"] == 120.0
    assert data["deliveryFee"] == 40.0
    assert data["estimatedTotal"] == 160.0


def test_create_monthly_drops_weekly_days(client, auth_headers, weekly_payload):
    payload = dict(weekly_payload, frequency="monthly", deliveryDate=31)
    data = create(client, auth_headers, payload)

    assert data["deliveryDays"] is None
    assert data["deliveryDate"] == 31
    assert data["nextDeliveryDate"] == "2026-10-31T08:00:00"


def test_create_with_future_start_date(client, auth_headers, weekly_payload):
    payload = dict(weekly_payload, frequency="daily", startDate="2026-11-01T00:00:00")
    data = create(client, auth_headers, payload)

    assert data["startDate"] == "2026-11-01T00:00:00"
    assert data["nextDeliveryDate"] == "2026-11-01T08:00:00"


def test_create_with_multiple_items_ships_free_over_threshold(client, auth_headers, weekly_payload, seed):
    payload = dict(
        weekly_payload,
        items=[
            {"productId": seed["milk_id"], "quantity": 6},
            {"productId": seed["bread_id"], "quantity": 4},
        ],
    )
    data = create(client, auth_headers, payload)

    assert [item["productId"] for item in data["items"]] == [seed["milk_id"], seed["bread_id"]]
    assert data["totalAmount"] == 542.0
    assert data["deliveryFee"] == 0.0


@pytest.mark.parametrize(
    "overrides,code,field",
    [
        ({"items": []}, "empty_items", "items"),
        ({"frequency": "yearly"}, "invalid_frequency", "frequency"),
        ({"deliveryAddressId": ""}, "missing_address", "deliveryAddressId"),
        ({"deliveryTime": {"hour": 25, "minute": 0}}, "invalid_time", "deliveryTime"),
        ({"deliveryDays": []}, "missing_delivery_days", "deliveryDays"),
        ({"frequency": "monthly", "deliveryDate": 32}, "invalid_delivery_date", "deliveryDate"),
        ({"frequency": "monthly", "deliveryDate": 0}, "invalid_delivery_date", "deliveryDate"),
        ({"paymentMethod": "crypto"}, "invalid_payment_method", "paymentMethod"),
    ],
)
def test_create_rejects_invalid_config(client, auth_headers, weekly_payload, db_session, overrides, code, field):
    payload = dict(weekly_payload, **overrides)
    response = client.post("/subscriptions", json=payload, headers=auth_headers)

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["data"] == {"code": code, "field": field}
    assert body["message"]
    assert db_session.query(Subscription).count() == 0


def test_create_rejects_someone_elses_address(client, auth_headers, weekly_payload, seed):
    payload = dict(weekly_payload, deliveryAddressId=seed["other_address_id"])
    response = client.post("/subscriptions", json=payload, headers=auth_headers)

    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "Delivery address not found", "data": None}


def test_create_rejects_unknown_product(client, auth_headers, weekly_payload):
    payload = dict(weekly_payload, items=[{"productId": "nope", "quantity": 1}])
    response = client.post("/subscriptions", json=payload, headers=auth_headers)

    assert response.status_code == 404
    assert response.json()["message"] == "Product nope not found"


def test_create_rejects_unavailable_product(client, auth_headers, weekly_payload, seed):
    payload = dict(weekly_payload, items=[{"productId": seed["eggs_id"], "quantity": 1}])
    response = client.post("/subscriptions", json=payload, headers=auth_headers)

    assert response.status_code == 400
    assert "unavailable" in response.json()["message"]


def test_create_rejects_quantity_over_stock(client, auth_headers, weekly_payload, seed):
    payload = dict(weekly_payload, items=[{"productId": seed["bread_id"], "quantity": 21}])
    response = client.post("/subscriptions", json=payload, headers=auth_headers)

    assert response.status_code == 400
    assert "Only 20 items" in response.json()["message"]


def test_create_with_wrong_types_is_422_envelope(client, auth_headers, weekly_payload):
    payload = dict(weekly_payload, deliveryDays="monday")
    response = client.post("/subscriptions", json=payload, headers=auth_headers)

    assert response.status_code == 422
    body = response.json()
    assert body["success"] is False
    assert isinstance(body["data"], list)


def test_requires_authentication(client, weekly_payload):
    response = client.post("/subscriptions", json=weekly_payload)
    assert response.status_code == 401
    assert response.json()["success"] is False
    assert response.json()["message"].startswith("Not authenticated")

    response = client.get("/subscriptions", headers={"Authorization": "Bearer wrong"})
    assert response.status_code == 401


# ============================================================================
# READ
# ============================================================================


def test_list_and_filter_by_status(client, auth_headers, weekly_payload):
    first = create(client, auth_headers, weekly_payload)
    create(client, auth_headers, dict(weekly_payload, frequency="daily"))
    client.post(f"/subscriptions/{first['id']}/pause", json={}, headers=auth_headers)

    everything = client.get("/subscriptions", headers=auth_headers).json()
    assert everything["success"] is True
    assert len(everything["data"]) == 2

    paused = client.get("/subscriptions?status=paused", headers=auth_headers).json()["data"]
    assert [s["id"] for s in paused] == [first["id"]]

    active = client.get("/subscriptions?status=active", headers=auth_headers).json()["data"]
    assert len(active) == 1
    assert active[0]["frequency"] == "daily"


def test_list_rejects_unknown_status(client, auth_headers):
    response = client.get("/subscriptions?status=expired", headers=auth_headers)
    assert response.status_code == 422


def test_subscriptions_are_private(client, auth_headers, weekly_payload):
    created = create(client, auth_headers, weekly_payload)
    other_headers = {"Authorization": f"Bearer {OTHER_TOKEN}"}

    assert client.get("/subscriptions", headers=other_headers).json()["data"] == []
    response = client.get(f"/subscriptions/{created['id']}", headers=other_headers)
    assert response.status_code == 404
    response = client.post(f"/subscriptions/{created['id']}/cancel", headers=other_headers)
    assert response.status_code == 404


def test_get_single_subscription(client, auth_headers, weekly_payload):
    created = create(client, auth_headers, weekly_payload)
    response = client.get(f"/subscriptions/{created['id']}", headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["data"]["id"] == created["id"]


# ============================================================================
# UPDATE
# ============================================================================


def test_update_schedule_recomputes_next_delivery(client, auth_headers, weekly_payload):
    created = create(client, auth_headers, weekly_payload)

    response = client.put(
        f"/subscriptions/{created['id']}",
        json={"deliveryTime": {"hour": 18, "minute": 15}, "customerNotes": "Leave at door"},
        headers=auth_headers,
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["deliveryTime"] == {"hour": 18, "minute": 15}
    assert data["deliveryDays"] == [1, 3, 5]
    # Wednesday's 18:15 slot is still ahead
    assert data["nextDeliveryDate"] == "2026-10-14T18:15:00"
    assert data["customerNotes"] == "Leave at door"


def test_update_switches_frequency(client, auth_headers, weekly_payload):
    created = create(client, auth_headers, weekly_payload)

    response = client.put(
        f"/subscriptions/{created['id']}",
        json={"frequency": "monthly", "deliveryDate": 1},
        headers=auth_headers,
    )

    data = response.json()["data"]
    assert data["frequency"] == "monthly"
    assert data["deliveryDays"] is None
    assert data["deliveryDate"] == 1
    assert data["nextDeliveryDate"] == "2026-11-01T08:00:00"


def test_update_validates_merged_schedule(client, auth_headers, weekly_payload):
    created = create(client, auth_headers, weekly_payload)

    response = client.put(
        f"/subscriptions/{created['id']}", json={"frequency": "monthly"}, headers=auth_headers
    )

    assert response.status_code == 400
    assert response.json()["data"]["code"] == "invalid_delivery_date"


def test_update_paused_subscription_stays_paused(client, auth_headers, weekly_payload):
    created = create(client, auth_headers, weekly_payload)
    url = f"/subscriptions/{created['id']}"
    client.post(f"{url}/pause", json={"resumeDate": "2026-10-25T00:00:00"}, headers=auth_headers)

    response = client.put(url, json={"deliveryDays": [2]}, headers=auth_headers)

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "paused"
    assert data["pausedUntil"] == "2026-10-25T00:00:00"
    assert data["deliveryDays"] == [2]
    # Tuesdays only: from Wednesday 14 Oct the next slot is Tuesday 20 Oct
    assert data["nextDeliveryDate"] == "2026-10-20T08:00:00"


def test_update_cancelled_subscription_fails(client, auth_headers, weekly_payload):
    created = create(client, auth_headers, weekly_payload)
    client.post(f"/subscriptions/{created['id']}/cancel", headers=auth_headers)

    response = client.put(
        f"/subscriptions/{created['id']}", json={"deliveryDays": [2]}, headers=auth_headers
    )

    assert response.status_code == 409
    assert response.json()["data"]["code"] == "already_cancelled"


# ============================================================================
# LIFECYCLE
# ============================================================================


def test_pause_resume_cancel_flow(client, auth_headers, weekly_payload, clock):
    created = create(client, auth_headers, weekly_payload)
    url = f"/subscriptions/{created['id']}"

    response = client.post(
        f"{url}/pause",
        json={"reason": "Out of town", "resumeDate": "2026-10-25T00:00:00"},
        headers=auth_headers,
    )
    assert response.status_code == 200
    paused = response.json()["data"]
    assert paused["status"] == "paused"
    assert paused["pausedUntil"] == "2026-10-25T00:00:00"
    assert paused["pauseReason"] == "Out of town"
    assert paused["nextDeliveryDate"] == created["nextDeliveryDate"]

    # Resume on Monday 19 Oct at 09:00: next slot is Wednesday 21 Oct 08:00
    clock.now = datetime(2026, 10, 19, 9, 0)
    response = client.post(f"{url}/resume", headers=auth_headers)
    assert response.status_code == 200
    resumed = response.json()["data"]
    assert resumed["status"] == "active"
    assert resumed["pausedUntil"] is None
    assert resumed["nextDeliveryDate"] == "2026-10-21T08:00:00"

    response = client.post(f"{url}/cancel", json={"reason": "Moving"}, headers=auth_headers)
    assert response.status_code == 200
    cancelled = response.json()["data"]
    assert cancelled["status"] == "cancelled"
    assert cancelled["cancellationReason"] == "Moving"
    assert cancelled["cancelledAt"] == "2026-10-19T09:00:00"
    assert cancelled["nextDeliveryDate"] is None


def test_pause_without_body(client, auth_headers, weekly_payload):
    created = create(client, auth_headers, weekly_payload)

    response = client.post(f"/subscriptions/{created['id']}/pause", headers=auth_headers)

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "paused"
    assert data["pausedUntil"] is None
    assert data["pauseReason"] is None
    assert data["nextDeliveryDate"] == created["nextDeliveryDate"]


def test_resume_before_start_date_keeps_first_delivery(client, auth_headers, weekly_payload):
    payload = dict(weekly_payload, frequency="daily", startDate="2026-11-01T00:00:00")
    created = create(client, auth_headers, payload)
    url = f"/subscriptions/{created['id']}"
    client.post(f"{url}/pause", headers=auth_headers)

    response = client.post(f"{url}/resume", headers=auth_headers)

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "active"
    assert data["nextDeliveryDate"] == "2026-11-01T08:00:00"


def test_pause_accepts_paused_until_alias(client, auth_headers, weekly_payload):
    created = create(client, auth_headers, weekly_payload)

    response = client.post(
        f"/subscriptions/{created['id']}/pause",
        json={"pausedUntil": "2026-10-01T00:00:00"},
        headers=auth_headers,
    )

    # A resume date in the past is stored; the subscription stays paused
    data = response.json()["data"]
    assert data["status"] == "paused"
    assert data["pausedUntil"] == "2026-10-01T00:00:00"


def test_resume_active_subscription_fails(client, auth_headers, weekly_payload):
    created = create(client, auth_headers, weekly_payload)

    response = client.post(f"/subscriptions/{created['id']}/resume", headers=auth_headers)

    assert response.status_code == 409
    assert response.json()["data"] == {"code": "not_paused", "field": "status"}


def test_pause_twice_fails(client, auth_headers, weekly_payload):
    created = create(client, auth_headers, weekly_payload)
    url = f"/subscriptions/{created['id']}/pause"
    client.post(url, json={}, headers=auth_headers)

    response = client.post(url, json={}, headers=auth_headers)

    assert response.status_code == 409
    assert response.json()["data"]["code"] == "already_paused"


def test_cancel_is_terminal_and_repeatable_failure(client, auth_headers, weekly_payload, db_session):
    created = create(client, auth_headers, weekly_payload)
    url = f"/subscriptions/{created['id']}"
    first = client.post(f"{url}/cancel", headers=auth_headers).json()["data"]

    for action in ("cancel", "pause", "resume"):
        response = client.post(f"{url}/{action}", json={}, headers=auth_headers)
        assert response.status_code == 409
        assert response.json()["data"]["code"] == "already_cancelled"

    after = client.get(url, headers=auth_headers).json()["data"]
    assert after["status"] == "cancelled"
    assert after["cancelledAt"] == first["cancelledAt"]


# ============================================================================
# PREVIEW & AUTOMATION
# ============================================================================


def test_preview_does_not_persist(client, auth_headers, weekly_payload, db_session):
    response = client.post("/subscriptions/preview", json=weekly_payload, headers=auth_headers)

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["nextDeliveryDate"] == "2026-10-16T08:00:00"
    assert data["upcomingDeliveries"][:3] == [
        "2026-10-16T08:00:00",
        "2026-10-19T08:00:00",
        "2026-10-21T08:00:00",
    ]
    assert len(data["upcomingDeliveries"]) == 5
    assert data["subtotal"] == 120.0
    assert data["total"] == 160.0
    assert db_session.query(Subscription).count() == 0


def test_automation_rolls_forward_active_only(client, auth_headers, weekly_payload, db_session):
    active = create(client, auth_headers, dict(weekly_payload, frequency="daily"))
    paused = create(client, auth_headers, dict(weekly_payload, frequency="daily"))
    client.post(f"/subscriptions/{paused['id']}/pause", json={}, headers=auth_headers)

    later = datetime(2026, 10, 17, 12, 0)
    summary = advance_due_deliveries(db_session, now=later)

    assert summary == {"checked": 1, "advanced": 1}
    db_session.expire_all()
    rows = {s.public_id: s for s in db_session.query(Subscription).all()}
    assert rows[active["id"]].next_delivery_date == datetime(2026, 10, 18, 8, 0)
    assert rows[paused["id"]].status == "paused"
    assert rows[paused["id"]].next_delivery_date == datetime(2026, 10, 15, 8, 0)


def test_automation_endpoint_returns_summary(client, auth_headers, weekly_payload):
    create(client, auth_headers, weekly_payload)

    response = client.post("/automation/deliveries/run", headers=auth_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    # The endpoint runs on the real clock, so the slot may or may not be due yet
    assert body["data"]["checked"] == body["data"]["advanced"]


def test_health(client):
    assert client.get("/health").json()["status"] == "healthy"
