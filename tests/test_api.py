"""
HTTP-level tests: auth, public booking flow, staff endpoints and error mapping.
"""
from datetime import timedelta

import pytest

from roomdesk.services.time_utils import utcnow

# real clock: public intake rejects past dates
FUTURE = (utcnow() + timedelta(days=2)).date().isoformat()


def public_payload(seed, **overrides):
    data = {
        "customerName": "Dewi Lestari",
        "customerPhone": "0812-3456-7890",
        "paymentMethod": "QRIS",
        "bookingDate": FUTURE,
        "startTime": "09:00",
        "endTime": "11:00",
        "categoryId": seed.vip_id,
        "variantName": "2 Hours",
    }
    data.update(overrides)
    return data


def staff_booking(seed, **overrides):
    data = {
        "roomId": seed.vip1,
        "date": FUTURE,
        "startTime": "13:00",
        "endTime": "15:00",
        "customerName": "Budi",
        "price": 120000,
        "paymentMethod": "Cash",
    }
    data.update(overrides)
    return data


def test_db_check(client):
    resp = client.get("/api/db-check")
    assert resp.status_code == 200
    assert resp.get_json() == {"ok": True}


def test_staff_routes_need_a_token(client, seed):
    resp = client.get(f"/api/stores/{seed.store_id}/bookings")
    assert resp.status_code == 401


def test_store_outside_claims_is_forbidden(client, seed, auth_header):
    resp = client.get(f"/api/stores/{seed.store_id}/bookings", headers=auth_header(stores=[seed.other_store_id]))
    assert resp.status_code == 403
    assert resp.get_json()["error"] == "forbidden"


def test_public_request_and_confirmation_link(client, seed):
    resp = client.post(f"/public/stores/{seed.store_id}/booking-requests", json=public_payload(seed))
    assert resp.status_code == 201
    body = resp.get_json()
    assert body["bid"].startswith("BR-MLG-")
    assert body["status"] == "pending"
    assert body["confirmationUrl"].endswith(body["token"])

    resp = client.get(f"/public/booking-requests/confirm?token={body['token']}")
    assert resp.get_json()["changed"] is False

    resp = client.post(f"/public/booking-requests/confirm?token={body['token']}&action=confirm")
    assert resp.status_code == 200
    assert resp.get_json()["status"] == "confirmed"
    assert resp.get_json()["changed"] is True

    resp = client.post(f"/public/booking-requests/confirm?token={body['token']}&action=confirm")
    assert resp.status_code == 200
    assert resp.get_json()["changed"] is False

    resp = client.get("/public/booking-requests/confirm?token=nope&action=confirm")
    assert resp.status_code == 404


def test_public_availability_reflects_new_request(client, seed):
    url = f"/public/stores/{seed.store_id}/availability?date={FUTURE}&start=09:00&end=11:00"
    before = {r["categoryName"]: r for r in client.get(url).get_json()}
    client.post(f"/public/stores/{seed.store_id}/booking-requests", json=public_payload(seed))
    after = {r["categoryName"]: r for r in client.get(url).get_json()}
    assert before["VIP"]["held"] == 0
    assert after["VIP"]["held"] == 1

    variants = client.get(f"/public/stores/{seed.store_id}/categories/{seed.vip_id}/variants").get_json()
    assert [v["variantName"] for v in variants] == ["2 Hours", "3 Hours"]


def test_rate_limited_intake_returns_429(client, seed):
    for hour in range(8, 18, 2):
        resp = client.post(f"/public/stores/{seed.store_id}/booking-requests",
                           json=public_payload(seed, startTime=f"{hour:02d}:00", endTime=f"{hour + 1:02d}:00"))
        assert resp.status_code == 201
    resp = client.post(f"/public/stores/{seed.store_id}/booking-requests",
                       json=public_payload(seed, startTime="20:00", endTime="21:00"))
    assert resp.status_code == 429
    assert resp.get_json()["error"] == "rate_limited"
    assert int(resp.headers["Retry-After"]) > 0


def test_invalid_intake_is_400(client, seed):
    resp = client.post(f"/public/stores/{seed.store_id}/booking-requests",
                       json=public_payload(seed, startTime="10:00", endTime="10:00"))
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "validation_error"


def test_booking_status_flow_over_http(client, seed, auth_header):
    headers = auth_header(stores=[seed.store_id])
    resp = client.post(f"/api/stores/{seed.store_id}/bookings", json=staff_booking(seed), headers=headers)
    assert resp.status_code == 201
    booking = resp.get_json()
    assert booking["bid"].startswith("BO-MLG-")

    resp = client.post(f"/api/stores/{seed.store_id}/bookings", json=staff_booking(seed, startTime="14:00",
                                                                                    endTime="16:00"),
                       headers=headers)
    assert resp.status_code == 409

    status_url = f"/api/stores/{seed.store_id}/bookings/{booking['id']}/status"
    resp = client.post(status_url, json={"status": "CI", "version": booking["version"]}, headers=headers)
    assert resp.status_code == 200
    assert resp.get_json()["status"] == "CI"

    resp = client.post(status_url, json={"status": "BATAL", "version": booking["version"]}, headers=headers)
    assert resp.status_code == 409

    resp = client.get(f"/api/stores/{seed.store_id}/bookings/{booking['id']}", headers=headers)
    assert set(resp.get_json()["allowedTransitions"]) == {"CO", "BATAL"}

    resp = client.delete(f"/api/stores/{seed.store_id}/bookings/{booking['id']}", headers=headers)
    assert resp.status_code == 403

    resp = client.get(f"/api/stores/{seed.store_id}/bookings?date={FUTURE}", headers=headers)
    assert [b["bid"] for b in resp.get_json()] == [booking["bid"]]


def test_convert_request_over_http(client, seed, auth_header):
    headers = auth_header(stores=[seed.store_id])
    resp = client.post(f"/public/stores/{seed.store_id}/booking-requests", json=public_payload(seed))
    token = resp.get_json()["token"]
    client.post("/public/booking-requests/payment-proof",
                json={"token": token, "proofUrl": "https://cdn.example.test/proof.jpg"})

    listed = client.get(f"/api/stores/{seed.store_id}/booking-requests?status=pending", headers=headers).get_json()
    assert len(listed) == 1

    resp = client.post(f"/api/stores/{seed.store_id}/booking-requests/{listed[0]['id']}/convert",
                       json={"roomId": seed.vip2}, headers=headers)
    assert resp.status_code == 201
    body = resp.get_json()
    assert body["request"]["status"] == "confirmed"
    assert body["booking"]["referenceNo"] == listed[0]["bid"]

    resp = client.post(f"/api/stores/{seed.store_id}/booking-requests/{listed[0]['id']}/convert",
                       json={"roomId": seed.vip1}, headers=headers)
    assert resp.status_code == 409


def test_room_status_put_and_list(client, seed, auth_header):
    headers = auth_header(stores=[seed.store_id])
    resp = client.put(f"/api/stores/{seed.store_id}/rooms/{seed.vip1}/status",
                      json={"status": "Dirty", "date": FUTURE}, headers=headers)
    assert resp.status_code == 200
    assert resp.get_json()["status"] == "Dirty"

    rows = client.get(f"/api/stores/{seed.store_id}/room-status?date={FUTURE}", headers=headers).get_json()
    assert [(r["roomId"], r["status"]) for r in rows] == [(seed.vip1, "Dirty")]

    resp = client.put(f"/api/stores/{seed.store_id}/rooms/{seed.vip1}/status",
                      json={"status": "Dirty", "date": FUTURE}, headers=auth_header(role="user"))
    assert resp.status_code == 403


@pytest.mark.parametrize("kind, prefix", [("expenses", "OU"), ("incomes", "IN")])
def test_cash_entries_get_their_own_sequence(client, seed, auth_header, kind, prefix):
    headers = auth_header(stores=[seed.store_id])
    url = f"/api/stores/{seed.store_id}/{kind}"
    resp = client.post(url, json={"date": "2024-01-10", "amount": 25000, "description": "Ice"}, headers=headers)
    assert resp.status_code == 201
    assert resp.get_json()["bid"] == f"{prefix}-MLG-20240110-001"

    resp = client.post(url, json={"date": "2024-01-10", "amount": 0}, headers=headers)
    assert resp.status_code == 400

    rows = client.get(f"{url}?date=2024-01-10", headers=headers).get_json()
    assert [r["amount"] for r in rows] == [25000.0]
