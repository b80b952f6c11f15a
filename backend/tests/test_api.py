# backend/tests/test_api.py

from datetime import date, timedelta

import pytest

from sessionbook import main

from .helpers import ADMIN_ID, headers, next_weekday


@pytest.fixture
def day():
    """A Tuesday at least a week out."""
    return next_weekday(date.today() + timedelta(days=7), 1)


@pytest.fixture
def approved(client):
    def _approved(user_id, sessions=2):
        client.get("/users/me", headers=headers(user_id))
        response = client.post(f"/users/{user_id}/approve", json={"sessions": sessions}, headers=headers(ADMIN_ID))
        assert response.status_code == 200, response.text
        return response.json()
    return _approved


def test_health(client, monkeypatch):
    class FakeRedis:
        def ping(self):
            return True

    monkeypatch.setattr(main, "redis_client", FakeRedis())
    response = client.get("/health")
    assert response.json() == {"status": "ok", "redis": True}


def test_identity_header_is_required(client):
    assert client.get("/users/me").status_code == 401


def test_first_sight_creates_pending_user(client):
    response = client.get("/users/me", headers={"X-User-Id": "u1", "X-User-Name": "Una"})

    body = response.json()
    assert response.status_code == 200
    assert body["id"] == "u1"
    assert body["name"] == "Una"
    assert body["approval_state"] == "pending"
    assert (body["sessions_granted"], body["remaining_credits"], body["consumed_credits"]) == (0, 0, 0)


def test_configured_admin_ids_become_admins(client):
    body = client.get("/users/me", headers=headers(ADMIN_ID)).json()
    assert body["role"] == "admin"
    assert body["approval_state"] == "approved"


def test_admin_endpoints_are_protected(client):
    client.get("/users/me", headers=headers("u1"))
    assert client.get("/users/", headers=headers("u1")).status_code == 403
    assert client.post("/users/u1/approve", headers=headers("u1")).status_code == 403
    assert client.get("/users/pending", headers=headers(ADMIN_ID)).status_code == 200


def test_pending_listing(client):
    client.get("/users/me", headers=headers("u1"))
    client.get("/users/me", headers=headers("u2"))

    pending = client.get("/users/pending", headers=headers(ADMIN_ID)).json()
    assert {u["id"] for u in pending} == {"u1", "u2"}


def test_booking_flow(client, approved, day):
    assert approved("u1")["remaining_credits"] == 2
    approved("u2")

    response = client.post("/bookings/", json={"date": day.isoformat(), "slot": "10:00 AM"}, headers=headers("u1"))
    assert response.status_code == 201, response.text
    booking = response.json()
    assert booking["status"] == "confirmed"

    response = client.post("/bookings/", json={"date": day.isoformat(), "slot": "10:00 AM"}, headers=headers("u2"))
    assert response.status_code == 409
    assert response.json()["code"] == "slot_unavailable"
    assert response.json()["retryable"] is False

    slots = client.get("/slots/day", params={"date": day.isoformat()}).json()
    assert "10:00 AM" not in slots["available_slots"]
    assert len(slots["available_slots"]) == 6

    assert client.get("/users/me", headers=headers("u1")).json()["remaining_credits"] == 1

    response = client.post(f"/bookings/{booking['id']}/cancel", headers=headers("u2"))
    assert response.status_code == 403

    response = client.post(f"/bookings/{booking['id']}/cancel", headers=headers("u1"))
    assert response.json()["status"] == "cancelled"
    assert client.get("/users/me", headers=headers("u1")).json()["remaining_credits"] == 2

    mine = client.get("/bookings/mine", headers=headers("u1")).json()
    assert [b["id"] for b in mine] == [booking["id"]]


def test_pending_user_cannot_book(client, day):
    response = client.post("/bookings/", json={"date": day.isoformat(), "slot": "10:00 AM"}, headers=headers("u1"))
    assert response.status_code == 403
    assert response.json()["code"] == "not_approved"


def test_insufficient_credits_status(client, approved, day):
    approved("u1", sessions=1)
    client.post("/bookings/", json={"date": day.isoformat(), "slot": "10:00 AM"}, headers=headers("u1"))

    response = client.post("/bookings/", json={"date": day.isoformat(), "slot": "11:00 AM"}, headers=headers("u1"))
    assert response.status_code == 402
    assert response.json()["details"]["remaining"] == 0


def test_unknown_slot_is_bad_request(client, approved, day):
    approved("u1")
    response = client.post("/bookings/", json={"date": day.isoformat(), "slot": "9:00 AM"}, headers=headers("u1"))
    assert response.status_code == 400
    assert response.json()["code"] == "invalid_input"


def test_blackout_periods(client, approved, day):
    approved("u1")

    response = client.post(
        "/blackout_periods/",
        json={"start_date": day.isoformat(), "end_date": day.isoformat(), "reason": "Closed"},
        headers=headers(ADMIN_ID),
    )
    assert response.status_code == 201
    period = response.json()

    response = client.post("/bookings/", json={"date": day.isoformat(), "slot": "10:00 AM"}, headers=headers("u1"))
    assert response.status_code == 409
    assert response.json()["details"]["blackout_id"] == period["id"]

    day_view = client.get("/slots/day", params={"date": day.isoformat()}).json()
    assert day_view["is_bookable"] is False
    assert day_view["reason"] == "blackout"

    assert client.delete(f"/blackout_periods/{period['id']}", headers=headers("u1")).status_code == 403
    assert client.delete(f"/blackout_periods/{period['id']}", headers=headers(ADMIN_ID)).status_code == 204
    assert client.get("/blackout_periods/", headers=headers("u1")).json() == []


def test_inverted_blackout_is_rejected(client, day):
    response = client.post(
        "/blackout_periods/",
        json={"start_date": day.isoformat(), "end_date": (day - timedelta(days=1)).isoformat()},
        headers=headers(ADMIN_ID),
    )
    assert response.status_code == 400


def test_series_endpoints(client, approved, day):
    approved("u1", sessions=4)

    response = client.post(
        "/bookings/series",
        json={"start_date": day.isoformat(), "slot": "2:00 PM", "occurrence_count": 3},
        headers=headers("u1"),
    )
    assert response.status_code == 201, response.text
    group = response.json()
    assert len(group["bookings"]) == 3
    assert client.get("/users/me", headers=headers("u1")).json()["remaining_credits"] == 1

    group_id = group["recurring_group_id"]
    assert len(client.get(f"/bookings/series/{group_id}", headers=headers("u1")).json()["bookings"]) == 3

    response = client.post(f"/bookings/series/{group_id}/cancel", headers=headers("u1"))
    assert {b["status"] for b in response.json()["bookings"]} == {"cancelled"}
    assert client.get("/users/me", headers=headers("u1")).json()["remaining_credits"] == 4


def test_series_failure_reports_occurrence(client, approved, day):
    approved("u1", sessions=4)
    blocked = day + timedelta(weeks=1)
    client.post(
        "/blackout_periods/",
        json={"start_date": blocked.isoformat(), "end_date": blocked.isoformat()},
        headers=headers(ADMIN_ID),
    )

    response = client.post(
        "/bookings/series",
        json={"start_date": day.isoformat(), "slot": "2:00 PM", "occurrence_count": 3},
        headers=headers("u1"),
    )
    assert response.status_code == 409
    assert response.json()["details"]["occurrence_index"] == 1
    assert client.get("/bookings/mine", headers=headers("u1")).json() == []


def test_reschedule_endpoint(client, approved, day):
    approved("u1")
    booking = client.post("/bookings/", json={"date": day.isoformat(), "slot": "10:00 AM"}, headers=headers("u1")).json()

    response = client.post(
        f"/bookings/{booking['id']}/reschedule",
        json={"date": day.isoformat(), "slot": "3:00 PM"},
        headers=headers("u1"),
    )
    assert response.status_code == 200
    assert response.json()["slot"] == "3:00 PM"
    assert client.get(f"/bookings/{booking['id']}", headers=headers("u1")).json()["status"] == "cancelled"


def test_grant_revoke_and_ledger(client, approved, day):
    approved("u1")
    client.post("/bookings/", json={"date": day.isoformat(), "slot": "10:00 AM"}, headers=headers("u1"))

    response = client.put("/users/u1/grant", json={"sessions": 5}, headers=headers(ADMIN_ID))
    assert response.json()["remaining_credits"] == 4

    response = client.post("/users/u1/revoke", headers=headers(ADMIN_ID))
    assert response.json()["approval_state"] == "pending"
    assert response.json()["remaining_credits"] == 0

    response = client.post("/users/u1/revoke", headers=headers(ADMIN_ID))
    assert response.status_code == 409
    assert response.json()["code"] == "invalid_transition"

    kinds = [t["kind"] for t in client.get("/ledger/u1/transactions", headers=headers("u1")).json()]
    assert kinds == ["revoke", "grant", "debit", "grant"]
    assert client.get("/ledger/u1/transactions", headers=headers("u2")).status_code == 403

    audit = client.get("/ledger/u1/audit", headers=headers(ADMIN_ID)).json()
    assert audit["consistent"] is True
    assert audit["confirmed_bookings"] == 1


def test_calendar_view(client, day):
    monday = day - timedelta(days=1)
    response = client.get(
        "/slots/calendar",
        params={"start_date": monday.isoformat(), "end_date": (monday + timedelta(days=6)).isoformat()},
    )
    days = response.json()["days"]
    assert len(days) == 7
    assert [d["is_bookable"] for d in days] == [True] * 5 + [False] * 2
    assert days[0]["open_slots_count"] == 7


def test_profile_update_and_purge(client, approved, day):
    approved("u1")
    client.post("/bookings/", json={"date": day.isoformat(), "slot": "10:00 AM"}, headers=headers("u1"))

    response = client.patch("/users/u1", json={"label_id": "blue"}, headers=headers(ADMIN_ID))
    assert response.json()["label_id"] == "blue"

    response = client.delete("/users/u1", headers=headers(ADMIN_ID))
    assert response.status_code == 409
    assert response.json()["code"] == "user_has_bookings"

    assert client.delete("/users/u1", params={"purge": True}, headers=headers(ADMIN_ID)).status_code == 204
    assert client.get("/users/u1", headers=headers(ADMIN_ID)).status_code == 404


def test_admin_creates_users(client):
    response = client.post("/users/", json={"id": "u9", "name": "Nine", "sessions": 3}, headers=headers(ADMIN_ID))
    assert response.status_code == 201
    body = response.json()
    assert (body["approval_state"], body["sessions_granted"], body["remaining_credits"]) == ("pending", 3, 0)

    response = client.post("/users/", json={"id": "u8", "sessions": 2, "approved": True}, headers=headers(ADMIN_ID))
    body = response.json()
    assert (body["approval_state"], body["remaining_credits"]) == ("approved", 2)

    response = client.post("/users/", json={"id": "u9"}, headers=headers(ADMIN_ID))
    assert response.status_code == 409
    assert response.json()["code"] == "user_exists"

    client.get("/users/me", headers=headers("u1"))
    assert client.post("/users/", json={"id": "u7"}, headers=headers("u1")).status_code == 403
