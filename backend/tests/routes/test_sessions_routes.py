# backend/tests/routes/test_sessions_routes.py
"""HTTP tests for /api/v1/sessions and /api/v1/payments."""

import pytest

from app.core.enums import ActorRole
from app.core.permissions import Actor

SESSIONS = "/api/v1/sessions"


@pytest.fixture
def booking_payload(expert):
    return {
        "expert_id": expert.id,
        "scheduled_date": "2030-01-14",
        "scheduled_time": "10:00",
        "duration_minutes": 60,
    }


@pytest.fixture
def booked(api_client, headers_for, client_actor, booking_payload):
    response = api_client.post(SESSIONS, json=booking_payload, headers=headers_for(client_actor))
    assert response.status_code == 201
    return response.json()["session"]


class TestCreateSession:
    def test_books_session(self, api_client, headers_for, client_actor, booking_payload):
        response = api_client.post(
            SESSIONS, json=booking_payload, headers=headers_for(client_actor)
        )

        assert response.status_code == 201
        body = response.json()
        assert body["requires_payment"] is True
        assert body["amount_due"] == "100.00"
        assert body["session"]["status"] == "pending"
        assert body["session"]["scheduled_time"] == "10:00"
        assert body["session"]["end_time"] == "11:00"
        assert body["session"]["platform_commission"] == "20.00"
        assert body["session"]["expert_commission"] == "80.00"

    def test_missing_identity_is_unauthorized(self, api_client, booking_payload):
        response = api_client.post(SESSIONS, json=booking_payload)

        assert response.status_code == 401

    def test_unknown_role_is_unauthorized(self, api_client, booking_payload, client_actor):
        response = api_client.post(
            SESSIONS,
            json=booking_payload,
            headers={"X-Actor-Id": client_actor.id, "X-Actor-Role": "superuser"},
        )

        assert response.status_code == 401

    def test_double_booking_conflicts(
        self, api_client, headers_for, booked, booking_payload, make_account
    ):
        other = make_account(role="client")

        response = api_client.post(
            SESSIONS,
            json=booking_payload,
            headers=headers_for(Actor(id=other.id, role=ActorRole.CLIENT)),
        )

        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "BOOKING_CONFLICT"

    def test_malformed_time(self, api_client, headers_for, client_actor, booking_payload):
        booking_payload["scheduled_time"] = "9:00"

        response = api_client.post(
            SESSIONS, json=booking_payload, headers=headers_for(client_actor)
        )

        assert response.status_code == 400

    def test_unapproved_expert(self, api_client, headers_for, client_actor, make_expert):
        expert = make_expert(is_approved=False)

        response = api_client.post(
            SESSIONS,
            json={
                "expert_id": expert.id,
                "scheduled_date": "2030-01-14",
                "scheduled_time": "10:00",
                "duration_minutes": 60,
            },
            headers=headers_for(client_actor),
        )

        assert response.status_code == 422

    def test_experts_cannot_book(self, api_client, headers_for, expert_actor, booking_payload):
        response = api_client.post(
            SESSIONS, json=booking_payload, headers=headers_for(expert_actor)
        )

        assert response.status_code == 403

    def test_extra_fields_are_rejected(
        self, api_client, headers_for, client_actor, booking_payload
    ):
        booking_payload["price"] = "1.00"

        response = api_client.post(
            SESSIONS, json=booking_payload, headers=headers_for(client_actor)
        )

        assert response.status_code == 422


class TestReadSessions:
    def test_list_and_get(self, api_client, headers_for, client_actor, booked):
        listing = api_client.get(SESSIONS, headers=headers_for(client_actor))
        detail = api_client.get(f"{SESSIONS}/{booked['id']}", headers=headers_for(client_actor))

        assert listing.status_code == 200
        assert listing.json()["total"] == 1
        assert listing.json()["items"][0]["id"] == booked["id"]
        assert detail.status_code == 200
        assert detail.json()["price"] == "100.00"

    def test_upcoming(self, api_client, headers_for, expert_actor, booked):
        response = api_client.get(f"{SESSIONS}/upcoming", headers=headers_for(expert_actor))

        assert response.status_code == 200
        assert [s["id"] for s in response.json()] == [booked["id"]]

    def test_unknown_session(self, api_client, headers_for, admin_actor):
        response = api_client.get(f"{SESSIONS}/missing", headers=headers_for(admin_actor))

        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "NotFoundException"

    def test_strangers_cannot_view(self, api_client, headers_for, booked, make_account):
        other = make_account(role="client")

        response = api_client.get(
            f"{SESSIONS}/{booked['id']}",
            headers=headers_for(Actor(id=other.id, role=ActorRole.CLIENT)),
        )

        assert response.status_code == 403


class TestLifecycleRoutes:
    def test_pay_complete_and_rate(
        self, api_client, headers_for, booked, system_actor, expert_actor, client_actor
    ):
        paid = api_client.post(
            f"/api/v1/payments/sessions/{booked['id']}/succeeded",
            headers=headers_for(system_actor),
        )
        completed = api_client.post(
            f"{SESSIONS}/{booked['id']}/complete", headers=headers_for(expert_actor)
        )
        rated = api_client.post(
            f"{SESSIONS}/{booked['id']}/rate",
            json={"rating": 5, "review": "Great"},
            headers=headers_for(client_actor),
        )

        assert paid.status_code == 200
        assert paid.json()["status"] == "confirmed"
        assert paid.json()["payment_status"] == "paid"
        assert completed.status_code == 200
        assert completed.json()["status"] == "completed"
        assert rated.status_code == 200
        assert rated.json()["rating"] == 5

    def test_payment_failure_keeps_session_pending(
        self, api_client, headers_for, booked, system_actor
    ):
        response = api_client.post(
            f"/api/v1/payments/sessions/{booked['id']}/failed",
            headers=headers_for(system_actor),
        )

        assert response.status_code == 200
        assert response.json()["status"] == "pending"
        assert response.json()["payment_status"] == "failed"

    def test_complete_pending_session_is_rejected(
        self, api_client, headers_for, booked, expert_actor
    ):
        response = api_client.post(
            f"{SESSIONS}/{booked['id']}/complete", headers=headers_for(expert_actor)
        )

        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "INVALID_STATE"

    def test_cancel(self, api_client, headers_for, booked, client_actor):
        response = api_client.post(
            f"{SESSIONS}/{booked['id']}/cancel",
            json={"reason": "Travelling"},
            headers=headers_for(client_actor),
        )

        assert response.status_code == 200
        body = response.json()
        assert body["session"]["status"] == "cancelled"
        assert body["session"]["cancel_reason"] == "Travelling"
        assert body["refund_fraction"] == "1"
        assert body["refund_amount"] == "100.00"

    def test_expert_updates_meeting_link(self, api_client, headers_for, booked, expert_actor):
        response = api_client.patch(
            f"{SESSIONS}/{booked['id']}",
            json={"meeting_link": "https://meet.example.com/abc"},
            headers=headers_for(expert_actor),
        )

        assert response.status_code == 200
        assert response.json()["meeting_link"] == "https://meet.example.com/abc"

    def test_client_cannot_update_details(self, api_client, headers_for, booked, client_actor):
        response = api_client.patch(
            f"{SESSIONS}/{booked['id']}",
            json={"notes": "Please call"},
            headers=headers_for(client_actor),
        )

        assert response.status_code == 403

    def test_update_rejects_unknown_fields(self, api_client, headers_for, booked, expert_actor):
        response = api_client.patch(
            f"{SESSIONS}/{booked['id']}",
            json={"price": "1.00"},
            headers=headers_for(expert_actor),
        )

        assert response.status_code == 422

    def test_cancel_without_body(self, api_client, headers_for, booked, expert_actor):
        response = api_client.post(
            f"{SESSIONS}/{booked['id']}/cancel", headers=headers_for(expert_actor)
        )

        assert response.status_code == 200
        assert response.json()["session"]["cancelled_by"] == "expert"

    def test_rating_out_of_range(
        self, api_client, headers_for, booked, client_actor, system_actor, expert_actor
    ):
        api_client.post(
            f"/api/v1/payments/sessions/{booked['id']}/succeeded",
            headers=headers_for(system_actor),
        )
        api_client.post(f"{SESSIONS}/{booked['id']}/complete", headers=headers_for(expert_actor))

        response = api_client.post(
            f"{SESSIONS}/{booked['id']}/rate",
            json={"rating": 6},
            headers=headers_for(client_actor),
        )

        assert response.status_code == 400

    def test_refund_requires_privilege(self, api_client, headers_for, booked, client_actor):
        response = api_client.post(
            f"{SESSIONS}/{booked['id']}/refund", headers=headers_for(client_actor)
        )

        assert response.status_code == 403

    def test_admin_refund(self, api_client, headers_for, booked, admin_actor):
        response = api_client.post(
            f"{SESSIONS}/{booked['id']}/refund",
            json={"reason": "Goodwill"},
            headers=headers_for(admin_actor),
        )

        assert response.status_code == 200
        assert response.json()["status"] == "refunded"
