# backend/tests/routes/test_experts_routes.py
"""HTTP tests for /api/v1/experts."""

EXPERTS = "/api/v1/experts"


class TestExpertProfile:
    def test_get_expert(self, api_client, expert):
        response = api_client.get(f"{EXPERTS}/{expert.id}")

        assert response.status_code == 200
        body = response.json()
        assert body["id"] == expert.id
        assert body["hourly_rate"] == "100.00"
        assert body["slot_duration"] == 60
        assert body["total_sessions"] == 0
        assert body["display_name"]

    def test_unknown_expert(self, api_client):
        assert api_client.get(f"{EXPERTS}/missing").status_code == 404


class TestScheduleRoutes:
    def test_owner_replaces_schedule(self, api_client, headers_for, expert, expert_actor):
        response = api_client.put(
            f"{EXPERTS}/{expert.id}/availability",
            json={
                "availability": {"Friday": [{"start": "10:00", "end": "12:00"}]},
                "break_times": [{"start": "11:00", "end": "11:30", "days": [5]}],
                "slot_duration": 30,
            },
            headers=headers_for(expert_actor),
        )

        assert response.status_code == 200
        body = response.json()
        assert body["availability"] == {"Friday": [{"start": "10:00", "end": "12:00"}]}
        assert body["break_times"] == [{"start": "11:00", "end": "11:30", "days": [5]}]
        assert body["slot_duration"] == 30

    def test_invalid_window(self, api_client, headers_for, expert, expert_actor):
        response = api_client.put(
            f"{EXPERTS}/{expert.id}/availability",
            json={"availability": {"Friday": [{"start": "12:00", "end": "10:00"}]}},
            headers=headers_for(expert_actor),
        )

        assert response.status_code == 400

    def test_clients_cannot_edit(self, api_client, headers_for, expert, client_actor):
        response = api_client.put(
            f"{EXPERTS}/{expert.id}/availability",
            json={"availability": {}},
            headers=headers_for(client_actor),
        )

        assert response.status_code == 403


class TestAvailabilityRoutes:
    def test_slots_for_date(self, api_client, headers_for, expert, client_actor):
        response = api_client.get(
            f"{EXPERTS}/{expert.id}/availability/slots",
            params={"date": "2030-01-14", "duration": 60},
            headers=headers_for(client_actor),
        )

        assert response.status_code == 200
        body = response.json()
        assert body["timezone"] == "UTC"
        assert len(body["slots"]) == 8
        assert body["slots"][0] == {"start": "09:00", "end": "10:00"}

    def test_slots_require_identity(self, api_client, expert):
        response = api_client.get(
            f"{EXPERTS}/{expert.id}/availability/slots",
            params={"date": "2030-01-14", "duration": 60},
        )

        assert response.status_code == 401

    def test_unsupported_duration(self, api_client, headers_for, expert, client_actor):
        response = api_client.get(
            f"{EXPERTS}/{expert.id}/availability/slots",
            params={"date": "2030-01-14", "duration": 45},
            headers=headers_for(client_actor),
        )

        assert response.status_code == 400

    def test_dates_in_month(self, api_client, headers_for, expert, client_actor):
        response = api_client.get(
            f"{EXPERTS}/{expert.id}/availability/dates",
            params={"year": 2030, "month": 1},
            headers=headers_for(client_actor),
        )

        assert response.status_code == 200
        body = response.json()
        assert body["duration_minutes"] == 30
        # Mondays and Wednesdays of January 2030.
        assert body["dates"] == [
            f"2030-01-{day:02d}" for day in (2, 7, 9, 14, 16, 21, 23, 28, 30)
        ]

    def test_booked_slot_disappears(self, api_client, headers_for, expert, client_actor):
        api_client.post(
            "/api/v1/sessions",
            json={
                "expert_id": expert.id,
                "scheduled_date": "2030-01-14",
                "scheduled_time": "09:00",
                "duration_minutes": 60,
            },
            headers=headers_for(client_actor),
        )

        response = api_client.get(
            f"{EXPERTS}/{expert.id}/availability/slots",
            params={"date": "2030-01-14", "duration": 60},
            headers=headers_for(client_actor),
        )

        starts = [slot["start"] for slot in response.json()["slots"]]
        assert "09:00" not in starts
        assert len(starts) == 7
