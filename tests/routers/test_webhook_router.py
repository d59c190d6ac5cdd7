"""HTTP tests for the detector webhook."""

from __future__ import annotations

import pytest
from structlog.testing import capture_logs

from tests.conftest import WEBHOOK_SECRET


def _arrival_body(visit_id="visit-1", timestamp="2025-06-01T12:00:00Z"):
    return {"event": "arrival", "visit_id": visit_id, "timestamp": timestamp}


def _departure_body(visit_id="visit-1"):
    return {
        "event": "departure",
        "visit_id": visit_id,
        "arrival_time": "2025-06-01T12:00:00Z",
        "departure_time": "2025-06-01T12:07:30Z",
        "duration_seconds": 450,
        "duration_human": "7m 30s",
        "detection_count": 31,
    }


@pytest.fixture
async def provisioned(make_place, make_sub_place):
    place = await make_place(name="Building 10", external_id="building-10")
    await make_sub_place(place, name="The Balcony")
    return place


class TestWebhookAuth:
    @pytest.mark.asyncio
    async def test_missing_secret(self, client, location_service, provisioned):
        resp = await client.post("/api/webhook", json=_arrival_body())

        assert resp.status_code == 401
        assert resp.json() == {"error": "Unauthorized - invalid webhook secret"}
        assert await location_service.get_timeline("rocky") == []

    @pytest.mark.asyncio
    async def test_wrong_secret(self, client, location_service, provisioned):
        resp = await client.post(
            "/api/webhook", json=_arrival_body(), headers={"Authorization": "Bearer wrong"}
        )

        assert resp.status_code == 401
        assert await location_service.get_timeline("rocky") == []

    @pytest.mark.asyncio
    async def test_secret_checked_before_payload(self, client):
        resp = await client.post("/api/webhook", content=b"not json")

        assert resp.status_code == 401


class TestWebhookPayloads:
    @pytest.mark.asyncio
    async def test_unknown_event(self, client):
        resp = await client.post(
            "/api/webhook",
            json={"event": "ping"},
            headers={"Authorization": f"Bearer {WEBHOOK_SECRET}"},
        )

        assert resp.status_code == 400
        assert resp.json() == {"error": "Unknown event type: ping"}

    @pytest.mark.asyncio
    async def test_invalid_payload(self, client):
        resp = await client.post(
            "/api/webhook",
            json={"event": "arrival"},
            headers={"Authorization": WEBHOOK_SECRET},
        )

        assert resp.status_code == 400
        assert resp.json() == {"error": "Invalid webhook payload"}

    @pytest.mark.asyncio
    async def test_not_json(self, client):
        resp = await client.post(
            "/api/webhook", content=b"{", headers={"Authorization": WEBHOOK_SECRET}
        )

        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_rejected_payload_is_logged(self, client):
        with capture_logs() as logs:
            resp = await client.post(
                "/api/webhook",
                json={"event": "ping"},
                headers={"Authorization": WEBHOOK_SECRET},
            )

        assert resp.status_code == 400
        rejected = [entry for entry in logs if entry["event"] == "webhook_invalid_payload"]
        assert len(rejected) == 1
        assert rejected[0]["event_type"] == "ping"
        assert rejected[0]["errors"] >= 1

    @pytest.mark.asyncio
    async def test_arrival_then_departure(self, client, location_service, provisioned):
        headers = {"Authorization": f"Bearer {WEBHOOK_SECRET}"}

        arrival = await client.post("/api/webhook", json=_arrival_body("v-9"), headers=headers)
        assert arrival.status_code == 200
        report_id = arrival.json()["reportId"]

        current = await location_service.get_current_location("rocky")
        assert current["id"] == report_id
        assert current["locationName"] == "Building 10 - The Balcony"

        departure = await client.post("/api/webhook", json=_departure_body("v-9"), headers=headers)
        assert departure.status_code == 200
        assert departure.json() == {
            "success": True,
            "message": "Departure event processed",
            "matched": True,
            "reportId": report_id,
        }

        assert await location_service.get_current_location("rocky") is None
        [closed] = await location_service.get_timeline("rocky")
        assert closed["exitTime"] == "2025-06-01T12:07:30+00:00"
        assert closed["notes"].endswith(" | Duration: 7m 30s, Detections: 31")

    @pytest.mark.asyncio
    async def test_arrival_without_provisioned_place(self, client):
        resp = await client.post(
            "/api/webhook",
            json=_arrival_body(),
            headers={"Authorization": WEBHOOK_SECRET},
        )

        assert resp.status_code == 404
