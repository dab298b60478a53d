"""
Test API endpoints: auth boundary, lifecycle, ingestion, analytics.
"""

import pytest
from fastapi.testclient import TestClient

from viewing_backend.auth import issue_token, verify_token
from viewing_backend.main import app

client = TestClient(app)

RESEARCHER_HEADERS = {"X-Researcher-Key": "test-researcher-key"}


def auth(participant_id: str) -> dict:
    return {"Authorization": f"Bearer {issue_token(participant_id)}"}


def create_participant(participant_id="P001", condition="switching"):
    response = client.post(
        "/api/v1/participants",
        json={"participant_id": participant_id, "condition": condition},
        headers=RESEARCHER_HEADERS,
    )
    assert response.status_code == 201
    return response.json()


def open_session(participant_id="P001", item_id="a") -> str:
    response = client.post("/api/v1/sessions", json={"item_id": item_id}, headers=auth(participant_id))
    assert response.status_code == 201
    return response.json()["session_id"]


class TestHealth:

    def test_health(self):
        assert client.get("/health").json() == {"status": "ok"}


class TestParticipants:

    def test_create_requires_researcher_key(self):
        response = client.post("/api/v1/participants", json={"participant_id": "P001", "condition": "switching"})
        assert response.status_code == 403

    def test_duplicate_participant(self):
        create_participant("P001")
        response = client.post(
            "/api/v1/participants",
            json={"participant_id": "P001", "condition": "non_switching"},
            headers=RESEARCHER_HEADERS,
        )
        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "PARTICIPANT_EXISTS"

    def test_unknown_condition(self):
        response = client.post(
            "/api/v1/participants",
            json={"participant_id": "P001", "condition": "chaos"},
            headers=RESEARCHER_HEADERS,
        )
        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "INVALID_CONDITION"

    def test_login_returns_token_and_condition(self):
        create_participant("P002", "non_switching")
        response = client.post("/api/v1/participants/login", json={"participant_id": "P002"})

        assert response.status_code == 200
        data = response.json()
        assert verify_token(data["token"]) == "P002"
        assert data["participant"]["condition"] == "non_switching"

    def test_login_unknown_participant(self):
        response = client.post("/api/v1/participants/login", json={"participant_id": "nobody"})
        assert response.status_code == 404

    def test_me(self):
        create_participant("P001")
        response = client.get("/api/v1/participants/me", headers=auth("P001"))
        assert response.json()["participant_id"] == "P001"

    @pytest.mark.parametrize("headers", [
        {},
        {"Authorization": "Bearer P001.forged"},
        {"Authorization": "Basic abc"},
    ])
    def test_bad_tokens_rejected(self, headers):
        create_participant("P001")
        response = client.get("/api/v1/participants/me", headers=headers)
        assert response.status_code == 401

    def test_list_participants(self):
        create_participant("P001")
        open_session("P001")
        response = client.get("/api/v1/participants", headers=RESEARCHER_HEADERS)
        assert response.json()[0]["session_count"] == 1


class TestSessionLifecycle:

    def test_open_and_complete(self):
        create_participant("P001", "non_switching")
        session_id = open_session("P001", "a")

        response = client.put(f"/api/v1/sessions/{session_id}/complete", headers=auth("P001"))
        assert response.status_code == 200
        data = response.json()
        assert data["condition"] == "non_switching"
        assert data["completed_at"].endswith("+00:00")

    def test_second_completion_conflict(self):
        create_participant("P001")
        session_id = open_session("P001")
        first = client.put(f"/api/v1/sessions/{session_id}/complete", headers=auth("P001"))

        second = client.put(f"/api/v1/sessions/{session_id}/complete", headers=auth("P001"))
        assert second.status_code == 409
        detail = second.json()["detail"]
        assert detail["status"] == "rejected"
        assert detail["code"] == "ALREADY_COMPLETED"
        assert detail["details"]["completed_at"] == first.json()["completed_at"]

    def test_foreign_session_not_found(self):
        create_participant("P001")
        create_participant("P002")
        session_id = open_session("P001")

        response = client.put(f"/api/v1/sessions/{session_id}/complete", headers=auth("P002"))
        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "SESSION_NOT_FOUND"

    def test_my_sessions_and_all_sessions(self):
        create_participant("P001")
        create_participant("P002")
        open_session("P001", "a")
        open_session("P002", "b")

        mine = client.get("/api/v1/sessions/mine", headers=auth("P001")).json()
        assert [s["item_id"] for s in mine] == ["a"]

        everything = client.get("/api/v1/sessions", headers=RESEARCHER_HEADERS).json()
        assert {s["participant_id"] for s in everything} == {"P001", "P002"}

    def test_all_sessions_requires_researcher(self):
        assert client.get("/api/v1/sessions").status_code == 403


class TestEventIngestion:

    def test_batch_accepted(self):
        create_participant("P001")
        session_id = open_session("P001")

        response = client.post("/api/v1/events/batch", headers=auth("P001"), json={"events": [
            {"session_id": session_id, "event_type": "play", "playback_position": 0.0, "event_id": "e-1"},
            {"session_id": session_id, "event_type": "pause", "duration": 1.5, "event_id": "e-2"},
        ]})

        assert response.status_code == 201
        assert response.json()["accepted_count"] == 2

        replay = client.post("/api/v1/events/batch", headers=auth("P001"), json={"events": [
            {"session_id": session_id, "event_type": "play", "playback_position": 0.0, "event_id": "e-1"},
        ]})
        assert replay.json()["accepted_count"] == 0
        assert replay.json()["duplicate_count"] == 1

    def test_batch_with_foreign_session_rejected_whole(self):
        create_participant("P001")
        create_participant("P002")
        mine = open_session("P001")
        theirs = open_session("P002")

        response = client.post("/api/v1/events/batch", headers=auth("P001"), json={"events": [
            {"session_id": mine, "event_type": "play"},
            {"session_id": theirs, "event_type": "play"},
        ]})
        assert response.status_code == 404

        events = client.get(f"/api/v1/events/session/{mine}", headers=auth("P001")).json()
        assert events == []

    def test_malformed_batch_rejected(self):
        create_participant("P001")
        session_id = open_session("P001")
        response = client.post("/api/v1/events/batch", headers=auth("P001"), json={"events": [
            {"session_id": session_id, "event_type": "switch"},
        ]})
        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "MISSING_REQUIRED_FIELD"

    def test_single_event(self):
        create_participant("P001")
        session_id = open_session("P001")
        response = client.post(
            "/api/v1/events",
            headers=auth("P001"),
            json={"session_id": session_id, "event_type": "complete", "playback_position": 60.0},
        )
        assert response.status_code == 201

        events = client.get(f"/api/v1/events/session/{session_id}", headers=auth("P001")).json()
        assert events[0]["event_type"] == "complete"
        assert events[0]["timestamp"].endswith("+00:00")

    def test_researcher_event_listing(self):
        create_participant("P001")
        session_id = open_session("P001")
        client.post("/api/v1/events/batch", headers=auth("P001"), json={"events": [
            {"session_id": session_id, "event_type": "play", "timestamp": "2026-03-01T10:00:00Z"},
            {"session_id": session_id, "event_type": "pause", "duration": 2.0, "timestamp": "2026-03-01T10:00:04Z"},
        ]})

        response = client.get("/api/v1/events", params={"event_type": "pause"}, headers=RESEARCHER_HEADERS)
        assert [e["event_type"] for e in response.json()] == ["pause"]
        assert response.json()[0]["participant_id"] == "P001"

        bad = client.get("/api/v1/events", params={"start": "soon"}, headers=RESEARCHER_HEADERS)
        assert bad.status_code == 400


class TestAnalytics:

    def test_stats(self):
        create_participant("P001", "switching")
        session_id = open_session("P001")
        client.post("/api/v1/events/batch", headers=auth("P001"), json={"events": [
            {"session_id": session_id, "event_type": "pause", "duration": 4.0},
        ]})
        client.put(f"/api/v1/sessions/{session_id}/complete", headers=auth("P001"))

        stats = client.get("/api/v1/analytics/stats", headers=RESEARCHER_HEADERS).json()
        assert stats["overview"]["conditions"] == {"switching": 1, "non_switching": 0}
        assert stats["pauses"]["average_duration"] == 4.0
        assert stats["sessions"]["completion_rate"] == 100.0

    def test_participant_stats(self):
        create_participant("P001")
        response = client.get("/api/v1/analytics/participants/P001", headers=RESEARCHER_HEADERS)
        assert response.status_code == 200
        assert response.json()["sessions"]["completion_rate"] == 0.0

        missing = client.get("/api/v1/analytics/participants/P404", headers=RESEARCHER_HEADERS)
        assert missing.status_code == 404

    def test_export(self):
        create_participant("P001")
        response = client.get("/api/v1/analytics/export", params={"type": "participants"}, headers=RESEARCHER_HEADERS)
        assert response.json()[0]["participant_id"] == "P001"

        bad = client.get("/api/v1/analytics/export", params={"type": "videos"}, headers=RESEARCHER_HEADERS)
        assert bad.status_code == 400

    def test_analytics_requires_researcher(self):
        assert client.get("/api/v1/analytics/stats").status_code == 403
