"""
viewing_sdk/test_client.py - Client scenario tests (local authority)

The two reference participants:
- P001 (switching): abandons an item mid-way, finishes another
- P002 (non_switching): tries to skip ahead, then to rewatch
"""
import json
from unittest.mock import patch

import pytest

from .client import ViewingClient
from .errors import AlreadyCompleted, SessionBoundaryError
from .events import EventType, Item
from .policy import REASON_FORWARD_SEEK, REASON_ITEM_COMPLETED, REASON_SWITCH_LOCKED
from .state_store import InMemoryStateStore


@pytest.fixture
def make_client():
    clients = []

    def _make(participant_id="P001", condition="switching", **kwargs):
        client = ViewingClient(participant_id, condition, register_atexit=False, **kwargs)
        clients.append(client)
        return client

    yield _make
    for client in clients:
        client.close()


def delivered_types(client):
    return [e["event_type"] for e in client.delivered]


class TestScenarioP001:

    def test_switch_then_complete(self, make_client):
        client = make_client("P001", "switching")

        assert client.select_item("a").permitted
        session_a = client.session_id
        client.play(0.0)
        client.progress(12.0)

        assert client.switch_to("b").permitted
        session_b = client.session_id
        assert session_b != session_a

        client.play(0.0)
        client.progress(60.0)
        assert client.on_ended() is True
        client.flush()

        switches = [e for e in client.delivered if e["event_type"] == "switch"]
        assert len(switches) == 1
        assert switches[0]["from_item_id"] == "a"
        assert switches[0]["to_item_id"] == "b"
        assert switches[0]["playback_position"] == 12.0
        assert switches[0]["session_id"] == session_a

        completes = [e for e in client.delivered if e["event_type"] == "complete"]
        assert [e["session_id"] for e in completes] == [session_b]

        # b locked, a incomplete and reselectable
        assert client.policy.can_replay("b") is False
        assert client.policy.can_replay("a") is True
        assert client.select_item("a").permitted


class TestScenarioP002:

    def test_seek_clamped_then_locked_after_completion(self, make_client):
        client = make_client("P002", "non_switching")
        client.select_item("a")
        client.play(0.0)
        client.progress(30.0)

        decision = client.seek(90.0)
        assert decision.permitted is False
        assert decision.reason == REASON_FORWARD_SEEK
        assert decision.clamp_to == 30.0
        assert client.position == 30.0

        client.on_ended()

        opened = []
        with patch.object(client, "_open_session", side_effect=lambda item: opened.append(item) or "s"):
            decision = client.select_item("a")
        assert decision.reason == REASON_ITEM_COMPLETED
        assert opened == []
        assert client.session_id is None

    def test_switch_rejected_without_event(self, make_client):
        client = make_client("P002", "non_switching")
        client.select_item("a")
        session_a = client.session_id

        decision = client.switch_to("b")
        assert decision.reason == REASON_SWITCH_LOCKED
        assert client.session_id == session_a
        client.flush()
        assert "switch" not in delivered_types(client)


class TestSessionBoundary:

    def test_reselecting_active_item_keeps_session(self, make_client):
        client = make_client()
        client.select_item("a")
        session_id = client.session_id
        client.select_item("a")
        assert client.session_id == session_id

    def test_boundary_failure_plays_unattributed(self, make_client):
        client = make_client()
        with patch.object(client, "_open_session", side_effect=SessionBoundaryError("down")):
            decision = client.select_item("a")

        assert decision.permitted
        assert client.active_item == "a"
        assert client.session_id is None

        client.play(0.0)
        client.flush()
        assert client.delivered == []
        assert client.unattributed_count == 1

    def test_already_completed_on_close_still_locks_item(self, make_client):
        client = make_client()
        client.select_item("a")
        with patch.object(client, "_complete_session", side_effect=AlreadyCompleted("done", 409)):
            assert client.on_ended() is True
        assert client.policy.can_replay("a") is False

    def test_on_ended_without_active_item(self, make_client):
        client = make_client()
        assert client.on_ended() is False

    def test_pause_never_completes(self, make_client):
        client = make_client()
        client.select_item("a")
        client.pause(5.0)
        assert client.policy.can_replay("a") is True
        assert client.session_id is not None


class TestTelemetry:

    def test_pause_recorded_on_resume_with_duration(self, make_client):
        client = make_client()
        client.select_item("a")
        client.pause(7.0)
        client.play()
        client.flush()

        pause, play = client.delivered
        assert pause["event_type"] == "pause"
        assert pause["duration"] >= 0
        assert pause["playback_position"] == 7.0
        assert play["event_type"] == "play"

    def test_events_carry_idempotency_key(self, make_client):
        client = make_client()
        client.select_item("a")
        client.play(0.0)
        client.play(1.0)
        client.flush()

        ids = [e["event_id"] for e in client.delivered]
        assert len(set(ids)) == 2

    def test_track_open_enumeration(self, make_client):
        client = make_client()
        client.select_item("a")
        event = client.track("buffering", playback_position=3.0)
        assert event.event_type == "buffering"

    def test_track_rejects_incomplete_switch(self, make_client):
        client = make_client()
        client.select_item("a")
        with pytest.raises(ValueError):
            client.track(EventType.SWITCH, from_item_id="a")

    def test_selectable(self, make_client):
        client = make_client(condition="non_switching")
        client.select_item("a")
        catalog = [Item("a", "Intro"), Item("b", "Part two")]
        assert client.selectable(catalog) == {"a": True, "b": False}

    def test_flush_to_jsonl(self, make_client, tmp_path):
        client = make_client()
        client.select_item("a")
        client.play(0.0)

        out = tmp_path / "events.jsonl"
        assert client.flush_to_jsonl(str(out)) == 1
        lines = out.read_text().splitlines()
        assert json.loads(lines[0])["event_type"] == "play"

    def test_policy_state_shared_through_store(self, make_client):
        store = InMemoryStateStore()
        first = make_client("P002", "non_switching", state_store=store)
        first.select_item("a")
        first.on_ended()

        second = make_client("P002", "non_switching", state_store=store)
        assert second.select_item("a").permitted is False
