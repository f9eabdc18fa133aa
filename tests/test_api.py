"""HTTP and WebSocket API tests."""
import pytest


def snapshot_of(response):
    return response.json()["data"]["snapshot"]


def load(client, session_id, frames, context="ENTITAET"):
    return client.post(
        f"/api/session/{session_id}/event",
        json={"type": "LADE_NEUE_LISTE", "list": frames, "context": context},
    )


class TestSessionRoutes:
    def test_create_then_recreate(self, client):
        r = client.post("/api/session/s1")
        assert r.status_code == 201
        body = r.json()
        assert body["success"] is True
        assert body["data"]["replaced"] is False
        assert snapshot_of(r)["currentState"] == "Inactive"
        assert snapshot_of(r)["currentFrame"] == "LEERER_FRAME"

        r = client.post("/api/session/s1")
        assert r.status_code == 200
        assert r.json()["data"]["replaced"] is True

    def test_create_blank_id(self, client):
        assert client.post("/api/session/%20").status_code == 400

    def test_send_event(self, client):
        client.post("/api/session/s1")
        r = load(client, "s1", ["E1", "E2"])
        assert r.status_code == 200
        snap = snapshot_of(r)
        assert snap["currentState"] == {"WorkMode": "Entity"}
        assert snap["currentFrame"] == "E1"

        r = client.post("/api/session/s1/event", json={"type": "NAECHSTER_FRAME"})
        snap = snapshot_of(r)
        assert snap["currentFrame"] == "E2"
        assert snap["context"]["entityIndex"] == 1

    def test_emergency_flow(self, client):
        client.post("/api/session/s1")
        load(client, "s1", ["G1"], context="ALLGEMEIN")
        r = client.post("/api/session/s1/event", json={"type": "NOTFALL_EMPFANGEN", "list": ["A1"]})
        assert snapshot_of(r)["currentFrame"] == "BESTAETIGUNG_FRAME"

        r = client.post("/api/session/s1/event", json={"type": "USER_BESTAETIGT_NOTFALL", "accepted": False})
        snap = snapshot_of(r)
        assert snap["currentState"] == {"WorkMode": "General"}
        assert snap["currentFrame"] == "G1"

    @pytest.mark.parametrize("payload", [
        {"type": "FLIEGEN"},
        {"type": ""},
        {"list": ["E1"]},
        {"type": "SUCHE_FRAME"},
    ])
    def test_send_invalid_event(self, client, payload):
        client.post("/api/session/s1")
        r = client.post("/api/session/s1/event", json=payload)
        assert r.status_code == 400

    def test_send_without_body(self, client):
        client.post("/api/session/s1")
        assert client.post("/api/session/s1/event").status_code == 400

    def test_send_to_unknown_session(self, client):
        r = client.post("/api/session/ghost/event", json={"type": "NAECHSTER_FRAME"})
        assert r.status_code == 404
        assert "ghost" in r.json()["detail"]

    def test_get_state(self, client):
        client.post("/api/session/s1")
        load(client, "s1", ["E1"])
        r = client.get("/api/session/s1/state")
        assert r.status_code == 200
        assert snapshot_of(r)["currentFrame"] == "E1"

    def test_get_state_unknown(self, client):
        assert client.get("/api/session/ghost/state").status_code == 404

    def test_list_sessions(self, client):
        r = client.get("/api/session/sessions")
        assert r.status_code == 200
        assert r.json()["data"]["count"] == 0

        client.post("/api/session/a")
        client.post("/api/session/b")
        data = client.get("/api/session/sessions").json()["data"]
        assert data["count"] == 2
        assert sorted(s["sessionId"] for s in data["sessions"]) == ["a", "b"]

    def test_delete(self, client):
        client.post("/api/session/s1")
        assert client.delete("/api/session/s1").status_code == 200
        assert client.delete("/api/session/s1").status_code == 404
        assert client.get("/api/session/s1/state").status_code == 404


class TestServiceRoutes:
    def test_root(self, client):
        r = client.get("/")
        assert r.status_code == 200
        assert r.json()["status"] == "running"

    def test_health(self, client):
        client.post("/api/session/s1")
        body = client.get("/health").json()
        assert body["status"] == "healthy"
        assert body["active_sessions"] == 1

    def test_stats(self, client):
        client.post("/api/session/s1")
        client.post("/api/session/s1/event", json={"type": "NAECHSTER_FRAME"})
        data = client.get("/api/stats").json()["data"]
        assert data["active_sessions"] == 1
        assert data["events_dispatched"] == 1
        assert data["websocket_connections"] == 0


class TestWebSocket:
    def test_connect_without_session(self, client):
        with client.websocket_connect("/ws/s1") as ws:
            msg = ws.receive_json()
            assert msg["type"] == "connection_established"
            assert msg["data"]["session_id"] == "s1"

    def test_initial_snapshot_and_rest_broadcast(self, client):
        client.post("/api/session/s1")
        with client.websocket_connect("/ws/s1") as ws:
            assert ws.receive_json()["type"] == "connection_established"
            initial = ws.receive_json()
            assert initial["type"] == "state_update"
            assert initial["data"]["snapshot"]["currentState"] == "Inactive"

            load(client, "s1", ["E1"])
            update = ws.receive_json()
            assert update["type"] == "state_update"
            assert update["data"]["snapshot"]["currentFrame"] == "E1"

    def test_event_over_socket(self, client):
        client.post("/api/session/s1")
        with client.websocket_connect("/ws/s1") as ws:
            ws.receive_json()
            ws.receive_json()
            ws.send_json({
                "type": "event",
                "data": {"type": "LADE_NEUE_LISTE", "list": ["G1"], "context": "ALLGEMEIN"},
            })
            msg = ws.receive_json()
            assert msg["type"] == "state_update"
            assert msg["data"]["snapshot"]["currentState"] == {"WorkMode": "General"}

        assert client.get("/api/session/s1/state").json()["data"]["snapshot"]["currentFrame"] == "G1"

    def test_socket_errors(self, client):
        with client.websocket_connect("/ws/ghost") as ws:
            ws.receive_json()

            ws.send_json({"type": "event", "data": {"type": "NAECHSTER_FRAME"}})
            msg = ws.receive_json()
            assert msg["type"] == "error"
            assert msg["data"]["error_type"] == "SessionNotFoundError"

            ws.send_json({"type": "dance"})
            assert ws.receive_json()["type"] == "warning"

            ws.send_json({"type": "heartbeat"})
            assert ws.receive_json()["type"] == "heartbeat_ack"
