import asyncio

from fastapi.testclient import TestClient

from starblitz.config import RelayConfig
from starblitz.relay import RelayHub, create_app


def _client(hub=None):
    hub = hub or RelayHub()
    return TestClient(create_app(RelayConfig(), hub)), hub


def test_health_and_players_endpoints():
    client, hub = _client()
    with client:
        assert client.get("/").json() == {"status": "ok", "players": 0}
        hub.players["abc"] = {"id": "abc", "x": 1.0, "y": 2.0, "health": 100.0, "lastUpdate": 0.0}
        assert client.get("/api/players").json()[0]["id"] == "abc"


def test_join_update_shoot_and_leave_are_relayed():
    client, hub = _client()
    with client:
        with client.websocket_connect("/ws") as a:
            a.send_json({"type": "playerJoin", "x": 1, "y": 2, "health": 100})
            snap = a.receive_json()
            assert snap["type"] == "existingPlayers"
            assert len(snap["players"]) == 1
            a_id = snap["players"][0]["id"]

            with client.websocket_connect("/ws") as b:
                b.send_json({"type": "playerJoin", "x": 5, "y": 6, "health": 80})
                snap_b = b.receive_json()
                assert {p["id"] for p in snap_b["players"]} >= {a_id}
                assert len(snap_b["players"]) == 2

                joined = a.receive_json()
                assert joined["type"] == "playerJoined"
                assert joined["player"]["x"] == 5
                b_id = joined["player"]["id"]

                b.send_json({"type": "playerUpdate", "x": 10, "angle": 1.5})
                update = a.receive_json()
                assert update == {"type": "playerUpdate", "id": b_id, "x": 10.0, "angle": 1.5}
                assert hub.players[b_id]["x"] == 10.0

                b.send_json({"type": "shootEvent", "x": 10, "y": 6, "angle": 0.0})
                shot = a.receive_json()
                assert shot["type"] == "shootEvent"
                assert shot["id"] == b_id

            left = a.receive_json()
            assert left == {"type": "playerLeave", "id": b_id}
            assert b_id not in hub.players


def test_malformed_frames_are_ignored():
    client, hub = _client()
    with client:
        with client.websocket_connect("/ws") as ws:
            ws.send_text("not json")
            ws.send_json(["a", "list"])
            ws.send_json({"type": "playerJoin", "x": "left", "y": 0})
            ws.send_json({"type": "teleport"})
            ws.send_json({"type": "playerUpdate", "x": 3})
            ws.send_json({"type": "playerJoin", "x": 1, "y": 2})
            snap = ws.receive_json()
            assert snap["type"] == "existingPlayers"
            assert snap["players"][0]["health"] == 100.0
            assert snap["players"][0]["x"] == 1.0


def test_evict_stale_uses_last_update():
    now = [0.0]
    hub = RelayHub(stale_after=10.0, clock=lambda: now[0])
    hub.players = {
        "old": {"id": "old", "lastUpdate": 0.0},
        "fresh": {"id": "fresh", "lastUpdate": 5.0},
    }
    assert hub.evict_stale(10.0) == []
    assert hub.evict_stale(12.0) == ["old"]
    now[0] = 16.0
    assert hub.evict_stale() == ["fresh"]
    assert hub.players == {}


class _FakeSocket:
    def __init__(self) -> None:
        self.sent = []

    async def send_json(self, message) -> None:
        self.sent.append(message)


class _BrokenSocket:
    async def send_json(self, message) -> None:
        raise RuntimeError("socket closed")


def test_sweep_notifies_everyone_and_drops_broken_sockets():
    hub = RelayHub(stale_after=10.0)
    watcher = _FakeSocket()
    hub.sockets = {"watcher": watcher, "broken": _BrokenSocket()}
    hub.players = {"ghost": {"id": "ghost", "lastUpdate": 0.0}}
    assert asyncio.run(hub.sweep(now=30.0)) == ["ghost"]
    assert watcher.sent == [{"type": "playerLeave", "id": "ghost"}]
    assert "broken" not in hub.sockets
