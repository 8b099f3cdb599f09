"""Tests for the WebSocket front end, driven with in-memory connections."""
import asyncio
import json
from types import SimpleNamespace

import pytest

from snake_server.config import GameConfig
from snake_server.main import SnakeServer
from snake_server.protocol import ProtocolError
from snake_server.state import GAME_OVER, PLAYING, WAITING


class MockWebSocket:
    """Collects outgoing frames; iterating yields the queued incoming ones."""

    def __init__(self, incoming=()):
        self.incoming = list(incoming)
        self.sent = []

    async def send(self, payload):
        self.sent.append(json.loads(payload))

    def __aiter__(self):
        return self._messages()

    async def _messages(self):
        for message in self.incoming:
            yield message

    def of_type(self, msg_type):
        return [m for m in self.sent if m.get("type") == msg_type]


def join(room_id="R1", name="Alice", **extra):
    return json.dumps(dict({"type": "join", "roomId": room_id, "playerName": name}, **extra))


async def flush():
    for _ in range(3):
        await asyncio.sleep(0)


def make_server(**config):
    config.setdefault("tick_ms", 60000)
    return SnakeServer(GameConfig(**config))


async def connect(server, ws):
    server.connections[id(ws)] = ws


def test_join_sends_membership_and_initial_state():
    async def scenario():
        server = make_server()
        ws = MockWebSocket()
        await connect(server, ws)
        await server.handle_message(ws, join())
        await flush()

        joined = ws.of_type("playerJoined")
        assert len(joined) == 1
        assert joined[0]["playerCount"] == 1
        assert joined[0]["players"][0]["name"] == "Alice"

        state = ws.of_type("gameState")
        assert len(state) == 1
        assert state[0]["gameState"] == WAITING
        assert state[0]["you"] == 1
    asyncio.run(scenario())


def test_second_join_notifies_both_and_starts_game():
    async def scenario():
        server = make_server()
        alice, bob = MockWebSocket(), MockWebSocket()
        await connect(server, alice)
        await connect(server, bob)
        await server.handle_message(alice, join(name="Alice"))
        await server.handle_message(bob, join(name="Bob"))
        await flush()

        assert [m["playerCount"] for m in alice.of_type("playerJoined")] == [1, 2]
        assert [m["playerCount"] for m in bob.of_type("playerJoined")] == [2]
        assert bob.of_type("gameState")[0]["you"] == 2
        assert server.manager.rooms["R1"].game_state == PLAYING
        server.manager.stop()
    asyncio.run(scenario())


def test_full_room_sends_room_full_to_requester_only():
    async def scenario():
        server = make_server()
        sockets = [MockWebSocket() for _ in range(3)]
        for i, ws in enumerate(sockets):
            await connect(server, ws)
            await server.handle_message(ws, join(name=f"P{i}"))
        await flush()

        assert sockets[2].of_type("roomFull") == [{"type": "roomFull", "roomId": "R1"}]
        assert sockets[0].of_type("roomFull") == []
        assert len(server.manager.rooms["R1"].players) == 2
        server.manager.stop()
    asyncio.run(scenario())


@pytest.mark.parametrize("payload", [
    {"type": "join", "roomId": "R1"},
    {"type": "join", "playerName": "Alice"},
    {"type": "join", "roomId": "  ", "playerName": "Alice"},
])
def test_malformed_join_is_rejected(payload):
    async def scenario():
        server = make_server()
        ws = MockWebSocket()
        with pytest.raises(ProtocolError):
            await server.handle_message(ws, json.dumps(payload))
        assert server.manager.rooms == {}
    asyncio.run(scenario())


def test_connection_loop_reports_errors_and_cleans_up():
    async def scenario():
        server = make_server()
        ws = MockWebSocket([
            "not json",
            json.dumps({"type": "join", "roomId": "R1"}),
            json.dumps({"type": "dance"}),
            join(),
        ])
        await server.handle_client(ws)
        await flush()

        errors = [m["message"] for m in ws.of_type("error")]
        assert errors[0] == "Invalid JSON"
        assert errors[1] == "Missing room ID or player name"
        assert "Unknown message type" in errors[2]
        assert len(ws.of_type("playerJoined")) == 1
        # connection closed once the messages ran out
        assert server.manager.rooms == {}
        assert server.connections == {}
    asyncio.run(scenario())


def test_change_direction_message():
    async def scenario():
        server = make_server()
        ws = MockWebSocket()
        await connect(server, ws)
        await server.handle_message(ws, join())
        snake = server.manager.rooms["R1"].players[id(ws)]

        turn = {"type": "changeDirection", "direction": {"x": 0, "y": 1}}
        await server.handle_message(ws, json.dumps(turn))
        assert snake.direction == (0, 1)

        reverse = {"type": "changeDirection", "direction": {"x": 0, "y": -1}}
        await server.handle_message(ws, json.dumps(reverse))
        assert snake.direction == (0, 1)

        for bad in ({"x": 1, "y": 1}, {"x": "1", "y": 0}, {"x": True, "y": 0}, None):
            await server.handle_message(ws, json.dumps({"type": "changeDirection", "direction": bad}))
        assert snake.direction == (0, 1)
    asyncio.run(scenario())


def test_disconnect_notifies_remaining_player_and_ends_game():
    async def scenario():
        server = make_server()
        alice, bob = MockWebSocket(), MockWebSocket()
        await connect(server, alice)
        await connect(server, bob)
        await server.handle_message(alice, join(name="Alice"))
        await server.handle_message(bob, join(name="Bob"))
        await flush()

        server.connections.pop(id(bob))
        server.handle_disconnect(id(bob))
        await flush()

        left = alice.of_type("playerLeft")
        assert len(left) == 1
        assert left[0]["playerCount"] == 1
        final = alice.of_type("gameState")[-1]
        assert final["gameState"] == GAME_OVER
        assert final["winner"] == "Alice"
        assert bob.of_type("playerLeft") == []
    asyncio.run(scenario())


def test_vs_bot_join_starts_game():
    async def scenario():
        server = make_server()
        ws = MockWebSocket()
        await connect(server, ws)
        await server.handle_message(ws, join(vsBot=True))
        await flush()

        room = server.manager.rooms["R1"]
        assert room.game_state == PLAYING
        assert ws.of_type("playerJoined")[-1]["playerCount"] == 2
        assert ws.of_type("playerJoined")[-1]["players"][1]["bot"] is True

        server.handle_disconnect(id(ws))
        assert server.manager.rooms == {}
    asyncio.run(scenario())


def test_broadcast_loop_only_sends_playing_rooms():
    async def scenario():
        server = make_server(broadcast_ms=10)
        alice, bob, carol = MockWebSocket(), MockWebSocket(), MockWebSocket()
        for ws in (alice, bob, carol):
            await connect(server, ws)
        await server.handle_message(alice, join(name="Alice"))
        await server.handle_message(bob, join(name="Bob"))
        await server.handle_message(carol, join(room_id="R2", name="Carol"))

        task = asyncio.create_task(server.broadcast_loop())
        await asyncio.sleep(0.1)
        task.cancel()
        await flush()

        assert len(alice.of_type("gameState")) > 2
        assert len(bob.of_type("gameState")) > 2
        assert len(carol.of_type("gameState")) == 1
        server.manager.stop()
    asyncio.run(scenario())


def test_health_endpoint():
    async def scenario():
        server = make_server()
        request = SimpleNamespace(path="/health", headers={})
        response = await server.process_request(None, request)
        assert response.status_code == 200
        body = json.loads(response.body)
        assert body["status"] == "healthy"
        assert body["rooms"] == 0
        assert body["uptime"] >= 0

        upgrade = SimpleNamespace(path="/", headers={"Upgrade": "websocket"})
        assert await server.process_request(None, upgrade) is None

        other = SimpleNamespace(path="/game", headers={})
        assert await server.process_request(None, other) is None
    asyncio.run(scenario())


class SlowWebSocket(MockWebSocket):
    """Holds every outgoing frame until released."""

    def __init__(self):
        super().__init__()
        self.release = asyncio.Event()

    async def send(self, payload):
        await self.release.wait()
        await super().send(payload)


def test_overlapping_sends_are_all_delivered():
    async def scenario():
        server = make_server()
        ws = SlowWebSocket()
        await connect(server, ws)
        room = server.manager.join(id(ws), "R1", "Alice")

        server.broadcast_room(room, {"type": "first"})
        server.broadcast_room(room, {"type": "second"})
        assert len(server._send_tasks) == 2

        ws.release.set()
        await flush()

        assert [m["type"] for m in ws.sent] == ["first", "second"]
        assert server._send_tasks == set()
        assert server._send_in_flight == {}
    asyncio.run(scenario())


def test_rejoin_after_game_over_releases_other_player():
    async def scenario():
        server = make_server()
        alice, bob = MockWebSocket(), MockWebSocket()
        await connect(server, alice)
        await connect(server, bob)
        await server.handle_message(alice, join(name="Alice"))
        await server.handle_message(bob, join(name="Bob"))
        room = server.manager.rooms["R1"]
        room.food = (0, 0)
        room.players[id(bob)].segments = [(0, 15)]
        room.players[id(bob)].direction = (-1, 0)
        room.tick()
        assert room.game_state == GAME_OVER
        await flush()

        await server.handle_message(alice, join(name="Alice"))
        await flush()

        assert server.manager.get_room_for(id(bob)) is None
        notice = bob.of_type("playerLeft")[-1]
        assert notice["you"] is None
        assert [p["name"] for p in notice["players"]] == ["Alice"]
        assert room.game_state == WAITING

        # Bob's later disconnect no longer touches the restarted room
        server.handle_disconnect(id(bob))
        assert list(room.players) == [id(alice)]
        server.manager.stop()
    asyncio.run(scenario())
