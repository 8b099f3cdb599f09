# snake_server/main.py - Room-based multiplayer Snake server
import argparse
import asyncio
import json
import os
import signal
import time
from datetime import datetime, timezone
from typing import Dict, Optional

import websockets
from websockets.datastructures import Headers
from websockets.http11 import Response

from .config import GameConfig
from .game_room import SnakeRoom
from .protocol import (
    CHANGE_DIRECTION,
    JOIN,
    PLAYER_JOINED,
    PLAYER_LEFT,
    ProtocolError,
    decode,
    encode,
    error_message,
    game_state_message,
    membership_message,
    parse_direction,
    parse_join,
    room_full_message,
)
from .room_manager import RoomManager

HEALTH_PATHS = ("/", "/health")


class SnakeServer:
    """WebSocket front end: turns client messages into room operations and
    pushes room snapshots back out on a fixed cadence."""

    def __init__(self, config: Optional[GameConfig] = None):
        self.config = config or GameConfig()
        self.manager = RoomManager(self.config, on_game_over=self._announce_game_over,
                                   on_evict=self._notify_evicted)
        self.connections: Dict[int, object] = {}  # conn_id -> websocket
        self.started_at = time.time()
        self._send_in_flight = {}  # websocket -> latest send task
        self._send_tasks = set()

    async def handle_client(self, websocket):
        """Serve one client connection until it closes."""
        conn_id = id(websocket)
        self.connections[conn_id] = websocket
        print(f"[SVR] client connected: {conn_id}")

        try:
            async for message in websocket:
                try:
                    await self.handle_message(websocket, message)
                except json.JSONDecodeError:
                    print(f"[SVR] invalid JSON from {conn_id}")
                    await self.send(websocket, error_message("Invalid JSON"))
                except ProtocolError as e:
                    await self.send(websocket, error_message(str(e)))
                except Exception as e:
                    print(f"[SVR] error handling message from {conn_id}: {e}")
        except websockets.ConnectionClosedOK:
            print(f"[SVR] client {conn_id} disconnected normally")
        except websockets.ConnectionClosedError as e:
            print(f"[SVR] client {conn_id} disconnected with error: {e}")
        finally:
            self.connections.pop(conn_id, None)
            self._send_in_flight.pop(websocket, None)
            self.handle_disconnect(conn_id)

    async def handle_message(self, websocket, raw):
        data = decode(raw)
        msg_type = data.get("type")

        if msg_type == JOIN:
            await self.handle_join(websocket, data)
        elif msg_type == CHANGE_DIRECTION:
            direction = parse_direction(data)
            if direction is not None:
                self.manager.change_direction(id(websocket), direction)
        else:
            raise ProtocolError(f"Unknown message type: {msg_type!r}")

    async def handle_join(self, websocket, data):
        room_id, player_name, vs_bot = parse_join(data)
        conn_id = id(websocket)

        previous = self.manager.get_room_for(conn_id)
        if previous is not None and previous.room_id != room_id:
            self.handle_disconnect(conn_id)

        room = self.manager.join(conn_id, room_id, player_name)
        if room is None:
            print(f"[SVR] room {room_id} is full, rejected {player_name}")
            await self.send(websocket, room_full_message(room_id))
            return

        if vs_bot and not room.is_full():
            room.add_bot()

        self.broadcast_room(room, membership_message(PLAYER_JOINED, room))
        initial = game_state_message(room.snapshot())
        initial["you"] = room.players[conn_id].slot
        await self.send(websocket, initial)

    def handle_disconnect(self, conn_id):
        """Treat a lost connection as leaving its room"""
        room = self.manager.leave(conn_id)
        if room is not None and not room.is_empty():
            self.broadcast_room(room, membership_message(PLAYER_LEFT, room))

    async def send(self, websocket, msg: dict):
        try:
            await websocket.send(encode(msg))
        except websockets.ConnectionClosed:
            pass

    def _room_sockets(self, room: SnakeRoom):
        sockets = []
        for conn_id in room.human_connections():
            ws = self.connections.get(conn_id)
            if ws is not None:
                sockets.append(ws)
        return sockets

    def broadcast_room(self, room: SnakeRoom, msg: dict, coalesce: bool = False):
        """Send msg to every connection in the room without blocking the caller.

        With coalesce set, a client whose previous frame is still being
        written skips this one.
        """
        payload = encode(msg)
        for ws in self._room_sockets(room):
            inflight = self._send_in_flight.get(ws)
            if coalesce and inflight and not inflight.done():
                continue
            self._dispatch(ws, payload)

    def _dispatch(self, ws, payload: str):
        async def _send_one():
            try:
                await ws.send(payload)
            except websockets.ConnectionClosed:
                pass
            finally:
                if self._send_in_flight.get(ws) is asyncio.current_task():
                    del self._send_in_flight[ws]

        # The loop only keeps weak references to tasks
        task = asyncio.create_task(_send_one())
        self._send_tasks.add(task)
        task.add_done_callback(self._send_tasks.discard)
        self._send_in_flight[ws] = task

    def _broadcast_state(self, room: SnakeRoom):
        self.broadcast_room(room, game_state_message(room.snapshot()), coalesce=True)

    def _announce_game_over(self, room: SnakeRoom):
        # Playing rooms are the only ones broadcast, so the final state goes out here
        self.broadcast_room(room, game_state_message(room.snapshot()))

    def _notify_evicted(self, room: SnakeRoom, conn_ids):
        """Tell connections dropped by a restarted room that their seat is gone"""
        msg = membership_message(PLAYER_LEFT, room)
        msg["you"] = None
        payload = encode(msg)
        for conn_id in conn_ids:
            ws = self.connections.get(conn_id)
            if ws is not None:
                self._dispatch(ws, payload)

    async def broadcast_loop(self):
        """Push a snapshot of every playing room on a fixed interval"""
        try:
            while True:
                await asyncio.sleep(self.config.broadcast_interval)
                self.manager.for_each_active(self._broadcast_state)
        except asyncio.CancelledError:
            pass

    async def status_reporter(self, interval: float = 30.0):
        """Periodically report server status"""
        try:
            while True:
                await asyncio.sleep(interval)
                stats = self.manager.get_room_stats()
                if stats["total_players"] > 0:
                    print("=== SERVER STATUS ===")
                    print(f"Active Rooms: {stats['active_rooms']} / {stats['total_rooms']}")
                    print(f"Total Players: {stats['total_players']}")
                    for room in stats["rooms"]:
                        print(f"  Room {room['room_id']}: {room['players']}/{room['max_players']} "
                              f"players, {room['game_state']}, tick {room['game_tick']}")
                    print("====================")
        except asyncio.CancelledError:
            pass

    def health(self) -> dict:
        stats = self.manager.get_room_stats()
        return {
            "status": "healthy",
            "uptime": round(time.time() - self.started_at, 3),
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "rooms": stats["total_rooms"],
            "players": stats["total_players"],
        }

    async def process_request(self, connection, request):
        """Answer plain HTTP health checks; let WebSocket upgrades through."""
        if request.headers.get("Upgrade", "").lower() == "websocket":
            return None
        if request.path.split("?", 1)[0] not in HEALTH_PATHS:
            return None
        body = json.dumps(self.health()).encode()
        return Response(
            200, "OK",
            Headers([
                ("Content-Type", "application/json"),
                ("Content-Length", str(len(body))),
                ("Connection", "close"),
            ]),
            body,
        )

    async def serve(self, host: str, port: int):
        """Run until SIGINT/SIGTERM, then close every connection and room"""
        loop = asyncio.get_running_loop()
        stop = asyncio.Event()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, stop.set)
            except NotImplementedError:
                pass

        broadcast_task = asyncio.create_task(self.broadcast_loop())
        status_task = asyncio.create_task(self.status_reporter())

        try:
            async with websockets.serve(self.handle_client, host, port,
                                        process_request=self.process_request):
                print(f"\n✅ Server running on ws://{host}:{port}")
                print(f"Health check on http://{host}:{port}/health")
                print("Press Ctrl+C to stop the server\n")
                await stop.wait()
                print("\n🛑 Server shutdown requested")
        finally:
            broadcast_task.cancel()
            status_task.cancel()
            self.manager.stop()
            print("✅ Server stopped successfully")


def cli():
    parser = argparse.ArgumentParser(description="Room-Based Snake Server")
    parser.add_argument("--host", default=os.getenv("SNAKE_SERVER_HOST", "0.0.0.0"),
                        help="Interface to bind the game server on")
    parser.add_argument("--port", type=int,
                        default=int(os.getenv("SNAKE_SERVER_PORT", os.getenv("PORT", "3000"))),
                        help="Port to bind the game server on")
    args = parser.parse_args()

    config = GameConfig.from_env()
    print("🐍 Room-Based Snake Multiplayer Server")
    print("======================================")
    print(f"Config: {config}")

    try:
        asyncio.run(SnakeServer(config).serve(args.host, args.port))
    except KeyboardInterrupt:
        print("\nServer stopped")


if __name__ == "__main__":
    cli()
