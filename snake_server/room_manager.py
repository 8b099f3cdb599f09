# snake_server/room_manager.py
from typing import Any, Callable, Dict, List, Optional

from .config import GameConfig
from .game_room import SnakeRoom
from .state import GAME_OVER


class RoomManager:
    """Owns every room on this server and tracks which room each connection is in"""

    def __init__(self, config: Optional[GameConfig] = None,
                 on_game_over: Optional[Callable[[SnakeRoom], None]] = None,
                 on_evict: Optional[Callable[[SnakeRoom, List[Any]], None]] = None):
        self.config = config or GameConfig()
        self.on_game_over = on_game_over
        self.on_evict = on_evict
        self.rooms: Dict[str, SnakeRoom] = {}
        self.player_to_room: Dict[Any, str] = {}  # conn_id -> room_id

    def resolve(self, room_id: str) -> SnakeRoom:
        """Return the room with this id, creating it on first use"""
        room = self.rooms.get(room_id)
        if room is None:
            room = SnakeRoom(room_id, self.config, on_game_over=self.on_game_over)
            self.rooms[room_id] = room
            print(f"[Manager] created room: {room_id}")
        return room

    def remove(self, room_id: str):
        """Destroy a room. Removing an unknown room is a no-op."""
        room = self.rooms.pop(room_id, None)
        if room is None:
            return

        room.stop()
        for conn_id in [cid for cid, rid in self.player_to_room.items() if rid == room_id]:
            del self.player_to_room[conn_id]
        print(f"[Manager] removed room: {room_id}")

    def active_rooms(self) -> List[SnakeRoom]:
        return [room for room in self.rooms.values() if room.is_playing()]

    def for_each_active(self, fn: Callable[[SnakeRoom], None]):
        """Call fn for every room currently playing"""
        for room in self.active_rooms():
            fn(room)

    def join(self, conn_id, room_id: str, player_name: str) -> Optional[SnakeRoom]:
        """Seat a connection in a room. Returns None when the room is full."""
        current = self.player_to_room.get(conn_id)
        if current is not None and current != room_id:
            self.leave(conn_id)

        room = self.resolve(room_id)
        # Joining a finished room starts it over without its previous players
        evicted = []
        if room.game_state == GAME_OVER:
            evicted = [cid for cid in room.human_connections() if cid != conn_id]

        if not room.join(conn_id, player_name):
            if self.player_to_room.get(conn_id) == room_id:
                del self.player_to_room[conn_id]
            return None

        for cid in evicted:
            if self.player_to_room.get(cid) == room_id:
                del self.player_to_room[cid]
        if evicted:
            print(f"[Manager] room {room_id} restarted, released {len(evicted)} connection(s)")
            if self.on_evict:
                self.on_evict(room, evicted)

        self.player_to_room[conn_id] = room_id
        return room

    def leave(self, conn_id) -> Optional[SnakeRoom]:
        """Remove a connection from its room, destroying the room once empty"""
        room_id = self.player_to_room.pop(conn_id, None)
        if room_id is None:
            return None

        room = self.rooms.get(room_id)
        if room is None:
            return None

        if room.leave(conn_id):
            self.remove(room_id)
        return room

    def change_direction(self, conn_id, direction) -> bool:
        room = self.get_room_for(conn_id)
        if room is None:
            return False
        return room.change_direction(conn_id, direction)

    def get_room_for(self, conn_id) -> Optional[SnakeRoom]:
        """Get the room that a connection is in"""
        room_id = self.player_to_room.get(conn_id)
        if room_id is None:
            return None
        return self.rooms.get(room_id)

    def get_room_stats(self) -> Dict:
        """Get statistics about all rooms"""
        rooms = [room.get_stats() for room in self.rooms.values()]
        return {
            "total_rooms": len(self.rooms),
            "active_rooms": len(self.active_rooms()),
            "total_players": sum(r["players"] for r in rooms),
            "rooms": rooms,
        }

    def stop(self):
        """Stop every room's game loop and forget all rooms"""
        for room_id in list(self.rooms):
            self.remove(room_id)
        print("[Manager] stopped")
