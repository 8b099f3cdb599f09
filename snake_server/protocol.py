# snake_server/protocol.py
import json
from typing import Optional, Tuple

# Inbound message types
JOIN = "join"
CHANGE_DIRECTION = "changeDirection"

# Outbound message types
PLAYER_JOINED = "playerJoined"
PLAYER_LEFT = "playerLeft"
ROOM_FULL = "roomFull"
GAME_STATE = "gameState"
ERROR = "error"

MAX_NAME_LENGTH = 20
MAX_ROOM_ID_LENGTH = 32


class ProtocolError(ValueError):
    """A client message that cannot be acted on."""


def encode(msg: dict) -> str:
    """Convert a Python dict to a JSON string."""
    return json.dumps(msg)


def decode(text: str) -> dict:
    """Convert a JSON string back to a Python dict."""
    data = json.loads(text)
    if not isinstance(data, dict):
        raise ProtocolError("Message must be a JSON object")
    return data


def parse_join(data: dict) -> Tuple[str, str, bool]:
    """Return (room_id, player_name, vs_bot) from a join request."""
    room_id = data.get("roomId")
    player_name = data.get("playerName")
    room_id = room_id.strip() if isinstance(room_id, str) else ""
    player_name = player_name.strip() if isinstance(player_name, str) else ""
    if not room_id or not player_name:
        raise ProtocolError("Missing room ID or player name")
    return (room_id[:MAX_ROOM_ID_LENGTH], player_name[:MAX_NAME_LENGTH],
            bool(data.get("vsBot", False)))


def parse_direction(data: dict) -> Optional[Tuple[int, int]]:
    """Extract a unit direction, or None when the payload is malformed."""
    direction = data.get("direction")
    if not isinstance(direction, dict):
        return None
    x, y = direction.get("x"), direction.get("y")
    # bool is an int subclass, True must not pass as 1
    if type(x) is not int or type(y) is not int:
        return None
    if x not in (-1, 0, 1) or y not in (-1, 0, 1) or abs(x) + abs(y) != 1:
        return None
    return (x, y)


def join_message(room_id: str, player_name: str, vs_bot: bool = False) -> dict:
    return {"type": JOIN, "roomId": room_id, "playerName": player_name, "vsBot": vs_bot}


def direction_message(direction: Tuple[int, int]) -> dict:
    return {"type": CHANGE_DIRECTION, "direction": {"x": direction[0], "y": direction[1]}}


def membership_message(msg_type: str, room) -> dict:
    return {
        "type": msg_type,
        "roomId": room.room_id,
        "players": room.players_payload(),
        "playerCount": len(room.players),
    }


def game_state_message(snapshot: dict) -> dict:
    return dict(snapshot, type=GAME_STATE)


def room_full_message(room_id: str) -> dict:
    return {"type": ROOM_FULL, "roomId": room_id}


def error_message(message: str) -> dict:
    return {"type": ERROR, "message": message}
