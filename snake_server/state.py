# snake_server/state.py
from typing import List

from .grid import Cell, Direction

# Room game states, spelled the way clients expect them on the wire
WAITING = "waiting"
PLAYING = "playing"
GAME_OVER = "gameOver"

PLAYER_COLORS = {1: "#ff6b6b", 2: "#4ecdc4"}


class Snake:
    """One player's snake. Mutated only by the room that owns it."""

    def __init__(self, conn_id, name: str, slot: int, start: Cell,
                 direction: Direction, is_bot: bool = False):
        self.conn_id = conn_id
        self.name = name
        self.slot = slot
        self.color = PLAYER_COLORS.get(slot, "#ffffff")
        self.segments: List[Cell] = [start]  # head first
        self.direction = direction
        self.alive = True
        self.score = 0
        self.is_bot = is_bot
        self.death_reason = None  # "wall", "self" or "collision"

    @property
    def head(self) -> Cell:
        return self.segments[0]

    @property
    def length(self) -> int:
        return len(self.segments)

    def to_dict(self):
        """Public, serializable view of this snake."""
        return {
            "name": self.name,
            "number": self.slot,
            "color": self.color,
            "snake": [{"x": x, "y": y} for x, y in self.segments],
            "direction": {"x": self.direction[0], "y": self.direction[1]},
            "score": self.score,
            "alive": self.alive,
            "deathReason": self.death_reason,
            "bot": self.is_bot,
        }

    def __repr__(self):
        return (f"Snake(slot={self.slot}, name={self.name!r}, "
                f"head={self.head}, len={self.length}, alive={self.alive})")
