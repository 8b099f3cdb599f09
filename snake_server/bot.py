# snake_server/bot.py
from typing import Iterable, List, Optional

from .grid import DIRECTIONS, DOWN, LEFT, RIGHT, UP, Cell, Direction, in_bounds, is_reversal, step


def _toward(head: Cell, food: Cell) -> Optional[Direction]:
    """Greedy step toward the food, closing the x gap before the y gap."""
    if food[0] > head[0]:
        return RIGHT
    if food[0] < head[0]:
        return LEFT
    if food[1] > head[1]:
        return DOWN
    if food[1] < head[1]:
        return UP
    return None


def choose_direction(current: Direction, segments: List[Cell], food: Cell,
                     obstacles: Iterable[Cell], width: int, height: int) -> Direction:
    """Pursuit policy for the in-process opponent.

    Heads for the food when that move is safe, otherwise takes the first of
    up/down/left/right that is neither a reversal nor a collision. Keeps the
    current direction when boxed in.
    """
    head = segments[0]
    blocked = set(segments)
    blocked.update(obstacles)

    def safe(direction):
        if is_reversal(current, direction):
            return False
        nxt = step(head, direction)
        return in_bounds(nxt, width, height) and nxt not in blocked

    preferred = _toward(head, food)
    if preferred is not None and safe(preferred):
        return preferred

    for direction in DIRECTIONS:
        if safe(direction):
            return direction
    return current


class BotPlayer:
    """Drives one snake in a room, submitting directions like a remote player."""

    def __init__(self, conn_id):
        self.conn_id = conn_id

    def decide(self, room) -> Optional[Direction]:
        snake = room.players.get(self.conn_id)
        if snake is None or not snake.alive:
            return None
        obstacles = [cell for other in room.players.values()
                     if other is not snake for cell in other.segments]
        return choose_direction(snake.direction, snake.segments, room.food,
                                obstacles, room.width, room.height)
