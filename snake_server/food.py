# snake_server/food.py
import random
from typing import Iterable, Optional

from .grid import Cell

MAX_RANDOM_ATTEMPTS = 100


class BoardFullError(Exception):
    """Raised when every cell of the board is covered by a snake."""


def place_food(width: int, height: int, occupied: Iterable[Cell],
               rng: Optional[random.Random] = None) -> Cell:
    """Pick a random free cell for the next piece of food.

    Samples uniformly for a bounded number of attempts, then falls back to
    scanning the board row by row so placement always terminates.
    """
    rng = rng or random
    taken = set(occupied)

    for _ in range(MAX_RANDOM_ATTEMPTS):
        cell = (rng.randrange(width), rng.randrange(height))
        if cell not in taken:
            return cell

    for y in range(height):
        for x in range(width):
            if (x, y) not in taken:
                return (x, y)

    raise BoardFullError(f"No free cell left on {width}x{height} board")
