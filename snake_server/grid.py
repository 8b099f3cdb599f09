# snake_server/grid.py
from typing import Tuple

Cell = Tuple[int, int]
Direction = Tuple[int, int]

UP = (0, -1)
DOWN = (0, 1)
LEFT = (-1, 0)
RIGHT = (1, 0)

# Fixed order, the bot falls back through these in this order
DIRECTIONS = (UP, DOWN, LEFT, RIGHT)

# Distance of each start cell from its side wall
START_OFFSET = 5


def in_bounds(cell: Cell, width: int, height: int) -> bool:
    x, y = cell
    return 0 <= x < width and 0 <= y < height


def step(cell: Cell, direction: Direction) -> Cell:
    return (cell[0] + direction[0], cell[1] + direction[1])


def is_reversal(current: Direction, new: Direction) -> bool:
    """True when `new` points exactly opposite to `current`."""
    return new[0] == -current[0] and new[1] == -current[1]


def start_cell(slot: int, width: int, height: int) -> Cell:
    """Spawn cell for a slot: slot 1 on the left, slot 2 mirrored on the right."""
    if slot == 1:
        return (START_OFFSET, height // 2)
    return (width - START_OFFSET, height // 2)


def start_direction(slot: int) -> Direction:
    return RIGHT if slot == 1 else LEFT
