# snake_server/config.py
import os


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return int(value)


class GameConfig:
    """Game constants, fixed once at startup.

    Every value can be overridden through a SNAKE_* environment variable,
    e.g. SNAKE_BOARD_WIDTH=40 SNAKE_TICK_MS=120.
    """

    BOARD_WIDTH = 30    # 600px canvas / 20px cells
    BOARD_HEIGHT = 30
    TICK_MS = 150
    BROADCAST_MS = 100
    FOOD_REWARD = 10

    def __init__(self, board_width=None, board_height=None, tick_ms=None,
                 broadcast_ms=None, food_reward=None):
        self.board_width = board_width if board_width is not None else self.BOARD_WIDTH
        self.board_height = board_height if board_height is not None else self.BOARD_HEIGHT
        self.tick_ms = tick_ms if tick_ms is not None else self.TICK_MS
        self.broadcast_ms = broadcast_ms if broadcast_ms is not None else self.BROADCAST_MS
        self.food_reward = food_reward if food_reward is not None else self.FOOD_REWARD
        if self.board_width <= 10 or self.board_height <= 0:
            raise ValueError(
                f"Board {self.board_width}x{self.board_height} is too small for two start cells")

    @property
    def tick_interval(self) -> float:
        return self.tick_ms / 1000.0

    @property
    def broadcast_interval(self) -> float:
        return self.broadcast_ms / 1000.0

    @classmethod
    def from_env(cls) -> "GameConfig":
        return cls(
            board_width=_env_int("SNAKE_BOARD_WIDTH", cls.BOARD_WIDTH),
            board_height=_env_int("SNAKE_BOARD_HEIGHT", cls.BOARD_HEIGHT),
            tick_ms=_env_int("SNAKE_TICK_MS", cls.TICK_MS),
            broadcast_ms=_env_int("SNAKE_BROADCAST_MS", cls.BROADCAST_MS),
            food_reward=_env_int("SNAKE_FOOD_REWARD", cls.FOOD_REWARD),
        )

    def __repr__(self):
        return (f"GameConfig({self.board_width}x{self.board_height}, "
                f"tick={self.tick_ms}ms, broadcast={self.broadcast_ms}ms, "
                f"reward={self.food_reward})")
