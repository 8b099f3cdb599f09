# snake_server/game_room.py
import asyncio
import itertools
import random
import time
from typing import Any, Callable, Dict, List, Optional

from .bot import BotPlayer
from .config import GameConfig
from .food import place_food
from .grid import DIRECTIONS, Direction, in_bounds, is_reversal, start_cell, start_direction, step
from .state import GAME_OVER, PLAYING, WAITING, Snake

_bot_ids = itertools.count(1)


class SnakeRoom:
    """Authoritative state for one two-player Snake game.

    Every operation is a plain synchronous method. All rooms share one
    asyncio event loop, so an operation never interleaves with another one
    (or with a snapshot read) on the same room.
    """

    MAX_PLAYERS = 2

    def __init__(self, room_id: str, config: Optional[GameConfig] = None,
                 rng: Optional[random.Random] = None,
                 on_game_over: Optional[Callable[["SnakeRoom"], None]] = None):
        self.room_id = room_id
        self.config = config or GameConfig()
        self.width = self.config.board_width
        self.height = self.config.board_height
        self.rng = rng or random.Random()
        self.on_game_over = on_game_over
        self.players: Dict[Any, Snake] = {}  # conn_id -> snake
        self.bots: Dict[Any, BotPlayer] = {}
        self.food = self._place_food()
        self.game_state = WAITING
        self.game_tick = 0
        self.tick_task: Optional[asyncio.Task] = None
        self.created_at = time.time()

    def is_full(self):
        """Check if room is at maximum capacity"""
        return len(self.players) >= self.MAX_PLAYERS

    def is_empty(self):
        """Check if room has no players"""
        return len(self.players) == 0

    def is_playing(self):
        return self.game_state == PLAYING

    @property
    def running(self):
        return self.tick_task is not None and not self.tick_task.done()

    def human_connections(self) -> List[Any]:
        return [cid for cid, snake in self.players.items() if not snake.is_bot]

    def ordered_players(self) -> List[Snake]:
        """Snakes in slot order, which is also collision-check order."""
        return sorted(self.players.values(), key=lambda s: s.slot)

    def _occupied(self):
        return [cell for snake in self.players.values() for cell in snake.segments]

    def _place_food(self, reserved=()):
        return place_food(self.width, self.height, self._occupied() + list(reserved), self.rng)

    def _free_slot(self) -> Optional[int]:
        used = {snake.slot for snake in self.players.values()}
        for slot in range(1, self.MAX_PLAYERS + 1):
            if slot not in used:
                return slot
        return None

    def join(self, conn_id, player_name: str, is_bot: bool = False) -> bool:
        """Add a player. Returns False when the room is already full."""
        if self.game_state == GAME_OVER:
            self._reset()

        if conn_id in self.players:
            return True

        slot = self._free_slot()
        if slot is None:
            print(f"[Room {self.room_id}] full, rejected {player_name}")
            return False

        self.players[conn_id] = Snake(
            conn_id,
            player_name,
            slot,
            start_cell(slot, self.width, self.height),
            start_direction(slot),
            is_bot=is_bot,
        )
        print(f"[Room {self.room_id}] {player_name} joined as player {slot} "
              f"({len(self.players)}/{self.MAX_PLAYERS})")

        if self.is_full() and self.game_state == WAITING:
            self._start_game()
        return True

    def add_bot(self, name: str = "Bot") -> bool:
        """Seat an in-process opponent that plays by the same rules."""
        conn_id = f"bot-{self.room_id}-{next(_bot_ids)}"
        self.bots[conn_id] = BotPlayer(conn_id)
        if not self.join(conn_id, name, is_bot=True):
            del self.bots[conn_id]
            return False
        return True

    def leave(self, conn_id) -> bool:
        """Remove a player. Returns True once the room is empty."""
        snake = self.players.pop(conn_id, None)
        self.bots.pop(conn_id, None)
        if snake is None:
            return self.is_empty()

        print(f"[Room {self.room_id}] {snake.name} left "
              f"({len(self.players)}/{self.MAX_PLAYERS})")

        # A bot never keeps a room alive on its own
        if not self.human_connections():
            for bot_id in list(self.bots):
                self.players.pop(bot_id, None)
            self.bots.clear()

        if self.game_state == PLAYING and len(self.players) < self.MAX_PLAYERS:
            self._end_game()

        if self.is_empty():
            self._stop_ticking()
        return self.is_empty()

    def change_direction(self, conn_id, direction: Direction) -> bool:
        """Queue a direction for the next tick. Stale or reversing input is ignored."""
        snake = self.players.get(conn_id)
        if snake is None or not snake.alive:
            return False
        if direction not in DIRECTIONS or is_reversal(snake.direction, direction):
            return False
        snake.direction = direction
        return True

    def run_bots(self):
        """Let each bot submit its direction for the coming tick."""
        if self.game_state != PLAYING:
            return
        for bot in list(self.bots.values()):
            direction = bot.decide(self)
            if direction is not None:
                self.change_direction(bot.conn_id, direction)

    def tick(self):
        """Advance every living snake by one cell."""
        if self.game_state != PLAYING or self.is_empty():
            return

        self.game_tick += 1
        ordered = self.ordered_players()
        # Only the food present at the start of the tick can be eaten
        food = self.food

        for index, snake in enumerate(ordered):
            if not snake.alive:
                continue

            new_head = step(snake.head, snake.direction)

            if not in_bounds(new_head, self.width, self.height):
                self._kill(snake, "wall")
                continue
            if new_head in snake.segments:
                self._kill(snake, "self")
                continue
            # Dead snakes keep blocking the cells they died on
            if any(new_head in other.segments for other in ordered if other is not snake):
                self._kill(snake, "collision")
                continue

            snake.segments.insert(0, new_head)
            if new_head == food:
                snake.score += self.config.food_reward
                # Keep the new food off the cells the remaining snakes move into
                pending = [step(other.head, other.direction)
                           for other in ordered[index + 1:] if other.alive]
                self.food = self._place_food(pending)
            else:
                snake.segments.pop()

        if sum(1 for snake in ordered if snake.alive) <= 1:
            self._end_game()

    def _kill(self, snake: Snake, reason: str):
        snake.alive = False
        snake.death_reason = reason
        print(f"[Room {self.room_id}] {snake.name} died ({reason}) at tick {self.game_tick}")

    def winner(self) -> Optional[str]:
        """Name of the winning player, None for a tie or an unfinished game."""
        if self.game_state != GAME_OVER or self.is_empty():
            return None
        survivors = [s for s in self.ordered_players() if s.alive]
        if len(survivors) == 1:
            return survivors[0].name
        if survivors:
            return None
        best = max(s.score for s in self.players.values())
        leaders = [s for s in self.ordered_players() if s.score == best]
        return leaders[0].name if len(leaders) == 1 else None

    def players_payload(self):
        return [snake.to_dict() for snake in self.ordered_players()]

    def snapshot(self):
        """Serializable view of the room. Never mutates state."""
        data = {
            "roomId": self.room_id,
            "players": self.players_payload(),
            "food": {"x": self.food[0], "y": self.food[1]},
            "gameState": self.game_state,
            "tick": self.game_tick,
            "board": {"width": self.width, "height": self.height},
        }
        if self.game_state == GAME_OVER:
            data["winner"] = self.winner()
        return data

    def _start_game(self):
        self.game_state = PLAYING
        self.game_tick = 0
        print(f"[Room {self.room_id}] game started")
        self.tick_task = asyncio.get_running_loop().create_task(self._tick_loop())

    def _end_game(self):
        self.game_state = GAME_OVER
        self._stop_ticking()
        print(f"[Room {self.room_id}] game over after {self.game_tick} ticks, "
              f"winner: {self.winner() or 'tie'}")
        if self.on_game_over:
            self.on_game_over(self)

    def _stop_ticking(self):
        task, self.tick_task = self.tick_task, None
        if task is not None and not task.done():
            task.cancel()

    def stop(self):
        self._stop_ticking()

    def _reset(self):
        """Recycle a finished room so the same code can be played again."""
        self._stop_ticking()
        self.players.clear()
        self.bots.clear()
        self.food = self._place_food()
        self.game_state = WAITING
        self.game_tick = 0
        print(f"[Room {self.room_id}] reset for a new game")

    async def _tick_loop(self):
        """Fixed-interval game loop for this room"""
        try:
            while self.game_state == PLAYING and not self.is_empty():
                await asyncio.sleep(self.config.tick_interval)
                self.run_bots()
                self.tick()
        except asyncio.CancelledError:
            pass

    def get_stats(self):
        return {
            "room_id": self.room_id,
            "players": len(self.players),
            "max_players": self.MAX_PLAYERS,
            "is_full": self.is_full(),
            "is_empty": self.is_empty(),
            "game_state": self.game_state,
            "running": self.running,
            "created_at": self.created_at,
            "game_tick": self.game_tick,
        }
