import argparse
import asyncio
import json
import os
import random
import string

import pygame
import websockets

from snake_client import renderer
from snake_server.bot import choose_direction
from snake_server.config import GameConfig
from snake_server.grid import DOWN, LEFT, RIGHT, UP
from snake_server.protocol import (
    ERROR,
    GAME_STATE,
    PLAYER_JOINED,
    PLAYER_LEFT,
    ROOM_FULL,
    direction_message,
    join_message,
)
from snake_server.state import GAME_OVER, PLAYING, WAITING

ROOM_ID_ALPHABET = string.ascii_uppercase + string.digits
ROOM_ID_LENGTH = 6


def generate_room_id(rng=random):
    """Short code to share with an opponent, e.g. K3Q9ZD"""
    return "".join(rng.choice(ROOM_ID_ALPHABET) for _ in range(ROOM_ID_LENGTH))


KEY_DIRECTIONS = {
    pygame.K_UP: UP,
    pygame.K_DOWN: DOWN,
    pygame.K_LEFT: LEFT,
    pygame.K_RIGHT: RIGHT,
    pygame.K_w: UP,
    pygame.K_s: DOWN,
    pygame.K_a: LEFT,
    pygame.K_d: RIGHT,
}


class SnakeGameClient:
    def __init__(self, server_url, room_id, player_name, autopilot=False, vs_bot=False):
        self.server_url = server_url
        self.room_id = room_id
        self.player_name = player_name
        self.autopilot = autopilot
        self.vs_bot = vs_bot
        self.screen = None
        self.clock = None
        self.last_state = None
        self.member_list = []
        self.my_number = None
        self.width = GameConfig.BOARD_WIDTH
        self.height = GameConfig.BOARD_HEIGHT
        self.room_full = False
        self.seated = True
        self.error = None
        self.connection_status = "Connecting..."

    def handle_server_message(self, data):
        """Fold one server message into the local view of the room"""
        msg_type = data.get("type")

        if msg_type == GAME_STATE:
            self.last_state = data
            self.room_full = False
            self.seated = True
            if "you" in data:
                self.my_number = data["you"]
            board = data.get("board")
            if board:
                self.width, self.height = board["width"], board["height"]

        elif msg_type in (PLAYER_JOINED, PLAYER_LEFT):
            self.member_list = data.get("players", [])
            self.connection_status = f"{data.get('playerCount', 0)}/2 players"
            # Waiting rooms are not broadcast, keep the lobby list current
            if self.last_state and self.last_state.get("gameState") != PLAYING:
                self.last_state["players"] = self.member_list
            print(f"[Client] {msg_type}: {[p['name'] for p in self.member_list]}")
            # The room was restarted by someone else and our seat was released
            if "you" in data and data["you"] is None:
                self.seated = False
                self.my_number = None
                self.connection_status = "Room restarted by another player"

        elif msg_type == ROOM_FULL:
            self.room_full = True
            self.connection_status = "Room is full"
            print(f"[Client] room {self.room_id} is full, try another code")

        elif msg_type == ERROR:
            self.error = data.get("message")
            print(f"[Client] server error: {self.error}")

    def players(self):
        if self.last_state:
            return self.last_state.get("players", [])
        return self.member_list

    def game_state(self):
        if not self.last_state:
            return None
        return self.last_state.get("gameState")

    def me(self):
        for player in self.players():
            if player.get("number") == self.my_number:
                return player
        return None

    def status_text(self):
        if self.room_full:
            return "Room is full"
        if not self.seated:
            return self.connection_status
        state = self.game_state()
        if state == WAITING:
            return "Waiting for opponent..."
        if state == PLAYING:
            return "Playing"
        if state == GAME_OVER:
            return "Game over"
        return self.connection_status

    def overlay_text(self):
        if self.room_full:
            return "Room is full"
        if not self.seated:
            return "Room restarted, press R to rejoin"
        state = self.game_state()
        if state == WAITING:
            return "Waiting for opponent"
        if state == GAME_OVER:
            winner = self.last_state.get("winner")
            if winner is None:
                return "It's a tie!"
            me = self.me()
            if me is not None and winner == me["name"]:
                return "You won!"
            return f"{winner} wins"
        return None

    def new_room(self):
        """Forget the current room and pick a fresh code to host a new one"""
        self.room_id = generate_room_id()
        self.last_state = None
        self.member_list = []
        self.my_number = None
        self.room_full = False
        self.seated = True
        self.error = None
        self.connection_status = "Connecting..."
        print(f"[Client] new room code: {self.room_id}")
        return self.room_id

    def autopilot_direction(self):
        """Direction the shared bot policy would pick for our snake, if it changes"""
        me = self.me()
        if me is None or not me.get("alive") or self.game_state() != PLAYING:
            return None

        segments = [(s["x"], s["y"]) for s in me["snake"]]
        current = (me["direction"]["x"], me["direction"]["y"])
        food = (self.last_state["food"]["x"], self.last_state["food"]["y"])
        obstacles = [(s["x"], s["y"]) for p in self.players() if p is not me for s in p["snake"]]

        direction = choose_direction(current, segments, food, obstacles, self.width, self.height)
        return direction if direction != current else None

    async def send_join(self, websocket):
        await websocket.send(json.dumps(join_message(self.room_id, self.player_name, self.vs_bot)))

    async def send_direction(self, websocket, direction):
        await websocket.send(json.dumps(direction_message(direction)))

    async def handle_input(self, websocket):
        """Handle input"""
        while True:
            for event in pygame.event.get():
                if event.type == pygame.QUIT:
                    return False

                if event.type == pygame.KEYDOWN:
                    if event.key == pygame.K_ESCAPE:
                        return False
                    try:
                        if event.key == pygame.K_r and (self.game_state() == GAME_OVER or not self.seated):
                            await self.send_join(websocket)
                        elif event.key == pygame.K_n:
                            self.new_room()
                            await self.send_join(websocket)
                        elif event.key in KEY_DIRECTIONS and not self.autopilot:
                            await self.send_direction(websocket, KEY_DIRECTIONS[event.key])
                    except websockets.ConnectionClosed:
                        return False

            await asyncio.sleep(1 / 60)

    async def game_loop(self, websocket):
        """Receive snapshots and draw them"""
        while True:
            try:
                message = await asyncio.wait_for(websocket.recv(), timeout=0.1)
                self.handle_server_message(json.loads(message))
                if self.autopilot:
                    direction = self.autopilot_direction()
                    if direction is not None:
                        await self.send_direction(websocket, direction)
            except asyncio.TimeoutError:
                pass
            except websockets.ConnectionClosed:
                print("[Client] connection closed by server")
                break

            if self.screen.get_size() != renderer.window_size(self.width, self.height):
                self.screen = renderer.init(self.width, self.height)
            renderer.draw(self.screen, self, self.width, self.height)
            self.clock.tick(60)

    async def run(self):
        """Main run method"""
        try:
            self.screen = renderer.init(self.width, self.height)
            self.clock = pygame.time.Clock()
        except pygame.error as e:
            print(f"Display initialization failed: {e}")
            return

        print(f"Connecting to {self.server_url}...")

        try:
            async with websockets.connect(self.server_url) as websocket:
                print("Connected to server!")
                await self.send_join(websocket)

                input_task = asyncio.create_task(self.handle_input(websocket))
                game_task = asyncio.create_task(self.game_loop(websocket))

                done, pending = await asyncio.wait(
                    [input_task, game_task],
                    return_when=asyncio.FIRST_COMPLETED
                )

                for task in pending:
                    task.cancel()

        except ConnectionRefusedError:
            print(f"Could not connect to server at {self.server_url}")
        except OSError as e:
            print(f"Network error: {e}")
        finally:
            pygame.quit()
            print("Game ended.")


def cli():
    parser = argparse.ArgumentParser(description="Snake multiplayer client")
    parser.add_argument("--url", default=os.getenv("SNAKE_SERVER_URL", "ws://localhost:3000"),
                        help="WebSocket URL of the game server")
    parser.add_argument("--room", default=None,
                        help="Room code shared with your opponent (a new code is generated if omitted)")
    parser.add_argument("--name", default=os.getenv("USER", "Player"), help="Display name")
    parser.add_argument("--autopilot", action="store_true", help="Let the built-in bot steer your snake")
    parser.add_argument("--vs-bot", action="store_true", help="Play against a server-side bot")
    args = parser.parse_args()
    room_id = args.room or generate_room_id()

    print("🐍 Snake Multiplayer Client")
    print("===========================")
    print(f"Server: {args.url}  Room: {room_id}")
    print("Controls: Arrow keys to move, R to play again, N for a new room, ESC to exit")

    client = SnakeGameClient(args.url, room_id, args.name,
                             autopilot=args.autopilot, vs_bot=args.vs_bot)
    try:
        asyncio.run(client.run())
    except KeyboardInterrupt:
        print("\nGame interrupted.")


if __name__ == "__main__":
    cli()
