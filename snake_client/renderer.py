# snake_client/renderer.py
import pygame

CELL_SIZE = 20
PANEL_WIDTH = 220

COLORS = {
    "background": (17, 17, 17),
    "grid_line": (34, 34, 34),
    "food": (255, 215, 0),
    "dead": (90, 90, 90),
    "ui_text": (255, 255, 255),
    "ui_muted": (170, 170, 170),
    "ui_background": (40, 40, 40),
    "overlay": (0, 0, 0),
}


def board_size(width, height):
    return width * CELL_SIZE, height * CELL_SIZE


def window_size(width, height):
    board_w, board_h = board_size(width, height)
    return board_w + PANEL_WIDTH, board_h


def init(width, height):
    pygame.init()
    pygame.font.init()
    screen = pygame.display.set_mode(window_size(width, height))
    pygame.display.set_caption("Snake Multiplayer")
    return screen


def _cell_rect(x, y, inset=1):
    return pygame.Rect(x * CELL_SIZE + inset, y * CELL_SIZE + inset,
                       CELL_SIZE - 2 * inset, CELL_SIZE - 2 * inset)


def draw_board(surface, width, height):
    surface.fill(COLORS["background"])
    board_w, board_h = board_size(width, height)
    for x in range(0, board_w + 1, CELL_SIZE):
        pygame.draw.line(surface, COLORS["grid_line"], (x, 0), (x, board_h))
    for y in range(0, board_h + 1, CELL_SIZE):
        pygame.draw.line(surface, COLORS["grid_line"], (0, y), (board_w, y))


def draw_food(surface, food):
    if not food:
        return
    center = (food["x"] * CELL_SIZE + CELL_SIZE // 2, food["y"] * CELL_SIZE + CELL_SIZE // 2)
    pygame.draw.circle(surface, COLORS["food"], center, CELL_SIZE // 2 - 2)


def draw_snake(surface, player, is_current):
    color = pygame.Color(player["color"]) if player.get("alive", True) else COLORS["dead"]
    for i, segment in enumerate(player.get("snake", [])):
        rect = _cell_rect(segment["x"], segment["y"])
        pygame.draw.rect(surface, color, rect, border_radius=4)
        if i == 0 and is_current:
            pygame.draw.rect(surface, COLORS["ui_text"], rect, 2, border_radius=4)


def draw_panel(surface, client, width, height):
    board_w, board_h = board_size(width, height)
    ui_x = board_w + 10
    font_large = pygame.font.Font(None, 32)
    font_small = pygame.font.Font(None, 20)

    pygame.draw.rect(surface, COLORS["ui_background"], pygame.Rect(board_w, 0, PANEL_WIDTH, board_h))

    y_offset = 20
    surface.blit(font_large.render("SNAKE", True, COLORS["ui_text"]), (ui_x, y_offset))
    y_offset += 40
    surface.blit(font_small.render(f"Room: {client.room_id}", True, COLORS["ui_muted"]), (ui_x, y_offset))
    y_offset += 20
    surface.blit(font_small.render(client.status_text(), True, COLORS["ui_text"]), (ui_x, y_offset))
    y_offset += 35

    for player in client.players():
        color = pygame.Color(player["color"]) if player.get("alive", True) else COLORS["dead"]
        pygame.draw.rect(surface, color, pygame.Rect(ui_x, y_offset + 2, 12, 12))
        label = f"{player['name']}: {player['score']}"
        if player.get("number") == client.my_number:
            label += " (you)"
        surface.blit(font_small.render(label, True, COLORS["ui_text"]), (ui_x + 20, y_offset))
        y_offset += 25

    y_offset = board_h - 80
    for line in ("Arrow Keys: Move", "R: Play again", "N: New room", "ESC: Exit"):
        surface.blit(font_small.render(line, True, COLORS["ui_muted"]), (ui_x, y_offset))
        y_offset += 18


def draw_overlay(surface, text, width, height):
    """Dim the board and center a message on it"""
    board_w, board_h = board_size(width, height)
    overlay = pygame.Surface((board_w, board_h))
    overlay.set_alpha(140)
    overlay.fill(COLORS["overlay"])
    surface.blit(overlay, (0, 0))
    font = pygame.font.Font(None, 44)
    rendered = font.render(text, True, COLORS["ui_text"])
    surface.blit(rendered, (board_w // 2 - rendered.get_width() // 2,
                            board_h // 2 - rendered.get_height() // 2))


def draw(surface, client, width, height):
    """Draw one frame from the client's latest snapshot."""
    state = client.last_state or {}
    draw_board(surface, width, height)
    draw_food(surface, state.get("food"))
    for player in client.players():
        draw_snake(surface, player, player.get("number") == client.my_number)
    draw_panel(surface, client, width, height)

    overlay = client.overlay_text()
    if overlay:
        draw_overlay(surface, overlay, width, height)
    pygame.display.flip()
