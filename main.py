import logging
import random
import sys
import threading

import pygame

from game import EMPTY, O, X, GameState, coords_to_move
from mcts import MCTS
from negamax import Negamax
from settings import NegamaxConfig, SearchConfig

logger = logging.getLogger(__name__)

SCREEN_WIDTH, SCREEN_HEIGHT = 800, 700

colours = {
    "background": (219, 219, 219),
    "line": (50, 50, 50),
    "green": (0, 200, 0),
    "x": (50, 50, 200),
    "o": (200, 50, 50),
    "draw": (120, 120, 120),
    "black": (28, 28, 28),
    "button": (70, 70, 70),
    "button_hover": (100, 100, 100),
    "button_text": (255, 255, 255),
    "translucent": (255, 255, 255, 150),
}
marker_colours = {X: colours["x"], O: colours["o"], EMPTY: colours["draw"]}
marker_names = {X: "X", O: "O"}

CONTROL_PANEL_WIDTH = 160
LEFT_OFFSET = CONTROL_PANEL_WIDTH + 60
TOP_OFFSET = 100
BOARD_SIZE = 540
CELL_SIZE = BOARD_SIZE // 9
INNER_LINE_WIDTH = 2
SUBBOARD_LINE_WIDTH = 5

MIN_THINK_MS = 100
MAX_THINK_MS = 5000

screen = None
clock = None
fonts = {}

scene = "menu"
game_mode = None
human_player = None
game_state = None
engines = {}
think_time_ms = 1000

pvp_score_x = 0
pvp_score_o = 0
pvp_draws = 0

ai_info = {"thread": None, "job": None}
thinking_counter = 0


def cell_at(pos):
    """Map a screen position to a move index, or None outside the grid."""
    mx, my = pos
    if not (LEFT_OFFSET <= mx < LEFT_OFFSET + BOARD_SIZE and TOP_OFFSET <= my < TOP_OFFSET + BOARD_SIZE):
        return None
    col = (mx - LEFT_OFFSET) // CELL_SIZE
    row = (my - TOP_OFFSET) // CELL_SIZE
    return coords_to_move(row, col)


def make_engine(kind):
    if kind == "negamax":
        return Negamax(NegamaxConfig(time_limit_ms=think_time_ms))
    return MCTS(SearchConfig.from_env(time_limit_ms=think_time_ms))


def draw_marker(surf, mark, rect, width):
    inset = rect.width // 6
    inner = rect.inflate(-2 * inset, -2 * inset)
    colour = marker_colours[mark]
    if mark == X:
        pygame.draw.line(surf, colour, inner.topleft, inner.bottomright, width)
        pygame.draw.line(surf, colour, inner.topright, inner.bottomleft, width)
    elif mark == O:
        pygame.draw.circle(surf, colour, inner.center, inner.width // 2, width)
    else:
        pygame.draw.line(surf, colour, inner.midleft, inner.midright, width)


class Slider:
    def __init__(self, rect, min_value, max_value, value):
        self.rect = pygame.Rect(rect)
        self.min_value = min_value
        self.max_value = max_value
        self.value = value
        self.dragging = False

    def draw(self, surf):
        pygame.draw.line(
            surf,
            colours["black"],
            (self.rect.x, self.rect.centery),
            (self.rect.right, self.rect.centery),
            3,
        )
        knob_x = self.rect.x + int(
            (self.value - self.min_value) / (self.max_value - self.min_value) * self.rect.width
        )
        pygame.draw.circle(surf, colours["black"], (knob_x, self.rect.centery), 10)
        value_text = fonts["text"].render(f"{self.value} ms", True, colours["black"])
        surf.blit(
            value_text,
            (self.rect.centerx - value_text.get_width() // 2, self.rect.y - 25),
        )

    def handle_event(self, event):
        if event.type == pygame.MOUSEBUTTONDOWN and event.button == 1:
            if self.rect.collidepoint(event.pos):
                self.dragging = True
                self.update_value(event.pos)
        elif event.type == pygame.MOUSEBUTTONUP and event.button == 1:
            self.dragging = False

    def update(self, mouse_pos=None):
        if self.dragging:
            if mouse_pos is None:
                mouse_pos = pygame.mouse.get_pos()
            self.update_value(mouse_pos)

    def update_value(self, pos):
        rel_x = max(0, min(pos[0] - self.rect.x, self.rect.width))
        set_think_time(self.min_value + int(rel_x / self.rect.width * (self.max_value - self.min_value)))


class Button:
    def __init__(self, rect, text, font, callback):
        self.rect = pygame.Rect(rect)
        self.text = text
        self.font = font
        self.callback = callback

    def draw(self, surf):
        hover = self.rect.collidepoint(pygame.mouse.get_pos())
        colour = colours["button_hover"] if hover else colours["button"]
        pygame.draw.rect(surf, colour, self.rect, border_radius=10)
        pygame.draw.rect(surf, colours["black"], self.rect, 2, border_radius=10)
        text_surf = fonts[self.font].render(self.text, True, colours["button_text"])
        surf.blit(text_surf, text_surf.get_rect(center=self.rect.center))

    def handle_event(self, event):
        if event.type == pygame.MOUSEBUTTONDOWN and event.button == 1:
            if self.rect.collidepoint(event.pos):
                self.callback()


def set_think_time(value):
    global think_time_ms
    think_time_ms = max(MIN_THINK_MS, min(value, MAX_THINK_MS))
    slider.value = think_time_ms
    # engines pick up the new budget on their next search
    for engine in engines.values():
        if isinstance(engine, MCTS):
            engine.config = SearchConfig.from_env(time_limit_ms=think_time_ms)
        else:
            engine.config = NegamaxConfig(time_limit_ms=think_time_ms)


def preset_easy():
    set_think_time(250)


def preset_medium():
    set_think_time(1000)


def preset_hard():
    set_think_time(3000)


slider = Slider((50, 250, CONTROL_PANEL_WIDTH - 40, 20), MIN_THINK_MS, MAX_THINK_MS, think_time_ms)
preset_buttons = [
    Button((50, 290, CONTROL_PANEL_WIDTH - 40, 40), "Easy", "text", preset_easy),
    Button((50, 340, CONTROL_PANEL_WIDTH - 40, 40), "Medium", "text", preset_medium),
    Button((50, 390, CONTROL_PANEL_WIDTH - 40, 40), "Hard", "text", preset_hard),
]


def new_game():
    global game_state, engines
    game_state = GameState()
    ai_info["thread"] = None
    ai_info["job"] = None
    # a search still running keeps its own engine; it is simply discarded
    if game_mode == "mcts":
        engines = {-human_player: make_engine("mcts")}
    elif game_mode == "negamax":
        engines = {-human_player: make_engine("negamax")}
    elif game_mode == "cpu":
        engines = {X: make_engine("mcts"), O: make_engine("mcts")}
    else:
        engines = {}


def on_reset():
    new_game()


def on_return():
    global scene, game_state
    scene = "menu"
    game_state = None
    ai_info["thread"] = None
    ai_info["job"] = None


def undo_move():
    """Take back the last human move, and the engine reply to it when there is one."""
    if game_state is None or game_mode == "cpu" or game_result() is not None:
        return
    if ai_info["thread"] is not None and ai_info["thread"].is_alive():
        return
    if not human_to_move():
        return

    plies = 1 if game_mode == "2p" else 2
    if len(game_state.history) < plies:
        return
    for _ in range(plies):
        game_state.unplay()
    # retained trees hang off the positions just taken back
    for engine in engines.values():
        if isinstance(engine, MCTS):
            engine.reset()
    logger.debug("took back %d plies\n%s", plies, game_state)


undo_button = Button((SCREEN_WIDTH - 340, 20, 100, 60), "Undo", "text", undo_move)
reset_button = Button((SCREEN_WIDTH - 230, 20, 100, 60), "Reset", "text", on_reset)
return_button = Button((SCREEN_WIDTH - 120, 20, 100, 60), "Menu", "text", on_return)


def start_game(mode):
    global game_mode, scene
    game_mode = mode
    scene = "game"
    new_game()


def choose_opponent(mode):
    global game_mode, scene
    game_mode = mode
    scene = "player_select"


def select_player(player):
    global human_player
    human_player = player
    start_game(game_mode)


menu_buttons = [
    Button((250, 180, 300, 70), "2 Player", "default", lambda: start_game("2p")),
    Button((250, 270, 300, 70), "vs MCTS", "default", lambda: choose_opponent("mcts")),
    Button((250, 360, 300, 70), "vs Negamax", "default", lambda: choose_opponent("negamax")),
    Button((250, 450, 300, 70), "CPU vs CPU", "default", lambda: start_game("cpu")),
]

player_select_buttons = [
    Button((250, 300, 300, 80), "Play as X", "default", lambda: select_player(X)),
    Button((250, 420, 300, 80), "Play as O", "default", lambda: select_player(O)),
]


class FallingMarker:
    def __init__(self):
        self.marker = random.choice([X, O])
        self.x = random.randint(0, SCREEN_WIDTH)
        self.y = random.randint(-SCREEN_HEIGHT, 0)
        self.speed = random.uniform(1, 3)

    def update(self):
        self.y += self.speed
        if self.y > SCREEN_HEIGHT:
            self.y = random.randint(-SCREEN_HEIGHT, 0)
            self.x = random.randint(0, SCREEN_WIDTH)

    def draw(self, surf):
        draw_marker(surf, self.marker, pygame.Rect(self.x, int(self.y), 30, 30), 3)


falling_markers = [FallingMarker() for _ in range(30)]


def game_result():
    """X, O or EMPTY (draw) once the game is over, otherwise None."""
    if game_state is None or not game_state.is_game_over():
        return None
    return game_state.evaluate()


def draw_controls():
    if game_mode == "2p":
        y_offset = 100
        screen.blit(fonts["text"].render("Scoreboard", True, colours["black"]), (20, y_offset))
        y_offset += 40
        for mark, score in ((O, pvp_score_o), (X, pvp_score_x), (EMPTY, pvp_draws)):
            draw_marker(screen, mark, pygame.Rect(20, y_offset, 40, 40), 4)
            score_text = fonts["text"].render(str(score), True, colours["black"])
            screen.blit(score_text, (70, y_offset + (40 - score_text.get_height()) // 2))
            y_offset += 60
    else:
        label = fonts["text"].render("Think time", True, colours["black"])
        screen.blit(label, (slider.rect.x - 10, slider.rect.y - 50))
        slider.draw(screen)
        for button in preset_buttons:
            button.draw(screen)


def draw_turn_indicator():
    base_surf = fonts["text"].render("It's the turn of:", True, colours["black"])
    screen.blit(base_surf, (LEFT_OFFSET, TOP_OFFSET - 40))
    draw_marker(
        screen, game_state.turn,
        pygame.Rect(LEFT_OFFSET + base_surf.get_width() + 10, TOP_OFFSET - 50, 40, 40), 4,
    )

    if ai_info["thread"] is not None and ai_info["thread"].is_alive():
        dots = (thinking_counter // 20) % 4
        think_surf = fonts["text"].render("Thinking" + "." * dots, True, colours["black"])
        screen.blit(think_surf, (LEFT_OFFSET, TOP_OFFSET - 70))


def board_rect(board):
    x0 = LEFT_OFFSET + (board % 3) * 3 * CELL_SIZE
    y0 = TOP_OFFSET + (board // 3) * 3 * CELL_SIZE
    return pygame.Rect(x0, y0, 3 * CELL_SIZE, 3 * CELL_SIZE)


def draw_small_marks():
    for row in range(9):
        for col in range(9):
            board, cell = divmod(coords_to_move(row, col), 9)
            mark = game_state.cell(board, cell)
            if mark != EMPTY:
                rect = pygame.Rect(LEFT_OFFSET + col * CELL_SIZE, TOP_OFFSET + row * CELL_SIZE, CELL_SIZE, CELL_SIZE)
                draw_marker(screen, mark, rect, 4)


def draw_captured_overlays():
    for board in range(9):
        if game_state.board_decided(board):
            overlay = pygame.Surface((3 * CELL_SIZE, 3 * CELL_SIZE), pygame.SRCALPHA)
            overlay.fill(colours["translucent"])
            screen.blit(overlay, board_rect(board).topleft)


def draw_ultimate_grid():
    for i in range(1, 9):
        y = TOP_OFFSET + i * CELL_SIZE
        x = LEFT_OFFSET + i * CELL_SIZE
        if i % 3 == 0:
            pygame.draw.line(screen, colours["line"], (LEFT_OFFSET, y), (LEFT_OFFSET + BOARD_SIZE, y), SUBBOARD_LINE_WIDTH)
            pygame.draw.line(screen, colours["line"], (x, TOP_OFFSET), (x, TOP_OFFSET + BOARD_SIZE), SUBBOARD_LINE_WIDTH)
            continue
        for j in range(3):
            start = j * 3 * CELL_SIZE + 6
            end = j * 3 * CELL_SIZE + 3 * CELL_SIZE - 6
            pygame.draw.line(
                screen, colours["line"], (LEFT_OFFSET + start, y), (LEFT_OFFSET + end, y), INNER_LINE_WIDTH
            )
            pygame.draw.line(
                screen, colours["line"], (x, TOP_OFFSET + start), (x, TOP_OFFSET + end), INNER_LINE_WIDTH
            )


def draw_big_marks():
    for board in range(9):
        if game_state.board_decided(board):
            draw_marker(screen, game_state.board_result(board), board_rect(board), 10)


def draw_legal_border():
    if game_state.forcing_board != -1 and not game_state.board_decided(game_state.forcing_board):
        pygame.draw.rect(screen, marker_colours[game_state.turn], board_rect(game_state.forcing_board), 3)
    else:
        pygame.draw.rect(screen, colours["green"], (LEFT_OFFSET, TOP_OFFSET, BOARD_SIZE, BOARD_SIZE), 3)


def draw_winner_text(result):
    if result == EMPTY:
        text, colour = "Draw!", colours["black"]
    else:
        text, colour = f"Player {marker_names[result]} wins!", marker_colours[result]
    surf = fonts["winner"].render(text, True, colour)
    screen.blit(surf, surf.get_rect(center=(SCREEN_WIDTH // 2, SCREEN_HEIGHT // 2)))


def draw_game_scene():
    screen.fill(colours["background"])
    draw_controls()
    draw_turn_indicator()
    draw_small_marks()
    draw_captured_overlays()
    draw_ultimate_grid()
    draw_big_marks()

    result = game_result()
    if result is None:
        draw_legal_border()
    else:
        overlay = pygame.Surface((SCREEN_WIDTH, SCREEN_HEIGHT), pygame.SRCALPHA)
        overlay.fill((255, 255, 255, 200))
        screen.blit(overlay, (0, 0))
        draw_winner_text(result)

    if game_mode != "cpu":
        undo_button.draw(screen)
    reset_button.draw(screen)
    return_button.draw(screen)


def record_result():
    global pvp_score_x, pvp_score_o, pvp_draws
    result = game_result()
    if game_mode != "2p" or result is None:
        return
    if result == X:
        pvp_score_x += 1
    elif result == O:
        pvp_score_o += 1
    else:
        pvp_draws += 1


def play_move(move):
    game_state.play(move)
    logger.debug("played %d\n%s", move, game_state)
    record_result()


def run_engine_in_thread(engine, state, job):
    job["result"] = engine.search(state)


def human_to_move():
    if game_mode == "2p":
        return True
    if game_mode in ("mcts", "negamax"):
        return game_state.turn == human_player
    return False


def handle_game_event(event):
    if game_state is not None and game_result() is None and human_to_move():
        if event.type == pygame.MOUSEBUTTONDOWN and event.button == 1:
            move = cell_at(event.pos)
            if move is not None and move in game_state.legal_moves():
                play_move(move)

    if game_mode != "cpu":
        undo_button.handle_event(event)
    reset_button.handle_event(event)
    return_button.handle_event(event)

    if game_mode != "2p" and game_result() is None:
        slider.handle_event(event)
        for button in preset_buttons:
            button.handle_event(event)


def step_engine():
    if game_result() is not None or human_to_move():
        return

    if ai_info["thread"] is None:
        # one job per search; results for an abandoned game are dropped
        ai_info["job"] = {"state": game_state, "result": None}
        ai_info["thread"] = threading.Thread(
            target=run_engine_in_thread,
            args=(engines[game_state.turn], game_state.clone(), ai_info["job"]),
            daemon=True,
        )
        ai_info["thread"].start()

    elif not ai_info["thread"].is_alive():
        job = ai_info["job"]
        if job["result"] is not None and job["state"] is game_state:
            play_move(job["result"])
        ai_info["job"] = None
        ai_info["thread"] = None


def draw_menu():
    screen.fill(colours["background"])
    for fm in falling_markers:
        fm.update()
        fm.draw(screen)

    title = fonts["bold"].render("Ultimate Tic Tac Toe", True, colours["black"])
    screen.blit(title, title.get_rect(center=(SCREEN_WIDTH // 2, 100)))
    for button in menu_buttons:
        button.draw(screen)


def draw_player_select():
    screen.fill(colours["background"])
    prompt = fonts["bold"].render("Select Your Marker", True, colours["black"])
    screen.blit(prompt, prompt.get_rect(center=(SCREEN_WIDTH // 2, 150)))
    for button in player_select_buttons:
        button.draw(screen)


def main():
    global screen, clock, thinking_counter

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    pygame.init()
    screen = pygame.display.set_mode((SCREEN_WIDTH, SCREEN_HEIGHT))
    pygame.display.set_caption("Ultimate Tic Tac Toe")
    clock = pygame.time.Clock()
    fonts.update({
        "default": pygame.font.Font(None, 44),
        "text": pygame.font.Font(None, 30),
        "bold": pygame.font.Font(None, 56),
        "winner": pygame.font.Font(None, 84),
    })
    logger.info("think time %d ms", think_time_ms)

    while True:
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                pygame.quit()
                sys.exit()

            if scene == "menu":
                for button in menu_buttons:
                    button.handle_event(event)
            elif scene == "player_select":
                for button in player_select_buttons:
                    button.handle_event(event)
            elif scene == "game":
                handle_game_event(event)

        if scene == "menu":
            draw_menu()
        elif scene == "player_select":
            draw_player_select()
        elif scene == "game":
            if game_mode != "2p":
                slider.update()
            step_engine()
            thinking_counter += 1
            draw_game_scene()

        pygame.display.flip()
        clock.tick(60)


if __name__ == "__main__":
    main()
