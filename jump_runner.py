#!/usr/bin/env python3
"""
Jump Runner -- Endless side-scrolling runner in the terminal, using curses.
Obstacles scroll in from the right; jump over them to score a point each.
Touching an obstacle ends the run.
Space to jump, ESC to quit.
"""

import curses
import logging
import os
import random
import sys
import threading
import time
from enum import Enum

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

TICK_DELAY = 0.010        # seconds slept at the end of every tick
POLL_INTERVAL = 0.005     # input thread idle wait

GRID_ROWS = 32
GRID_COLS = 80
PLAYER_COLUMN = 20
GROUND_ROW = GRID_ROWS - 2   # row the player stands on
FLOOR_ROW = GRID_ROWS - 1    # permanent wall

# Jump distance and height must be odd and greater than 3.
JUMP_DISTANCE = 11
JUMP_HEIGHT = 5
JUMP_STEPS = JUMP_DISTANCE // 2
JUMP_STEP_SIZE = JUMP_HEIGHT / JUMP_STEPS

MIN_OBSTACLE_HEIGHT = 1
MAX_OBSTACLE_HEIGHT = JUMP_HEIGHT - 1
MIN_OBSTACLE_GAP = 11
MAX_OBSTACLE_GAP = 80
OBSTACLE_SPAWN_CHANCE = 25   # percent, rolled once per tick past the min gap
OBSTACLE_GAP_SENTINEL = sys.maxsize

KEY_JUMP = ord(' ')
KEY_QUIT = 27  # ESC

INSTRUCTIONS = "SPACE TO JUMP. ESC TO QUIT."

MIN_HEIGHT = GRID_ROWS + 2   # score line + grid + instructions
MIN_WIDTH = GRID_COLS + 1

DEBUG = False
DEBUG_LOG_FILE = "jump_runner-debug.log"

# Color pair IDs
COLOR_HUD = 1
COLOR_PLAYER = 2
COLOR_OBSTACLE = 3
COLOR_WALL = 4
COLOR_WARNING = 5

logger = logging.getLogger("jump_runner")
logger.addHandler(logging.NullHandler())


# ---------------------------------------------------------------------------
# Tiles and glyphs
# ---------------------------------------------------------------------------

class Tile(Enum):
    EMPTY = 0
    WALL = 1
    OBSTACLE = 2
    PLAYER_HEAD = 3
    PLAYER_ASCENDING = 4
    PLAYER_DESCENDING = 5
    PLAYER_FORWARD = 6
    PLAYER_JUMP_TOP = 7


PLAYER_TILES = frozenset({
    Tile.PLAYER_HEAD,
    Tile.PLAYER_ASCENDING,
    Tile.PLAYER_DESCENDING,
    Tile.PLAYER_FORWARD,
    Tile.PLAYER_JUMP_TOP,
})

TILE_GLYPHS = {
    Tile.EMPTY:             " ",
    Tile.WALL:              "W",
    Tile.PLAYER_HEAD:       ">",
    Tile.PLAYER_ASCENDING:  "/",
    Tile.PLAYER_DESCENDING: "\\",
    Tile.PLAYER_FORWARD:    "-",
    Tile.PLAYER_JUMP_TOP:   "_",
}

# Obstacles have no fixed glyph; one of these is picked on every render.
OBSTACLE_GLYPHS = "#+?!"

# Only applied to grid rows; HUD and debug lines are always COLOR_HUD.
GLYPH_COLORS = {TILE_GLYPHS[tile]: COLOR_PLAYER for tile in PLAYER_TILES}
GLYPH_COLORS[TILE_GLYPHS[Tile.WALL]] = COLOR_WALL
GLYPH_COLORS.update({glyph: COLOR_OBSTACLE for glyph in OBSTACLE_GLYPHS})


class GameAlreadyRunning(RuntimeError):
    """Raised when run() is called on a game whose loop is already running."""


# ---------------------------------------------------------------------------
# Grid
# ---------------------------------------------------------------------------

def create_grid(rows=GRID_ROWS, cols=GRID_COLS, player_column=PLAYER_COLUMN):
    """Build an empty grid with the floor and the player head in place."""
    grid = [[Tile.EMPTY] * cols for _ in range(rows)]
    grid[rows - 1] = [Tile.WALL] * cols
    grid[rows - 2][player_column] = Tile.PLAYER_HEAD
    return grid


def scroll_grid(grid, trailing):
    """Shift every row above the floor one column left.

    The player head is replaced by the trailing tile as it moves off its
    column; the rightmost column is cleared.
    """
    for row in grid[:-1]:
        row[:-1] = [trailing if tile is Tile.PLAYER_HEAD else tile
                    for tile in row[1:]]
        row[-1] = Tile.EMPTY


def place_player(grid, row, column=PLAYER_COLUMN):
    """Put the player head at (row, column); return the tile it replaced."""
    replaced = grid[row][column]
    grid[row][column] = Tile.PLAYER_HEAD
    return replaced


def obstacle_under_player(grid, column=PLAYER_COLUMN):
    """True when an obstacle occupies the ground cell in the player column."""
    return grid[GROUND_ROW][column] is Tile.OBSTACLE


# ---------------------------------------------------------------------------
# Player kinematics
# ---------------------------------------------------------------------------

def create_player():
    """Create an idle player standing on the ground."""
    return {
        "y": 0.0,
        "step": 0,
        "prev_step": 0,
        "direction": 0,
        "jumping": False,
    }


def advance_player(player, jump_requested=False):
    """Move the player one step along the jump arc.

    A jump only starts from idle; requests made mid-jump are dropped.
    """
    player["prev_step"] = player["step"]

    if jump_requested and not player["jumping"]:
        player["jumping"] = True

    if not player["jumping"]:
        return

    player["direction"] = 1 if player["step"] < JUMP_STEPS else -1
    player["y"] += JUMP_STEP_SIZE * player["direction"]
    player["step"] += 1

    if player["step"] == JUMP_DISTANCE - 1:
        player["step"] = 0
        player["y"] = 0.0
        player["direction"] = 0
        player["jumping"] = False


def player_row(player):
    """Grid row currently occupied by the player head."""
    return GROUND_ROW - int(player["y"])


def trailing_tile(prev_step, step):
    """Tile left behind by the head, chosen from the previous jump step."""
    if prev_step == 0 and step == 0:
        return Tile.PLAYER_FORWARD
    if prev_step < JUMP_STEPS:
        return Tile.PLAYER_ASCENDING
    if prev_step == JUMP_STEPS:
        return Tile.PLAYER_JUMP_TOP
    return Tile.PLAYER_DESCENDING


# ---------------------------------------------------------------------------
# Obstacles
# ---------------------------------------------------------------------------

def should_spawn_obstacle(distance, rng=random):
    """Decide whether a new obstacle column appears this tick."""
    if distance > MAX_OBSTACLE_GAP:
        return True
    return (distance > MIN_OBSTACLE_GAP
            and rng.randrange(100) < OBSTACLE_SPAWN_CHANCE)


def spawn_obstacle(grid, height):
    """Fill `height` cells above the floor in the rightmost column."""
    floor = len(grid) - 1
    for row in range(floor - height, floor):
        grid[row][-1] = Tile.OBSTACLE


def update_obstacles(grid, distance, rng=random):
    """Spawn an obstacle if due. Returns the new distance since the last one."""
    if not should_spawn_obstacle(distance, rng):
        return distance + 1
    height = rng.randint(MIN_OBSTACLE_HEIGHT, MAX_OBSTACLE_HEIGHT)
    spawn_obstacle(grid, height)
    logger.debug("Spawned obstacle of height %d after gap %d", height, distance)
    return 0


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------

def centered_text(text, width):
    """Left-pad text so it sits centered in a field of the given width."""
    width = max(len(text), width)
    return " " * ((width - len(text)) // 2) + text


def tile_glyph(tile, rng=random):
    if tile is Tile.OBSTACLE:
        return rng.choice(OBSTACLE_GLYPHS)
    return TILE_GLYPHS[tile]


def render_frame(grid, score, rng=random, debug_lines=None):
    """Render score, grid and instructions as one newline-joined string."""
    width = len(grid[0])
    lines = [centered_text(f"SCORE: {score}", width)]
    for row in grid:
        lines.append("".join(tile_glyph(tile, rng) for tile in row))
    lines.append(centered_text(INSTRUCTIONS, width))
    if debug_lines:
        lines.extend(debug_lines)
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Input
# ---------------------------------------------------------------------------

class SharedInputState:
    """Jump and quit intents written by the input thread, read by the loop."""

    def __init__(self):
        self._jump = threading.Event()
        self._quit = threading.Event()
        self._lock = threading.Lock()

    def request_jump(self):
        self._jump.set()

    def consume_jump(self):
        """Return True once per pending jump request, clearing it."""
        with self._lock:
            if self._jump.is_set():
                self._jump.clear()
                return True
            return False

    def request_quit(self):
        self._quit.set()

    @property
    def quit_requested(self):
        return self._quit.is_set()


def handle_key(key, input_state):
    """Map a key code to an intent. Returns True if the key was used."""
    if key == KEY_JUMP:
        input_state.request_jump()
        return True
    if key == KEY_QUIT:
        input_state.request_quit()
        return True
    return False


class InputPoller:
    """Background thread feeding key presses into a SharedInputState."""

    def __init__(self, keyboard, input_state, poll_interval=POLL_INTERVAL):
        self.keyboard = keyboard
        self.input_state = input_state
        self.poll_interval = poll_interval
        self._stop = threading.Event()
        self._thread = None

    @property
    def alive(self):
        return self._thread is not None and self._thread.is_alive()

    def start(self):
        self._stop.clear()
        self._thread = threading.Thread(target=self._poll, name="jump-runner-input",
                                        daemon=True)
        self._thread.start()

    def stop(self):
        self._stop.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None

    def _poll(self):
        while not self._stop.is_set():
            if self.keyboard.key_available():
                handle_key(self.keyboard.read_key(), self.input_state)
            else:
                self._stop.wait(self.poll_interval)


# ---------------------------------------------------------------------------
# Game loop
# ---------------------------------------------------------------------------

class RunnerGame:
    """Owns the grid, the player and the tick loop.

    `screen` needs clear() and write(text); `keyboard` needs key_available()
    and read_key(). `rng` is anything with randrange/randint/choice.
    """

    def __init__(self, screen, keyboard, rng=random, tick_delay=TICK_DELAY,
                 sleep=time.sleep):
        self.screen = screen
        self.keyboard = keyboard
        self.rng = rng
        self.tick_delay = tick_delay
        self.sleep = sleep

        self.grid = create_grid()
        self.player = create_player()
        self.score = 0
        self.obstacle_distance = OBSTACLE_GAP_SENTINEL
        self.colliding = False
        self.running = False
        self.game_over = False
        self.ticks = 0
        self.last_frame = ""
        self._start_lock = threading.Lock()

        self.input_state = SharedInputState()
        self.poller = InputPoller(keyboard, self.input_state)

    def run(self):
        """Run ticks until a collision or a quit request. Returns the score."""
        with self._start_lock:
            if self.running:
                raise GameAlreadyRunning("game loop is already running")
            self.running = True

        logger.info("Game started")
        self.poller.start()
        try:
            while self.running:
                if self.input_state.quit_requested:
                    logger.info("Quit requested after %d ticks", self.ticks)
                    break
                self.tick()
        finally:
            self.running = False
            self.poller.stop()

        logger.info("Game stopped: score=%d ticks=%d game_over=%s",
                    self.score, self.ticks, self.game_over)
        return self.score

    def tick(self):
        """Advance the simulation one step. Returns False once stopped."""
        # The order of these steps matters: the impact frame is drawn
        # before the collision from the previous scroll stops the game.
        self.draw()

        if self.colliding:
            self.running = False
            self.game_over = True
            logger.info("Collision at tick %d", self.ticks)
            return False

        if obstacle_under_player(self.grid):
            self.score += 1

        advance_player(self.player, self.input_state.consume_jump())
        self.colliding = self.scroll()
        self.obstacle_distance = update_obstacles(
            self.grid, self.obstacle_distance, self.rng)

        self.ticks += 1
        self.sleep(self.tick_delay)
        return True

    def scroll(self):
        """Scroll the grid, re-place the head, report a collision."""
        trailing = trailing_tile(self.player["prev_step"], self.player["step"])
        scroll_grid(self.grid, trailing)
        replaced = place_player(self.grid, player_row(self.player))
        return replaced is Tile.OBSTACLE

    def draw(self):
        debug_lines = self.debug_lines() if DEBUG else None
        self.last_frame = render_frame(self.grid, self.score, self.rng, debug_lines)
        self.screen.clear()
        self.screen.write(self.last_frame)

    def debug_lines(self):
        return [
            f"score: {self.score}",
            f"y: {self.player['y']}",
            f"step: {self.player['step']}",
            f"prev_step: {self.player['prev_step']}",
            f"direction: {self.player['direction']}",
            f"colliding: {self.colliding}",
        ]


# ---------------------------------------------------------------------------
# Terminal
# ---------------------------------------------------------------------------

def safe_addstr(stdscr, y, x, text, attr=0):
    """Write text to screen, dropping whatever falls outside the window."""
    try:
        max_y, max_x = stdscr.getmaxyx()
        if 0 <= y < max_y and 0 <= x < max_x:
            available = max_x - x - 1
            if available > 0:
                stdscr.addstr(y, x, text[:available], attr)
    except curses.error:
        pass


def init_colors():
    curses.start_color()
    curses.use_default_colors()
    curses.init_pair(COLOR_HUD, curses.COLOR_WHITE, -1)
    curses.init_pair(COLOR_PLAYER, curses.COLOR_GREEN, -1)
    curses.init_pair(COLOR_OBSTACLE, curses.COLOR_RED, -1)
    curses.init_pair(COLOR_WALL, curses.COLOR_YELLOW, -1)
    curses.init_pair(COLOR_WARNING, curses.COLOR_RED, -1)


class CursesScreen:
    """Output sink drawing whole frames onto a curses window.

    ncurses is not thread-safe: `lock` must be the same lock the
    CursesKeyboard holds while reading keys.
    """

    def __init__(self, stdscr, lock, grid_rows=GRID_ROWS):
        self.stdscr = stdscr
        self.lock = lock
        self.grid_rows = grid_rows

    def clear(self):
        with self.lock:
            self.stdscr.erase()

    def line_attr(self, y, ch):
        # Line 0 is the score; grid rows follow, then instructions/debug.
        if 1 <= y <= self.grid_rows and ch in GLYPH_COLORS:
            return curses.color_pair(GLYPH_COLORS[ch])
        return curses.color_pair(COLOR_HUD) | curses.A_BOLD

    def write(self, text):
        with self.lock:
            for y, line in enumerate(text.split("\n")):
                for x, ch in enumerate(line):
                    if ch != " ":
                        safe_addstr(self.stdscr, y, x, ch, self.line_attr(y, ch))
            self.stdscr.refresh()


class CursesKeyboard:
    """Input source over a non-blocking curses window, sharing the screen lock."""

    def __init__(self, window, lock):
        self.window = window
        self.lock = lock
        self.window.nodelay(True)
        self.window.keypad(True)

    def key_available(self):
        with self.lock:
            ch = self.window.getch()
            if ch == -1:
                return False
            curses.ungetch(ch)
            return True

    def read_key(self):
        with self.lock:
            return self.window.getch()


def main(stdscr):
    """Set up the terminal and play one game -- called by curses.wrapper()."""
    curses.curs_set(0)
    stdscr.nodelay(True)
    init_colors()

    max_y, max_x = stdscr.getmaxyx()

    if max_y < MIN_HEIGHT or max_x < MIN_WIDTH:
        warning = curses.color_pair(COLOR_WARNING)
        safe_addstr(stdscr, 0, 0, "Terminal too small!", warning)
        safe_addstr(stdscr, 1, 0, f"Need {MIN_HEIGHT}x{MIN_WIDTH}, got {max_y}x{max_x}")
        safe_addstr(stdscr, 2, 0, "Press ESC or 'q' to quit.")
        stdscr.refresh()
        stdscr.nodelay(False)
        while stdscr.getch() not in (KEY_QUIT, ord('q'), ord('Q')):
            pass
        return None

    # Keys are read from a separate 1x1 window so getch() never refreshes
    # the frame being drawn. One lock serialises every curses call made by
    # the loop thread and the input thread.
    curses_lock = threading.Lock()
    keyboard = CursesKeyboard(curses.newwin(1, 1, max_y - 1, max_x - 1), curses_lock)
    game = RunnerGame(CursesScreen(stdscr, curses_lock), keyboard)
    game.run()
    return game


def cli():
    """Console entry point. Always exits with status 0."""
    os.environ.setdefault("ESCDELAY", "25")
    if DEBUG:
        logging.basicConfig(filename=DEBUG_LOG_FILE, level=logging.DEBUG,
                            format="%(asctime)s [%(levelname)s] %(message)s")

    game = curses.wrapper(main)
    if game is None:
        return 0

    if game.game_over:
        print(game.last_frame)
        print(centered_text(f"GAME OVER - SCORE: {game.score}", GRID_COLS))
    else:
        print(f"SCORE: {game.score}")
    return 0


if __name__ == "__main__":
    sys.exit(cli())
