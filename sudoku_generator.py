import enum
import logging
import math
import random
import time
from typing import Callable, List, Optional, Protocol, Tuple

Board = List[List[int]]
Cell = Tuple[int, int]
Clock = Callable[[], float]

SIZE = 9
BOX = math.isqrt(SIZE)
CELLS = SIZE * SIZE

DEFAULT_TIME_BUDGET_MS = 5000

# Per-cell limit on random candidate draws while seeding. A cell that still
# has a legal digit survives 1000 misses with probability (8/9)**1000.
MAX_CANDIDATE_DRAWS = 1000

# Consecutive non-timeout failures before an episode gives up on search and
# takes a grid from the fallback source.
MAX_RESEED_ATTEMPTS = 200

logger = logging.getLogger(__name__)


class Outcome(enum.Enum):
    SOLVED = "solved"
    EXHAUSTED = "exhausted"
    TIMED_OUT = "timed_out"


class InvalidConfiguration(ValueError):
    """Seed or hint count that can never produce a puzzle."""


class SeedingStalled(RuntimeError):
    def __init__(self, row: int, col: int):
        super().__init__(f"no legal digit found for ({row}, {col}) "
                         f"after {MAX_CANDIDATE_DRAWS} draws")
        self.row = row
        self.col = col


class FallbackUnavailable(RuntimeError):
    """The fallback source could not supply a solved grid."""


class FallbackSource(Protocol):
    def retrieve_solved(self) -> Board:
        ...


# ---- Board ----

def empty_board() -> Board:
    return [[0] * SIZE for _ in range(SIZE)]


def copy_board(board: Board) -> Board:
    return [list(row) for row in board]


def place(board: Board, row: int, col: int, value: int) -> None:
    board[row][col] = value


def clear(board: Board, row: int, col: int) -> None:
    board[row][col] = 0


def find_empty(board: Board) -> Optional[Cell]:
    for r in range(SIZE):
        for c in range(SIZE):
            if board[r][c] == 0:
                return r, c
    return None


def format_board(board: Board, caption: Optional[str] = None) -> str:
    """Render a board as text with 3x3 block separators; empty cells show as '.'."""
    rule = "+" + "+".join(["-" * (2 * BOX + 1)] * BOX) + "+"
    lines = [caption] if caption else []
    lines.append(rule)
    for r, row in enumerate(board):
        cells = [str(v) if v else "." for v in row]
        blocks = [" ".join(cells[b:b + BOX]) for b in range(0, SIZE, BOX)]
        lines.append("| " + " | ".join(blocks) + " |")
        if r % BOX == BOX - 1:
            lines.append(rule)
    return "\n".join(lines)


# ---- Validator ----

def is_row_col_safe(board: Board, value: int, row: int, col: int) -> bool:
    if value == 0:
        return True
    for i in range(SIZE):
        if i != col and board[row][i] == value:
            return False
        if i != row and board[i][col] == value:
            return False
    return True


def is_block_safe(board: Board, value: int, row: int, col: int) -> bool:
    if value == 0:
        return True
    br, bc = BOX * (row // BOX), BOX * (col // BOX)
    for i in range(br, br + BOX):
        for j in range(bc, bc + BOX):
            if (i, j) != (row, col) and board[i][j] == value:
                return False
    return True


def is_safe(board: Board, value: int, row: int, col: int) -> bool:
    """Whether ``value`` may sit at (row, col) without a row, column or block clash.

    The cell's own current content is ignored, so the same call answers both
    "may I place this here" and "is the digit already here legal".
    """
    return is_row_col_safe(board, value, row, col) and is_block_safe(board, value, row, col)


def is_complete(board: Board) -> bool:
    return all(v != 0 for row in board for v in row)


def is_consistent(board: Board) -> bool:
    for r in range(SIZE):
        for c in range(SIZE):
            if not is_safe(board, board[r][c], r, c):
                return False
    return True


def is_well_formed(board) -> bool:
    if not isinstance(board, list) or len(board) != SIZE:
        return False
    for row in board:
        if not isinstance(row, list) or len(row) != SIZE:
            return False
        for v in row:
            if not isinstance(v, int) or isinstance(v, bool) or not 0 <= v <= SIZE:
                return False
    return True


def is_solved(board) -> bool:
    return is_well_formed(board) and is_complete(board) and is_consistent(board)


def validate_counts(seed_count: int, hint_count: int) -> None:
    for name, value in (("seed_count", seed_count), ("hint_count", hint_count)):
        if not isinstance(value, int) or isinstance(value, bool):
            raise InvalidConfiguration(f"{name} must be an integer, got {value!r}")
        if not 0 <= value <= CELLS:
            raise InvalidConfiguration(f"{name} must be between 0 and {CELLS}, got {value}")


# ---- Seeder ----

def seed(board: Board, count: int, rng: random.Random) -> None:
    """Place ``count`` random digits at random empty cells, rejecting clashes by re-drawing.

    No backtracking happens here: a seeding that leaves the board without a
    completion is left for the solver to discover.
    """
    free = sum(1 for row in board for v in row if v == 0)
    if count > free:
        raise ValueError(f"cannot seed {count} cells, only {free} are empty")

    placed = 0
    while placed < count:
        r, c = rng.randrange(SIZE), rng.randrange(SIZE)
        if board[r][c] != 0:
            continue
        value = rng.randint(1, SIZE)
        draws = 1
        while not is_safe(board, value, r, c):
            if draws >= MAX_CANDIDATE_DRAWS:
                raise SeedingStalled(r, c)
            value = rng.randint(1, SIZE)
            draws += 1
        place(board, r, c, value)
        placed += 1


# ---- Solver ----

def solve(board: Board, deadline: float, clock: Clock = time.monotonic) -> Outcome:
    """Complete ``board`` in place by depth-first backtracking.

    Empty cells are taken in row-major order and digits tried from 1 to 9; the
    first completion found wins. Each call checks ``deadline`` (a ``clock()``
    reading) on entry and returns ``Outcome.TIMED_OUT`` once it has passed,
    which every caller up the stack passes along without trying further
    digits. A board that times out or is exhausted is handed back with its empty
    cells empty again.    """
    if clock() > deadline:
        return Outcome.TIMED_OUT

    empty = find_empty(board)
    if not empty:
        return Outcome.SOLVED
    r, c = empty

    for n in range(1, SIZE + 1):
        if is_safe(board, n, r, c):
            place(board, r, c, n)
            outcome = solve(board, deadline, clock)
            if outcome is Outcome.SOLVED:
                return outcome
            clear(board, r, c)
            if outcome is Outcome.TIMED_OUT:
                return outcome
    return Outcome.EXHAUSTED


# ---- RevealSelector ----

def reveal(solution: Board, hint_count: int, rng: random.Random) -> Board:
    # Draws are with replacement: a repeated cell still uses up one hint.
    display = empty_board()
    for _ in range(hint_count):
        r, c = rng.randrange(SIZE), rng.randrange(SIZE)
        display[r][c] = solution[r][c]
    return display


# ---- Orchestrator ----

def _retrieve_fallback(fallback: FallbackSource) -> Board:
    grid = fallback.retrieve_solved()
    if not is_solved(grid):
        raise FallbackUnavailable("fallback source returned an invalid grid")
    return copy_board(grid)


def generate_puzzle(
    seed_count: int,
    hint_count: int,
    fallback: FallbackSource,
    *,
    time_budget_ms: int = DEFAULT_TIME_BUDGET_MS,
    rng: Optional[random.Random] = None,
    clock: Clock = time.monotonic,
) -> tuple[Board, Board]:
    """Generate one puzzle and return ``(solution, display)``.

    ``fallback`` needs a ``retrieve_solved()`` method returning a solved grid;
    it is consulted when a solve attempt runs past ``time_budget_ms`` (or after
    ``MAX_RESEED_ATTEMPTS`` failed seedings). ``FallbackUnavailable`` from it
    propagates to the caller.
    """
    validate_counts(seed_count, hint_count)
    if rng is None:
        rng = random.Random()

    solution = empty_board()
    attempts = 0
    while True:
        attempts += 1
        try:
            seed(solution, seed_count, rng)
        except SeedingStalled as e:
            logger.debug("attempt %d: %s", attempts, e)
            outcome = Outcome.EXHAUSTED
        else:
            started = clock()
            outcome = solve(solution, started + time_budget_ms / 1000.0, clock)
            logger.debug("attempt %d: %s in %.3fs", attempts, outcome.value, clock() - started)

        if outcome is Outcome.SOLVED and is_complete(solution):
            break
        if outcome is Outcome.TIMED_OUT:
            logger.info("solve exceeded %d ms, using a fallback grid", time_budget_ms)
            solution = _retrieve_fallback(fallback)
            break
        if attempts >= MAX_RESEED_ATTEMPTS:
            logger.warning("no solvable seeding after %d attempts, using a fallback grid", attempts)
            solution = _retrieve_fallback(fallback)
            break
        solution = empty_board()

    display = reveal(solution, hint_count, rng)
    return solution, display
