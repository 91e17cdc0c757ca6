import logging
import random
import struct
import time
from pathlib import Path
from typing import List, Optional

from sudoku_generator import (
    CELLS, SIZE, Board, FallbackUnavailable, Outcome, SeedingStalled, empty_board,
    is_solved, seed, solve, validate_counts,
)

__all__ = ["BankError", "FallbackUnavailable", "PuzzleBank", "fill_bank", "read_ssf", "write_ssf"]

# Sudoku Solution File: 81 big-endian int32 values, row-major.
SSF_SUFFIX = ".ssf"
SSF_FORMAT = f">{CELLS}i"
SSF_SIZE = struct.calcsize(SSF_FORMAT)

# Consecutive discarded attempts before fill_bank gives up.
MAX_FILL_FAILURES = 200

logger = logging.getLogger(__name__)


class BankError(Exception):
    pass


def read_ssf(path) -> Board:
    data = Path(path).read_bytes()
    if len(data) != SSF_SIZE:
        raise BankError(f"{path}: expected {SSF_SIZE} bytes, got {len(data)}")
    values = struct.unpack(SSF_FORMAT, data)
    return [list(values[r * SIZE:(r + 1) * SIZE]) for r in range(SIZE)]


def write_ssf(path, board: Board) -> None:
    values = [v for row in board for v in row]
    if len(values) != CELLS:
        raise BankError(f"board has {len(values)} cells, expected {CELLS}")
    Path(path).write_bytes(struct.pack(SSF_FORMAT, *values))


class PuzzleBank:
    """A directory of pre-solved grids stored as ``0.ssf``, ``1.ssf``, ...

    Serves as the generator's fallback source when a solve attempt runs out
    of time.
    """

    def __init__(self, directory, rng: Optional[random.Random] = None):
        self.directory = Path(directory)
        self.rng = rng if rng is not None else random.Random()

    def files(self) -> List[Path]:
        if not self.directory.is_dir():
            return []
        return sorted(self.directory.glob("*" + SSF_SUFFIX))

    def count(self) -> int:
        return len(self.files())

    def retrieve_solved(self) -> Board:
        files = self.files()
        if not files:
            raise FallbackUnavailable(f"no {SSF_SUFFIX} files in {self.directory}")
        path = self.rng.choice(files)
        try:
            board = read_ssf(path)
        except (BankError, OSError) as e:
            raise FallbackUnavailable(f"cannot read {path}: {e}") from e
        if not is_solved(board):
            raise FallbackUnavailable(f"{path} does not hold a solved grid")
        logger.info("loaded fallback grid %s", path.name)
        return board

    def add(self, board: Board) -> Path:
        if not is_solved(board):
            raise BankError("only solved grids can be added to the bank")
        self.directory.mkdir(parents=True, exist_ok=True)
        index = self.count()
        while (self.directory / f"{index}{SSF_SUFFIX}").exists():
            index += 1
        path = self.directory / f"{index}{SSF_SUFFIX}"
        write_ssf(path, board)
        return path


def fill_bank(bank: PuzzleBank, target: int, seed_count: int, time_budget_ms: int,
              rng: Optional[random.Random] = None) -> int:
    """Generate solved grids into ``bank`` until it holds ``target`` files.

    Attempts that time out or find no completion are discarded; after
    ``MAX_FILL_FAILURES`` of them in a row ``BankError`` is raised. Returns the
    number of grids written.
    """
    validate_counts(seed_count, 0)
    if rng is None:
        rng = random.Random()

    written = 0
    failures = 0
    while bank.count() < target:
        if failures >= MAX_FILL_FAILURES:
            raise BankError(f"gave up after {failures} failed attempts with {seed_count} seeds")
        board = empty_board()
        try:
            seed(board, seed_count, rng)
        except SeedingStalled as e:
            logger.debug("discarding seeding: %s", e)
            failures += 1
            continue
        outcome = solve(board, time.monotonic() + time_budget_ms / 1000.0)
        if outcome is not Outcome.SOLVED:
            logger.debug("discarding seeding: %s", outcome.value)
            failures += 1
            continue
        failures = 0
        path = bank.add(board)
        written += 1
        logger.info("wrote %s", path)
    return written
