# tests/conftest.py
import random
import sys
from pathlib import Path

import pytest

# Flat layout: put the project root on sys.path so the top-level modules import
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from sudoku_generator import copy_board  # noqa: E402

SOLVED = [
    [1, 2, 3, 4, 5, 6, 7, 8, 9],
    [4, 5, 6, 7, 8, 9, 1, 2, 3],
    [7, 8, 9, 1, 2, 3, 4, 5, 6],
    [2, 3, 4, 5, 6, 7, 8, 9, 1],
    [5, 6, 7, 8, 9, 1, 2, 3, 4],
    [8, 9, 1, 2, 3, 4, 5, 6, 7],
    [3, 4, 5, 6, 7, 8, 9, 1, 2],
    [6, 7, 8, 9, 1, 2, 3, 4, 5],
    [9, 1, 2, 3, 4, 5, 6, 7, 8],
]


class FakeClock:
    """Returns ``start``, ``start + step``, ... on successive calls."""

    def __init__(self, start=0.0, step=0.0):
        self.now = start
        self.step = step
        self.calls = 0

    def __call__(self):
        value = self.now
        self.now += self.step
        self.calls += 1
        return value


class StubFallback:
    def __init__(self, grid=None, error=None):
        self.grid = grid if grid is not None else SOLVED
        self.error = error
        self.calls = 0

    def retrieve_solved(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return copy_board(self.grid)


@pytest.fixture
def solved():
    return copy_board(SOLVED)


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def fallback():
    return StubFallback()


@pytest.fixture
def bank_dir(tmp_path):
    from puzzle_bank import write_ssf

    directory = tmp_path / "pregen"
    directory.mkdir()
    write_ssf(directory / "0.ssf", SOLVED)
    return directory


@pytest.fixture
def flask_app(bank_dir, monkeypatch):
    from app import app

    monkeypatch.setitem(app.config, "TESTING", True)
    monkeypatch.setitem(app.config, "SUDOKU_PREGEN_DIR", str(bank_dir))
    monkeypatch.setitem(app.config, "SUDOKU_SEED_COUNT", 0)
    monkeypatch.setitem(app.config, "SUDOKU_HINT_COUNT", 16)
    return app


@pytest.fixture
def client(flask_app):
    return flask_app.test_client()
