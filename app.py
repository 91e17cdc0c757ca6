import os
import logging

import click
from dotenv import load_dotenv
from flask import Flask, request, session, jsonify
from werkzeug.exceptions import BadRequest, HTTPException

from sudoku_generator import (
    CELLS, SIZE, InvalidConfiguration, FallbackUnavailable, format_board,
    generate_puzzle, is_complete, is_safe, is_well_formed,
)
from puzzle_bank import BankError, PuzzleBank, fill_bank

load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = Flask(__name__)
app.secret_key = os.getenv("FLASK_SECRET_KEY", "dev-secret")

# Generator config
app.config.update(
    SUDOKU_SEED_COUNT=int(os.getenv("SUDOKU_SEED_COUNT", "16")),
    SUDOKU_HINT_COUNT=int(os.getenv("SUDOKU_HINT_COUNT", "16")),
    SUDOKU_TIME_BUDGET_MS=int(os.getenv("SUDOKU_TIME_BUDGET_MS", "5000")),
    SUDOKU_PREGEN_DIR=os.getenv("SUDOKU_PREGEN_DIR", os.path.join(os.path.dirname(__file__), "pregen")),
    SUDOKU_BANK_TARGET=int(os.getenv("SUDOKU_BANK_TARGET", "100")),
)


def get_bank() -> PuzzleBank:
    return PuzzleBank(app.config["SUDOKU_PREGEN_DIR"])


def int_arg(name: str, default: int) -> int:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise BadRequest(f"{name} must be an integer")


def json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise BadRequest("expected a JSON object")
    return data


def grid_field(data: dict):
    grid = data.get("grid")
    if not is_well_formed(grid):
        raise BadRequest(f"grid must be a {SIZE}x{SIZE} array of digits 0-{SIZE}")
    return grid


@app.errorhandler(HTTPException)
def http_error(e):
    return jsonify({"error": e.description}), e.code


@app.errorhandler(InvalidConfiguration)
def invalid_configuration(e):
    return jsonify({"error": str(e)}), 400


@app.errorhandler(FallbackUnavailable)
def fallback_unavailable(e):
    # No puzzle can be produced at all; never hand out a partial grid.
    app.logger.error("fallback unavailable: %s", e)
    return jsonify({"error": "fallback_unavailable"}), 503


@app.route("/api/new_puzzle")
def api_new_puzzle():
    seeds = int_arg("seeds", app.config["SUDOKU_SEED_COUNT"])
    hints = int_arg("hints", app.config["SUDOKU_HINT_COUNT"])
    solution, display = generate_puzzle(
        seeds, hints, get_bank(),
        time_budget_ms=app.config["SUDOKU_TIME_BUDGET_MS"],
    )
    # keep the solution server-side for the commit check
    session["last_solution"] = solution
    return jsonify({"seeds": seeds, "hints": hints, "display": display, "solution": solution})


@app.route("/api/check", methods=["POST"])
def api_check():
    """Per-cell legality query used while the player edits the grid."""
    data = json_body()
    grid = grid_field(data)
    row, col, value = (data.get(key) for key in ("row", "col", "value"))
    if not all(isinstance(v, int) and not isinstance(v, bool) for v in (row, col, value)):
        raise BadRequest("row, col and value must be integers")
    if not (0 <= row < SIZE and 0 <= col < SIZE):
        raise BadRequest(f"row and col must be between 0 and {SIZE - 1}")
    safe = 1 <= value <= SIZE and is_safe(grid, value, row, col)
    return jsonify({"safe": safe})


@app.route("/api/commit", methods=["POST"])
def api_commit():
    solution = session.get("last_solution")
    if not solution:
        raise BadRequest("no puzzle in progress")
    grid = grid_field(json_body())
    complete = is_complete(grid)
    return jsonify({"complete": complete, "correct": complete and grid == solution})


# ---- CLI ----

@app.cli.command("generate")
@click.option("--seeds", type=click.IntRange(0, CELLS), default=None, help="Cells seeded before solving.")
@click.option("--hints", type=click.IntRange(0, CELLS), default=None, help="Cells revealed to the player.")
def generate_command(seeds, hints):
    """Generate one puzzle and print the solution and the player's view."""
    if seeds is None:
        seeds = app.config["SUDOKU_SEED_COUNT"]
    if hints is None:
        hints = app.config["SUDOKU_HINT_COUNT"]
    try:
        solution, display = generate_puzzle(
            seeds, hints, get_bank(),
            time_budget_ms=app.config["SUDOKU_TIME_BUDGET_MS"],
        )
    except (InvalidConfiguration, FallbackUnavailable) as e:
        raise click.ClickException(str(e))
    click.echo(format_board(solution, "SOLUTION"))
    click.echo(format_board(display, "DISPLAY"))


@app.cli.command("fill-bank")
@click.option("--target", type=click.IntRange(1), default=None, help="Number of grids the bank should hold.")
@click.option("--seeds", type=click.IntRange(0, CELLS), default=None, help="Cells seeded before solving.")
def fill_bank_command(target, seeds):
    """Top up the fallback bank with freshly generated solved grids."""
    if target is None:
        target = app.config["SUDOKU_BANK_TARGET"]
    if seeds is None:
        seeds = app.config["SUDOKU_SEED_COUNT"]
    bank = get_bank()
    try:
        written = fill_bank(bank, target, seeds, app.config["SUDOKU_TIME_BUDGET_MS"])
    except BankError as e:
        raise click.ClickException(str(e))
    click.echo(f"wrote {written} grid(s); bank now holds {bank.count()}")


if __name__ == "__main__":
    app.run(debug=True)
