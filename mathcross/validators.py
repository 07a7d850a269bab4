"""Parsing and validation of puzzles returned by the model."""
import json
import random

from pydantic import ValidationError

from mathcross.errors import MalformedResponse
from mathcross.schemas import (
    GRID_SIZE,
    KEYPAD_SIZE,
    MIN_INPUT_CELLS,
    CellType,
    GridCell,
    Puzzle,
    SolutionEntry,
)


def strip_code_fences(text: str) -> str:
    """Remove markdown code-fence markers the model wraps around JSON."""
    return text.replace("```json", "").replace("```", "").strip()


def parse_puzzle_text(text: str) -> dict:
    """Decode the model's raw text into a JSON object.

    Raises MalformedResponse if the text is not a JSON object.
    """
    cleaned = strip_code_fences(text)
    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise MalformedResponse(f"Response is not valid JSON: {e}") from e

    if not isinstance(payload, dict):
        raise MalformedResponse(f"Expected a JSON object, got {type(payload).__name__}")
    return payload


def validate_puzzle(raw: dict, rng: random.Random | None = None) -> Puzzle:
    """Turn a raw model response into a trusted Puzzle.

    Raw format:
    - grid: 8x8 array of {type, value}
    - solution: [{key: "row,col", value: int}] for each INPUT cell
    - keypad: array of integers (correct values plus distractors)

    Every structural invariant is checked; any violation raises
    MalformedResponse naming the offending field or cell.
    """
    if not isinstance(raw, dict):
        raise MalformedResponse("Invalid puzzle format from API")
    for field in ("grid", "solution", "keypad"):
        if not isinstance(raw.get(field), list):
            raise MalformedResponse(f"Invalid puzzle format from API: '{field}' must be an array")

    grid = _parse_grid(raw["grid"])
    solution = _build_solution_map(raw["solution"])
    _check_solution_matches_grid(grid, solution)

    raw_keypad = _parse_keypad(raw["keypad"])
    correct_values = _distinct(solution.values())
    if len(correct_values) > KEYPAD_SIZE:
        raise MalformedResponse(
            f"{len(correct_values)} distinct answers do not fit a {KEYPAD_SIZE}-key keypad"
        )

    return Puzzle(
        grid=grid,
        solution=solution,
        keypad=build_keypad(correct_values, raw_keypad, rng),
    )


def build_keypad(
    correct_values: list[int], raw_keypad: list[int], rng: random.Random | None = None
) -> list[int]:
    """Build the 15-key display keypad.

    Every distinct correct value is kept, then distinct distractors from the
    model's keypad fill the remaining keys. If there are still too few, keys
    already chosen are repeated at random. The result is shuffled; pass a
    seeded rng for a reproducible order.
    """
    rng = rng or random.Random()

    keys = _distinct(correct_values)
    for value in raw_keypad:
        if len(keys) >= KEYPAD_SIZE:
            break
        if value not in keys:
            keys.append(value)

    if not keys:
        return []

    distinct_keys = list(keys)
    while len(keys) < KEYPAD_SIZE:
        keys.append(rng.choice(distinct_keys))

    keys = keys[:KEYPAD_SIZE]
    rng.shuffle(keys)
    return keys


def parse_key(key: str) -> tuple[int, int]:
    """Parse a "row,col" solution key into in-bounds coordinates."""
    parts = key.split(",")
    if len(parts) != 2:
        raise MalformedResponse(f"Solution key {key!r} is not 'row,col'")
    try:
        row, col = int(parts[0]), int(parts[1])
    except ValueError:
        raise MalformedResponse(f"Solution key {key!r} is not 'row,col'") from None
    if not (0 <= row < GRID_SIZE and 0 <= col < GRID_SIZE):
        raise MalformedResponse(f"Solution key {key!r} is outside the {GRID_SIZE}x{GRID_SIZE} grid")
    return row, col


def _parse_grid(raw_grid: list) -> list[list[GridCell]]:
    """Check dimensions and parse every cell."""
    if len(raw_grid) != GRID_SIZE:
        raise MalformedResponse(f"Grid must have {GRID_SIZE} rows, got {len(raw_grid)}")

    grid = []
    for r, raw_row in enumerate(raw_grid):
        if not isinstance(raw_row, list) or len(raw_row) != GRID_SIZE:
            raise MalformedResponse(f"Grid row {r} must have {GRID_SIZE} cells")
        row = []
        for c, raw_cell in enumerate(raw_row):
            try:
                cell = GridCell.model_validate(raw_cell)
            except ValidationError as e:
                raise MalformedResponse(f"Invalid cell at {r},{c}: {e.errors()[0]['msg']}") from e
            if cell.type == CellType.REVEALED:
                raise MalformedResponse(f"Cell {r},{c} is REVEALED in a fresh puzzle")
            row.append(cell)
        grid.append(row)
    return grid


def _build_solution_map(raw_solution: list) -> dict[str, int]:
    """Convert [{key, value}] pairs into {"row,col": value}."""
    solution: dict[str, int] = {}
    for item in raw_solution:
        try:
            entry = SolutionEntry.model_validate(item)
        except ValidationError as e:
            raise MalformedResponse(f"Invalid solution entry {item!r}") from e

        row, col = parse_key(entry.key)
        # Normalize " 1, 2" style keys to "1,2"
        key = f"{row},{col}"
        if key in solution:
            raise MalformedResponse(f"Duplicate solution key {key!r}")
        solution[key] = entry.value
    return solution


def _check_solution_matches_grid(grid: list[list[GridCell]], solution: dict[str, int]) -> None:
    """Solution keys must be exactly the INPUT cells, and there must be enough."""
    input_keys = {
        f"{r},{c}"
        for r, row in enumerate(grid)
        for c, cell in enumerate(row)
        if cell.type == CellType.INPUT
    }

    not_input = sorted(set(solution) - input_keys)
    if not_input:
        raise MalformedResponse(f"Solution addresses non-INPUT cells: {', '.join(not_input)}")

    unsolved = sorted(input_keys - set(solution))
    if unsolved:
        raise MalformedResponse(f"INPUT cells missing from solution: {', '.join(unsolved)}")

    if len(solution) < MIN_INPUT_CELLS:
        raise MalformedResponse(
            f"Puzzle needs at least {MIN_INPUT_CELLS} INPUT cells, got {len(solution)}"
        )


def _parse_keypad(raw_keypad: list) -> list[int]:
    keypad = []
    for value in raw_keypad:
        if isinstance(value, bool):
            raise MalformedResponse(f"Keypad entry {value!r} is not a number")
        if isinstance(value, int):
            keypad.append(value)
        elif isinstance(value, str) and value.strip().removeprefix("-").isdigit():
            keypad.append(int(value))
        else:
            raise MalformedResponse(f"Keypad entry {value!r} is not a number")
    return keypad


def _distinct(values) -> list[int]:
    """Distinct values in first-seen order."""
    return list(dict.fromkeys(values))
