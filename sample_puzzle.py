"""Test script to fetch and print a single generated puzzle."""
import asyncio
import json
import sys

from mathcross.errors import PuzzleError
from mathcross.schemas import CellType, Difficulty
from mathcross.gemini import fetch_puzzle


async def main():
    difficulty = Difficulty(sys.argv[1]) if len(sys.argv) > 1 else Difficulty.EASY
    print(f"Requesting a {difficulty.value} puzzle...")

    try:
        puzzle = await fetch_puzzle(difficulty)
    except PuzzleError as e:
        print(f"{e.kind}: {e}")
        return

    print(f"\n=== Grid ===")
    for r, row in enumerate(puzzle.grid):
        row_cells = []
        for c, cell in enumerate(row):
            if cell.type == CellType.EMPTY:
                row_cells.append("#")
            elif cell.type == CellType.INPUT:
                row_cells.append("?")
            else:
                row_cells.append(cell.value)
        print("".join(f"{c:>4}" for c in row_cells))

    print(f"\nINPUT cells: {len(puzzle.solution)}")
    print(f"Keypad: {puzzle.keypad}")

    # Write the puzzle JSON to a file for manual inspection
    with open("sample_puzzle.json", "w") as f:
        json.dump(puzzle.model_dump(mode="json"), f, indent=2)

    print("\n=== Wrote sample_puzzle.json ===")

if __name__ == "__main__":
    asyncio.run(main())
