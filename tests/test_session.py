"""Tests for session state helpers."""
import pytest
from mathcross.schemas import CellType, Difficulty, GameStatus, GridCell
from mathcross.session import (
    LOADING_MESSAGES,
    SessionState,
    difficulty_for_level,
    overlay_for,
)

from puzzles import make_puzzle


class TestDifficulty:
    """Tests for the level -> difficulty mapping."""

    @pytest.mark.parametrize("level", [1, 2])
    def test_easy(self, level):
        assert difficulty_for_level(level) == Difficulty.EASY

    @pytest.mark.parametrize("level", [3, 4, 5])
    def test_medium(self, level):
        assert difficulty_for_level(level) == Difficulty.MEDIUM

    @pytest.mark.parametrize("level", [6, 7, 50])
    def test_hard(self, level):
        assert difficulty_for_level(level) == Difficulty.HARD

    def test_total_over_range(self):
        """Every level maps to exactly the documented band."""
        for level in range(1, 100):
            expected = (
                Difficulty.EASY if level <= 2
                else Difficulty.MEDIUM if level <= 5
                else Difficulty.HARD
            )
            assert difficulty_for_level(level) == expected


class TestGridState:
    """Tests for working-grid management."""

    def test_install_copies_grid(self):
        """Mutating the working grid leaves the puzzle untouched."""
        state = SessionState()
        puzzle = make_puzzle()
        state.install(puzzle)

        state.grid[0][0] = GridCell(type=CellType.GIVEN, value="7")

        assert puzzle.grid[0][0].type == CellType.INPUT
        assert state.status == GameStatus.PLAYING

    def test_reset_grid_restores_original(self):
        """reset_grid discards answers and mistakes."""
        state = SessionState()
        state.install(make_puzzle())
        state.grid[0][0] = GridCell(type=CellType.GIVEN, value="7")
        state.mistakes = 2

        state.reset_grid()

        assert state.grid == state.puzzle.grid
        assert state.mistakes == 0
        assert state.selected is None

    def test_cell_at_out_of_bounds(self):
        state = SessionState()
        state.install(make_puzzle())
        assert state.cell_at(8, 0) is None
        assert state.cell_at(0, -1) is None

    def test_is_won_requires_every_answer(self):
        state = SessionState()
        state.install(make_puzzle({(0, 0): 7, (0, 1): 2}))
        state.grid[0][0] = GridCell(type=CellType.GIVEN, value="7")
        assert state.is_won() is False

        state.grid[0][1] = GridCell(type=CellType.REVEALED, value="2")
        assert state.is_won() is True

    def test_is_won_vacuous(self):
        """No INPUT cells means the puzzle is already won."""
        state = SessionState()
        state.install(make_puzzle({}))
        assert state.is_won() is True

    def test_is_won_without_puzzle(self):
        assert SessionState().is_won() is False

    def test_reveal_solution(self):
        """Remaining INPUT cells become REVEALED with their answers."""
        state = SessionState()
        state.install(make_puzzle({(0, 0): 7, (3, 4): 15}, givens={(0, 1): 1}))
        state.grid[0][0] = GridCell(type=CellType.GIVEN, value="7")

        state.reveal_solution()

        assert state.grid[0][0] == GridCell(type=CellType.GIVEN, value="7")
        assert state.grid[3][4] == GridCell(type=CellType.REVEALED, value="15")
        assert state.grid[0][1] == GridCell(type=CellType.GIVEN, value="1")


class TestOverlay:
    """Tests for overlay copy."""

    def test_won(self):
        overlay = overlay_for(GameStatus.WON, Difficulty.EASY)
        assert overlay.title == "Level Complete!"
        assert overlay.action == "next_level"

    @pytest.mark.parametrize(
        "difficulty,title",
        [
            (Difficulty.EASY, "초등학교 실패"),
            (Difficulty.MEDIUM, "중학교 실패"),
            (Difficulty.HARD, "고등학교 실패"),
        ],
    )
    def test_lost_title_by_difficulty(self, difficulty, title):
        overlay = overlay_for(GameStatus.LOST, difficulty)
        assert overlay.title == title
        assert overlay.action == "restart_from_level_1"

    def test_error(self):
        overlay = overlay_for(GameStatus.ERROR, Difficulty.HARD)
        assert overlay.title == "An Error Occurred"
        assert overlay.action == "restart"

    @pytest.mark.parametrize("status", [GameStatus.PLAYING, GameStatus.LOADING])
    def test_no_overlay_while_active(self, status):
        assert overlay_for(status, Difficulty.EASY) is None


class TestSnapshot:
    """Tests for the read-only snapshot."""

    def test_loading_snapshot(self):
        """A new session is loading and shows loading messages."""
        snapshot = SessionState().snapshot()
        assert snapshot.status == GameStatus.LOADING
        assert snapshot.level == 1
        assert snapshot.grid == []
        assert snapshot.keypad == []
        assert snapshot.loading_messages == LOADING_MESSAGES

    def test_snapshot_is_detached(self):
        """Changing a snapshot's grid does not touch the session."""
        state = SessionState()
        state.install(make_puzzle())
        snapshot = state.snapshot()

        snapshot.grid[0][0] = GridCell(type=CellType.GIVEN, value="1")

        assert state.grid[0][0].type == CellType.INPUT
        assert snapshot.loading_messages == []
        assert snapshot.keypad == state.puzzle.keypad

    def test_empty_values_serialize_as_empty_string(self):
        """Cells without a value go out as "" and read back as None."""
        state = SessionState()
        state.install(make_puzzle())
        body = state.snapshot().model_dump(mode="json")

        assert body["grid"][0][0] == {"type": "INPUT", "value": ""}
        assert GridCell.model_validate(body["grid"][0][0]).value is None
