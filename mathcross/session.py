"""Puzzle-session state: the single aggregate the game controller mutates."""
from dataclasses import dataclass, field

from mathcross.schemas import (
    CellPosition,
    CellType,
    Difficulty,
    GameStatus,
    GridCell,
    Overlay,
    Puzzle,
    SessionSnapshot,
)

LOADING_MESSAGES = [
    "완벽한 챌린지를 생성 중...",
    "연필을 깎는 중...",
    "숫자를 계산하고 있어요...",
    "X, Y, Z 값을 푸는 중...",
    "알고 계셨나요? 수학 퍼즐은 기억력을 향상시킬 수 있어요.",
    "두뇌 운동을 준비하세요!",
    "0으로 나누는 중... 농담이에요!",
]

LOST_TITLES = {
    Difficulty.EASY: "초등학교 실패",
    Difficulty.MEDIUM: "중학교 실패",
    Difficulty.HARD: "고등학교 실패",
}


def difficulty_for_level(level: int) -> Difficulty:
    if level > 5:
        return Difficulty.HARD
    if level > 2:
        return Difficulty.MEDIUM
    return Difficulty.EASY


def overlay_for(status: GameStatus, difficulty: Difficulty) -> Overlay | None:
    """Overlay copy shown over the board for finished or failed puzzles."""
    if status == GameStatus.WON:
        return Overlay(
            title="Level Complete!",
            message="Great job! Ready for the next challenge?",
            action="next_level",
        )
    if status == GameStatus.LOST:
        return Overlay(
            title=LOST_TITLES.get(difficulty, "Game Over"),
            message="정답을 확인하고 다시 도전해보세요!",
            action="restart_from_level_1",
        )
    if status == GameStatus.ERROR:
        return Overlay(
            title="An Error Occurred",
            message="Could not create a puzzle. Please try again.",
            action="restart",
        )
    return None


def copy_grid(grid: list[list[GridCell]]) -> list[list[GridCell]]:
    return [[cell.model_copy() for cell in row] for row in grid]


@dataclass
class PrefetchedPuzzle:
    puzzle: Puzzle
    difficulty: Difficulty
    level: int  # Level the puzzle was requested for


@dataclass
class SessionState:
    level: int = 1
    difficulty: Difficulty = Difficulty.EASY
    status: GameStatus = GameStatus.LOADING
    puzzle: Puzzle | None = None
    grid: list[list[GridCell]] = field(default_factory=list)  # Working copy of puzzle.grid
    selected: CellPosition | None = None
    wrong_input: CellPosition | None = None
    mistakes: int = 0
    score: int = 0
    high_score: int = 0
    prefetched: PrefetchedPuzzle | None = None
    error: str | None = None

    def install(self, puzzle: Puzzle) -> None:
        """Make puzzle the active one and reset per-puzzle state."""
        self.puzzle = puzzle
        self.error = None
        self.reset_grid()
        self.status = GameStatus.PLAYING

    def reset_grid(self) -> None:
        """Restore the working grid to the puzzle's original grid."""
        self.grid = copy_grid(self.puzzle.grid) if self.puzzle else []
        self.mistakes = 0
        self.selected = None
        self.wrong_input = None

    def clear_puzzle(self) -> None:
        self.puzzle = None
        self.grid = []
        self.selected = None
        self.wrong_input = None

    def cell_at(self, row: int, col: int) -> GridCell | None:
        if 0 <= row < len(self.grid) and 0 <= col < len(self.grid[row]):
            return self.grid[row][col]
        return None

    def is_won(self) -> bool:
        """True when every solution cell is GIVEN or REVEALED.

        A puzzle without INPUT cells is won as soon as it is installed.
        """
        if not self.puzzle:
            return False
        for key in self.puzzle.solution:
            r, c = (int(part) for part in key.split(","))
            cell = self.cell_at(r, c)
            if cell is None or cell.type not in (CellType.GIVEN, CellType.REVEALED):
                return False
        return True

    def reveal_solution(self) -> None:
        """Rewrite every remaining INPUT cell to REVEALED with its answer."""
        for r, row in enumerate(self.grid):
            for c, cell in enumerate(row):
                answer = self.puzzle.solution.get(f"{r},{c}")
                if cell.type == CellType.INPUT and answer is not None:
                    row[c] = GridCell(type=CellType.REVEALED, value=str(answer))

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            status=self.status,
            level=self.level,
            difficulty=self.difficulty,
            score=self.score,
            high_score=self.high_score,
            mistakes=self.mistakes,
            grid=copy_grid(self.grid),
            keypad=list(self.puzzle.keypad) if self.puzzle else [],
            selected_cell=self.selected,
            wrong_input_cell=self.wrong_input,
            overlay=overlay_for(self.status, self.difficulty),
            loading_messages=LOADING_MESSAGES if self.status == GameStatus.LOADING else [],
            error=self.error,
        )
