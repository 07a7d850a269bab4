"""Game controller: the only entry point that mutates a SessionState.

User intents (select, submit) are ignored unless the session is PLAYING.
Puzzle loads are tagged with a generation number so a response that arrives
after a newer load was started is dropped. The next level's puzzle is
fetched in the background into a single prefetch slot.
"""
import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable

from mathcross.db import Settings, get_settings
from mathcross.errors import PersistenceUnavailable, PuzzleError, ProviderUnavailable
from mathcross.gemini import fetch_puzzle
from mathcross.highscore import HighScoreStore
from mathcross.schemas import (
    MAX_MISTAKES,
    CellPosition,
    CellType,
    Difficulty,
    GameStatus,
    GridCell,
    Puzzle,
    SessionSnapshot,
)
from mathcross.session import PrefetchedPuzzle, SessionState, difficulty_for_level

logger = logging.getLogger(__name__)

POINTS_PER_CORRECT = 10
LEVEL_BONUS = 100

PuzzleFetcher = Callable[[Difficulty], Awaitable[Puzzle]]
Subscriber = Callable[[SessionSnapshot], None]


class GameController:
    def __init__(
        self,
        fetch: PuzzleFetcher | None = None,
        store: HighScoreStore | None = None,
        settings: Settings | None = None,
    ):
        self._settings = settings or get_settings()
        self._fetch = fetch or self._fetch_from_gemini
        self._store = store
        self.state = SessionState()

        self._load_generation = 0
        self._prefetch_task: asyncio.Task | None = None
        self._wrong_input_timer: asyncio.TimerHandle | None = None
        self._subscribers: list[Subscriber] = []
        self._save_lock = asyncio.Lock()

    async def _fetch_from_gemini(self, difficulty: Difficulty) -> Puzzle:
        return await fetch_puzzle(difficulty, settings=self._settings)

    @property
    def prefetch_task(self) -> asyncio.Task | None:
        return self._prefetch_task

    # Observers
    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Call callback with a fresh snapshot after every state change.

        Returns a function that removes the subscription; calling it again
        does nothing.
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def snapshot(self) -> SessionSnapshot:
        return self.state.snapshot()

    def _notify(self) -> None:
        if not self._subscribers:
            return
        snapshot = self.state.snapshot()
        for callback in list(self._subscribers):
            try:
                callback(snapshot)
            except Exception:
                logger.exception(f"Subscriber {callback!r} failed")

    # Lifecycle
    async def start(self) -> None:
        """Read the stored high score and load the first puzzle."""
        await self.load_high_score()
        await self.start_level(self.state.level)

    async def load_high_score(self) -> None:
        if not self._store:
            return
        try:
            self.state.high_score = await self._store.load()
        except PersistenceUnavailable as e:
            logger.warning(f"High score unavailable, starting from 0: {e}")

    async def close(self) -> None:
        self._cancel_wrong_input_timer()
        task = self._prefetch_task
        if task and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def start_level(self, level: int) -> None:
        """Load a puzzle for level, from the prefetch slot when it matches."""
        state = self.state
        difficulty = difficulty_for_level(level)
        state.level = level
        state.difficulty = difficulty

        self._load_generation += 1
        generation = self._load_generation
        self._cancel_wrong_input_timer()

        prefetched = state.prefetched
        if prefetched and prefetched.difficulty == difficulty:
            state.prefetched = None
            logger.info(f"Using preloaded {difficulty.value} puzzle for level {level}")
            self.prefetch_next(level + 1)
            await self._install(prefetched.puzzle)
            return

        state.clear_puzzle()
        state.error = None
        state.status = GameStatus.LOADING
        self._notify()

        try:
            puzzle = await self._fetch(difficulty)
        except Exception as e:
            if generation != self._load_generation:
                logger.info(f"Ignoring failed load for level {level}, a newer load superseded it")
                return
            if isinstance(e, PuzzleError):
                logger.error(f"Failed to generate puzzle for level {level}: {e}")
                kind = e.kind
            else:
                logger.exception(f"Unexpected provider error for level {level}")
                kind = ProviderUnavailable.kind
            state.clear_puzzle()
            state.error = kind
            state.status = GameStatus.ERROR
            self._notify()
            return

        if generation != self._load_generation:
            logger.info(f"Discarding puzzle for level {level}, a newer load superseded it")
            return

        self.prefetch_next(level + 1)
        await self._install(puzzle)

    async def _install(self, puzzle: Puzzle) -> None:
        self.state.install(puzzle)
        self._finish_if_won()
        self._notify()
        await self._record_high_score()

    # Prefetch
    def prefetch_next(self, level: int) -> asyncio.Task | None:
        """Fetch the puzzle for level in the background.

        No-op while a prefetch is pending or the slot is already filled.
        """
        if self._prefetch_task and not self._prefetch_task.done():
            return None
        if self.state.prefetched:
            return None
        self._prefetch_task = asyncio.create_task(self._prefetch(level))
        return self._prefetch_task

    async def _prefetch(self, level: int) -> None:
        difficulty = difficulty_for_level(level)
        try:
            puzzle = await self._fetch(difficulty)
        except Exception as e:
            logger.warning(f"Failed to preload puzzle for level {level}: {e}")
            return

        if level <= self.state.level:
            logger.info(f"Dropping preloaded puzzle for level {level}, session is already at level {self.state.level}")
            return
        if self.state.prefetched is None:
            self.state.prefetched = PrefetchedPuzzle(puzzle=puzzle, difficulty=difficulty, level=level)
            logger.info(f"Preloaded {difficulty.value} puzzle for level {level}")

    # Intents
    def select_cell(self, row: int, col: int) -> None:
        state = self.state
        if state.status != GameStatus.PLAYING:
            return
        cell = state.cell_at(row, col)
        if cell and cell.type == CellType.INPUT:
            state.selected = CellPosition(row=row, col=col)
        else:
            state.selected = None
        self._notify()

    async def submit_number(self, number: int) -> None:
        state = self.state
        if state.status != GameStatus.PLAYING or state.selected is None or state.puzzle is None:
            return

        position = state.selected
        if state.puzzle.solution.get(position.key) == number:
            state.grid[position.row][position.col] = GridCell(type=CellType.GIVEN, value=str(number))
            state.score += POINTS_PER_CORRECT
            state.selected = None
            self._finish_if_won()
        else:
            state.mistakes += 1
            self._flag_wrong_input(position)
            if state.mistakes >= MAX_MISTAKES:
                state.reveal_solution()
                state.selected = None
                state.status = GameStatus.LOST
                logger.info(f"Level {state.level} lost with score {state.score}")

        self._notify()
        await self._record_high_score()

    async def advance_level(self) -> None:
        await self.start_level(self.state.level + 1)

    async def restart_from_level_1(self) -> None:
        self.state.score = 0
        await self.start_level(1)

    async def retry_current_level(self) -> None:
        """Replay the current puzzle from its original grid."""
        state = self.state
        if state.puzzle is None:
            await self.start_level(state.level)
            return
        self._cancel_wrong_input_timer()
        state.reset_grid()
        state.status = GameStatus.PLAYING
        self._notify()

    async def restart_current_level(self) -> None:
        await self.start_level(self.state.level)

    # Helpers
    def _finish_if_won(self) -> None:
        state = self.state
        if state.is_won():
            state.status = GameStatus.WON
            state.score += LEVEL_BONUS
            logger.info(f"Level {state.level} complete, score {state.score}")

    async def _record_high_score(self) -> None:
        state = self.state
        if state.score <= state.high_score:
            return
        state.high_score = state.score
        if not self._store:
            return
        # Saves run one at a time and always write the current watermark,
        # so the last commit is the highest score.
        async with self._save_lock:
            try:
                await self._store.save(state.high_score)
            except PersistenceUnavailable as e:
                logger.warning(f"Could not save high score: {e}")

    def _flag_wrong_input(self, position: CellPosition) -> None:
        self._cancel_wrong_input_timer()
        self.state.wrong_input = position
        loop = asyncio.get_running_loop()
        self._wrong_input_timer = loop.call_later(
            self._settings.wrong_input_clear_delay, self._clear_wrong_input
        )

    def _clear_wrong_input(self) -> None:
        self._wrong_input_timer = None
        self.state.wrong_input = None
        self._notify()

    def _cancel_wrong_input_timer(self) -> None:
        if self._wrong_input_timer:
            self._wrong_input_timer.cancel()
            self._wrong_input_timer = None
        self.state.wrong_input = None
