from contextlib import asynccontextmanager, suppress
import asyncio
import logging

from fastapi import FastAPI, Depends, Request
from fastapi.middleware.cors import CORSMiddleware

from mathcross.db import async_session, init_db, settings
from mathcross.game import GameController
from mathcross.highscore import HighScoreStore
from mathcross.schemas import SessionSnapshot, SelectCellRequest, SubmitNumberRequest

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    controller = GameController(store=HighScoreStore(async_session), settings=settings)
    app.state.controller = controller
    await controller.load_high_score()
    # First puzzle loads in the background; /session reports LOADING until then
    first_load = asyncio.create_task(controller.start_level(controller.state.level))
    logger.info(f"Session started at level {controller.state.level}, loading first puzzle")
    yield
    first_load.cancel()
    with suppress(asyncio.CancelledError):
        await first_load
    await controller.close()


app = FastAPI(title="Math Crossword API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_controller(request: Request) -> GameController:
    return request.app.state.controller


# Health check
@app.get("/health")
async def health():
    return {"status": "ok"}


# Session
@app.get("/session", response_model=SessionSnapshot)
async def get_session(controller: GameController = Depends(get_controller)):
    """Current session snapshot."""
    return controller.snapshot()


@app.post("/session/select", response_model=SessionSnapshot)
async def select_cell(
    request: SelectCellRequest,
    controller: GameController = Depends(get_controller),
):
    """Select a cell. Non-INPUT cells clear the selection."""
    controller.select_cell(request.row, request.col)
    return controller.snapshot()


@app.post("/session/submit", response_model=SessionSnapshot)
async def submit_number(
    request: SubmitNumberRequest,
    controller: GameController = Depends(get_controller),
):
    """Enter a keypad number into the selected cell."""
    await controller.submit_number(request.number)
    return controller.snapshot()


# Lifecycle
@app.post("/session/next-level", response_model=SessionSnapshot)
async def next_level(controller: GameController = Depends(get_controller)):
    await controller.advance_level()
    return controller.snapshot()


@app.post("/session/retry", response_model=SessionSnapshot)
async def retry_level(controller: GameController = Depends(get_controller)):
    """Replay the current puzzle from its original grid."""
    await controller.retry_current_level()
    return controller.snapshot()


@app.post("/session/restart", response_model=SessionSnapshot)
async def restart_level(controller: GameController = Depends(get_controller)):
    """Load a puzzle for the current level again, keeping the score."""
    await controller.restart_current_level()
    return controller.snapshot()


@app.post("/session/restart-from-level-1", response_model=SessionSnapshot)
async def restart_from_level_1(controller: GameController = Depends(get_controller)):
    await controller.restart_from_level_1()
    return controller.snapshot()
