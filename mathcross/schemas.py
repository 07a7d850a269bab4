from enum import Enum

from pydantic import BaseModel, Field, field_serializer, field_validator, model_validator

GRID_SIZE = 8
KEYPAD_SIZE = 15
MIN_INPUT_CELLS = 5
MAX_MISTAKES = 3


class CellType(str, Enum):
    GIVEN = "GIVEN"
    INPUT = "INPUT"
    EMPTY = "EMPTY"
    REVEALED = "REVEALED"


class GameStatus(str, Enum):
    LOADING = "LOADING"
    PLAYING = "PLAYING"
    WON = "WON"
    LOST = "LOST"
    ERROR = "ERROR"


class Difficulty(str, Enum):
    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"


# Puzzle
class GridCell(BaseModel):
    type: CellType
    value: str | None = None  # "" on the wire, None here

    @field_validator("value", mode="before")
    @classmethod
    def _normalize_value(cls, v):
        # The model sometimes sends GIVEN values as bare numbers
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        if isinstance(v, str):
            v = v.strip()
            return v or None
        return v

    @model_validator(mode="after")
    def _value_matches_type(self):
        carries_value = self.type in (CellType.GIVEN, CellType.REVEALED)
        if carries_value and not self.value:
            raise ValueError(f"{self.type.value} cell must carry a value")
        if not carries_value and self.value:
            raise ValueError(f"{self.type.value} cell must be empty, got {self.value!r}")
        return self

    @field_serializer("value")
    def _serialize_value(self, v: str | None) -> str:
        return v or ""


class SolutionEntry(BaseModel):
    key: str  # "row,col"
    value: int


class Puzzle(BaseModel):
    grid: list[list[GridCell]]
    solution: dict[str, int]  # {"row,col": correct value}
    keypad: list[int]


class CellPosition(BaseModel):
    row: int = Field(ge=0, lt=GRID_SIZE)
    col: int = Field(ge=0, lt=GRID_SIZE)

    @property
    def key(self) -> str:
        return f"{self.row},{self.col}"


# Session
class Overlay(BaseModel):
    title: str
    message: str
    action: str  # Intent the overlay button dispatches


class SessionSnapshot(BaseModel):
    status: GameStatus
    level: int
    difficulty: Difficulty
    score: int
    high_score: int
    mistakes: int
    max_mistakes: int = MAX_MISTAKES
    grid: list[list[GridCell]]
    keypad: list[int]
    selected_cell: CellPosition | None = None
    wrong_input_cell: CellPosition | None = None
    overlay: Overlay | None = None
    loading_messages: list[str] = []
    error: str | None = None  # Error kind while status is ERROR


# Intents
class SelectCellRequest(BaseModel):
    row: int = Field(ge=0, lt=GRID_SIZE)
    col: int = Field(ge=0, lt=GRID_SIZE)


class SubmitNumberRequest(BaseModel):
    number: int
