"""Symbol, grid and win models shared by the rollers and the evaluator."""
from enum import Enum
from typing import NamedTuple

from pydantic import BaseModel, Field


class Symbol(int, Enum):
    """Reel symbols. NONE is a sentinel and never appears on a configured strip."""
    NONE = 0
    BELL = 1
    WATERMELON = 2
    GRAPES = 3
    EGGPLANT = 4
    ORANGE = 5
    LEMON = 6
    CHERRY = 7

    @classmethod
    def parse(cls, value: "Symbol | int | str") -> "Symbol":
        """Accept a Symbol, its integer value or its (case-insensitive) name."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls[value.strip().upper()]
            except KeyError:
                raise ValueError(f"Unknown symbol name: {value!r}") from None
        return cls(value)


class Row(int, Enum):
    """Scan lines of a settled roller, top to bottom."""
    TOP = 0
    MIDDLE = 1
    BOTTOM = 2


class ResultWindow(NamedTuple):
    """The three symbols a settled roller shows, top to bottom."""
    top: Symbol
    middle: Symbol
    bottom: Symbol


# grid[roller_index][row]
Grid = tuple[ResultWindow, ...]

# (roller_index, row)
Cell = tuple[int, int]


class PatternName(str, Enum):
    """Winning patterns, in evaluation order."""
    LINE_TOP = "lineTop"
    LINE_MIDDLE = "lineMiddle"
    LINE_BOTTOM = "lineBottom"
    W = "w"
    V = "v"


class HighlightTier(str, Enum):
    """Colour bucket of the last-win readout."""
    NONE = "none"
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"


class WinEvent(BaseModel):
    """
    Outcome of a single pattern check with at least two matching symbols.

    A win is real (credited and displayed) only when ``amount > 0``.
    """
    pattern: PatternName
    symbol: Symbol
    match_count: int
    cells: list[Cell] = Field(default_factory=list)
    amount: int = 0
    tier: HighlightTier = HighlightTier.NONE

    @property
    def is_real(self) -> bool:
        return self.amount > 0


class MachineState(BaseModel):
    """
    Spin gate and running credit total of one machine.

    Mutated only by the machine's own spin/evaluation sequence.
    """
    ready: bool = True
    total_credits: int = 0
    spins_completed: int = 0

    def reset(self) -> None:
        """Reset to the state of a freshly built machine."""
        self.ready = True
        self.total_credits = 0
        self.spins_completed = 0


def grid_to_names(grid: Grid) -> list[list[str]]:
    """Render a grid as lowercase symbol names, roller by roller."""
    return [[symbol.name.lower() for symbol in window] for window in grid]
