"""Pattern evaluator: scores a settled grid against the five winning patterns."""
import logging
from typing import Mapping, Sequence

from reelmachine.config import ZIGZAG_ROLLERS
from reelmachine.logic.models import Cell, Grid, HighlightTier, PatternName, Row, Symbol, WinEvent


logger = logging.getLogger(__name__)

# Match counts
MIN_MATCH = 2
MAX_MATCH = 4

# Zig-zag cell chains, checked strictly in order
W_CHAIN: tuple[Cell, ...] = ((0, Row.TOP), (1, Row.BOTTOM), (2, Row.TOP), (3, Row.BOTTOM))
V_CHAIN: tuple[Cell, ...] = ((0, Row.TOP), (1, Row.MIDDLE), (2, Row.BOTTOM), (3, Row.MIDDLE))

LINE_PATTERNS: dict[Row, PatternName] = {
    Row.TOP: PatternName.LINE_TOP,
    Row.MIDDLE: PatternName.LINE_MIDDLE,
    Row.BOTTOM: PatternName.LINE_BOTTOM,
}

# Highlight tier upper bounds (inclusive)
HIGHLIGHT_SMALL_MAX = 15
HIGHLIGHT_MEDIUM_MAX = 50


class RewardTable:
    """Symbol -> (double, triple, quadruple) reward amounts."""

    def __init__(self, rewards: Mapping[Symbol, Sequence[int]]):
        self._rewards: dict[Symbol, tuple[int, ...]] = {}
        for symbol, amounts in rewards.items():
            symbol = Symbol.parse(symbol)
            amounts = tuple(int(a) for a in amounts)
            if len(amounts) != MAX_MATCH - MIN_MATCH + 1:
                raise ValueError(f"{symbol.name} needs 3 reward amounts, got {len(amounts)}")
            if any(a < 0 for a in amounts):
                raise ValueError(f"{symbol.name} has a negative reward: {amounts}")
            self._rewards[symbol] = amounts

    def reward_for(self, symbol: Symbol, match_count: int) -> int:
        """
        Reward for ``match_count`` equal symbols.

        A symbol without an entry pays 0 rather than failing.
        """
        if match_count < MIN_MATCH:
            return 0
        amounts = self._rewards.get(symbol)
        if amounts is None:
            logger.debug("No reward entry for %s, paying 0", symbol.name)
            return 0
        return amounts[min(match_count, MAX_MATCH) - MIN_MATCH]

    def to_dict(self) -> dict[str, list[int]]:
        return {symbol.name.lower(): list(amounts) for symbol, amounts in self._rewards.items()}


def highlight_tier(amount: int) -> HighlightTier:
    """Colour bucket for a credited amount."""
    if amount <= 0:
        return HighlightTier.NONE
    if amount <= HIGHLIGHT_SMALL_MAX:
        return HighlightTier.SMALL
    if amount <= HIGHLIGHT_MEDIUM_MAX:
        return HighlightTier.MEDIUM
    return HighlightTier.LARGE


def match_line(grid: Grid, row: Row) -> list[Cell]:
    """
    Cells of the run of roller 0's symbol along ``row``, left to right.

    Stops at the first mismatch or after MAX_MATCH cells.
    """
    if not grid:
        return []
    symbol = grid[0][row]
    cells: list[Cell] = [(0, int(row))]
    for roller in range(1, len(grid)):
        if len(cells) >= MAX_MATCH or grid[roller][row] != symbol:
            break
        cells.append((roller, int(row)))
    return cells


def match_chain(grid: Grid, chain: Sequence[Cell]) -> list[Cell]:
    """
    Matched prefix of a fixed cell chain.

    The chain stops extending at the first mismatch; later cells are never read.
    """
    first_roller, first_row = chain[0]
    symbol = grid[first_roller][first_row]
    cells: list[Cell] = [(first_roller, int(first_row))]
    for roller, row in chain[1:]:
        if grid[roller][row] != symbol:
            break
        cells.append((roller, int(row)))
    return cells


def _to_win(grid: Grid, pattern: PatternName, cells: list[Cell], rewards: RewardTable) -> WinEvent | None:
    if len(cells) < MIN_MATCH:
        return None
    roller, row = cells[0]
    symbol = grid[roller][row]
    amount = rewards.reward_for(symbol, len(cells))
    return WinEvent(
        pattern=pattern,
        symbol=symbol,
        match_count=len(cells),
        cells=cells,
        amount=amount,
        tier=highlight_tier(amount),
    )


def evaluate_patterns(
    grid: Grid,
    rewards: RewardTable,
    zigzag_enabled: bool = True,
) -> list[WinEvent]:
    """
    Run every pattern check over ``grid`` in the fixed order.

    Order: line top, line middle, line bottom, W, V. There is no early exit;
    each check is independent. W and V are skipped when disabled or when the
    grid has fewer than four rollers.

    Returns every match of two or more symbols, including zero-reward ones;
    callers credit only wins with ``is_real``.
    """
    wins: list[WinEvent] = []

    for row, pattern in LINE_PATTERNS.items():
        win = _to_win(grid, pattern, match_line(grid, row), rewards)
        if win is not None:
            wins.append(win)

    if zigzag_enabled and len(grid) >= ZIGZAG_ROLLERS:
        for pattern, chain in ((PatternName.W, W_CHAIN), (PatternName.V, V_CHAIN)):
            win = _to_win(grid, pattern, match_chain(grid, chain), rewards)
            if win is not None:
                wins.append(win)

    return wins
