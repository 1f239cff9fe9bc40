"""Pattern evaluator tests: lines, W/V chains, rewards and highlight tiers."""
import pytest

from reelmachine.config import DEFAULT_REWARDS
from reelmachine.logic.models import HighlightTier, PatternName, ResultWindow, Row, Symbol
from reelmachine.logic.patterns import (
    V_CHAIN,
    W_CHAIN,
    RewardTable,
    evaluate_patterns,
    highlight_tier,
    match_chain,
    match_line,
)


SCORING_SYMBOLS = [s for s in Symbol if s != Symbol.NONE]


def grid_from_rows(top, middle, bottom):
    """Build grid[roller][row] from three left-to-right rows of symbol names."""
    return tuple(
        ResultWindow(Symbol.parse(t), Symbol.parse(m), Symbol.parse(b))
        for t, m, b in zip(top, middle, bottom)
    )


def other_than(symbol: Symbol) -> Symbol:
    return Symbol.CHERRY if symbol != Symbol.CHERRY else Symbol.BELL


@pytest.fixture
def rewards() -> RewardTable:
    return RewardTable({Symbol.parse(k): v for k, v in DEFAULT_REWARDS.items()})


def wins_by_pattern(wins):
    return {win.pattern: win for win in wins}


class TestLinePatterns:
    """Line patterns pay RewardTable[s][c-2] for c leading matches."""

    @pytest.mark.parametrize("symbol", SCORING_SYMBOLS)
    @pytest.mark.parametrize("count", [2, 3, 4])
    def test_leading_run_pays_table_entry(self, rewards, symbol, count):
        filler = other_than(symbol)
        top = [symbol] * count + [filler] * (4 - count)
        # Alternate the other rows so they never match
        middle = ["lemon", "orange", "lemon", "orange"]
        bottom = ["grapes", "eggplant", "grapes", "eggplant"]
        grid = grid_from_rows([s.name for s in top], middle, bottom)

        win = wins_by_pattern(evaluate_patterns(grid, rewards, zigzag_enabled=False))[
            PatternName.LINE_TOP
        ]
        assert win.symbol == symbol
        assert win.match_count == count
        assert win.amount == DEFAULT_REWARDS[symbol.name.lower()][count - 2]
        assert win.cells == [(roller, Row.TOP) for roller in range(count)]

    def test_single_symbol_is_no_win(self, rewards):
        """roller 0 top = cherry, roller 1 top = lemon: no line-top win."""
        grid = grid_from_rows(
            ["cherry", "lemon", "cherry", "cherry"],
            ["bell", "orange", "bell", "orange"],
            ["grapes", "eggplant", "grapes", "eggplant"],
        )
        assert match_line(grid, Row.TOP) == [(0, 0)]
        wins = evaluate_patterns(grid, rewards)
        assert PatternName.LINE_TOP not in wins_by_pattern(wins)

    def test_line_stops_at_first_mismatch(self, rewards):
        grid = grid_from_rows(
            ["bell", "bell", "cherry", "bell"],
            ["lemon", "orange", "lemon", "orange"],
            ["grapes", "eggplant", "grapes", "eggplant"],
        )
        assert match_line(grid, Row.TOP) == [(0, 0), (1, 0)]

    def test_line_caps_at_four(self, rewards):
        top = ["bell"] * 5
        grid = grid_from_rows(top, ["lemon", "orange"] * 2 + ["lemon"], ["grapes"] + ["eggplant"] * 4)
        cells = match_line(grid, Row.TOP)
        assert len(cells) == 4
        win = wins_by_pattern(evaluate_patterns(grid, rewards))[PatternName.LINE_TOP]
        assert win.amount == 100

    @pytest.mark.parametrize("row,pattern", [
        (Row.MIDDLE, PatternName.LINE_MIDDLE),
        (Row.BOTTOM, PatternName.LINE_BOTTOM),
    ])
    def test_middle_and_bottom_rows(self, rewards, row, pattern):
        rows = [
            ["lemon", "orange", "lemon", "orange"],
            ["lemon", "orange", "lemon", "orange"],
            ["lemon", "orange", "lemon", "orange"],
        ]
        rows[row] = ["grapes", "grapes", "grapes", "bell"]
        grid = grid_from_rows(*rows)

        win = wins_by_pattern(evaluate_patterns(grid, rewards))[pattern]
        assert win.match_count == 3
        assert win.amount == 15
        assert all(cell_row == row for _, cell_row in win.cells)


class TestZigzagPatterns:
    """W and V are prefix-only matches over fixed four-cell chains."""

    def test_w_prefix_stops_at_mismatch(self, rewards):
        # W cells: (0,top) (1,bottom) (2,top) (3,bottom)
        grid = grid_from_rows(
            ["orange", "lemon", "cherry", "lemon"],
            ["lemon", "grapes", "lemon", "grapes"],
            ["cherry", "orange", "lemon", "orange"],
        )
        # Fourth cell matches but the third does not: prefix is two cells
        assert match_chain(grid, W_CHAIN) == [(0, 0), (1, 2)]
        win = wins_by_pattern(evaluate_patterns(grid, rewards))[PatternName.W]
        assert win.match_count == 2
        assert win.amount == DEFAULT_REWARDS["orange"][0]

    def test_v_full_chain(self, rewards):
        # V cells: (0,top) (1,middle) (2,bottom) (3,middle)
        grid = grid_from_rows(
            ["watermelon", "lemon", "cherry", "lemon"],
            ["lemon", "watermelon", "lemon", "watermelon"],
            ["cherry", "orange", "watermelon", "orange"],
        )
        win = wins_by_pattern(evaluate_patterns(grid, rewards))[PatternName.V]
        assert win.cells == list(V_CHAIN)
        assert win.amount == 60

    def test_chain_ignores_cells_outside_it(self):
        base = grid_from_rows(
            ["bell", "lemon", "bell", "lemon"],
            ["lemon", "grapes", "lemon", "grapes"],
            ["cherry", "bell", "lemon", "bell"],
        )
        chain_cells = set(W_CHAIN)
        # Same chain cells, every other cell changed
        changed = tuple(
            ResultWindow(*(
                base[roller][row] if (roller, row) in chain_cells else Symbol.EGGPLANT
                for row in Row
            ))
            for roller in range(4)
        )
        assert match_chain(base, W_CHAIN) == match_chain(changed, W_CHAIN)
        assert len(match_chain(base, W_CHAIN)) == 4

    def test_zigzag_disabled(self, rewards):
        grid = grid_from_rows(["bell"] * 4, ["bell"] * 4, ["bell"] * 4)
        patterns = [w.pattern for w in evaluate_patterns(grid, rewards, zigzag_enabled=False)]
        assert patterns == [PatternName.LINE_TOP, PatternName.LINE_MIDDLE, PatternName.LINE_BOTTOM]

    def test_zigzag_skipped_with_three_rollers(self, rewards):
        grid = grid_from_rows(["bell"] * 3, ["bell"] * 3, ["bell"] * 3)
        patterns = [w.pattern for w in evaluate_patterns(grid, rewards)]
        assert PatternName.W not in patterns
        assert PatternName.V not in patterns


class TestEvaluationOrder:

    def test_all_bells_pays_every_pattern_in_order(self, rewards):
        grid = grid_from_rows(["bell"] * 4, ["bell"] * 4, ["bell"] * 4)
        wins = evaluate_patterns(grid, rewards)

        assert [w.pattern for w in wins] == list(PatternName)
        assert [w.amount for w in wins] == [100] * 5
        assert sum(w.amount for w in wins) == 500

    def test_zero_reward_match_is_not_real(self):
        table = RewardTable({**{Symbol.parse(k): v for k, v in DEFAULT_REWARDS.items()},
                             Symbol.WATERMELON: (0, 20, 60)})
        grid = grid_from_rows(
            ["watermelon", "watermelon", "cherry", "lemon"],
            ["lemon", "orange", "lemon", "orange"],
            ["grapes", "eggplant", "grapes", "eggplant"],
        )
        wins = wins_by_pattern(evaluate_patterns(grid, table))
        win = wins[PatternName.LINE_TOP]
        assert win.match_count == 2
        assert win.amount == 0
        assert not win.is_real
        assert win.tier == HighlightTier.NONE


class TestRewardTable:

    def test_missing_symbol_pays_zero(self):
        table = RewardTable({Symbol.BELL: (10, 30, 100)})
        assert table.reward_for(Symbol.CHERRY, 3) == 0
        assert table.reward_for(Symbol.NONE, 4) == 0

    def test_unmapped_match_is_reported_but_not_real(self):
        table = RewardTable({Symbol.BELL: (10, 30, 100)})
        grid = grid_from_rows(
            ["cherry", "cherry", "cherry", "lemon"],
            ["lemon", "orange", "lemon", "orange"],
            ["grapes", "eggplant", "grapes", "eggplant"],
        )
        win = wins_by_pattern(evaluate_patterns(grid, table))[PatternName.LINE_TOP]
        assert win.match_count == 3
        assert not win.is_real

    def test_below_minimum_match_pays_zero(self):
        table = RewardTable({Symbol.BELL: (10, 30, 100)})
        assert table.reward_for(Symbol.BELL, 1) == 0

    def test_accepts_symbol_names(self):
        table = RewardTable({"bell": [10, 30, 100]})
        assert table.reward_for(Symbol.BELL, 2) == 10
        assert table.to_dict() == {"bell": [10, 30, 100]}

    def test_rejects_wrong_arity(self):
        with pytest.raises(ValueError):
            RewardTable({Symbol.BELL: (10, 30)})

    def test_rejects_negative_amount(self):
        with pytest.raises(ValueError):
            RewardTable({Symbol.BELL: (10, -1, 100)})


class TestHighlightTier:

    @pytest.mark.parametrize("amount,tier", [
        (0, HighlightTier.NONE),
        (1, HighlightTier.SMALL),
        (15, HighlightTier.SMALL),
        (16, HighlightTier.MEDIUM),
        (50, HighlightTier.MEDIUM),
        (51, HighlightTier.LARGE),
        (500, HighlightTier.LARGE),
    ])
    def test_tier_boundaries(self, amount, tier):
        assert highlight_tier(amount) == tier
