"""Unit tests for the Arithmetic, DropKeep and Explode modifiers."""

import logging
from unittest.mock import patch

import pytest

from diceroller.config import settings
from diceroller.dice import CustomDie, FudgeDie, SidedDie
from diceroller.errors import IllegalValue, TooManyObjects, UnknownAlgorithm
from diceroller.modifiers import (
    Algorithm,
    Arithmetic,
    Compare,
    DropKeep,
    Explode,
    Operator,
    default_threshold,
)
from diceroller.pool import UNBOUNDED, Pool

# ---------------------------------------------------------------------------
# Arithmetic
# ---------------------------------------------------------------------------


class TestArithmetic:
    @pytest.mark.parametrize(
        "operator,operand,rolled,expected",
        [
            ("+", 3, 4, 7),
            ("-", 3, 4, 1),
            ("*", 3, 4, 12),
            ("/", 3, 5, 1),
            ("^", 3, 2, 8),
            ("^", 0, 5, 1),
        ],
    )
    def test_roll(self, operator: str, operand: int, rolled: int, expected: int) -> None:
        with patch("diceroller.dice.random.randint", return_value=rolled):
            assert Arithmetic(SidedDie(6), operator, operand).roll() == expected

    def test_division_truncates_toward_zero(self) -> None:
        with patch("diceroller.dice.random.choice", return_value=-7):
            assert Arithmetic(CustomDie(-7, 7), "/", 2).roll() == -3
        with patch("diceroller.dice.random.choice", return_value=7):
            assert Arithmetic(CustomDie(-7, 7), "/", -2).roll() == -3

    def test_operator_is_normalized(self) -> None:
        assert Arithmetic(SidedDie(6), "*", 2).operator is Operator.multiply

    def test_bounds(self) -> None:
        modified = Arithmetic(Pool.of(SidedDie(6), 2), "+", 3)
        assert modified.minimum() == 5
        assert modified.maximum() == 15

    def test_negative_multiplier_swaps_bounds(self) -> None:
        modified = Arithmetic(SidedDie(6), "*", -2)
        assert modified.minimum() == -12
        assert modified.maximum() == -2

    def test_even_power_over_zero(self) -> None:
        modified = Arithmetic(Pool.of(FudgeDie(), 3), "^", 2)
        assert modified.minimum() == 0
        assert modified.maximum() == 9

    def test_odd_power_keeps_sign(self) -> None:
        modified = Arithmetic(Pool.of(FudgeDie(), 3), "^", 3)
        assert modified.minimum() == -27
        assert modified.maximum() == 27

    def test_unbounded_stays_unbounded(self) -> None:
        modified = Arithmetic(Explode(SidedDie(6)), "+", 2)
        assert modified.minimum() == 3
        assert modified.maximum() == UNBOUNDED

    def test_negated_unbounded(self) -> None:
        modified = Arithmetic(Explode(SidedDie(6)), "*", -1)
        assert modified.minimum() == -UNBOUNDED
        assert modified.maximum() == -1

    def test_divide_by_zero(self) -> None:
        with pytest.raises(IllegalValue, match="Division by zero"):
            Arithmetic(SidedDie(6), "/", 0)

    def test_negative_power(self) -> None:
        with pytest.raises(IllegalValue):
            Arithmetic(SidedDie(6), "^", -1)

    def test_unknown_operator(self) -> None:
        with pytest.raises(UnknownAlgorithm):
            Arithmetic(SidedDie(6), "%", 2)

    @pytest.mark.parametrize(
        "modified,expected",
        [
            (Arithmetic(Pool.of(SidedDie(3), 2), "-", 4), "2D3-4"),
            (Arithmetic(Pool.of(FudgeDie(), 3), "^", 2), "3DF^2"),
            (Arithmetic(Pool((SidedDie(6), SidedDie(4))), "*", 3), "(D6+D4)*3"),
            (Arithmetic(SidedDie(4), "*", -1), "-D4"),
            (Arithmetic(SidedDie(6), "+", -2), "D6-2"),
            (Arithmetic(SidedDie(6), "-", -2), "D6+2"),
            (Arithmetic(Arithmetic(SidedDie(6), "/", 4), "^", 3), "D6/4^3"),
        ],
    )
    def test_notation(self, modified: Arithmetic, expected: str) -> None:
        assert modified.notation() == expected


# ---------------------------------------------------------------------------
# DropKeep
# ---------------------------------------------------------------------------


class TestDropKeep:
    FIXED = [3, 6, 1, 6, 2]

    def _roll(self, algorithm: str, threshold: int) -> int:
        pool = Pool.of(SidedDie(6), len(self.FIXED))
        with patch("diceroller.dice.random.randint", side_effect=self.FIXED):
            return DropKeep(pool, algorithm, threshold).roll()

    @pytest.mark.parametrize(
        "algorithm,threshold,expected",
        [
            ("dh", 2, 1 + 2 + 3),
            ("dl", 2, 3 + 6 + 6),
            ("kh", 2, 6 + 6),
            ("kl", 2, 1 + 2),
            ("kh", 5, 18),
            ("dh", 5, 0),
        ],
    )
    def test_selection(self, algorithm: str, threshold: int, expected: int) -> None:
        assert self._roll(algorithm, threshold) == expected

    @pytest.mark.parametrize("k", range(1, 5))
    def test_keep_highest_matches_drop_lowest(self, k: int) -> None:
        assert self._roll("kh", k) == self._roll("dl", len(self.FIXED) - k)

    @pytest.mark.parametrize("k", range(1, 5))
    def test_keep_lowest_matches_drop_highest(self, k: int) -> None:
        assert self._roll("kl", k) == self._roll("dh", len(self.FIXED) - k)

    def test_bounds_use_the_same_selection(self) -> None:
        pool = Pool((SidedDie(4), SidedDie(6), SidedDie(8)))
        keep = DropKeep(pool, Algorithm.keep_highest, 1)
        assert keep.minimum() == 1
        assert keep.maximum() == 8
        drop = DropKeep(pool, Algorithm.drop_highest, 1)
        assert drop.minimum() == 2
        assert drop.maximum() == 10

    def test_four_d6_drop_highest_three(self) -> None:
        roll = DropKeep(Pool.of(SidedDie(6), 4), "dh", 3)
        for _ in range(20):
            assert 1 <= roll.roll() <= 6

    def test_tag_is_case_insensitive(self) -> None:
        assert DropKeep(Pool.of(SidedDie(6), 2), "KH", 1).algorithm is Algorithm.keep_highest

    def test_too_many_objects(self) -> None:
        with pytest.raises(TooManyObjects, match="exceeds"):
            DropKeep(Pool.of(SidedDie(6), 2), "kh", 3)

    def test_unknown_algorithm(self) -> None:
        with pytest.raises(UnknownAlgorithm, match="foobar"):
            DropKeep(Pool.of(SidedDie(6), 2), "foobar", 1)

    def test_non_positive_threshold(self) -> None:
        with pytest.raises(IllegalValue):
            DropKeep(Pool.of(SidedDie(6), 2), "kh", 0)

    def test_notation(self) -> None:
        assert DropKeep(Pool.of(SidedDie(6), 4), "dh", 3).notation() == "4D6DH3"
        assert DropKeep(Pool.of(SidedDie(3), 2), "kl", 1).notation() == "2D3KL1"
        mixed = Pool((Pool.of(SidedDie(6), 2), SidedDie(4)))
        assert DropKeep(mixed, "kh", 1).notation() == "(2D6+D4)KH1"


# ---------------------------------------------------------------------------
# Explode
# ---------------------------------------------------------------------------


class TestExplodeConstruction:
    @pytest.mark.parametrize(
        "rollable,compare,threshold",
        [
            (Pool.of(SidedDie(6), 4), "foobar", 6),
            (Pool.of(SidedDie(6), 4), Compare.greater_than, 3),
            (Pool.of(SidedDie(6), 4), Compare.greater_than, 24),
            (Pool.of(SidedDie(6), 4), Compare.lesser_than, 4),
            (Pool.of(SidedDie(6), 4), Compare.lesser_than, 25),
            (Pool((CustomDie(1, 1, 1),)), Compare.equals, 1),
            (Pool(), Compare.equals, 2),
            (Pool((SidedDie(3), SidedDie(3), SidedDie(3), SidedDie(4))), Compare.equals, 1),
        ],
    )
    def test_invalid_parameters(self, rollable, compare, threshold: int) -> None:
        with pytest.raises(IllegalValue):
            Explode(rollable, compare, threshold)

    @pytest.mark.parametrize(
        "compare,threshold",
        [
            (Compare.equals, 4),
            (Compare.equals, 24),
            (Compare.greater_than, 4),
            (Compare.greater_than, 23),
            (Compare.lesser_than, 5),
            (Compare.lesser_than, 24),
        ],
    )
    def test_threshold_edges_are_accepted(self, compare: Compare, threshold: int) -> None:
        assert Explode(Pool.of(SidedDie(6), 4), compare, threshold).threshold == threshold

    def test_default_threshold_is_max_face(self) -> None:
        assert Explode(SidedDie(6)).threshold == 6
        assert Explode(Pool.of(SidedDie(3), 2)).threshold == 3
        assert Explode(Pool.of(FudgeDie(), 3)).threshold == 1

    def test_default_threshold_of_mixed_pool_is_its_maximum(self) -> None:
        mixed = Pool((Pool.of(SidedDie(3), 2), SidedDie(4)))
        assert default_threshold(mixed) is None
        assert Explode(mixed).threshold == 10

    def test_compare_is_normalized(self) -> None:
        assert Explode(SidedDie(6), ">", 3).compare is Compare.greater_than

    def test_unbounded_inner_needs_explicit_threshold(self) -> None:
        with pytest.raises(IllegalValue, match="explicit threshold"):
            Explode(Explode(SidedDie(6)))
        assert Explode(Explode(SidedDie(6)), Compare.greater_than, 8).threshold == 8


class TestExplodeEvaluation:
    def test_accumulates_while_matching(self, scripted) -> None:
        inner = Pool((scripted([2, 2, 3], minimum=1, maximum=3),))
        assert Explode(inner, Compare.equals, 2).roll() == 7

    def test_greater_than(self, scripted) -> None:
        inner = scripted([5, 6, 1], minimum=1, maximum=6)
        assert Explode(inner, Compare.greater_than, 4).roll() == 12

    def test_lesser_than(self, scripted) -> None:
        inner = scripted([1, 2, 5], minimum=1, maximum=6)
        assert Explode(inner, Compare.lesser_than, 3).roll() == 8

    def test_exploding_d6(self) -> None:
        with patch("diceroller.dice.random.randint", side_effect=[6, 6, 2]):
            assert Explode(SidedDie(6)).roll() == 14

    def test_no_explosion(self) -> None:
        with patch("diceroller.dice.random.randint", return_value=3):
            assert Explode(SidedDie(6)).roll() == 3

    @pytest.mark.parametrize(
        "compare,threshold",
        [(Compare.equals, 10), (Compare.greater_than, 20), (Compare.lesser_than, 8)],
    )
    def test_bounds(self, compare: Compare, threshold: int) -> None:
        roll = Explode(Pool.of(SidedDie(6), 4), compare, threshold)
        assert roll.minimum() == 4
        assert roll.maximum() == UNBOUNDED
        for _ in range(10):
            assert roll.roll() >= 4

    def test_safety_cap(self, monkeypatch, caplog) -> None:
        monkeypatch.setattr(settings, "explode_max_iterations", 3)
        with patch("diceroller.dice.random.randint", return_value=6):
            with caplog.at_level(logging.WARNING, logger="diceroller.modifiers"):
                assert Explode(SidedDie(6)).roll() == 18
        assert "stopped after 3 rolls" in caplog.text


class TestExplodeNotation:
    def test_default_threshold_renders_bare(self) -> None:
        assert Explode(Pool.of(SidedDie(3), 2)).notation() == "2D3!"
        assert Explode(SidedDie(6), Compare.equals, 6).notation() == "D6!"

    def test_explicit_threshold(self) -> None:
        assert Explode(Pool.of(SidedDie(6), 4), Compare.equals, 10).notation() == "4D6!=10"
        assert Explode(Pool.of(FudgeDie(), 3), ">", 1).notation() == "3DF!>1"
        assert Explode(Pool.of(FudgeDie(), 3), "<", -1).notation() == "3DF!<-1"

    def test_mixed_pool_is_parenthesized(self) -> None:
        pool = Pool((Pool.of(SidedDie(3), 2), SidedDie(4)))
        assert Explode(pool, Compare.equals, 3).notation() == "(2D3+D4)!=3"

    def test_explode_is_written_before_drop_keep(self) -> None:
        roll = Explode(DropKeep(Pool.of(SidedDie(6), 4), "dh", 1))
        assert roll.threshold == 6
        assert roll.notation() == "4D6!DH1"

    def test_modified_inner_is_parenthesized(self) -> None:
        doubled = Arithmetic(SidedDie(6), "*", 2)
        assert Explode(doubled).notation() == "(D6*2)!=12"
        assert DropKeep(Pool((doubled,)), "kh", 1).notation() == "(D6*2)KH1"
        assert Explode(Explode(SidedDie(6)), Compare.equals, 9).notation() == "(D6!)!=9"

    def test_double_negation(self) -> None:
        negated = Arithmetic(SidedDie(4), "*", -1)
        assert Arithmetic(negated, "*", -1).notation() == "-(-D4)"
