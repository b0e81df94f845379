"""Modifiers: rollables that wrap another rollable and change how it evaluates.

Arithmetic
    Applies ``+ - * / ^`` with a constant to the wrapped result.
DropKeep
    Rolls every item of a pool, then drops or keeps the highest/lowest ones.
Explode
    Re-rolls the wrapped rollable while the outcome matches a comparison,
    adding every outcome together.

All three validate their parameters at construction time and never fail
during evaluation. Each records one trace entry per call when built with a
tracer.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field

from diceroller.config import settings
from diceroller.dice import DIE_TYPES, Rollable
from diceroller.errors import IllegalValue, TooManyObjects, UnknownAlgorithm
from diceroller.pool import UNBOUNDED, Pool, bounded_sum, modified_notation, untraced, wrap
from diceroller.tracing import NULL_TRACER, Tracer, format_trace

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class Operator(str, enum.Enum):
    """Arithmetic operator applied by an Arithmetic modifier."""

    add = "+"
    subtract = "-"
    multiply = "*"
    divide = "/"
    power = "^"


class Algorithm(str, enum.Enum):
    """Selection performed by a DropKeep modifier."""

    drop_highest = "dh"
    drop_lowest = "dl"
    keep_highest = "kh"
    keep_lowest = "kl"


class Compare(str, enum.Enum):
    """Comparison that makes an Explode modifier roll again."""

    equals = "="
    greater_than = ">"
    lesser_than = "<"


# ---------------------------------------------------------------------------
# Arithmetic
# ---------------------------------------------------------------------------


def _truncated_division(value: int, divisor: int) -> int:
    quotient = abs(value) // abs(divisor)
    return quotient if (value >= 0) == (divisor > 0) else -quotient


@dataclass(frozen=True)
class Arithmetic:
    """Combine the wrapped result with a constant.

    Division truncates toward zero. A multiplication by -1 is how a
    subtracted dice group is represented; it renders as a leading ``-``.
    """

    rollable: Rollable
    operator: Operator
    operand: int
    tracer: Tracer | None = field(default=None, compare=False, repr=False)

    def __post_init__(self) -> None:
        try:
            operator = Operator(self.operator)
        except ValueError as exc:
            raise UnknownAlgorithm(f"Unknown arithmetic operator: {self.operator!r}") from exc
        if operator is Operator.divide and self.operand == 0:
            raise IllegalValue("Division by zero")
        if operator is Operator.power and self.operand < 0:
            raise IllegalValue(f"Exponent must be non-negative, {self.operand} given")
        object.__setattr__(self, "operator", operator)
        if self.tracer is None:
            object.__setattr__(self, "tracer", NULL_TRACER)

    def __str__(self) -> str:
        return self.notation()

    def notation(self) -> str:
        inner = wrap(self.rollable.notation())
        if self.operator is Operator.multiply and self.operand == -1:
            return f"-({inner})" if inner.startswith("-") else f"-{inner}"
        if self.operator in (Operator.add, Operator.subtract) and self.operand < 0:
            flipped = Operator.subtract if self.operator is Operator.add else Operator.add
            return f"{inner}{flipped.value}{-self.operand}"
        return f"{inner}{self.operator.value}{self.operand}"

    def roll(self) -> int:
        value = self.rollable.roll()
        return self._evaluate("roll", value, self._apply(value))

    def minimum(self) -> int:
        return self._bound("minimum")

    def maximum(self) -> int:
        return self._bound("maximum")

    def _bound(self, method: str) -> int:
        if self.operator is Operator.power and self.operand % 2 == 0 and self.operand > 0:
            low, high = self.rollable.minimum(), self.rollable.maximum()
            if method == "minimum" and low < 0 < high:
                value = 0
            else:
                pick = min if method == "minimum" else max
                value = pick((low, high), key=self._apply_bound)
        elif self.operator in (Operator.multiply, Operator.divide) and self.operand < 0:
            value = self.rollable.maximum() if method == "minimum" else self.rollable.minimum()
        else:
            value = getattr(self.rollable, method)()
        return self._evaluate(method, value, self._apply_bound(value))

    def _apply(self, value: int) -> int:
        if self.operator is Operator.add:
            return value + self.operand
        if self.operator is Operator.subtract:
            return value - self.operand
        if self.operator is Operator.multiply:
            return value * self.operand
        if self.operator is Operator.divide:
            return _truncated_division(value, self.operand)
        return value**self.operand

    def _apply_bound(self, value: int) -> int:
        """Like _apply, but an UNBOUNDED (or -UNBOUNDED) input stays unbounded."""
        if abs(value) != UNBOUNDED:
            return self._apply(value)
        sign = 1 if value > 0 else -1
        if self.operator in (Operator.add, Operator.subtract):
            return value
        if self.operator is Operator.power:
            if self.operand == 0:
                return 1
            return UNBOUNDED if sign > 0 or self.operand % 2 == 0 else -UNBOUNDED
        if self.operand == 0:
            return 0
        return sign * (1 if self.operand > 0 else -1) * UNBOUNDED

    def _evaluate(self, method: str, value: int, result: int) -> int:
        if self.tracer is not NULL_TRACER:
            trace = f"{value} {self.operator.value} {self.operand}"
            self.tracer.record(f"Arithmetic.{method}", self.notation(), trace, result)
        return result


# ---------------------------------------------------------------------------
# DropKeep
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DropKeep:
    """Sum only part of a pool, chosen by rank.

    Each item of the pool is evaluated once, the outcomes are sorted
    ascending (ties keep pool order) and the highest or lowest ``threshold``
    outcomes are dropped or kept.
    """

    pool: Pool
    algorithm: Algorithm
    threshold: int = 1
    tracer: Tracer | None = field(default=None, compare=False, repr=False)

    def __post_init__(self) -> None:
        tag = self.algorithm.lower() if isinstance(self.algorithm, str) else self.algorithm
        try:
            algorithm = Algorithm(tag)
        except ValueError as exc:
            raise UnknownAlgorithm(
                f"Unknown or unsupported drop/keep algorithm: {self.algorithm!r}"
            ) from exc
        if self.threshold <= 0:
            raise IllegalValue(f"Drop/keep threshold must be positive, {self.threshold} given")
        if self.threshold > len(self.pool):
            raise TooManyObjects(
                f"Drop/keep threshold {self.threshold} exceeds the {len(self.pool)} "
                "rollable(s) in the pool"
            )
        object.__setattr__(self, "algorithm", algorithm)
        if self.tracer is None:
            object.__setattr__(self, "tracer", NULL_TRACER)

    def __str__(self) -> str:
        return self.notation()

    def suffix(self) -> str:
        return f"{self.algorithm.value.upper()}{self.threshold}"

    def notation(self) -> str:
        return modified_notation(self.pool) + self.suffix()

    def roll(self) -> int:
        return self._evaluate("roll", [item.roll() for item in self.pool])

    def minimum(self) -> int:
        return self._evaluate("minimum", [item.minimum() for item in self.pool])

    def maximum(self) -> int:
        return self._evaluate("maximum", [item.maximum() for item in self.pool])

    def select(self, values: list[int]) -> list[int]:
        """Return the outcomes that count toward the sum, lowest first."""
        ordered = sorted(values)
        cut = len(ordered) - self.threshold
        if self.algorithm is Algorithm.drop_highest:
            return ordered[:cut]
        if self.algorithm is Algorithm.drop_lowest:
            return ordered[self.threshold :]
        if self.algorithm is Algorithm.keep_highest:
            return ordered[cut:]
        return ordered[: self.threshold]

    def _evaluate(self, method: str, values: list[int]) -> int:
        kept = self.select(values)
        result = bounded_sum(kept)
        if self.tracer is not NULL_TRACER:
            self.tracer.record(f"DropKeep.{method}", self.notation(), format_trace(kept), result)
        return result


# ---------------------------------------------------------------------------
# Explode
# ---------------------------------------------------------------------------


def default_threshold(rollable: Rollable) -> int | None:
    """Return the maximum face of the die a rollable is made of.

    Returns None when the rollable is not a single die or a pool of
    identical dice (optionally under a drop/keep).
    """
    if isinstance(rollable, DropKeep):
        rollable = rollable.pool
    if isinstance(rollable, DIE_TYPES):
        return rollable.maximum()
    if isinstance(rollable, Pool) and rollable.items:
        first = rollable.items[0]
        if isinstance(first, DIE_TYPES) and all(item == first for item in rollable.items):
            return first.maximum()
    return None


@dataclass(frozen=True)
class Explode:
    """Roll again and add while the outcome matches the comparison.

    The threshold defaults to the maximum face of the wrapped die, so ``D6!``
    re-rolls on every 6. The threshold must split the wrapped rollable's
    range: at least one outcome has to stop the explosion and at least one
    has to trigger it.

    minimum() is the wrapped minimum. maximum() is UNBOUNDED since any
    explosion can keep going.
    """

    rollable: Rollable
    compare: Compare = Compare.equals
    threshold: int | None = None
    tracer: Tracer | None = field(default=None, compare=False, repr=False)

    def __post_init__(self) -> None:
        try:
            compare = Compare(self.compare)
        except ValueError as exc:
            raise IllegalValue(f"Unknown explode comparison: {self.compare!r}") from exc
        object.__setattr__(self, "compare", compare)

        bounds = untraced(self.rollable)
        low, high = bounds.minimum(), bounds.maximum()
        threshold = self.threshold
        if threshold is None:
            threshold = default_threshold(self.rollable)
            if threshold is None:
                if high == UNBOUNDED:
                    raise IllegalValue(
                        f"Explode of {self.rollable.notation()} needs an explicit threshold"
                    )
                threshold = high
        object.__setattr__(self, "threshold", threshold)

        if compare is Compare.equals:
            valid = low <= threshold <= high and low != high
        elif compare is Compare.greater_than:
            valid = low <= threshold < high
        else:
            valid = low < threshold <= high
        if not valid:
            raise IllegalValue(
                f"Explode threshold {compare.value}{threshold} is invalid for "
                f"{self.rollable.notation()} (outcomes {low} to {high})"
            )
        if self.tracer is None:
            object.__setattr__(self, "tracer", NULL_TRACER)

    def __str__(self) -> str:
        return self.notation()

    def suffix(self) -> str:
        if self.compare is Compare.equals and self.threshold == default_threshold(self.rollable):
            return "!"
        return f"!{self.compare.value}{self.threshold}"

    def notation(self) -> str:
        # Explosion is written before a drop/keep: 4D6!DH1.
        if isinstance(self.rollable, DropKeep):
            return modified_notation(self.rollable.pool) + self.suffix() + self.rollable.suffix()
        return modified_notation(self.rollable) + self.suffix()

    def explodes(self, value: int) -> bool:
        if self.compare is Compare.equals:
            return value == self.threshold
        if self.compare is Compare.greater_than:
            return value > self.threshold
        return value < self.threshold

    def roll(self) -> int:
        values: list[int] = []
        for _ in range(settings.explode_max_iterations):
            value = self.rollable.roll()
            values.append(value)
            if not self.explodes(value):
                break
        else:
            logger.warning(
                "Explosion of %s stopped after %d rolls", self.notation(), len(values)
            )
        return self._evaluate("roll", format_trace(values), sum(values))

    def minimum(self) -> int:
        value = self.rollable.minimum()
        return self._evaluate("minimum", format_trace([value]), value)

    def maximum(self) -> int:
        return self._evaluate("maximum", "unbounded", UNBOUNDED)

    def _evaluate(self, method: str, trace: str, result: int) -> int:
        if self.tracer is not NULL_TRACER:
            self.tracer.record(f"Explode.{method}", self.notation(), trace, result)
        return result
