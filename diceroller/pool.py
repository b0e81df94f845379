"""Pools: ordered groups of rollables evaluated as a sum."""

from __future__ import annotations

import sys
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field, replace

from diceroller.dice import DIE_TYPES, Rollable
from diceroller.tracing import NULL_TRACER, Tracer, format_trace

# Reported as the maximum of anything that can grow without limit (explosions).
# A negated explosion reports -UNBOUNDED as its minimum.
UNBOUNDED = sys.maxsize

# Characters after which a sign belongs to a number rather than a sum.
_THRESHOLD_PREFIXES = "=<>"


def bounded_sum(values: Iterable[int]) -> int:
    """Sum values, keeping UNBOUNDED and -UNBOUNDED absorbing.

    When both appear, UNBOUNDED wins.
    """
    values = list(values)
    if UNBOUNDED in values:
        return UNBOUNDED
    if -UNBOUNDED in values:
        return -UNBOUNDED
    return sum(values)


def untraced(rollable: Rollable) -> Rollable:
    """Return a copy of rollable, and of everything it wraps, holding no tracer.

    Used where bounds are needed internally (e.g. validation at construction
    time) without emitting trace records.
    """
    if not hasattr(rollable, "tracer"):
        return rollable
    changes: dict = {"tracer": None}
    if isinstance(rollable, Pool):
        changes["items"] = tuple(untraced(item) for item in rollable.items)
    for name in ("pool", "rollable"):
        if hasattr(rollable, name):
            changes[name] = untraced(getattr(rollable, name))
    return replace(rollable, **changes)


def is_compound(notation: str) -> bool:
    """Return True when a notation holds a top-level ``+`` or ``-``.

    Signs inside parentheses or custom faces, a leading sign, and signs of an
    explode threshold (``!<-1``) do not count.
    """
    depth = 0
    for i, ch in enumerate(notation):
        if ch in "([":
            depth += 1
        elif ch in ")]":
            depth -= 1
        elif ch in "+-" and depth == 0 and i > 0 and notation[i - 1] not in _THRESHOLD_PREFIXES:
            return True
    return False


def wrap(notation: str) -> str:
    """Parenthesize a notation when a suffix would otherwise bind to its last term."""
    return f"({notation})" if is_compound(notation) else notation


def is_plain(rollable: Rollable) -> bool:
    """Return True for a die, or a pool made only of dice and such pools."""
    if isinstance(rollable, DIE_TYPES):
        return True
    return isinstance(rollable, Pool) and all(is_plain(item) for item in rollable.items)


def modified_notation(rollable: Rollable) -> str:
    """Render the target of an explode or drop/keep suffix.

    Anything other than plain dice is parenthesized so the suffix applies to
    all of it: ``(D6*2)KH1``, ``(D6!)!=9``.
    """
    if is_plain(rollable):
        return wrap(rollable.notation())
    return f"({rollable.notation()})"


@dataclass(frozen=True)
class Pool:
    """An ordered collection of rollables.

    roll(), minimum() and maximum() are the sums of the children's results.
    An empty pool evaluates to 0.
    """

    items: tuple[Rollable, ...] = ()
    tracer: Tracer | None = field(default=None, compare=False, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "items", tuple(self.items))
        if self.tracer is None:
            object.__setattr__(self, "tracer", NULL_TRACER)

    @classmethod
    def of(cls, rollable: Rollable, count: int, tracer: Tracer | None = None) -> Pool:
        """Build a pool holding count copies of the same rollable."""
        return cls(tuple(rollable for _ in range(count)), tracer)

    def with_items(self, *rollables: Rollable) -> Pool:
        return replace(self, items=self.items + rollables)

    def with_tracer(self, tracer: Tracer | None) -> Pool:
        return replace(self, tracer=tracer)

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[Rollable]:
        return iter(self.items)

    def __str__(self) -> str:
        return self.notation()

    def notation(self) -> str:
        """Render children joined by ``+``, merging identical dice.

        Identical leaf dice collapse into one ``{count}{die}`` entry placed at
        their first occurrence, so ``d3+d4+1d3`` renders as ``2D3+D4``.
        """
        entries: list[list] = []
        dice_entries: dict[str, list] = {}
        for item in self.items:
            text = item.notation()
            if isinstance(item, DIE_TYPES):
                if text in dice_entries:
                    dice_entries[text][1] += 1
                    continue
                dice_entries[text] = [text, 1]
                entries.append(dice_entries[text])
            else:
                entries.append([text, 1])

        rendered = ""
        for text, count in entries:
            part = f"{count}{text}" if count > 1 else text
            if rendered and not part.startswith("-"):
                rendered += "+"
            rendered += part
        return rendered

    def roll(self) -> int:
        return self._evaluate("roll", [item.roll() for item in self.items])

    def minimum(self) -> int:
        return self._evaluate("minimum", [item.minimum() for item in self.items])

    def maximum(self) -> int:
        return self._evaluate("maximum", [item.maximum() for item in self.items])

    def _evaluate(self, method: str, values: list[int]) -> int:
        result = bounded_sum(values)
        if self.tracer is not NULL_TRACER:
            self.tracer.record(f"Pool.{method}", self.notation(), format_trace(values), result)
        return result
