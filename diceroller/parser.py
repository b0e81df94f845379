"""Dice notation parser.

Turns a notation string into a tree of dice, pools and modifiers.

Grammar (case-insensitive)::

    expression   := term (('+' | '-') term)*
    term         := group (('*' | '/' | '^') integer)*  |  integer
    group        := simple_pool modifier* | '(' expression ')' modifier*
    simple_pool  := [count] 'd' [sides | 'f' | '%' | '[' int (',' int)+ ']']
    modifier     := '!' [('=' | '>' | '<')] [integer]  |  ('dh'|'dl'|'kh'|'kl') [integer]

Examples: ``3d6+2``, ``4d6dh1``, ``2d3!=3``, ``(3dF+2d6)*3+3dF^2``.

A constant term is folded into the group before it (``2d3-4``). Whitespace
is ignored, except that it separates groups: ``2d6 3d4`` is ``2d6+3d4``.
"""

from __future__ import annotations

import logging
import re

from diceroller.config import settings
from diceroller.dice import Rollable, create_die
from diceroller.errors import IllegalValue, NotationSyntaxError
from diceroller.modifiers import Algorithm, Arithmetic, Compare, DropKeep, Explode, Operator
from diceroller.pool import Pool
from diceroller.tracing import Tracer

logger = logging.getLogger(__name__)

_SIMPLE_POOL_RE = re.compile(
    r"^(?P<count>\d*)d(?P<faces>\[[^\[\]]*\]|f|%|\d*)(?P<modifiers>.*)$",
)
_MODIFIER_RE = re.compile(
    r"(?P<explode>!(?P<compare>[=<>])?(?P<threshold>-?\d+)?)"
    r"|(?P<algorithm>dh|dl|kh|kl)(?P<count>\d+)?",
)
_ARITHMETIC_RE = re.compile(r"^(?P<core>.*?)(?P<operations>(?:[*/^]\d+)*)$")
_OPERATION_RE = re.compile(r"(?P<operator>[*/^])(?P<operand>\d+)")
_CONSTANT_RE = re.compile(r"^\d+$")

_GROUP_START_RE = re.compile(r"^(?:\d*d(?![hl])|\()")
# Start of the last term of a partial expression: after a sum sign (but not
# an explode threshold sign) or an opening parenthesis.
_TERM_BOUNDARY_RE = re.compile(r"(?<![=<>])[+-]|\(")
_JUXTAPOSED_RE = re.compile(r"(?<=\))(?=\()")

# Characters after which a sign belongs to an explode threshold.
_THRESHOLD_PREFIXES = "=<>"


class NotationParser:
    """Parse dice notation into rollable trees.

    Every Pool and modifier built by the parser receives the parser's tracer.
    """

    def __init__(self, tracer: Tracer | None = None) -> None:
        self.tracer = tracer

    def parse(self, notation: str) -> Rollable:
        """Parse a dice notation.

        Args:
            notation: Dice notation, e.g. "4d6dh1+2". An empty string yields
                an empty pool.

        Returns:
            A single die or modifier when the notation holds one term,
            otherwise a Pool of the terms in order.

        Raises:
            NotationSyntaxError: If the notation is malformed.
            DiceError: If a die or modifier rejects its parameters.
        """
        text = _join_chunks(notation.lower().split())
        if not text:
            return Pool(tracer=self.tracer)

        rollable = self._parse_expression(text)
        logger.debug("Parsed %r as %s", notation, rollable)
        return rollable

    # ------------------------------------------------------------------
    # Expressions
    # ------------------------------------------------------------------

    def _parse_expression(self, text: str) -> Rollable:
        groups: list[Rollable] = []
        for sign, term in _split_terms(text):
            if not term:
                raise NotationSyntaxError(f"Missing dice group in {text!r}")

            if _CONSTANT_RE.match(term):
                if not groups:
                    raise NotationSyntaxError(
                        f"Constant {sign}{term} must follow a dice group in {text!r}"
                    )
                operator = Operator.add if sign == "+" else Operator.subtract
                groups[-1] = Arithmetic(groups[-1], operator, int(term), self.tracer)
                continue

            group = self._parse_term(term)
            if sign == "-":
                group = Arithmetic(group, Operator.multiply, -1, self.tracer)
            groups.append(group)

        if len(groups) == 1:
            return groups[0]
        return Pool(tuple(groups), self.tracer)

    def _parse_term(self, term: str) -> Rollable:
        m = _ARITHMETIC_RE.match(term)
        core = m.group("core")
        if not core:
            raise NotationSyntaxError(f"Missing dice group in {term!r}")

        if core.startswith("("):
            close = _matching_parenthesis(core)
            inner = core[1:close]
            if not inner:
                raise NotationSyntaxError(f"Empty parentheses in {term!r}")
            rollable = self._parse_group(self._parse_expression(inner), core[close + 1 :])
        else:
            rollable = self._parse_simple_pool(core)

        for operation in _OPERATION_RE.finditer(m.group("operations")):
            rollable = Arithmetic(
                rollable,
                Operator(operation.group("operator")),
                int(operation.group("operand")),
                self.tracer,
            )
        return rollable

    # ------------------------------------------------------------------
    # Groups
    # ------------------------------------------------------------------

    def _parse_simple_pool(self, definition: str) -> Rollable:
        m = _SIMPLE_POOL_RE.match(definition)
        if not m:
            raise NotationSyntaxError(f"Invalid dice group: {definition!r}")

        count = int(m.group("count") or 1)
        if count < 1:
            raise NotationSyntaxError(f"Must roll at least 1 die: {definition!r}")
        if count > settings.max_dice:
            raise IllegalValue(f"Too many dice: {count} (max {settings.max_dice})")
        die = create_die(m.group("faces"))
        if len(die) > settings.max_sides:
            raise IllegalValue(f"Too many sides: {len(die)} (max {settings.max_sides})")
        rollable = die if count == 1 else Pool.of(die, count, self.tracer)
        return self._parse_group(rollable, m.group("modifiers"))

    def _parse_group(self, rollable: Rollable, modifiers: str) -> Rollable:
        """Apply the modifiers that follow a group: drop/keep first, then explode."""
        explode = None
        drop_keep = None
        position = 0
        while position < len(modifiers):
            m = _MODIFIER_RE.match(modifiers, position)
            if not m:
                raise NotationSyntaxError(f"Invalid modifier: {modifiers[position:]!r}")
            if m.group("explode"):
                if explode is not None:
                    raise NotationSyntaxError(f"Repeated explode modifier in {modifiers!r}")
                if m.group("compare") and m.group("threshold") is None:
                    raise NotationSyntaxError(f"Missing explode threshold in {m.group(0)!r}")
                explode = m
            else:
                if drop_keep is not None:
                    raise NotationSyntaxError(f"Repeated drop/keep modifier in {modifiers!r}")
                drop_keep = m
            position = m.end()

        if drop_keep is not None:
            rollable = DropKeep(
                _selection_pool(rollable, self.tracer),
                Algorithm(drop_keep.group("algorithm")),
                int(drop_keep.group("count") or 1),
                self.tracer,
            )
        if explode is not None:
            threshold = explode.group("threshold")
            rollable = Explode(
                rollable,
                Compare(explode.group("compare") or "="),
                int(threshold) if threshold is not None else None,
                self.tracer,
            )
        return rollable


def _join_chunks(chunks: list[str]) -> str:
    """Join whitespace-separated chunks of a notation.

    A chunk that starts a group is summed with the text before it when that
    text already ends in a complete group: ``2d6 3d4`` reads as ``2d6+3d4``,
    while ``3 d6`` and ``4d6 dh1`` are single groups.
    """
    text = ""
    for chunk in chunks:
        if text and _GROUP_START_RE.match(chunk) and _ends_group(text):
            text += "+"
        text += chunk
    return _JUXTAPOSED_RE.sub("+", text)


def _ends_group(text: str) -> bool:
    last_term = _TERM_BOUNDARY_RE.split(text)[-1]
    return "d" in last_term or ")" in last_term


def _split_terms(text: str) -> list[tuple[str, str]]:
    """Split an expression on the ``+`` and ``-`` outside of any grouping.

    Returns (sign, term) pairs. A sign that opens an explode threshold or
    sits inside custom faces is part of its term.
    """
    terms: list[tuple[str, str]] = []
    sign = "+"
    start = 0
    depth = 0
    brackets = 0
    for i, ch in enumerate(text):
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth < 0:
                raise NotationSyntaxError(f"Unbalanced parenthesis in {text!r}")
        elif ch == "[":
            brackets += 1
        elif ch == "]":
            brackets -= 1
        elif ch in "+-" and depth == 0 and brackets == 0:
            if i > 0 and text[i - 1] in _THRESHOLD_PREFIXES:
                continue
            if i > 0:
                terms.append((sign, text[start:i]))
            sign = ch
            start = i + 1
    if depth != 0:
        raise NotationSyntaxError(f"Unbalanced parenthesis in {text!r}")
    terms.append((sign, text[start:]))
    return terms


def _matching_parenthesis(text: str) -> int:
    depth = 0
    for i, ch in enumerate(text):
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth == 0:
                return i
    raise NotationSyntaxError(f"Unbalanced parenthesis in {text!r}")


def _selection_pool(rollable: Rollable, tracer: Tracer | None) -> Pool:
    """Return the pool a drop/keep ranks, one item per die where possible.

    Plain sub-pools (dice with no modifier) are flattened so ``(2d6+d4)kh1``
    keeps the best of three dice rather than the best of two groups.
    """
    if not isinstance(rollable, Pool):
        return Pool((rollable,), tracer)
    items: list[Rollable] = []
    for item in rollable.items:
        if isinstance(item, Pool):
            items.extend(_selection_pool(item, tracer).items)
        else:
            items.append(item)
    return Pool(tuple(items), tracer)


def parse(notation: str, tracer: Tracer | None = None) -> Rollable:
    """Parse a dice notation with a fresh NotationParser."""
    return NotationParser(tracer).parse(notation)
