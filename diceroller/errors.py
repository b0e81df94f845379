"""Exceptions raised while parsing notation or building rollable trees.

Every failure happens at parse or construction time. A tree that was built
successfully can always be evaluated.
"""

from __future__ import annotations


class DiceError(ValueError):
    """Base class for every dice roller error."""


class NotationSyntaxError(DiceError):
    """Raised when a dice notation is malformed."""


class TooFewSides(DiceError):
    """Raised when a die is given fewer than two faces."""


class TooManyObjects(DiceError):
    """Raised when a drop/keep threshold exceeds the size of its pool."""


class UnknownAlgorithm(DiceError):
    """Raised for an unrecognized drop/keep tag or arithmetic operator."""


class IllegalValue(DiceError):
    """Raised when a modifier parameter is outside its valid range."""


class OutOfBounds(DiceError, IndexError):
    """Raised when a trace history is indexed past either end."""
