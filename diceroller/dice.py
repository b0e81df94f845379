"""Leaf dice and the Rollable capability.

Every node of a parsed notation (die, pool or modifier) exposes the same four
calls: roll(), minimum(), maximum() and notation(). Leaves are the only nodes
that draw random numbers.

Supported faces: D6 (any side count >= 2), DF (fudge: -1, 0, +1),
D% (percentile: 1-100), D[1,2,34] (explicit faces).
"""

from __future__ import annotations

import random
import re
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from diceroller.errors import NotationSyntaxError, TooFewSides

DEFAULT_SIDES = 6

_CUSTOM_FACES_RE = re.compile(r"^\[(?P<faces>[^\[\]]*)\]$")
_FACE_RE = re.compile(r"^-?\d+$")


@runtime_checkable
class Rollable(Protocol):
    def roll(self) -> int: ...

    def minimum(self) -> int: ...

    def maximum(self) -> int: ...

    def notation(self) -> str: ...


@dataclass(frozen=True)
class SidedDie:
    """A die numbered 1 through sides."""

    sides: int

    def __post_init__(self) -> None:
        if self.sides < 2:
            raise TooFewSides(f"A die must have at least 2 sides, {self.sides} given")

    def __len__(self) -> int:
        return self.sides

    def __str__(self) -> str:
        return self.notation()

    def notation(self) -> str:
        return f"D{self.sides}"

    def minimum(self) -> int:
        return 1

    def maximum(self) -> int:
        return self.sides

    def roll(self) -> int:
        return random.randint(1, self.sides)


@dataclass(frozen=True)
class FudgeDie:
    """Fudge/Fate die: -1, 0 or +1."""

    def __len__(self) -> int:
        return 3

    def __str__(self) -> str:
        return self.notation()

    def notation(self) -> str:
        return "DF"

    def minimum(self) -> int:
        return -1

    def maximum(self) -> int:
        return 1

    def roll(self) -> int:
        return random.randint(-1, 1)


@dataclass(frozen=True)
class PercentileDie:
    def __len__(self) -> int:
        return 100

    def __str__(self) -> str:
        return self.notation()

    def notation(self) -> str:
        return "D%"

    def minimum(self) -> int:
        return 1

    def maximum(self) -> int:
        return 100

    def roll(self) -> int:
        return random.randint(1, 100)


@dataclass(frozen=True, init=False)
class CustomDie:
    """A die carrying an explicit list of faces.

    Faces may repeat and may be negative; each face is equally likely.
    """

    faces: tuple[int, ...]

    def __init__(self, *faces: int) -> None:
        if len(faces) < 2:
            raise TooFewSides(f"A die must have at least 2 sides, {len(faces)} given")
        object.__setattr__(self, "faces", tuple(faces))

    def __len__(self) -> int:
        return len(self.faces)

    def __str__(self) -> str:
        return self.notation()

    def notation(self) -> str:
        return "D[" + ",".join(str(face) for face in self.faces) + "]"

    def minimum(self) -> int:
        return min(self.faces)

    def maximum(self) -> int:
        return max(self.faces)

    def roll(self) -> int:
        return random.choice(self.faces)


DIE_TYPES = (SidedDie, FudgeDie, PercentileDie, CustomDie)


def create_die(face_spec: str) -> SidedDie | FudgeDie | PercentileDie | CustomDie:
    """Build a leaf die from the face part of a notation (what follows the ``d``).

    Args:
        face_spec: ``""`` (six sides), a side count, ``"f"``, ``"%"`` or a
            bracketed face list such as ``"[1,2,34]"``. Case-insensitive.

    Returns:
        The matching die.

    Raises:
        NotationSyntaxError: If the face spec is not recognized.
        TooFewSides: If the die would have fewer than two faces.
    """
    spec = face_spec.strip().lower()
    if spec == "":
        return SidedDie(DEFAULT_SIDES)
    if spec.isdigit():
        return SidedDie(int(spec))
    if spec == "f":
        return FudgeDie()
    if spec == "%":
        return PercentileDie()

    m = _CUSTOM_FACES_RE.match(spec)
    if not m:
        raise NotationSyntaxError(f"Unknown dice faces: {face_spec!r}")
    faces = [face.strip() for face in m.group("faces").split(",")]
    if not all(_FACE_RE.match(face) for face in faces):
        raise NotationSyntaxError(f"Invalid custom dice faces: {face_spec!r}")
    return CustomDie(*(int(face) for face in faces))
