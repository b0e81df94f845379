"""Shared test fixtures for the diceroller test suite.

memory_tracer
    A fresh MemoryTracer per test.

log_history
    A LogHistory handler attached to a dedicated DEBUG logger. Yields
    (logger, handler) and detaches the handler afterwards.

scripted
    Factory for rollables that return a fixed sequence of rolls and fixed
    bounds. Use it when a test needs exact values from something that is
    not a die (dice are better driven by patching diceroller.dice.random).
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

import pytest

from diceroller.tracing import LogHistory, MemoryTracer


class ScriptedRollable:
    def __init__(self, rolls: Iterable[int], minimum: int, maximum: int) -> None:
        self._rolls = iter(rolls)
        self._minimum = minimum
        self._maximum = maximum

    def roll(self) -> int:
        return next(self._rolls)

    def minimum(self) -> int:
        return self._minimum

    def maximum(self) -> int:
        return self._maximum

    def notation(self) -> str:
        return "S"


@pytest.fixture
def memory_tracer() -> MemoryTracer:
    return MemoryTracer()


@pytest.fixture
def log_history():
    logger = logging.getLogger("diceroller.tests.trace")
    logger.setLevel(logging.DEBUG)
    handler = LogHistory()
    logger.addHandler(handler)
    yield logger, handler
    logger.removeHandler(handler)


@pytest.fixture
def scripted():
    def _make(rolls: Iterable[int] = (), minimum: int = 1, maximum: int = 6) -> ScriptedRollable:
        return ScriptedRollable(rolls, minimum, maximum)

    return _make
