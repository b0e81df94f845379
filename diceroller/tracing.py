"""Audit trail for dice evaluation.

A tracer receives one record per externally invoked ``roll``, ``minimum`` or
``maximum`` call on a Pool or modifier that holds it. Nodes built without a
tracer skip recording entirely.

Sinks
-----
NullTracer
    Discards everything. Reported by nodes that hold no tracer.
MemoryTracer
    Keeps TraceRecord objects in order, indexable from either end.
LogTracer
    Forwards each record to a standard library logger.
LogHistory
    A logging handler that keeps formatted messages grouped by level, so a
    LogTracer's output can be inspected in memory.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict

from diceroller.config import settings
from diceroller.errors import OutOfBounds

_LOG_FORMAT = "%s - %s : %s = %d"


class TraceRecord(BaseModel):
    """One evaluation step: who computed what, and how."""

    model_config = ConfigDict(frozen=True)

    source: str
    notation: str
    trace: str
    result: int


@runtime_checkable
class Tracer(Protocol):
    def record(self, source: str, notation: str, trace: str, result: int) -> None: ...


class NullTracer:
    """Tracer that records nothing."""

    def record(self, source: str, notation: str, trace: str, result: int) -> None:
        return None


NULL_TRACER = NullTracer()


def format_trace(values: Iterable[int]) -> str:
    """Render the per-item values of a sum, e.g. ``(2) + (2) + (3)``."""
    return " + ".join(f"({value})" for value in values) or "0"


class MemoryTracer:
    """Keeps every record in memory until cleared."""

    def __init__(self) -> None:
        self._records: list[TraceRecord] = []

    def record(self, source: str, notation: str, trace: str, result: int) -> None:
        self._records.append(
            TraceRecord(source=source, notation=notation, trace=trace, result=result)
        )

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[TraceRecord]:
        return iter(self._records)

    def is_empty(self) -> bool:
        return not self._records

    def clear(self) -> None:
        self._records.clear()

    def get(self, index: int) -> TraceRecord:
        """Return the record at index; negative indexes count from the end.

        Raises:
            OutOfBounds: If no record exists at that position.
        """
        size = len(self._records)
        if not -size <= index < size:
            raise OutOfBounds(f"Trace index {index} is out of range for {size} record(s)")
        return self._records[index]

    def filter(self, source: str) -> list[TraceRecord]:
        """Return records whose source starts with the given prefix.

        ``"Pool"`` matches every Pool operation, ``"Explode.roll"`` only rolls.
        """
        return [r for r in self._records if r.source.startswith(source)]

    def to_list(self) -> list[dict]:
        return [r.model_dump() for r in self._records]


class LogTracer:
    """Forwards each record to a logger at a fixed level."""

    def __init__(self, logger: logging.Logger, level: int | str | None = None) -> None:
        self.logger = logger
        self.level = _level_number(level if level is not None else settings.trace_log_level)

    def record(self, source: str, notation: str, trace: str, result: int) -> None:
        self.logger.log(self.level, _LOG_FORMAT, source, notation, trace, result)


class LogHistory(logging.Handler):
    """Logging handler that keeps formatted messages per level name."""

    def __init__(self, level: int = logging.NOTSET) -> None:
        super().__init__(level)
        self._logs: dict[str, list[str]] = {}

    def emit(self, record: logging.LogRecord) -> None:
        self._logs.setdefault(record.levelname, []).append(self.format(record))

    def get_logs(self, level: int | str | None = None) -> dict[str, list[str]] | list[str]:
        """Return all messages keyed by level, or the messages of one level."""
        if level is None:
            return {name: list(messages) for name, messages in self._logs.items()}
        return list(self._logs.get(logging.getLevelName(_level_number(level)), []))

    def clear(self) -> None:
        self._logs.clear()


def _level_number(level: int | str) -> int:
    if isinstance(level, int):
        return level
    number = logging.getLevelName(level.upper())
    if not isinstance(number, int):
        raise ValueError(f"Unknown logging level: {level!r}")
    return number
