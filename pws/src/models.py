"""
Data model for weather station readings and sink results.

Defines the immutable ``ReadingSet`` that flows through every pipeline stage,
plus the pydantic models that describe what each sink did with it
(``SinkOutcome``) and the aggregated result of one upload (``PipelineReport``).

CHANGELOG:
- 2026-10-19: Add FailureCause.STATUS for non-2xx relay responses
- 2026-10-19: Initial creation (STORY-002)

TODO:
- None
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from enum import StrEnum
from typing import Literal

from pydantic import BaseModel

Value = str | int | float
"""A reading value: raw protocol text, or a number added by the gateway."""

ACKNOWLEDGMENT = "success"
"""Fixed body returned to the station for every upload."""


# ---------------------------------------------------------------------------
# ReadingSet
# ---------------------------------------------------------------------------


class ReadingSet(Mapping[str, Value]):
    """Immutable, insertion-ordered mapping of field name to value.

    Field names are case-sensitive. Iteration always follows insertion order,
    which the FHEM sink replays verbatim and the JSON log keeps for diffing.

    Stages never modify a ReadingSet; :meth:`with_fields` returns a new set.

    Args:
        data: A mapping, or an iterable of ``(name, value)`` pairs. When a
            name repeats, the last value wins and the first position is kept.
    """

    __slots__ = ("_fields",)

    def __init__(
        self,
        data: Mapping[str, Value] | Iterable[tuple[str, Value]] | None = None,
    ) -> None:
        self._fields: dict[str, Value] = dict(data) if data is not None else {}

    def __getitem__(self, name: str) -> Value:
        return self._fields[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def __repr__(self) -> str:
        return f"ReadingSet({self._fields!r})"

    def with_fields(
        self,
        pairs: Mapping[str, Value] | Iterable[tuple[str, Value]],
    ) -> ReadingSet:
        """Return a new set with *pairs* added.

        New names are appended at the end; names that already exist keep
        their position and take the new value.
        """
        merged = dict(self._fields)
        items = pairs.items() if isinstance(pairs, Mapping) else pairs
        for name, value in items:
            merged[name] = value
        return ReadingSet(merged)

    def to_dict(self) -> dict[str, Value]:
        """Return a plain ``dict`` copy in insertion order."""
        return dict(self._fields)


# ---------------------------------------------------------------------------
# Sink outcomes
# ---------------------------------------------------------------------------


class FailureCause(StrEnum):
    """Why a sink failed."""

    CONNECTION = "connection"
    IO = "io"
    TIMEOUT = "timeout"
    STATUS = "status"


class SinkOutcome(BaseModel):
    """Result of dispatching one reading to one sink.

    Exactly one of three shapes, selected by ``status``:

    - ``success``: ``response`` may carry the sink's reply (relay body).
    - ``skipped``: ``reason`` says why the sink did not run.
    - ``failed``: ``cause`` classifies the failure, ``detail`` describes it.

    Sinks return outcomes instead of raising, so a failing sink can never
    stop the sinks after it.
    """

    sink: str
    status: Literal["success", "skipped", "failed"]
    response: str | None = None
    reason: str | None = None
    cause: FailureCause | None = None
    detail: str | None = None

    @classmethod
    def success(cls, sink: str, response: str | None = None) -> SinkOutcome:
        return cls(sink=sink, status="success", response=response)

    @classmethod
    def skipped(cls, sink: str, reason: str = "disabled") -> SinkOutcome:
        return cls(sink=sink, status="skipped", reason=reason)

    @classmethod
    def failed(cls, sink: str, cause: FailureCause, detail: str = "") -> SinkOutcome:
        return cls(sink=sink, status="failed", cause=cause, detail=detail)

    @property
    def ok(self) -> bool:
        return self.status == "success"


class PipelineReport(BaseModel):
    """Aggregated result of ingesting one upload.

    Attributes:
        device: Device identity the reading was filed under.
        outcomes: Sink name -> outcome, in dispatch order
            (``relay``, ``json_log``, ``fhem``).
        acknowledgment: Body returned to the station. Always
            :data:`ACKNOWLEDGMENT`, whatever the sinks reported.
    """

    device: str
    outcomes: dict[str, SinkOutcome]
    acknowledgment: str = ACKNOWLEDGMENT

    def failed(self) -> list[str]:
        """Names of the sinks that reported a failure."""
        return [name for name, outcome in self.outcomes.items() if outcome.status == "failed"]
