"""
Execution Models

Timing records for replayed queries and the streaming summary built from
them. A summary keeps running totals, the minimum and the maximum only; the
individual executions are never retained.
"""

import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from query_log_replay.errors import EmptyAggregateError

_ONE_MS = timedelta(milliseconds=1)


def _as_millis(duration: timedelta) -> int:
    """Whole milliseconds, truncated."""
    return duration // _ONE_MS


@dataclass
class QueryExecution:
    """Result of one replay attempt of one query."""

    # wall clock time for the request, including network and decoding
    duration: timedelta = timedelta()
    # rows returned (SQL queries)
    num_rows: int = 0
    # frames returned (storage queries)
    num_frames: int = 0

    def __str__(self) -> str:
        return f"{self.num_rows} rows {self.num_frames} frames in {self.duration}"


class QueryExecutionBuilder:
    """
    Times a single execution.

    Create it immediately before the request is issued, count results as
    they are drained, then call `build()` once the result stream is done.
    """

    def __init__(self) -> None:
        self._start = time.perf_counter()
        self.num_rows = 0
        self.num_frames = 0

    def add_rows(self, num_rows: int) -> None:
        self.num_rows += num_rows

    def add_frames(self, num_frames: int) -> None:
        self.num_frames += num_frames

    def build(self) -> QueryExecution:
        elapsed = time.perf_counter() - self._start
        return QueryExecution(
            duration=timedelta(seconds=elapsed),
            num_rows=self.num_rows,
            num_frames=self.num_frames,
        )


class QueryExecutionSummary(BaseModel):
    """Aggregate of every timed execution of one query during a replay run."""

    model_config = ConfigDict(frozen=True)

    total_duration: timedelta = Field(..., description="Sum of execution durations")
    min_duration: timedelta = Field(..., description="Fastest execution")
    max_duration: timedelta = Field(..., description="Slowest execution")
    count: int = Field(..., ge=1, description="Number of executions folded")
    total_rows: int = Field(0, description="Rows returned across executions")
    total_frames: int = Field(0, description="Frames returned across executions")

    @classmethod
    def header(cls) -> str:
        """Column names matching `str(summary)`."""
        return "\t".join(
            [
                "total_duration_ms",
                "min_duration_ms",
                "max_duration_ms",
                "count",
                "total_rows",
                "total_frames",
            ]
        )

    def __str__(self) -> str:
        return "\t".join(
            str(value)
            for value in (
                _as_millis(self.total_duration),
                _as_millis(self.min_duration),
                _as_millis(self.max_duration),
                self.count,
                self.total_rows,
                self.total_frames,
            )
        )


class QueryExecutionSummaryBuilder:
    """Folds `QueryExecution`s into a `QueryExecutionSummary`."""

    def __init__(self) -> None:
        self._total_duration = timedelta()
        self._total_rows = 0
        self._total_frames = 0
        self._min_duration: Optional[timedelta] = None
        self._max_duration: Optional[timedelta] = None
        self.count = 0

    @property
    def total_duration(self) -> timedelta:
        """Total duration of the executions added so far."""
        return self._total_duration

    def add(self, execution: QueryExecution) -> "QueryExecutionSummaryBuilder":
        duration = execution.duration
        if self._min_duration is None or duration < self._min_duration:
            self._min_duration = duration
        if self._max_duration is None or duration > self._max_duration:
            self._max_duration = duration

        self._total_duration += duration
        self._total_rows += execution.num_rows
        self._total_frames += execution.num_frames
        self.count += 1
        return self

    def build(self) -> QueryExecutionSummary:
        if self.count == 0 or self._min_duration is None or self._max_duration is None:
            raise EmptyAggregateError()

        return QueryExecutionSummary(
            total_duration=self._total_duration,
            min_duration=self._min_duration,
            max_duration=self._max_duration,
            count=self.count,
            total_rows=self._total_rows,
            total_frames=self._total_frames,
        )
