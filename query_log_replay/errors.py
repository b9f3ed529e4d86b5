"""
Error types for query capture and replay.

Failures are reported as descriptive text. Callers that add context do so by
prefixing the operation to the underlying message and chaining the original
exception, e.g.::

    raise QueryExecutionError(f"Error making read_filter request: {e}") from e

Every error aborts the operation in progress (load, save or replay); nothing
here is retried or skipped.
"""

from __future__ import annotations


class QueryReplayError(Exception):
    """Base class for every operator-visible failure of the tool."""


# -----------------------------------------------------------------------------
# Malformed input
# -----------------------------------------------------------------------------


class QueryLogError(QueryReplayError):
    """The query log file is unreadable or a record has the wrong shape."""


class UnsupportedQueryTypeError(QueryReplayError):
    """A record carried a `query_type` with no matching query kind."""

    def __init__(self, query_type: str) -> None:
        self.query_type = query_type
        super().__init__(f"Unsupported query type found: {query_type}")


class DatabaseNameError(QueryReplayError):
    """A database name is not of the `<org_hex>_<bucket_hex>` form."""


# -----------------------------------------------------------------------------
# Decode failures
# -----------------------------------------------------------------------------


class QueryConstructionError(QueryReplayError):
    """The `query_text` of a structured query did not decode."""

    def __init__(self, query_type: str, reason: str) -> None:
        self.query_type = query_type
        self.reason = reason
        super().__init__(f"Error creating {query_type} request: {reason}")


class ReadSourceDecodeError(QueryReplayError):
    """The read source embedded in a storage request is missing or invalid."""


# -----------------------------------------------------------------------------
# Execution failures
# -----------------------------------------------------------------------------


class IoxConnectionError(QueryReplayError):
    """The IOx server could not be reached."""


class QueryExecutionError(QueryReplayError):
    """The server rejected a request or its result stream failed mid-way."""


# -----------------------------------------------------------------------------
# Statistics
# -----------------------------------------------------------------------------


class EmptyAggregateError(QueryReplayError):
    """A summary was requested before any execution was recorded."""

    def __init__(self) -> None:
        super().__init__(
            "Can not summarize query executions: no executions were recorded"
        )
