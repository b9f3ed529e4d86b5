"""
Query log containers.
"""

from collections.abc import Iterator
from dataclasses import dataclass, field

from query_log_replay.models.query import Query


@dataclass
class QueryRow:
    """One row of `system.queries`."""

    # time at which the query was issued, kept as recorded
    issue_time: str
    query: Query

    def into_inner(self) -> Query:
        return self.query


@dataclass
class QueryLog:
    """Captured queries in the order they appear in the log file."""

    queries: list[QueryRow] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.queries)

    def __iter__(self) -> Iterator[QueryRow]:
        return iter(self.queries)
