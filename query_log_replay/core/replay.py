"""
Query Log Replay

Re-issues every query of a log against a target database and prints one
timing summary per query. Each query is executed back to back until its
executions add up to at least `TEST_DURATION`; there is never more than one
request in flight. The first failed execution stops the whole run.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from pathlib import Path
from typing import TYPE_CHECKING, Optional, TextIO

from query_log_replay.core.query_log_codec import load_query_log
from query_log_replay.errors import QueryReplayError
from query_log_replay.models import (
    Query,
    QueryExecutionSummary,
    QueryExecutionSummaryBuilder,
    QueryLog,
)

if TYPE_CHECKING:
    from query_log_replay.connectors.connection import IoxConnection

logger = logging.getLogger(__name__)

# Minimum accumulated execution time per query
TEST_DURATION = timedelta(seconds=5)

# Characters of the query description shown in the summary table
DESCRIPTION_CHARS = 10


def header_line() -> str:
    return f"description,{QueryExecutionSummary.header()}"


def format_summary_line(
    index: int, description: str, summary: QueryExecutionSummary
) -> str:
    return f"query {index}: {description[:DESCRIPTION_CHARS]},{summary}"


class QueryLogReplayer:
    """Replays queries against one database over one connection."""

    def __init__(
        self,
        connection: IoxConnection,
        database_name: str,
        *,
        test_duration: timedelta = TEST_DURATION,
        out: Optional[TextIO] = None,
    ) -> None:
        """
        Args:
            connection: Connected IOx connection
            database_name: Database the queries are replayed against
            test_duration: Minimum accumulated execution time per query
            out: Stream for the summary table (stdout if omitted)
        """
        self.connection = connection
        self.database_name = database_name
        self.test_duration = test_duration
        self._out = out

    def _emit(self, line: str) -> None:
        print(line, file=self._out, flush=True)

    async def replay_query(
        self, query: Query, description: Optional[str] = None
    ) -> QueryExecutionSummary:
        """Execute `query` repeatedly until the test duration is used up."""
        if description is None:
            description = query.describe()
        summary = QueryExecutionSummaryBuilder()

        while summary.count == 0 or summary.total_duration < self.test_duration:
            try:
                execution = await query.execute(self.database_name, self.connection)
            except QueryReplayError:
                logger.error(
                    f"Replay of {description} against {self.database_name} "
                    f"failed after {summary.count} executions"
                )
                raise
            logger.debug("Ran %s: %s", description, execution)
            summary.add(execution)

        return summary.build()

    async def replay(self, log: QueryLog) -> list[QueryExecutionSummary]:
        """
        Replay every query of `log` in order, printing the summary table.

        Returns:
            One summary per log entry, in log order.
        """
        summaries: list[QueryExecutionSummary] = []
        self._emit(header_line())
        for index, row in enumerate(log):
            query = row.into_inner()
            description = query.describe()
            summary = await self.replay_query(query, description)
            summaries.append(summary)
            self._emit(format_summary_line(index, description, summary))
        return summaries


async def replay_file(
    connection: IoxConnection,
    database_name: str,
    path: str | Path,
    *,
    test_duration: timedelta = TEST_DURATION,
    out: Optional[TextIO] = None,
) -> list[QueryExecutionSummary]:
    """Load the query log at `path` and replay it against `database_name`."""
    logger.info(f"Replaying from {path} into database {database_name}...")
    log = await load_query_log(path)
    logger.info(f"Loaded query log with {len(log)} entries")

    replayer = QueryLogReplayer(
        connection, database_name, test_duration=test_duration, out=out
    )
    return await replayer.replay(log)
