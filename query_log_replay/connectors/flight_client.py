"""
Arrow Flight SQL Client

Runs SQL against an IOx database over Arrow Flight and exposes the result
as a lazy stream of record batches. pyarrow's Flight client is blocking, so
each network call is pushed to an executor and awaited; batches are read one
at a time as the caller consumes them.
"""

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from concurrent.futures import Executor
from typing import Any

import pyarrow as pa
import pyarrow.flight as flight

from query_log_replay.errors import QueryExecutionError

logger = logging.getLogger(__name__)

_END_OF_STREAM = object()


def _read_next_batch(reader: flight.FlightStreamReader) -> Any:
    """Next record batch, `None` for metadata-only chunks, or end marker."""
    try:
        chunk = reader.read_chunk()
    except StopIteration:
        return _END_OF_STREAM
    return chunk.data


class FlightSqlClient:
    """
    SQL query client for the IOx Flight service.
    """

    def __init__(self, location: str, *, executor: Executor | None = None):
        """
        Initialize the client.

        Args:
            location: Flight location, e.g. "grpc+tcp://127.0.0.1:8082"
            executor: Executor for blocking Flight calls (default loop executor
                if omitted)
        """
        self.location = location
        self._executor = executor
        self._client = flight.FlightClient(location)

    def _run_in_executor(self, func, *args):
        loop = asyncio.get_running_loop()
        return loop.run_in_executor(self._executor, func, *args)

    @staticmethod
    def make_ticket(database_name: str, sql: str) -> flight.Ticket:
        """IOx reads the database and query from a JSON encoded ticket."""
        payload = {"database_name": database_name, "sql_query": sql}
        return flight.Ticket(json.dumps(payload).encode("utf-8"))

    async def perform_query(
        self, database_name: str, sql: str
    ) -> AsyncIterator[pa.RecordBatch]:
        """
        Run `sql` against `database_name`, yielding record batches as they
        arrive.

        Raises:
            QueryExecutionError: if the request fails or the stream breaks.
        """
        ticket = self.make_ticket(database_name, sql)
        try:
            reader = await self._run_in_executor(self._client.do_get, ticket)
            while True:
                batch = await self._run_in_executor(_read_next_batch, reader)
                if batch is _END_OF_STREAM:
                    break
                if batch is None:
                    continue
                yield batch
        except pa.ArrowException as e:
            raise QueryExecutionError(
                f"Error running query against {database_name}: {e}"
            ) from e

    async def collect(self, database_name: str, sql: str) -> list[pa.RecordBatch]:
        """Run `sql` and return every batch."""
        return [batch async for batch in self.perform_query(database_name, sql)]

    def close(self) -> None:
        self._client.close()
