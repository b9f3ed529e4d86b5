"""
Capture `system.queries` from a database into a query log file.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import TYPE_CHECKING

from query_log_replay.core.query_log_codec import (
    REQUIRED_FIELDS,
    rows_from_batches,
    write_query_log,
)
from query_log_replay.errors import QueryLogError

if TYPE_CHECKING:
    from query_log_replay.connectors.connection import IoxConnection

logger = logging.getLogger(__name__)

# Query whose result rows become the saved log
SQL = "select * from system.queries"


async def save_queries(
    connection: IoxConnection, database_name: str, path: str | Path
) -> int:
    """
    Save the contents of `system.queries` for `database_name` to `path`.

    Returns:
        Number of queries written.

    Raises:
        QueryExecutionError: if the capture query fails.
        QueryLogError: if the result lacks a column replay needs, or the file
            can not be written.
    """
    path = Path(path)
    logger.info(f"Saving queries from database {database_name} to {path}...")
    logger.info(f"Running SQL query: '{SQL}'")

    client = connection.flight_client()
    batches = await client.collect(database_name, SQL)

    if batches:
        column_names = batches[0].schema.names
        missing = [name for name in REQUIRED_FIELDS if name not in column_names]
        if missing:
            raise QueryLogError(
                f"Running query {SQL}: result is missing columns {', '.join(missing)}"
            )

    rows = rows_from_batches(batches)
    loop = asyncio.get_running_loop()
    written = await loop.run_in_executor(None, write_query_log, path, rows)

    logger.info(f"Saved {written} queries to {path}")
    return written
