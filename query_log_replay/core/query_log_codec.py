"""
Query log file format.

A query log is a single JSON array with one object per `system.queries` row:

    [
        {
            "issue_time": "2021-12-16 15:06:22.456268343",
            "query_type": "sql",
            "query_text": "select count(*), query_type from system.queries group by query_type"
        },
        ...
    ]

Loading requires `issue_time`, `query_type` and `query_text` on every
object and ignores any other column. The first bad record aborts the load.
"""

from __future__ import annotations

import asyncio
import base64
import json
import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import pyarrow as pa

from query_log_replay.errors import QueryLogError
from query_log_replay.models import Query, QueryLog, QueryRow

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("issue_time", "query_type", "query_text")


# -----------------------------------------------------------------------------
# Loading
# -----------------------------------------------------------------------------


def _render(value: Any) -> str:
    return json.dumps(value, default=str)


def _extract_array(value: Any) -> list[Any]:
    if not isinstance(value, list):
        raise QueryLogError(
            f"Expected json array, but got something else {_render(value)}"
        )
    return value


def _extract_map(value: Any) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise QueryLogError(f"Expected an object, got {_render(value)}")
    return value


def _take_field(record: dict[str, Any], field_name: str) -> str:
    """Remove `field_name` from `record` and return it as a string."""
    if field_name not in record:
        raise QueryLogError(
            f"Could not find field {field_name} in value {_render(record)}"
        )
    value = record.pop(field_name)
    if not isinstance(value, str):
        raise QueryLogError(
            f"Expected a string for field {field_name}, got {_render(value)}"
        )
    return value


def parse_query_row(value: Any) -> QueryRow:
    record = dict(_extract_map(value))
    query = Query.from_record(
        _take_field(record, "query_type"),
        _take_field(record, "query_text"),
    )
    return QueryRow(issue_time=_take_field(record, "issue_time"), query=query)


def parse_query_log(document: Any) -> QueryLog:
    """Build a `QueryLog` from an already decoded JSON document."""
    return QueryLog(queries=[parse_query_row(value) for value in _extract_array(document)])


def _read_json(path: Path) -> Any:
    try:
        with open(path, "r", encoding="utf-8") as handle:
            return json.load(handle)
    except OSError as e:
        raise QueryLogError(f"Reading query log {path}: {e}") from e
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise QueryLogError(f"Parsing query log {path} as JSON: {e}") from e


async def load_query_log(path: str | Path) -> QueryLog:
    """
    Load a query log file.

    Raises:
        QueryLogError: if the file is unreadable or a record is malformed.
        UnsupportedQueryTypeError: if a record has an unknown `query_type`.
        QueryConstructionError: if a structured `query_text` does not decode.
    """
    path = Path(path)
    logger.info(f"Loading queries from {path}")

    loop = asyncio.get_running_loop()
    document = await loop.run_in_executor(None, _read_json, path)
    return parse_query_log(document)


# -----------------------------------------------------------------------------
# Saving
# -----------------------------------------------------------------------------


def _json_default(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(value).decode("ascii")
    # Decimal and anything else pyarrow hands back that json can't encode
    return str(value)


def _json_ready_column(field: pa.Field, column: pa.ChunkedArray) -> pa.ChunkedArray:
    if pa.types.is_duration(field.type):
        return column.cast(pa.int64())
    if (
        pa.types.is_timestamp(field.type)
        or pa.types.is_date(field.type)
        or pa.types.is_time(field.type)
    ):
        return column.cast(pa.string())
    return column


def rows_from_batches(batches: Iterable[pa.RecordBatch]) -> list[dict[str, Any]]:
    """
    Convert record batches into one dict per row, keyed by column name.

    Temporal columns become strings (durations become integer counts of their
    unit) and null values are left out of the row.
    """
    batches = list(batches)
    if not batches:
        return []

    table = pa.Table.from_batches(batches)
    table = pa.Table.from_arrays(
        [
            _json_ready_column(field, column)
            for field, column in zip(table.schema, table.columns)
        ],
        names=table.column_names,
    )
    return [
        {name: value for name, value in row.items() if value is not None}
        for row in table.to_pylist()
    ]


def write_query_log(path: str | Path, rows: Iterable[dict[str, Any]]) -> int:
    """
    Write rows as a query log file.

    Returns:
        Number of rows written.
    """
    path = Path(path)
    rows = list(rows)
    try:
        with open(path, "w", encoding="utf-8") as handle:
            json.dump(rows, handle, separators=(",", ":"), default=_json_default)
            handle.write("\n")
    except OSError as e:
        raise QueryLogError(f"Writing query log {path}: {e}") from e
    return len(rows)
