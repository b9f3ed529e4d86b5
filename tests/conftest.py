"""
Shared pytest fixtures for query log replay tests.

This module provides:
- Protobuf JSON `read_filter` payloads as recorded in `system.queries`
- Fake Flight / storage clients and a fake connection that hands them out
- Helpers for building Arrow record batches and query log files

No test talks to a real IOx server.
"""

from __future__ import annotations

import base64
import json
from pathlib import Path
from typing import Any, Callable, Optional

import pyarrow as pa
import pytest

from query_log_replay.models.storage import ReadSource


# =============================================================================
# Storage request payloads
# =============================================================================


def _read_filter_payload(org_id: int, bucket_id: int, partition_id: int) -> dict[str, Any]:
    read_source = ReadSource(
        org_id=org_id, bucket_id=bucket_id, partition_id=partition_id
    )
    return {
        "ReadSource": {
            "typeUrl": "type.googleapis.com/com.github.influxdata.idpe.storage.read.ReadSource",
            "value": base64.b64encode(read_source.SerializeToString()).decode("ascii"),
        },
        "range": {"start": "1639667182000000000", "end": "1639670782000000000"},
        "predicate": {
            "root": {
                "nodeType": "TYPE_COMPARISON_EXPRESSION",
                "comparison": "COMPARISON_EQUAL",
                "children": [
                    {"nodeType": "TYPE_TAG_REF", "tagRefValue": "host"},
                    {"nodeType": "TYPE_LITERAL", "stringValue": "server01"},
                ],
            }
        },
    }


@pytest.fixture
def read_filter_text() -> Callable[..., str]:
    """Factory for `read_filter` query text addressing the given ids."""

    def _make(
        org_id: int = 0x0123, bucket_id: int = 0x4567, partition_id: int = 42
    ) -> str:
        return json.dumps(_read_filter_payload(org_id, bucket_id, partition_id))

    return _make


# =============================================================================
# Fake clients
# =============================================================================


class FakeFlightClient:
    """Stands in for `FlightSqlClient`; yields canned batches."""

    def __init__(
        self,
        batches: Optional[list[pa.RecordBatch]] = None,
        error: Optional[BaseException] = None,
    ) -> None:
        self.batches = batches or []
        self.error = error
        self.calls: list[tuple[str, str]] = []

    async def perform_query(self, database_name: str, sql: str):
        self.calls.append((database_name, sql))
        if self.error is not None:
            raise self.error
        for batch in self.batches:
            yield batch

    async def collect(self, database_name: str, sql: str) -> list[pa.RecordBatch]:
        return [batch async for batch in self.perform_query(database_name, sql)]


class FakeStorageClient:
    """Stands in for `StorageClient`; records requests, yields canned pages."""

    def __init__(
        self,
        responses: Optional[list[Any]] = None,
        error: Optional[BaseException] = None,
    ) -> None:
        self.responses = responses or []
        self.error = error
        self.requests: list[Any] = []

    async def read_filter(self, request: Any):
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        for response in self.responses:
            yield response


class FakeConnection:
    """Stands in for `IoxConnection`."""

    def __init__(
        self,
        flight: Optional[FakeFlightClient] = None,
        storage: Optional[FakeStorageClient] = None,
    ) -> None:
        self.flight = flight or FakeFlightClient()
        self.storage = storage or FakeStorageClient()

    def flight_client(self) -> FakeFlightClient:
        return self.flight

    def storage_client(self) -> FakeStorageClient:
        return self.storage


@pytest.fixture
def fake_flight_client() -> type[FakeFlightClient]:
    return FakeFlightClient


@pytest.fixture
def fake_storage_client() -> type[FakeStorageClient]:
    return FakeStorageClient


@pytest.fixture
def fake_connection() -> type[FakeConnection]:
    return FakeConnection


# =============================================================================
# Data helpers
# =============================================================================


@pytest.fixture
def row_batch() -> Callable[[int], pa.RecordBatch]:
    """Factory for a single-column record batch with `n` rows."""

    def _make(n: int) -> pa.RecordBatch:
        return pa.record_batch([pa.array(list(range(n)), type=pa.int64())], names=["x"])

    return _make


@pytest.fixture
def write_log(tmp_path: Path) -> Callable[[Any], Path]:
    """Write a JSON document to a file under `tmp_path` and return its path."""

    def _write(document: Any, name: str = "queries.json") -> Path:
        path = tmp_path / name
        path.write_text(json.dumps(document), encoding="utf-8")
        return path

    return _write
