"""
Query Models

A captured query is one of a closed set of kinds, selected by the
`query_type` column of `system.queries`:

- `sql`: SQL text, replayed over Arrow Flight
- `read_filter`: a storage `ReadFilterRequest`, recorded as protobuf JSON and
  replayed over the gRPC storage API after its read source is rewritten to
  point at the replay database

Adding a kind means adding a `QueryType` member, a `Query` subclass and an
entry in `QUERY_CONSTRUCTORS`.
"""

from __future__ import annotations

import copy
import json
import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, ClassVar, cast

from google.protobuf import json_format

from query_log_replay.errors import (
    QueryConstructionError,
    ReadSourceDecodeError,
    UnsupportedQueryTypeError,
)
from query_log_replay.models.execution import QueryExecution, QueryExecutionBuilder
from query_log_replay.models.read_source import decode_read_source, make_read_source
from query_log_replay.models.storage import ReadFilterRequest

if TYPE_CHECKING:
    from query_log_replay.connectors.connection import IoxConnection
    from query_log_replay.connectors.storage_client import StorageClient

logger = logging.getLogger(__name__)

# Characters of SQL text kept by `describe()`
SQL_DESCRIPTION_CHARS = 30

# JSON keys accepted at the top level of a recorded read_filter request
_REQUEST_FIELD_NAMES = frozenset(
    name
    for field in ReadFilterRequest.DESCRIPTOR.fields
    for name in (field.name, field.json_name)
)


class QueryType(str, Enum):
    """Value of the `query_type` column for each supported query kind."""

    SQL = "sql"
    READ_FILTER = "read_filter"


def truncate_and_clean(text: str, max_chars: int) -> str:
    """Collapse newlines to spaces and keep at most `max_chars` characters."""
    return text.replace("\n", " ")[:max_chars]


class Query(ABC):
    """A captured query that can be re-issued against any database."""

    query_type: ClassVar[QueryType]

    @staticmethod
    def from_record(query_type: str, query_text: str) -> "Query":
        """Build a query from the `query_type` and `query_text` of a log row."""
        return construct_query(query_type, query_text)

    @abstractmethod
    def describe(self) -> str:
        """Short human readable label, stable across runs."""

    @abstractmethod
    def retarget(self, database_name: str) -> None:
        """Point this query at `database_name`."""

    @abstractmethod
    async def execute(
        self, database_name: str, connection: "IoxConnection"
    ) -> QueryExecution:
        """Run the query once against `database_name` and time it."""

    def clone(self) -> "Query":
        return copy.deepcopy(self)

    def __str__(self) -> str:
        return self.describe()


@dataclass
class SqlQuery(Query):
    """SQL text, executed verbatim."""

    text: str

    query_type: ClassVar[QueryType] = QueryType.SQL

    def describe(self) -> str:
        return f"Sql({truncate_and_clean(self.text, SQL_DESCRIPTION_CHARS)})"

    def retarget(self, database_name: str) -> None:
        # The database name is sent alongside the SQL text
        return None

    async def execute(
        self, database_name: str, connection: "IoxConnection"
    ) -> QueryExecution:
        client = connection.flight_client()

        execution = QueryExecutionBuilder()
        async for batch in client.perform_query(database_name, self.text):
            execution.add_rows(batch.num_rows)
        return execution.build()


class StorageRpcQuery(Query):
    """A storage gRPC request whose target is an embedded read source."""

    name: ClassVar[str]
    details: ClassVar[str]

    request: Any

    def describe(self) -> str:
        try:
            org_id, bucket_id = self.read_source()
        except ReadSourceDecodeError:
            org_id, bucket_id = "UNKNOWN", "UNKNOWN"
        return (
            f"StorageRpc({self.name}(org_id={org_id}, bucket_id={bucket_id}, "
            f"details={self.details}))"
        )

    def read_source(self) -> tuple[int, int]:
        """
        Return the (org_id, bucket_id) this request was captured against.

        Raises:
            ReadSourceDecodeError: if the request has no read source or it
                does not decode.
        """
        if not self.request.HasField("read_source"):
            raise ReadSourceDecodeError(
                f"No read source found on request {self.name}"
            )
        try:
            read_source = decode_read_source(self.request.read_source)
        except ReadSourceDecodeError as e:
            raise ReadSourceDecodeError(f"{e} on request {self.name}") from e
        return read_source.org_id, read_source.bucket_id

    def retarget(self, database_name: str) -> None:
        self.request.read_source.CopyFrom(make_read_source(database_name))

    @abstractmethod
    def issue(self, client: "StorageClient") -> AsyncIterator[Any]:
        """Send the request, returning the stream of `ReadResponse` pages."""

    async def execute(
        self, database_name: str, connection: "IoxConnection"
    ) -> QueryExecution:
        target = cast(StorageRpcQuery, self.clone())
        target.retarget(database_name)
        client = connection.storage_client()

        execution = QueryExecutionBuilder()
        async for response in target.issue(client):
            execution.add_frames(
                sum(1 for frame in response.frames if frame.WhichOneof("data"))
            )
        return execution.build()


@dataclass
class ReadFilterQuery(StorageRpcQuery):
    """`Storage.ReadFilter` request."""

    request: Any

    query_type: ClassVar[QueryType] = QueryType.READ_FILTER
    name: ClassVar[str] = "ReadFilter"
    details: ClassVar[str] = "(Add Predicates)"

    @classmethod
    def from_text(cls, query_text: str) -> "ReadFilterQuery":
        """
        Decode the protobuf JSON form recorded in `system.queries`.

        Top-level request fields this client does not model are dropped;
        anything else that does not match the request shape (including
        unknown enum values inside the predicate) is an error.
        """
        try:
            document = json.loads(query_text)
        except ValueError as e:
            raise QueryConstructionError(QueryType.READ_FILTER.value, str(e)) from e
        if not isinstance(document, dict):
            raise QueryConstructionError(
                QueryType.READ_FILTER.value,
                f"expected a JSON object, got {type(document).__name__}",
            )

        known = _REQUEST_FIELD_NAMES
        skipped = sorted(key for key in document if key not in known)
        if skipped:
            logger.debug("Dropping unsupported read_filter fields: %s", skipped)

        request = ReadFilterRequest()
        try:
            json_format.ParseDict(
                {key: value for key, value in document.items() if key in known},
                request,
            )
        except (json_format.ParseError, ValueError, TypeError) as e:
            raise QueryConstructionError(QueryType.READ_FILTER.value, str(e)) from e
        return cls(request)

    def to_text(self) -> str:
        return json_format.MessageToJson(self.request)

    def issue(self, client: "StorageClient") -> AsyncIterator[Any]:
        return client.read_filter(self.request)


QUERY_CONSTRUCTORS: dict[QueryType, Callable[[str], Query]] = {
    QueryType.SQL: SqlQuery,
    QueryType.READ_FILTER: ReadFilterQuery.from_text,
}


def construct_query(query_type: str, query_text: str) -> Query:
    """
    Build the `Query` variant named by `query_type`.

    Raises:
        UnsupportedQueryTypeError: if `query_type` names no known kind.
        QueryConstructionError: if `query_text` does not decode for that kind.
    """
    try:
        kind = QueryType(query_type)
    except ValueError:
        raise UnsupportedQueryTypeError(query_type) from None
    return QUERY_CONSTRUCTORS[kind](query_text)
