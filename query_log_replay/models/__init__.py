"""
Data models for query log replay.

This package contains:
- Query kinds captured in `system.queries` and their construction
- Storage RPC wire types and read source addressing
- Execution timing records and summaries
- The in-memory query log
"""

from query_log_replay.models.execution import (
    QueryExecution,
    QueryExecutionBuilder,
    QueryExecutionSummary,
    QueryExecutionSummaryBuilder,
)

from query_log_replay.models.query import (
    QUERY_CONSTRUCTORS,
    Query,
    QueryType,
    ReadFilterQuery,
    SqlQuery,
    StorageRpcQuery,
    construct_query,
)

from query_log_replay.models.query_log import (
    QueryLog,
    QueryRow,
)

from query_log_replay.models.read_source import (
    PARTITION_ID_SENTINEL,
    PLACEHOLDER_TYPE_URL,
    make_read_source,
    parse_database_name,
)

__all__ = [
    # execution
    "QueryExecution",
    "QueryExecutionBuilder",
    "QueryExecutionSummary",
    "QueryExecutionSummaryBuilder",
    # query
    "QUERY_CONSTRUCTORS",
    "Query",
    "QueryType",
    "ReadFilterQuery",
    "SqlQuery",
    "StorageRpcQuery",
    "construct_query",
    # query_log
    "QueryLog",
    "QueryRow",
    # read_source
    "PARTITION_ID_SENTINEL",
    "PLACEHOLDER_TYPE_URL",
    "make_read_source",
    "parse_database_name",
]
