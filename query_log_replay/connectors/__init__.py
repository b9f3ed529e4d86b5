"""
Clients for the IOx server: the connection, SQL over Arrow Flight, and the
storage gRPC read API.
"""

from query_log_replay.connectors.connection import IoxConnection, parse_host
from query_log_replay.connectors.flight_client import FlightSqlClient
from query_log_replay.connectors.storage_client import StorageClient

__all__ = ["IoxConnection", "parse_host", "FlightSqlClient", "StorageClient"]
