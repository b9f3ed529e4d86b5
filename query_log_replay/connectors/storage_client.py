"""
Storage gRPC Client

Thin client for the IOx storage read API. Responses are yielded page by
page as the server streams them.
"""

import logging
from collections.abc import AsyncIterator
from typing import Any

import grpc

from query_log_replay.errors import QueryExecutionError
from query_log_replay.models.storage import (
    READ_FILTER_METHOD,
    ReadFilterRequest,
    ReadResponse,
)

logger = logging.getLogger(__name__)


class StorageClient:
    """Client for `influxdata.platform.storage.Storage`."""

    def __init__(self, channel: grpc.aio.Channel):
        self._read_filter = channel.unary_stream(
            READ_FILTER_METHOD,
            request_serializer=ReadFilterRequest.SerializeToString,
            response_deserializer=ReadResponse.FromString,
        )

    async def read_filter(self, request: Any) -> AsyncIterator[Any]:
        """
        Send a `ReadFilterRequest`, yielding each `ReadResponse`.

        Raises:
            QueryExecutionError: if the call fails or the stream breaks.
        """
        try:
            async for response in self._read_filter(request):
                yield response
        except grpc.RpcError as e:
            raise QueryExecutionError(
                f"Error making read_filter request: {_describe_rpc_error(e)}"
            ) from e


def _describe_rpc_error(error: grpc.RpcError) -> str:
    if isinstance(error, grpc.aio.AioRpcError):
        return f"{error.code().name}: {error.details()}"
    return str(error)
