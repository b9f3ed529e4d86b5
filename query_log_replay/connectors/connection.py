"""
IOx Connection

Holds the gRPC channel to one IOx server and hands out the SQL (Flight) and
storage clients that run over it.
"""

import asyncio
import logging
from typing import Optional
from urllib.parse import urlsplit

import grpc

from query_log_replay.config import settings
from query_log_replay.connectors.flight_client import FlightSqlClient
from query_log_replay.connectors.storage_client import StorageClient
from query_log_replay.errors import IoxConnectionError

logger = logging.getLogger(__name__)


def parse_host(host: str) -> tuple[str, bool]:
    """
    Split a server address into a gRPC target and a TLS flag.

    "http://127.0.0.1:8082" -> ("127.0.0.1:8082", False)
    """
    if "://" not in host:
        host = f"http://{host}"
    parts = urlsplit(host)
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise IoxConnectionError(f"Invalid IOx address '{host}'")
    return parts.netloc, parts.scheme == "https"


class IoxConnection:
    """
    Connection to an IOx server with connect-time retry logic.

    Usage:
        async with IoxConnection("http://127.0.0.1:8082") as connection:
            client = connection.storage_client()
    """

    def __init__(
        self,
        host: str,
        connect_timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        retry_delay: Optional[float] = None,
    ):
        """
        Args:
            host: Server address, e.g. "http://127.0.0.1:8082"
            connect_timeout: Seconds to wait for the channel per attempt
            max_retries: Connection attempts before giving up
            retry_delay: Base delay between attempts (grows linearly)
        """
        self.host = host
        self.target, self.secure = parse_host(host)
        self.connect_timeout = (
            float(connect_timeout)
            if connect_timeout is not None
            else settings.IOX_CONNECT_TIMEOUT
        )
        self.max_retries = (
            int(max_retries) if max_retries is not None else settings.IOX_CONNECT_MAX_RETRIES
        )
        self.retry_delay = (
            float(retry_delay)
            if retry_delay is not None
            else settings.IOX_CONNECT_RETRY_DELAY
        )

        self._channel: Optional[grpc.aio.Channel] = None
        self._flight_client: Optional[FlightSqlClient] = None

    @property
    def flight_location(self) -> str:
        scheme = "grpc+tls" if self.secure else "grpc+tcp"
        return f"{scheme}://{self.target}"

    def _open_channel(self) -> grpc.aio.Channel:
        if self.secure:
            return grpc.aio.secure_channel(self.target, grpc.ssl_channel_credentials())
        return grpc.aio.insecure_channel(self.target)

    async def connect(self) -> None:
        """
        Open the channel and wait until it is ready.

        Raises:
            IoxConnectionError: if the server is unreachable after all retries.
        """
        if self._channel is not None:
            return

        logger.info(f"Connecting to {self.host}")
        for attempt in range(self.max_retries):
            channel = self._open_channel()
            try:
                await asyncio.wait_for(channel.channel_ready(), self.connect_timeout)
            except (asyncio.TimeoutError, grpc.RpcError) as e:
                await channel.close()
                if attempt < self.max_retries - 1:
                    logger.warning(
                        f"Connection attempt {attempt + 1} to {self.host} failed, "
                        f"retrying: {e!r}"
                    )
                    await asyncio.sleep(self.retry_delay * (attempt + 1))
                    continue
                logger.error(
                    f"Failed to connect to {self.host} after {self.max_retries} attempts"
                )
                raise IoxConnectionError(f"Can not connect to {self.host}") from e

            self._channel = channel
            logger.info(f"Connected to {self.host}")
            return

    def _require_channel(self) -> grpc.aio.Channel:
        if self._channel is None:
            raise IoxConnectionError(f"Not connected to {self.host}")
        return self._channel

    def storage_client(self) -> StorageClient:
        return StorageClient(self._require_channel())

    def flight_client(self) -> FlightSqlClient:
        self._require_channel()
        if self._flight_client is None:
            self._flight_client = FlightSqlClient(self.flight_location)
        return self._flight_client

    async def close(self) -> None:
        if self._flight_client is not None:
            self._flight_client.close()
            self._flight_client = None
        if self._channel is not None:
            await self._channel.close()
            self._channel = None

    async def __aenter__(self) -> "IoxConnection":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
