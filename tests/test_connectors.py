"""
Tests for the IOx connection and the Flight / storage clients.

Network calls are mocked; the tests cover request construction, result
streaming and how transport failures are reported.
"""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import grpc
import pyarrow as pa
import pytest

from query_log_replay.connectors import (
    FlightSqlClient,
    IoxConnection,
    StorageClient,
    parse_host,
)
from query_log_replay.errors import IoxConnectionError, QueryExecutionError
from query_log_replay.models.storage import (
    READ_FILTER_METHOD,
    Frame,
    ReadFilterRequest,
    ReadResponse,
)


def _chunk(data):
    chunk = MagicMock()
    chunk.data = data
    return chunk


# =============================================================================
# Flight SQL
# =============================================================================


class TestFlightSqlClient:
    """Tests for SQL over Arrow Flight."""

    def test_ticket_payload(self):
        ticket = FlightSqlClient.make_ticket("mydb", "select 1")
        assert json.loads(ticket.ticket) == {
            "database_name": "mydb",
            "sql_query": "select 1",
        }

    @pytest.mark.asyncio
    async def test_streams_batches(self, row_batch):
        reader = MagicMock()
        reader.read_chunk.side_effect = [
            _chunk(row_batch(2)),
            _chunk(None),
            _chunk(row_batch(3)),
            StopIteration(),
        ]

        with patch("query_log_replay.connectors.flight_client.flight.FlightClient") as cls:
            cls.return_value.do_get.return_value = reader
            client = FlightSqlClient("grpc+tcp://127.0.0.1:8082")
            batches = await client.collect("mydb", "select * from cpu")

        cls.assert_called_once_with("grpc+tcp://127.0.0.1:8082")
        assert [batch.num_rows for batch in batches] == [2, 3]
        ticket = cls.return_value.do_get.call_args.args[0]
        assert json.loads(ticket.ticket)["sql_query"] == "select * from cpu"

    @pytest.mark.asyncio
    async def test_empty_result(self):
        reader = MagicMock()
        reader.read_chunk.side_effect = StopIteration()

        with patch("query_log_replay.connectors.flight_client.flight.FlightClient") as cls:
            cls.return_value.do_get.return_value = reader
            client = FlightSqlClient("grpc+tcp://127.0.0.1:8082")
            assert await client.collect("mydb", "select 1") == []

    @pytest.mark.asyncio
    async def test_request_error_wrapped(self):
        with patch("query_log_replay.connectors.flight_client.flight.FlightClient") as cls:
            cls.return_value.do_get.side_effect = pa.ArrowInvalid("table 'cpu' not found")
            client = FlightSqlClient("grpc+tcp://127.0.0.1:8082")

            with pytest.raises(QueryExecutionError) as exc_info:
                await client.collect("mydb", "select * from cpu")

        assert str(exc_info.value) == (
            "Error running query against mydb: table 'cpu' not found"
        )
        assert isinstance(exc_info.value.__cause__, pa.ArrowInvalid)

    @pytest.mark.asyncio
    async def test_stream_error_wrapped(self, row_batch):
        reader = MagicMock()
        reader.read_chunk.side_effect = [
            _chunk(row_batch(1)),
            pa.ArrowInvalid("stream reset"),
        ]

        with patch("query_log_replay.connectors.flight_client.flight.FlightClient") as cls:
            cls.return_value.do_get.return_value = reader
            client = FlightSqlClient("grpc+tcp://127.0.0.1:8082")

            received = []
            with pytest.raises(QueryExecutionError, match="stream reset"):
                async for batch in client.perform_query("mydb", "select 1"):
                    received.append(batch)

        assert len(received) == 1

    def test_close(self):
        with patch("query_log_replay.connectors.flight_client.flight.FlightClient") as cls:
            FlightSqlClient("grpc+tcp://127.0.0.1:8082").close()
        cls.return_value.close.assert_called_once()


# =============================================================================
# Storage gRPC
# =============================================================================


def _channel_streaming(responses=(), error=None):
    channel = MagicMock()
    sent = []

    def _call(request):
        sent.append(request)

        async def _stream():
            for response in responses:
                yield response
            if error is not None:
                raise error

        return _stream()

    channel.unary_stream.return_value = _call
    return channel, sent


class TestStorageClient:
    """Tests for the storage read API client."""

    def test_registers_read_filter_method(self):
        channel, _ = _channel_streaming()
        StorageClient(channel)

        channel.unary_stream.assert_called_once_with(
            READ_FILTER_METHOD,
            request_serializer=ReadFilterRequest.SerializeToString,
            response_deserializer=ReadResponse.FromString,
        )
        assert READ_FILTER_METHOD == "/influxdata.platform.storage.Storage/ReadFilter"

    @pytest.mark.asyncio
    async def test_streams_responses(self):
        pages = [ReadResponse(frames=[Frame(series=b"\x01")]), ReadResponse()]
        channel, sent = _channel_streaming(responses=pages)
        client = StorageClient(channel)
        request = ReadFilterRequest()

        received = [page async for page in client.read_filter(request)]

        assert received == pages
        assert sent == [request]

    @pytest.mark.asyncio
    async def test_status_error_wrapped(self):
        error = grpc.aio.AioRpcError(
            code=grpc.StatusCode.NOT_FOUND,
            initial_metadata=grpc.aio.Metadata(),
            trailing_metadata=grpc.aio.Metadata(),
            details="bucket not found",
        )
        channel, _ = _channel_streaming(error=error)
        client = StorageClient(channel)

        with pytest.raises(QueryExecutionError) as exc_info:
            async for _ in client.read_filter(ReadFilterRequest()):
                pass

        assert str(exc_info.value) == (
            "Error making read_filter request: NOT_FOUND: bucket not found"
        )

    @pytest.mark.asyncio
    async def test_generic_rpc_error_wrapped(self):
        channel, _ = _channel_streaming(
            responses=[ReadResponse()], error=grpc.RpcError("connection reset")
        )
        client = StorageClient(channel)

        with pytest.raises(QueryExecutionError, match="Error making read_filter request"):
            async for _ in client.read_filter(ReadFilterRequest()):
                pass


# =============================================================================
# Connection
# =============================================================================


class TestParseHost:
    """Tests for server address handling."""

    @pytest.mark.parametrize(
        "host, expected",
        [
            ("http://127.0.0.1:8082", ("127.0.0.1:8082", False)),
            ("127.0.0.1:8082", ("127.0.0.1:8082", False)),
            ("https://iox.example.com:443", ("iox.example.com:443", True)),
            ("http://localhost:8082/", ("localhost:8082", False)),
        ],
    )
    def test_valid(self, host, expected):
        assert parse_host(host) == expected

    @pytest.mark.parametrize("host", ["ftp://127.0.0.1:21", "http://", ""])
    def test_invalid(self, host):
        with pytest.raises(IoxConnectionError, match="Invalid IOx address"):
            parse_host(host)


def _mock_channel(ready_side_effect=None):
    channel = MagicMock()
    channel.channel_ready = AsyncMock(side_effect=ready_side_effect)
    channel.close = AsyncMock()
    return channel


class TestIoxConnection:
    """Tests for connecting and handing out clients."""

    def test_flight_location(self):
        assert (
            IoxConnection("http://127.0.0.1:8082").flight_location
            == "grpc+tcp://127.0.0.1:8082"
        )
        assert (
            IoxConnection("https://iox.example.com:443").flight_location
            == "grpc+tls://iox.example.com:443"
        )

    def test_defaults_from_settings(self):
        connection = IoxConnection("http://127.0.0.1:8082")
        assert connection.connect_timeout > 0
        assert connection.max_retries >= 1

    def test_clients_require_connect(self):
        connection = IoxConnection("http://127.0.0.1:8082")

        with pytest.raises(IoxConnectionError, match="Not connected"):
            connection.storage_client()
        with pytest.raises(IoxConnectionError, match="Not connected"):
            connection.flight_client()

    @pytest.mark.asyncio
    async def test_connect_and_close(self):
        channel = _mock_channel()

        with patch(
            "query_log_replay.connectors.connection.grpc.aio.insecure_channel",
            return_value=channel,
        ) as open_channel, patch(
            "query_log_replay.connectors.flight_client.flight.FlightClient"
        ) as flight_cls:
            async with IoxConnection("http://127.0.0.1:8082") as connection:
                assert isinstance(connection.storage_client(), StorageClient)
                flight_client = connection.flight_client()
                assert connection.flight_client() is flight_client

        open_channel.assert_called_once_with("127.0.0.1:8082")
        flight_cls.assert_called_once_with("grpc+tcp://127.0.0.1:8082")
        flight_cls.return_value.close.assert_called_once()
        channel.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_connect_retries_then_succeeds(self):
        channel = _mock_channel(ready_side_effect=[grpc.RpcError(), None])

        with patch(
            "query_log_replay.connectors.connection.grpc.aio.insecure_channel",
            return_value=channel,
        ) as open_channel:
            connection = IoxConnection(
                "http://127.0.0.1:8082", max_retries=3, retry_delay=0
            )
            await connection.connect()

        assert open_channel.call_count == 2
        assert channel.close.await_count == 1
        assert isinstance(connection.storage_client(), StorageClient)

    @pytest.mark.asyncio
    async def test_connect_gives_up(self, caplog):
        channel = _mock_channel(ready_side_effect=TimeoutError())

        with patch(
            "query_log_replay.connectors.connection.grpc.aio.insecure_channel",
            return_value=channel,
        ) as open_channel:
            connection = IoxConnection(
                "http://127.0.0.1:8082", max_retries=3, retry_delay=0
            )
            with caplog.at_level("WARNING", logger="query_log_replay.connectors.connection"):
                with pytest.raises(IoxConnectionError, match="Can not connect to"):
                    await connection.connect()

        assert open_channel.call_count == 3
        assert channel.close.await_count == 3
        with pytest.raises(IoxConnectionError):
            connection.storage_client()
        assert "Connection attempt 1 to http://127.0.0.1:8082 failed, retrying" in caplog.text
        assert "Failed to connect to http://127.0.0.1:8082 after 3 attempts" in caplog.text
