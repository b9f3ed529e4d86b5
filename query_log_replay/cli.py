"""
Save the contents of the `system.queries` system table to a file, then
replay those queries against other IOx servers.

Examples:
    # Save query logs to a file (queries.json)
    query_log_replay --host http://localhost:8082 save my_db queries.json

    # Replay the queries in queries.json against 0000111100001111_0000222200002222
    query_log_replay --host http://localhost:8082 replay 0000111100001111_0000222200002222 queries.json
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Optional, Sequence

from query_log_replay.config import settings
from query_log_replay.connectors import IoxConnection
from query_log_replay.core.replay import replay_file
from query_log_replay.core.save import save_queries
from query_log_replay.errors import QueryReplayError

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="query_log_replay",
        description=__doc__,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--host",
        default=settings.IOX_ADDR,
        help="gRPC address of IOx server to connect to (env: IOX_ADDR).",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    save = commands.add_parser(
        "save", help="Save the contents of system.queries to a JSON formatted file."
    )
    save.add_argument("db", help="The database name.")
    save.add_argument("filename", help="The filename to save the queries to.")

    replay = commands.add_parser(
        "replay",
        help="Replay previously saved queries from a file back to a database.",
    )
    replay.add_argument("db", help="The database name to replay the queries against.")
    replay.add_argument("filename", help="The filename to replay the queries from.")
    return parser


def _configure_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format=settings.LOG_FORMAT,
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler(settings.LOG_FILE)
            if settings.LOG_FILE
            else logging.NullHandler(),
        ],
    )
    # gRPC core is chatty about channel state changes
    logging.getLogger("grpc").setLevel(logging.WARNING)


async def _run(args: argparse.Namespace) -> None:
    async with IoxConnection(args.host) as connection:
        if args.command == "save":
            await save_queries(connection, args.db, args.filename)
        elif args.command == "replay":
            await replay_file(connection, args.db, args.filename)
        else:
            raise ValueError(f"Unknown command: {args.command}")


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    _configure_logging()

    logger.info("InfluxDB IOx Query Replay Tool... online")
    try:
        asyncio.run(_run(args))
    except QueryReplayError as e:
        logger.debug("Command %s failed", args.command, exc_info=True)
        print(f"Failure: {e}")
        return 1
    except KeyboardInterrupt:
        print("[query_log_replay] interrupted", file=sys.stderr)
        return 130

    print("Success")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
