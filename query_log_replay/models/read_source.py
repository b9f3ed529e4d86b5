"""
Read source addressing for storage requests.

Storage requests carry their target as an encoded `ReadSource`
(org_id, bucket_id, partition_id) inside an opaque envelope. Replaying
against another database means deriving a new triple from the database name
and re-wrapping it; everything that knows about the envelope format lives
here.
"""

import re

from google.protobuf.message import DecodeError

from query_log_replay.errors import DatabaseNameError, ReadSourceDecodeError
from query_log_replay.models.storage import ReadSource, ReadSourceEnvelope

# Not a resolvable type URL; the server only decodes the envelope value.
PLACEHOLDER_TYPE_URL = "/placeholder"

# Partition routing is resolved server side, so replay always sends u32::MAX
PARTITION_ID_SENTINEL = 0xFFFFFFFF

U64_MAX = 2**64 - 1

_HEX_RE = re.compile(r"[0-9a-fA-F]+")


def _parse_id(value: str, label: str) -> int:
    if _HEX_RE.fullmatch(value) is None or int(value, 16) > U64_MAX:
        raise DatabaseNameError(
            f"Can not parse {label} '{value}' into u64, required for storage rpc requests"
        )
    return int(value, 16)


def parse_database_name(database_name: str) -> tuple[int, int]:
    """
    Split `<org_id_hex>_<bucket_id_hex>` into its two ids.

    Raises:
        DatabaseNameError: if either component is missing or not hex, or if
            anything follows the bucket component.
    """
    org, sep, rest = database_name.partition("_")
    if not org:
        raise DatabaseNameError(f"Can not find org name in {database_name}")
    org_id = _parse_id(org, "org_id")

    if not sep:
        raise DatabaseNameError(
            f"Can not find bucket name after a '_' in {database_name}"
        )
    bucket, sep, trailing = rest.partition("_")
    bucket_id = _parse_id(bucket, "bucket_id")

    if sep:
        next_part = trailing.split("_", 1)[0]
        raise DatabaseNameError(
            f"Extra trailing content '{next_part}' after org and bucket in {database_name}"
        )

    return org_id, bucket_id


def make_read_source(database_name: str):
    """Build the `ReadSourceEnvelope` addressing `database_name`."""
    org_id, bucket_id = parse_database_name(database_name)
    read_source = ReadSource(
        org_id=org_id,
        bucket_id=bucket_id,
        partition_id=PARTITION_ID_SENTINEL,
    )
    return ReadSourceEnvelope(
        type_url=PLACEHOLDER_TYPE_URL,
        value=read_source.SerializeToString(),
    )


def decode_read_source(envelope):
    """
    Decode the `ReadSource` carried by an envelope.

    Raises:
        ReadSourceDecodeError: if the envelope value is not a `ReadSource`.
    """
    read_source = ReadSource()
    try:
        read_source.ParseFromString(envelope.value)
    except DecodeError as e:
        raise ReadSourceDecodeError(
            f"value could not be parsed as a ReadSource message: {e}"
        ) from e
    return read_source
