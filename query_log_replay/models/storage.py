"""
Storage RPC Wire Types

Protobuf message classes for the IOx storage read path (`ReadFilter`).

The classes are built at import time from descriptors instead of generated
`_pb2` modules, so the package carries no protoc build step. Only the parts
of the storage protocol that replay needs are described:

- `ReadSource`: the (org_id, bucket_id, partition_id) address triple
- `ReadSourceEnvelope`: the opaque wrapper around an encoded `ReadSource`
  (wire compatible with `google.protobuf.Any`, but serialized to JSON as a
  plain `{"typeUrl": ..., "value": ...}` object, which is how the server
  records it in `system.queries`)
- `ReadFilterRequest` with its range and predicate tree
- `ReadResponse` / `Frame`, where every frame payload is kept as opaque
  bytes because replay only counts frames
"""

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory

PACKAGE = "influxdata.platform.storage"

# gRPC path of the server-streaming ReadFilter call
READ_FILTER_METHOD = f"/{PACKAGE}.Storage/ReadFilter"

_Field = descriptor_pb2.FieldDescriptorProto


def _json_name(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def _add_field(
    message: descriptor_pb2.DescriptorProto,
    name: str,
    number: int,
    field_type: int,
    *,
    type_name: str | None = None,
    repeated: bool = False,
    json_name: str | None = None,
    oneof_index: int | None = None,
) -> None:
    field = message.field.add(
        name=name,
        number=number,
        type=field_type,
        label=_Field.LABEL_REPEATED if repeated else _Field.LABEL_OPTIONAL,
        json_name=json_name or _json_name(name),
    )
    if type_name is not None:
        field.type_name = f".{PACKAGE}.{type_name}"
    if oneof_index is not None:
        field.oneof_index = oneof_index


def _add_enum(
    parent: descriptor_pb2.DescriptorProto, name: str, values: list[str]
) -> None:
    enum = parent.enum_type.add(name=name)
    for number, value in enumerate(values):
        enum.value.add(name=value, number=number)


def _build_file() -> descriptor_pb2.FileDescriptorProto:
    proto = descriptor_pb2.FileDescriptorProto(
        name="influxdata/platform/storage/replay.proto",
        package=PACKAGE,
        syntax="proto3",
    )

    read_source = proto.message_type.add(name="ReadSource")
    _add_field(read_source, "org_id", 1, _Field.TYPE_UINT64)
    _add_field(read_source, "bucket_id", 2, _Field.TYPE_UINT64)
    _add_field(read_source, "partition_id", 3, _Field.TYPE_UINT64)

    envelope = proto.message_type.add(name="ReadSourceEnvelope")
    _add_field(envelope, "type_url", 1, _Field.TYPE_STRING)
    _add_field(envelope, "value", 2, _Field.TYPE_BYTES)

    timestamp_range = proto.message_type.add(name="TimestampRange")
    _add_field(timestamp_range, "start", 1, _Field.TYPE_INT64)
    _add_field(timestamp_range, "end", 2, _Field.TYPE_INT64)

    node = proto.message_type.add(name="Node")
    _add_enum(
        node,
        "Type",
        [
            "TYPE_LOGICAL_EXPRESSION",
            "TYPE_COMPARISON_EXPRESSION",
            "TYPE_PAREN_EXPRESSION",
            "TYPE_TAG_REF",
            "TYPE_LITERAL",
            "TYPE_FIELD_REF",
        ],
    )
    _add_enum(
        node,
        "Comparison",
        [
            "COMPARISON_EQUAL",
            "COMPARISON_NOT_EQUAL",
            "COMPARISON_STARTS_WITH",
            "COMPARISON_REGEX",
            "COMPARISON_NOT_REGEX",
            "COMPARISON_LT",
            "COMPARISON_LTE",
            "COMPARISON_GT",
            "COMPARISON_GTE",
        ],
    )
    _add_enum(node, "Logical", ["LOGICAL_AND", "LOGICAL_OR"])
    node.oneof_decl.add(name="value")
    _add_field(node, "node_type", 1, _Field.TYPE_ENUM, type_name="Node.Type")
    _add_field(node, "children", 2, _Field.TYPE_MESSAGE, type_name="Node", repeated=True)
    _add_field(node, "string_value", 3, _Field.TYPE_STRING, oneof_index=0)
    _add_field(node, "bool_value", 4, _Field.TYPE_BOOL, oneof_index=0)
    _add_field(node, "int_value", 5, _Field.TYPE_INT64, oneof_index=0)
    _add_field(node, "uint_value", 6, _Field.TYPE_UINT64, oneof_index=0)
    _add_field(node, "float_value", 7, _Field.TYPE_DOUBLE, oneof_index=0)
    _add_field(node, "regex_value", 8, _Field.TYPE_STRING, oneof_index=0)
    _add_field(node, "tag_ref_value", 9, _Field.TYPE_STRING, oneof_index=0)
    _add_field(node, "field_ref_value", 10, _Field.TYPE_STRING, oneof_index=0)
    _add_field(
        node, "logical", 11, _Field.TYPE_ENUM, type_name="Node.Logical", oneof_index=0
    )
    _add_field(
        node,
        "comparison",
        12,
        _Field.TYPE_ENUM,
        type_name="Node.Comparison",
        oneof_index=0,
    )

    predicate = proto.message_type.add(name="Predicate")
    _add_field(predicate, "root", 1, _Field.TYPE_MESSAGE, type_name="Node")

    request = proto.message_type.add(name="ReadFilterRequest")
    _add_field(
        request,
        "read_source",
        1,
        _Field.TYPE_MESSAGE,
        type_name="ReadSourceEnvelope",
        json_name="ReadSource",
    )
    _add_field(request, "range", 2, _Field.TYPE_MESSAGE, type_name="TimestampRange")
    _add_field(request, "predicate", 3, _Field.TYPE_MESSAGE, type_name="Predicate")

    frame = proto.message_type.add(name="Frame")
    frame.oneof_decl.add(name="data")
    for number, name in enumerate(
        [
            "series",
            "float_points",
            "integer_points",
            "unsigned_points",
            "boolean_points",
            "string_points",
            "group",
        ],
        start=1,
    ):
        _add_field(frame, name, number, _Field.TYPE_BYTES, oneof_index=0)

    response = proto.message_type.add(name="ReadResponse")
    _add_field(response, "frames", 1, _Field.TYPE_MESSAGE, type_name="Frame", repeated=True)

    return proto


_pool = descriptor_pool.DescriptorPool()
_pool.AddSerializedFile(_build_file().SerializeToString())


def _message_class(name: str):
    return message_factory.GetMessageClass(_pool.FindMessageTypeByName(f"{PACKAGE}.{name}"))


ReadSource = _message_class("ReadSource")
ReadSourceEnvelope = _message_class("ReadSourceEnvelope")
TimestampRange = _message_class("TimestampRange")
Node = _message_class("Node")
Predicate = _message_class("Predicate")
ReadFilterRequest = _message_class("ReadFilterRequest")
Frame = _message_class("Frame")
ReadResponse = _message_class("ReadResponse")
