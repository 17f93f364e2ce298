"""Build descriptor trees from protobuf ``FileDescriptorProto`` messages.

These are what protoc hands to a plugin in a ``CodeGeneratorRequest`` and
what ``protoc --descriptor_set_out`` writes to disk. Comments come from
``source_code_info``, keyed by the location path protoc records for each
declaration.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

from google.protobuf import descriptor_pb2
from google.protobuf.message import DecodeError

from protodoc.descriptor import (
    FIELD_KINDS,
    LABELS,
    NO_COMMENTS,
    Comments,
    FileBuilder,
    FileNode,
    SchemaNode,
    SchemaPool,
)
from protodoc.errors import ConfigError

log = logging.getLogger(__name__)

# Field numbers used in SourceCodeInfo.Location.path
FILE_MESSAGE_TYPE = 4
FILE_ENUM_TYPE = 5
FILE_SERVICE = 6
FILE_SYNTAX = 12
MESSAGE_FIELD = 2
MESSAGE_NESTED_TYPE = 3
MESSAGE_ENUM_TYPE = 4
ENUM_VALUE = 2
SERVICE_METHOD = 2


def _comment_index(proto: descriptor_pb2.FileDescriptorProto) -> dict[tuple[int, ...], Comments]:
    index: dict[tuple[int, ...], Comments] = {}
    for location in proto.source_code_info.location:
        if not (
            location.HasField("leading_comments")
            or location.HasField("trailing_comments")
            or location.leading_detached_comments
        ):
            continue
        index[tuple(location.path)] = Comments(
            leading=location.leading_comments,
            trailing=location.trailing_comments,
            leading_detached=tuple(location.leading_detached_comments),
        )
    return index


def _add_enum(
    builder: FileBuilder,
    parent: SchemaNode,
    proto: descriptor_pb2.EnumDescriptorProto,
    path: tuple[int, ...],
    comments: dict[tuple[int, ...], Comments],
) -> None:
    enum = builder.enum(parent, proto.name, comments.get(path, NO_COMMENTS))
    for i, value in enumerate(proto.value):
        builder.enum_value(enum, value.name, value.number, comments.get(path + (ENUM_VALUE, i), NO_COMMENTS))


def _add_message(
    builder: FileBuilder,
    parent: SchemaNode,
    proto: descriptor_pb2.DescriptorProto,
    path: tuple[int, ...],
    comments: dict[tuple[int, ...], Comments],
) -> None:
    message = builder.message(
        parent,
        proto.name,
        comments.get(path, NO_COMMENTS),
        is_map_entry=proto.options.map_entry,
    )
    oneofs = [oneof.name for oneof in proto.oneof_decl]

    for i, field in enumerate(proto.field):
        # proto3 `optional` is modelled as a synthetic single-member oneof
        oneof = ""
        if field.HasField("oneof_index") and not field.proto3_optional:
            oneof = oneofs[field.oneof_index]
        builder.field(
            message,
            field.name,
            field.number,
            LABELS.get(field.label, "optional"),
            FIELD_KINDS.get(field.type, "unknown"),
            type_name=field.type_name,
            oneof=oneof,
            default_value=field.default_value,
            comments=comments.get(path + (MESSAGE_FIELD, i), NO_COMMENTS),
        )

    for i, nested in enumerate(proto.nested_type):
        _add_message(builder, message, nested, path + (MESSAGE_NESTED_TYPE, i), comments)
    for i, enum in enumerate(proto.enum_type):
        _add_enum(builder, message, enum, path + (MESSAGE_ENUM_TYPE, i), comments)


def load_file_descriptor(proto: descriptor_pb2.FileDescriptorProto, pool: SchemaPool) -> FileNode:
    """Convert one FileDescriptorProto and register it with ``pool``."""
    comments = _comment_index(proto)
    builder = FileBuilder(
        pool,
        proto.name,
        package=proto.package,
        syntax=proto.syntax or "proto2",
        dependencies=tuple(proto.dependency),
        comments=comments.get((FILE_SYNTAX,), NO_COMMENTS),
    )

    for i, message in enumerate(proto.message_type):
        _add_message(builder, builder.file, message, (FILE_MESSAGE_TYPE, i), comments)
    for i, enum in enumerate(proto.enum_type):
        _add_enum(builder, builder.file, enum, (FILE_ENUM_TYPE, i), comments)

    for i, service_proto in enumerate(proto.service):
        path = (FILE_SERVICE, i)
        service = builder.service(service_proto.name, comments.get(path, NO_COMMENTS))
        for j, method in enumerate(service_proto.method):
            builder.method(
                service,
                method.name,
                method.input_type,
                method.output_type,
                client_streaming=method.client_streaming,
                server_streaming=method.server_streaming,
                comments=comments.get(path + (SERVICE_METHOD, j), NO_COMMENTS),
            )

    return builder.build()


def load_file_descriptors(
    protos: Iterable[descriptor_pb2.FileDescriptorProto], pool: SchemaPool | None = None
) -> SchemaPool:
    pool = pool if pool is not None else SchemaPool()
    for proto in protos:
        load_file_descriptor(proto, pool)
    log.debug("Loaded %d descriptor files", len(pool.files))
    return pool


def read_descriptor_set(path: Path) -> SchemaPool:
    """Load a serialized FileDescriptorSet (protoc --descriptor_set_out)."""
    try:
        descriptor_set = descriptor_pb2.FileDescriptorSet.FromString(path.read_bytes())
    except DecodeError as err:
        raise ConfigError(f"{path} is not a serialized FileDescriptorSet: {err}") from err
    return load_file_descriptors(descriptor_set.file)
