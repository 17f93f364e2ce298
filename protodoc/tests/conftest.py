from __future__ import annotations

import pytest
from google.protobuf import descriptor_pb2

from protodoc.descriptor_loader import load_file_descriptors

FieldProto = descriptor_pb2.FieldDescriptorProto


def _comment(proto: descriptor_pb2.FileDescriptorProto, path: list[int], leading: str = "", trailing: str = ""):
    location = proto.source_code_info.location.add(path=path)
    if leading:
        location.leading_comments = leading
    if trailing:
        location.trailing_comments = trailing


def build_user_proto() -> descriptor_pb2.FileDescriptorProto:
    """acme/user.proto: a message with nested enum, a map, a oneof and a service."""
    proto = descriptor_pb2.FileDescriptorProto(name="acme/user.proto", package="acme.v1", syntax="proto3")
    proto.dependency.append("acme/common.proto")

    user = proto.message_type.add(name="User")
    user.field.add(name="id", number=1, label=FieldProto.LABEL_OPTIONAL, type=FieldProto.TYPE_STRING)
    user.field.add(
        name="status",
        number=2,
        label=FieldProto.LABEL_OPTIONAL,
        type=FieldProto.TYPE_ENUM,
        type_name=".acme.v1.User.Status",
    )
    user.field.add(
        name="address",
        number=3,
        label=FieldProto.LABEL_OPTIONAL,
        type=FieldProto.TYPE_MESSAGE,
        type_name=".acme.common.Address",
    )
    user.field.add(
        name="labels",
        number=4,
        label=FieldProto.LABEL_REPEATED,
        type=FieldProto.TYPE_MESSAGE,
        type_name=".acme.v1.User.LabelsEntry",
    )
    user.field.add(name="email", number=5, label=FieldProto.LABEL_OPTIONAL, type=FieldProto.TYPE_STRING, oneof_index=0)
    user.field.add(name="phone", number=6, label=FieldProto.LABEL_OPTIONAL, type=FieldProto.TYPE_STRING, oneof_index=0)
    user.oneof_decl.add(name="contact")

    entry = user.nested_type.add(name="LabelsEntry")
    entry.options.map_entry = True
    entry.field.add(name="key", number=1, label=FieldProto.LABEL_OPTIONAL, type=FieldProto.TYPE_STRING)
    entry.field.add(name="value", number=2, label=FieldProto.LABEL_OPTIONAL, type=FieldProto.TYPE_STRING)

    status = user.enum_type.add(name="Status")
    status.value.add(name="STATUS_UNKNOWN", number=0)
    status.value.add(name="STATUS_ACTIVE", number=1)

    request = proto.message_type.add(name="GetUserRequest")
    request.field.add(name="id", number=1, label=FieldProto.LABEL_OPTIONAL, type=FieldProto.TYPE_STRING)

    service = proto.service.add(name="UserService")
    service.method.add(name="GetUser", input_type=".acme.v1.GetUserRequest", output_type=".acme.v1.User")
    service.method.add(
        name="WatchUsers",
        input_type=".acme.v1.GetUserRequest",
        output_type=".acme.v1.User",
        server_streaming=True,
    )

    _comment(proto, [12], leading=" User directory API.\n")
    _comment(proto, [4, 0], leading=" A registered user.\n Users are unique by id.\n")
    _comment(proto, [4, 0, 2, 0], leading=" Unique id.\n", trailing=" immutable\n")
    _comment(proto, [4, 0, 2, 1], leading=" @exclude internal lifecycle state\n")
    _comment(proto, [4, 0, 4, 0, 2, 1], leading=" The user can sign in.\n")
    _comment(proto, [6, 0], leading=" Looks up users.\n")
    _comment(proto, [6, 0, 2, 0], leading=" Fetch one user by id.\n")
    return proto


def build_common_proto() -> descriptor_pb2.FileDescriptorProto:
    proto = descriptor_pb2.FileDescriptorProto(name="acme/common.proto", package="acme.common", syntax="proto3")
    address = proto.message_type.add(name="Address")
    address.field.add(name="street", number=1, label=FieldProto.LABEL_OPTIONAL, type=FieldProto.TYPE_STRING)
    address.field.add(name="zip", number=2, label=FieldProto.LABEL_OPTIONAL, type=FieldProto.TYPE_UINT32)
    _comment(proto, [4, 0], leading=" Postal address.\n")
    return proto


@pytest.fixture
def user_proto() -> descriptor_pb2.FileDescriptorProto:
    return build_user_proto()


@pytest.fixture
def pool():
    return load_file_descriptors([build_common_proto(), build_user_proto()])


@pytest.fixture
def user_file(pool):
    return pool.file("acme/user.proto")


@pytest.fixture
def user_message(user_file):
    return user_file.messages[0]
