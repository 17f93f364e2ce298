"""Read-only descriptor tree for compiled protobuf schema files.

Every file owns a flat arena of nodes. Nodes refer to their parent and
children by index into that arena, so navigation works upwards and downwards
without any node owning another. Field and method type references cross file
boundaries, so they are stored as fully-qualified names and resolved through
the ``SchemaPool`` the file was registered with.

Trees are assembled with ``FileBuilder`` (see ``descriptor_loader`` and
``proto_parser``) and are never modified after ``FileBuilder.build()``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import PurePosixPath


class NodeKind(str, Enum):
    FILE = "file"
    MESSAGE = "message"
    FIELD = "field"
    ENUM = "enum"
    ENUM_VALUE = "enum_value"
    SERVICE = "service"
    METHOD = "method"

    def __str__(self) -> str:
        return self.value


# FieldDescriptorProto.Type numbers -> canonical kind labels
FIELD_KINDS = {
    1: "double",
    2: "float",
    3: "int64",
    4: "uint64",
    5: "int32",
    6: "fixed64",
    7: "fixed32",
    8: "bool",
    9: "string",
    10: "group",
    11: "message",
    12: "bytes",
    13: "uint32",
    14: "enum",
    15: "sfixed32",
    16: "sfixed64",
    17: "sint32",
    18: "sint64",
}

NON_PRIMITIVE_KINDS = {"enum", "message", "group"}

# FieldDescriptorProto.Label numbers
LABELS = {1: "optional", 2: "required", 3: "repeated"}


@dataclass(frozen=True)
class Comments:
    leading: str = ""
    trailing: str = ""
    leading_detached: tuple[str, ...] = ()

    def __str__(self) -> str:
        return self.leading

    def __bool__(self) -> bool:
        return bool(self.leading or self.trailing or self.leading_detached)


NO_COMMENTS = Comments()


class SchemaNode:
    kind: NodeKind

    def __init__(self, parent: SchemaNode | None, name: str, comments: Comments = NO_COMMENTS):
        if parent is None:
            self._arena: list[SchemaNode] = []
            self._parent: int | None = None
        else:
            self._arena = parent._arena
            self._parent = parent._index
        self._index = len(self._arena)
        self._children: list[int] = []
        self._name = name
        self._comments = comments
        self._arena.append(self)
        if parent is not None:
            parent._children.append(self._index)

    @property
    def name(self) -> str:
        return self._name

    @property
    def comments(self) -> Comments:
        return self._comments

    @property
    def parent(self) -> SchemaNode | None:
        if self._parent is None:
            return None
        return self._arena[self._parent]

    @property
    def children(self) -> tuple[SchemaNode, ...]:
        return tuple(self._arena[i] for i in self._children)

    @property
    def file(self) -> FileNode:
        return self._arena[0]  # type: ignore[return-value]

    @property
    def full_name(self) -> str:
        prefix = self.parent.full_name if self.parent is not None else ""
        return f"{prefix}.{self._name}" if prefix else self._name

    @property
    def referenced_type(self) -> SchemaNode | None:
        return None

    def _children_of(self, kind: NodeKind) -> tuple:
        return tuple(child for child in self.children if child.kind is kind)

    def __str__(self) -> str:
        return self._name

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.full_name or self._name}>"


class FileNode(SchemaNode):
    kind = NodeKind.FILE

    def __init__(
        self,
        pool: SchemaPool,
        path: str,
        package: str = "",
        syntax: str = "proto2",
        dependencies: tuple[str, ...] = (),
        comments: Comments = NO_COMMENTS,
    ):
        super().__init__(None, path, comments)
        self._pool = pool
        self.path = path
        self.package = package
        self.syntax = syntax
        self.dependencies = tuple(dependencies)

    @property
    def full_name(self) -> str:
        return self.package

    @property
    def pool(self) -> SchemaPool:
        return self._pool

    @property
    def messages(self) -> tuple[MessageNode, ...]:
        return self._children_of(NodeKind.MESSAGE)

    @property
    def enums(self) -> tuple[EnumNode, ...]:
        return self._children_of(NodeKind.ENUM)

    @property
    def services(self) -> tuple[ServiceNode, ...]:
        return self._children_of(NodeKind.SERVICE)

    @property
    def generated_filename_prefix(self) -> str:
        if self.path.endswith(".proto"):
            return self.path[: -len(".proto")]
        return self.path

    @property
    def stem(self) -> str:
        return PurePosixPath(self.path).stem

    def walk(self) -> tuple[SchemaNode, ...]:
        """All nodes of the file in declaration order, the file first."""
        return tuple(self._arena)

    def all_messages(self) -> tuple[MessageNode, ...]:
        return tuple(n for n in self._arena if n.kind is NodeKind.MESSAGE)

    def all_enums(self) -> tuple[EnumNode, ...]:
        return tuple(n for n in self._arena if n.kind is NodeKind.ENUM)


class MessageNode(SchemaNode):
    kind = NodeKind.MESSAGE

    def __init__(self, parent: SchemaNode, name: str, comments: Comments = NO_COMMENTS, is_map_entry: bool = False):
        super().__init__(parent, name, comments)
        self.is_map_entry = is_map_entry

    @property
    def fields(self) -> tuple[FieldNode, ...]:
        return self._children_of(NodeKind.FIELD)

    @property
    def messages(self) -> tuple[MessageNode, ...]:
        return self._children_of(NodeKind.MESSAGE)

    @property
    def enums(self) -> tuple[EnumNode, ...]:
        return self._children_of(NodeKind.ENUM)


class FieldNode(SchemaNode):
    kind = NodeKind.FIELD

    def __init__(
        self,
        parent: MessageNode,
        name: str,
        number: int,
        label: str,
        type_kind: str,
        type_name: str = "",
        oneof: str = "",
        default_value: str = "",
        comments: Comments = NO_COMMENTS,
    ):
        super().__init__(parent, name, comments)
        self.number = number
        self.label = label
        self.type_kind = type_kind
        self.type_name = type_name.lstrip(".")
        self.oneof = oneof
        self.default_value = default_value

    @property
    def message(self) -> MessageNode | None:
        if self.type_kind not in ("message", "group"):
            return None
        node = self.file.pool.find(self.type_name)
        return node if isinstance(node, MessageNode) else None

    @property
    def enum(self) -> EnumNode | None:
        if self.type_kind != "enum":
            return None
        node = self.file.pool.find(self.type_name)
        return node if isinstance(node, EnumNode) else None

    @property
    def referenced_type(self) -> SchemaNode | None:
        return self.message or self.enum

    @property
    def is_map(self) -> bool:
        message = self.message
        return self.label == "repeated" and message is not None and message.is_map_entry


class EnumNode(SchemaNode):
    kind = NodeKind.ENUM

    @property
    def values(self) -> tuple[EnumValueNode, ...]:
        return self._children_of(NodeKind.ENUM_VALUE)


class EnumValueNode(SchemaNode):
    kind = NodeKind.ENUM_VALUE

    def __init__(self, parent: EnumNode, name: str, number: int, comments: Comments = NO_COMMENTS):
        super().__init__(parent, name, comments)
        self.number = number


class ServiceNode(SchemaNode):
    kind = NodeKind.SERVICE

    @property
    def methods(self) -> tuple[MethodNode, ...]:
        return self._children_of(NodeKind.METHOD)


class MethodNode(SchemaNode):
    kind = NodeKind.METHOD

    def __init__(
        self,
        parent: ServiceNode,
        name: str,
        input_type: str,
        output_type: str,
        client_streaming: bool = False,
        server_streaming: bool = False,
        comments: Comments = NO_COMMENTS,
    ):
        super().__init__(parent, name, comments)
        self.input_type = input_type.lstrip(".")
        self.output_type = output_type.lstrip(".")
        self.client_streaming = client_streaming
        self.server_streaming = server_streaming

    def _resolve(self, name: str) -> MessageNode | None:
        node = self.file.pool.find(name)
        return node if isinstance(node, MessageNode) else None

    @property
    def input(self) -> MessageNode | None:
        return self._resolve(self.input_type)

    @property
    def output(self) -> MessageNode | None:
        return self._resolve(self.output_type)


class SchemaPool:
    """Every file of one run, indexed for type resolution by full name."""

    def __init__(self):
        self._files: dict[str, FileNode] = {}
        self._types: dict[str, SchemaNode] = {}

    def add(self, file: FileNode) -> None:
        self._files[file.path] = file
        for node in file.walk():
            if node.kind in (NodeKind.MESSAGE, NodeKind.ENUM):
                self._types[node.full_name] = node

    @property
    def files(self) -> tuple[FileNode, ...]:
        return tuple(self._files.values())

    def file(self, path: str) -> FileNode | None:
        return self._files.get(path)

    def find(self, full_name: str) -> SchemaNode | None:
        return self._types.get(full_name.lstrip("."))

    def __contains__(self, path: str) -> bool:
        return path in self._files


class FileBuilder:
    """Assembles one file's node tree and registers it with the pool."""

    def __init__(
        self,
        pool: SchemaPool,
        path: str,
        package: str = "",
        syntax: str = "proto2",
        dependencies: tuple[str, ...] = (),
        comments: Comments = NO_COMMENTS,
    ):
        self._pool = pool
        self.file = FileNode(pool, path, package, syntax, dependencies, comments)

    def message(self, parent: SchemaNode, name: str, comments: Comments = NO_COMMENTS, is_map_entry: bool = False) -> MessageNode:
        return MessageNode(parent, name, comments, is_map_entry)

    def field(self, message: MessageNode, name: str, number: int, label: str, type_kind: str, **kwargs) -> FieldNode:
        return FieldNode(message, name, number, label, type_kind, **kwargs)

    def enum(self, parent: SchemaNode, name: str, comments: Comments = NO_COMMENTS) -> EnumNode:
        return EnumNode(parent, name, comments)

    def enum_value(self, enum: EnumNode, name: str, number: int, comments: Comments = NO_COMMENTS) -> EnumValueNode:
        return EnumValueNode(enum, name, number, comments)

    def service(self, name: str, comments: Comments = NO_COMMENTS) -> ServiceNode:
        return ServiceNode(self.file, name, comments)

    def method(self, service: ServiceNode, name: str, input_type: str, output_type: str, **kwargs) -> MethodNode:
        return MethodNode(service, name, input_type, output_type, **kwargs)

    def build(self) -> FileNode:
        self._pool.add(self.file)
        return self.file
