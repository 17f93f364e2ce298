"""Parse proto2/proto3 .proto files into descriptor trees.

This is the stand-alone front end used when protoc is not in the loop. Parsing
happens in two passes: ``parse_proto_file`` turns one file into plain dicts
(declarations, raw type names, comments), then ``parse_proto_files`` resolves
type names across every parsed file and builds the immutable node trees.

Comments are attached the way protoc records them in ``SourceCodeInfo``: the
comment block directly above a declaration is its leading comment, a comment
on the same line after it is its trailing comment, and blocks separated from
the declaration by a blank line are detached.
"""

from __future__ import annotations

import ast
import importlib
import logging
import re
from collections import deque
from dataclasses import dataclass
from pathlib import Path

from google.protobuf import descriptor_pb2

from protodoc.descriptor import NO_COMMENTS, Comments, FileBuilder, FileNode, SchemaNode, SchemaPool
from protodoc.descriptor_loader import load_file_descriptor
from protodoc.errors import ProtoSyntaxError

log = logging.getLogger(__name__)

BASE_TYPES = {
    "double",
    "float",
    "int32",
    "int64",
    "uint32",
    "uint64",
    "sint32",
    "sint64",
    "fixed32",
    "fixed64",
    "sfixed32",
    "sfixed64",
    "bool",
    "string",
    "bytes",
}

LABELS = {"optional", "required", "repeated"}

TOKEN_PATTERN = re.compile(
    r"""
    (?P<line_comment>//[^\n]*)
    |(?P<block_comment>/\*.*?\*/)
    |(?P<string>"(?:[^"\\\n]|\\.)*"|'(?:[^'\\\n]|\\.)*')
    |(?P<number>-?0[xX][0-9a-fA-F]+|-?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)
    |(?P<ident>\.?[A-Za-z_][\w.]*)
    |(?P<symbol>[{}\[\]()<>;,=:\-+])
    |(?P<newline>\n)
    |(?P<space>[ \t\r\f\v]+)
    """,
    re.VERBOSE | re.DOTALL,
)
BLOCK_COMMENT_MARGIN = re.compile(r"^[ \t]*\*?")


@dataclass
class _Token:
    kind: str
    value: str
    line: int
    leading: str = ""
    trailing: str = ""
    detached: tuple[str, ...] = ()


@dataclass
class _CommentBlock:
    text: str
    start_line: int
    end_line: int
    is_line_comment: bool


def _block_comment_text(raw: str) -> str:
    lines = raw[2:-2].split("\n")
    return "\n".join([lines[0]] + [BLOCK_COMMENT_MARGIN.sub("", line, count=1) for line in lines[1:]])


def _attach_comments(tokens: list[_Token], preceding: list[list[_CommentBlock]], tail: list[_CommentBlock]) -> None:
    for i, token in enumerate(tokens):
        blocks = list(preceding[i])
        if i > 0 and blocks and blocks[0].start_line == tokens[i - 1].line:
            tokens[i - 1].trailing = blocks.pop(0).text
        if blocks and blocks[-1].end_line >= token.line - 1:
            token.leading = blocks.pop().text
        token.detached = tuple(block.text for block in blocks)
    if tokens and tail and tail[0].start_line == tokens[-1].line:
        tokens[-1].trailing = tail[0].text


def _tokenize(path: str, content: str) -> list[_Token]:
    tokens: list[_Token] = []
    preceding: list[list[_CommentBlock]] = []
    pending: list[_CommentBlock] = []
    line = 1
    pos = 0

    while pos < len(content):
        match = TOKEN_PATTERN.match(content, pos)
        if match is None:
            raise ProtoSyntaxError(path, line, f"unexpected character {content[pos]!r}")
        kind = match.lastgroup
        value = match.group()

        if kind == "line_comment":
            text = value[2:].rstrip("\r") + "\n"
            last_code_line = tokens[-1].line if tokens else 0
            if (
                pending
                and pending[-1].is_line_comment
                and pending[-1].end_line == line - 1
                and pending[-1].start_line != last_code_line
            ):
                previous = pending[-1]
                pending[-1] = _CommentBlock(previous.text + text, previous.start_line, line, True)
            else:
                pending.append(_CommentBlock(text, line, line, True))
        elif kind == "block_comment":
            pending.append(_CommentBlock(_block_comment_text(value), line, line + value.count("\n"), False))
        elif kind not in ("newline", "space"):
            tokens.append(_Token(kind, value, line))
            preceding.append(pending)
            pending = []

        line += value.count("\n")
        pos = match.end()

    _attach_comments(tokens, preceding, pending)
    return tokens


def _new_message(name: str, comments: Comments, map_entry: bool = False) -> dict:
    return {
        "name": name,
        "comments": comments,
        "fields": [],
        "messages": [],
        "enums": [],
        "map_entry": map_entry,
    }


def _new_field(name: str, number: int, label: str, type_name: str, line: int, **extra) -> dict:
    field = {
        "name": name,
        "number": number,
        "label": label,
        "type": type_name,
        "kind": None,
        "oneof": "",
        "default": "",
        "comments": NO_COMMENTS,
        "line": line,
    }
    field.update(extra)
    return field


def _map_entry_name(field_name: str) -> str:
    return "".join(part[:1].upper() + part[1:] for part in field_name.split("_")) + "Entry"


class _Parser:
    def __init__(self, path: str, content: str):
        self.path = path
        self.tokens = _tokenize(path, content)
        self.pos = 0

    # -- token helpers --

    def _peek(self, offset: int = 0) -> _Token | None:
        index = self.pos + offset
        return self.tokens[index] if index < len(self.tokens) else None

    def _error(self, message: str) -> ProtoSyntaxError:
        token = self._peek() or (self.tokens[-1] if self.tokens else None)
        return ProtoSyntaxError(self.path, token.line if token else 1, message)

    def _next(self) -> _Token:
        token = self._peek()
        if token is None:
            raise self._error("unexpected end of file")
        self.pos += 1
        return token

    def _at(self, value: str) -> bool:
        token = self._peek()
        return token is not None and token.kind in ("ident", "symbol") and token.value == value

    def _accept(self, value: str) -> _Token | None:
        if self._at(value):
            return self._next()
        return None

    def _expect(self, value: str) -> _Token:
        if not self._at(value):
            token = self._peek()
            found = token.value if token else "end of file"
            raise self._error(f"expected {value!r}, found {found!r}")
        return self._next()

    def _ident(self) -> _Token:
        token = self._peek()
        if token is None or token.kind != "ident":
            found = token.value if token else "end of file"
            raise self._error(f"expected identifier, found {found!r}")
        return self._next()

    def _int(self) -> int:
        token = self._next()
        if token.kind != "number":
            raise ProtoSyntaxError(self.path, token.line, f"expected integer, found {token.value!r}")
        text = token.value
        digits = text.lstrip("-")
        try:
            if len(digits) > 1 and digits.startswith("0") and digits.isdigit():
                return int(text, 8)
            return int(text, 0)
        except ValueError:
            raise ProtoSyntaxError(self.path, token.line, f"invalid integer {text!r}") from None

    def _string(self) -> str:
        token = self._peek()
        if token is None or token.kind != "string":
            raise self._error("expected string literal")
        parts = []
        while self._peek() is not None and self._peek().kind == "string":
            token = self._next()
            try:
                parts.append(ast.literal_eval(token.value))
            except (SyntaxError, ValueError):
                raise ProtoSyntaxError(self.path, token.line, f"invalid string literal {token.value}") from None
        return "".join(parts)

    def _skip_statement(self) -> None:
        """Skip an option/reserved/extend statement, including any braced body."""
        depth = 0
        while True:
            token = self._next()
            if token.kind != "symbol":
                continue
            if token.value == "{":
                depth += 1
            elif token.value == "}":
                depth -= 1
                if depth == 0:
                    return
            elif token.value == ";" and depth == 0:
                return

    def _skip_block(self) -> None:
        depth = 1
        while depth:
            token = self._next()
            if token.kind == "symbol" and token.value == "{":
                depth += 1
            elif token.kind == "symbol" and token.value == "}":
                depth -= 1

    @staticmethod
    def _comments(first: _Token, last: _Token) -> Comments:
        return Comments(leading=first.leading, trailing=last.trailing, leading_detached=first.detached)

    # -- grammar --

    def parse(self, name: str) -> dict:
        result = {
            "name": name,
            "package": "",
            "syntax": "proto2",
            "imports": [],
            "import_lines": {},
            "comments": NO_COMMENTS,
            "messages": [],
            "enums": [],
            "services": [],
        }

        while self._peek() is not None:
            token = self._peek()
            if self._accept(";"):
                continue
            keyword = token.value
            if keyword in ("syntax", "edition"):
                self._next()
                self._expect("=")
                value = self._string()
                result["syntax"] = value if keyword == "syntax" else "editions"
                result["comments"] = self._comments(token, self._expect(";"))
            elif keyword == "package":
                self._next()
                result["package"] = self._ident().value
                self._expect(";")
            elif keyword == "import":
                self._next()
                if not self._accept("public"):
                    self._accept("weak")
                imported = self._string()
                result["imports"].append(imported)
                result["import_lines"][imported] = token.line
                self._expect(";")
            elif keyword in ("option", "extend"):
                self._skip_statement()
            elif keyword == "message":
                result["messages"].append(self._message())
            elif keyword == "enum":
                result["enums"].append(self._enum())
            elif keyword == "service":
                result["services"].append(self._service())
            else:
                raise self._error(f"unexpected {keyword!r} at top level")

        return result

    def _message(self) -> dict:
        start = self._expect("message")
        name = self._ident().value
        brace = self._expect("{")
        message = _new_message(name, self._comments(start, brace))
        self._message_body(message)
        return message

    def _message_body(self, message: dict) -> None:
        while not self._accept("}"):
            token = self._peek()
            if token is None:
                raise self._error(f"unterminated message {message['name']}")
            keyword = token.value
            if keyword == ";":
                self._next()
            elif keyword == "message":
                message["messages"].append(self._message())
            elif keyword == "enum":
                message["enums"].append(self._enum())
            elif keyword == "oneof":
                self._oneof(message)
            elif keyword == "map" and self._peek(1) is not None and self._peek(1).value == "<":
                self._map_field(message)
            elif keyword in ("option", "reserved", "extensions", "extend"):
                self._skip_statement()
            else:
                self._field(message)

    def _field(self, message: dict, oneof: str = "") -> None:
        start = self._peek()
        label = "optional"
        if not oneof and start.value in LABELS:
            label = self._next().value
        type_token = self._ident()
        if type_token.value == "group":
            self._group(message, label, start, oneof)
            return
        name = self._ident().value
        self._expect("=")
        number = self._int()
        options = self._field_options()
        end = self._expect(";")
        message["fields"].append(
            _new_field(
                name,
                number,
                label,
                type_token.value,
                type_token.line,
                oneof=oneof,
                default=options.get("default", ""),
                comments=self._comments(start, end),
            )
        )

    def _group(self, message: dict, label: str, start: _Token, oneof: str) -> None:
        name_token = self._ident()
        self._expect("=")
        number = self._int()
        self._field_options()
        brace = self._expect("{")
        comments = self._comments(start, brace)
        nested = _new_message(name_token.value, comments)
        self._message_body(nested)
        message["messages"].append(nested)
        message["fields"].append(
            _new_field(
                name_token.value.lower(),
                number,
                label,
                name_token.value,
                name_token.line,
                kind="group",
                oneof=oneof,
                comments=comments,
            )
        )

    def _map_field(self, message: dict) -> None:
        start = self._expect("map")
        self._expect("<")
        key_type = self._ident()
        self._expect(",")
        value_type = self._ident()
        self._expect(">")
        name = self._ident().value
        self._expect("=")
        number = self._int()
        self._field_options()
        end = self._expect(";")

        entry = _new_message(_map_entry_name(name), NO_COMMENTS, map_entry=True)
        entry["fields"] = [
            _new_field("key", 1, "optional", key_type.value, key_type.line),
            _new_field("value", 2, "optional", value_type.value, value_type.line),
        ]
        message["messages"].append(entry)
        message["fields"].append(
            _new_field(name, number, "repeated", entry["name"], start.line, comments=self._comments(start, end))
        )

    def _oneof(self, message: dict) -> None:
        self._expect("oneof")
        name = self._ident().value
        self._expect("{")
        while not self._accept("}"):
            if self._accept(";"):
                continue
            if self._at("option"):
                self._skip_statement()
                continue
            self._field(message, oneof=name)

    def _field_options(self) -> dict[str, str]:
        options: dict[str, str] = {}
        if not self._accept("["):
            return options
        while True:
            name_parts = []
            while not self._at("="):
                name_parts.append(self._next().value)
            self._expect("=")
            options["".join(name_parts)] = self._option_value()
            if self._accept("]"):
                return options
            self._expect(",")

    def _option_value(self) -> str:
        token = self._peek()
        if token is not None and token.kind == "string":
            return self._string()
        if self._accept("-"):
            return "-" + self._next().value
        if self._accept("{"):
            self._skip_block()
            return ""
        return self._next().value

    def _enum(self) -> dict:
        start = self._expect("enum")
        name = self._ident().value
        brace = self._expect("{")
        enum = {"name": name, "comments": self._comments(start, brace), "values": []}
        while not self._accept("}"):
            if self._accept(";"):
                continue
            if self._at("option") or self._at("reserved"):
                self._skip_statement()
                continue
            value_name = self._ident()
            self._expect("=")
            number = self._int()
            self._field_options()
            end = self._expect(";")
            enum["values"].append(
                {"name": value_name.value, "number": number, "comments": self._comments(value_name, end)}
            )
        return enum

    def _service(self) -> dict:
        start = self._expect("service")
        name = self._ident().value
        brace = self._expect("{")
        service = {"name": name, "comments": self._comments(start, brace), "methods": []}
        while not self._accept("}"):
            if self._accept(";"):
                continue
            if self._at("option"):
                self._skip_statement()
                continue
            service["methods"].append(self._rpc())
        return service

    def _rpc(self) -> dict:
        start = self._expect("rpc")
        name = self._ident().value
        self._expect("(")
        client_streaming = bool(self._accept("stream"))
        input_type = self._ident()
        self._expect(")")
        self._expect("returns")
        self._expect("(")
        server_streaming = bool(self._accept("stream"))
        output_type = self._ident()
        self._expect(")")
        end = self._accept("{")
        if end is not None:
            while not self._accept("}"):
                if not self._accept(";"):
                    self._skip_statement()
        else:
            end = self._expect(";")
        return {
            "name": name,
            "input": input_type.value,
            "output": output_type.value,
            "input_line": input_type.line,
            "output_line": output_type.line,
            "client_streaming": client_streaming,
            "server_streaming": server_streaming,
            "comments": self._comments(start, end),
        }


def parse_proto_file(filepath: str | Path, name: str | None = None) -> dict:
    """Parse a .proto file into package, imports, messages, enums and services."""
    path = Path(filepath)
    content = path.read_text(encoding="utf-8")
    name = name or path.as_posix()
    return _Parser(name, content).parse(name)


# -- type resolution and tree building --


def _qualify(*names: str) -> str:
    return ".".join(name for name in names if name)


def _collect_types(messages: list[dict], enums: list[dict], scope: str, table: dict[str, str]) -> None:
    for message in messages:
        full_name = _qualify(scope, message["name"])
        table[full_name] = "message"
        _collect_types(message["messages"], message["enums"], full_name, table)
    for enum in enums:
        table[_qualify(scope, enum["name"])] = "enum"


class _Resolver:
    def __init__(self, pool: SchemaPool, table: dict[str, str]):
        self.pool = pool
        self.table = table

    def _kind_of(self, full_name: str) -> str | None:
        kind = self.table.get(full_name)
        if kind is not None:
            return kind
        node = self.pool.find(full_name)
        return node.kind.value if node is not None else None

    def resolve(self, type_name: str, scope: str, path: str, line: int) -> tuple[str, str]:
        """Return (kind, full type name); scalar types have an empty type name."""
        if type_name in BASE_TYPES:
            return type_name, ""
        if type_name.startswith("."):
            candidates = [type_name[1:]]
        else:
            parts = scope.split(".") if scope else []
            candidates = [_qualify(*parts[:i], type_name) for i in range(len(parts), -1, -1)]
        for candidate in candidates:
            kind = self._kind_of(candidate)
            if kind is not None:
                return kind, candidate
        raise ProtoSyntaxError(path, line, f"unknown type {type_name!r}")


def _build_enum(builder: FileBuilder, parent: SchemaNode, enum: dict) -> None:
    node = builder.enum(parent, enum["name"], enum["comments"])
    for value in enum["values"]:
        builder.enum_value(node, value["name"], value["number"], value["comments"])


def _build_message(builder: FileBuilder, parent: SchemaNode, message: dict, scope: str, resolver: _Resolver) -> None:
    full_name = _qualify(scope, message["name"])
    node = builder.message(parent, message["name"], message["comments"], is_map_entry=message["map_entry"])
    for field in message["fields"]:
        kind, type_name = resolver.resolve(field["type"], full_name, builder.file.path, field["line"])
        builder.field(
            node,
            field["name"],
            field["number"],
            field["label"],
            field["kind"] or kind,
            type_name=type_name,
            oneof=field["oneof"],
            default_value=field["default"],
            comments=field["comments"],
        )
    for nested in message["messages"]:
        _build_message(builder, node, nested, full_name, resolver)
    for enum in message["enums"]:
        _build_enum(builder, node, enum)


def _build_file(parsed: dict, pool: SchemaPool, resolver: _Resolver) -> FileNode:
    package = parsed["package"]
    builder = FileBuilder(
        pool,
        parsed["name"],
        package=package,
        syntax=parsed["syntax"],
        dependencies=tuple(parsed["imports"]),
        comments=parsed["comments"],
    )
    for message in parsed["messages"]:
        _build_message(builder, builder.file, message, package, resolver)
    for enum in parsed["enums"]:
        _build_enum(builder, builder.file, enum)
    for service in parsed["services"]:
        node = builder.service(service["name"], service["comments"])
        for method in service["methods"]:
            _, input_type = resolver.resolve(method["input"], package, parsed["name"], method["input_line"])
            _, output_type = resolver.resolve(method["output"], package, parsed["name"], method["output_line"])
            builder.method(
                node,
                method["name"],
                input_type,
                output_type,
                client_streaming=method["client_streaming"],
                server_streaming=method["server_streaming"],
                comments=method["comments"],
            )
    return builder.build()


def _virtual_name(path: Path, import_paths: list[Path]) -> str:
    resolved = path.resolve()
    for import_path in import_paths:
        try:
            return resolved.relative_to(import_path.resolve()).as_posix()
        except ValueError:
            continue
    return path.as_posix()


def _locate_import(name: str, import_paths: list[Path]) -> Path | None:
    for import_path in import_paths:
        candidate = import_path / name
        if candidate.is_file():
            return candidate
    return None


def _load_well_known(name: str, pool: SchemaPool) -> bool:
    """Load google/protobuf/*.proto from the descriptors compiled into the protobuf package."""
    if not name.startswith("google/protobuf/") or not name.endswith(".proto"):
        return False
    module_name = name[: -len(".proto")].replace("/", ".") + "_pb2"
    try:
        module = importlib.import_module(module_name)
    except ImportError:
        return False
    proto = descriptor_pb2.FileDescriptorProto()
    module.DESCRIPTOR.CopyToProto(proto)
    for dependency in proto.dependency:
        if dependency not in pool:
            _load_well_known(dependency, pool)
    load_file_descriptor(proto, pool)
    log.debug("Loaded well-known import %s", name)
    return True


def parse_proto_files(
    paths: list[str | Path], import_paths: list[str | Path] | None = None
) -> tuple[SchemaPool, list[FileNode]]:
    """Parse target files and, transitively, their imports.

    Returns the pool holding every file plus the target files in argument
    order. File names are relative to the first import path that contains
    them, the same way protoc names them.
    """
    search_paths = [Path(p) for p in (import_paths or ["."])]
    pool = SchemaPool()
    parsed_files: dict[str, dict] = {}
    targets: list[str] = []
    queue: deque[tuple[str, Path]] = deque()

    for path in paths:
        name = _virtual_name(Path(path), search_paths)
        if name not in targets:
            targets.append(name)
            queue.append((name, Path(path)))

    while queue:
        name, path = queue.popleft()
        if name in parsed_files:
            continue
        parsed = parse_proto_file(path, name)
        parsed_files[name] = parsed
        log.debug("Parsed %s (%d messages)", name, len(parsed["messages"]))
        for imported in parsed["imports"]:
            if imported in parsed_files or imported in pool:
                continue
            located = _locate_import(imported, search_paths)
            if located is not None:
                queue.append((imported, located))
            elif not _load_well_known(imported, pool):
                raise ProtoSyntaxError(name, parsed["import_lines"][imported], f"import {imported!r} not found")

    table: dict[str, str] = {}
    for parsed in parsed_files.values():
        _collect_types(parsed["messages"], parsed["enums"], parsed["package"], table)

    resolver = _Resolver(pool, table)
    for parsed in parsed_files.values():
        _build_file(parsed, pool, resolver)

    return pool, [pool.file(name) for name in targets]


def parse_all_protos(proto_dir: str | Path) -> tuple[SchemaPool, list[FileNode]]:
    """Parse every .proto file below a directory, using it as the import path."""
    proto_dir = Path(proto_dir)
    return parse_proto_files(sorted(proto_dir.rglob("*.proto")), import_paths=[proto_dir])
