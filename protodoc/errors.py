"""Error types raised while generating documentation."""

from __future__ import annotations


class GenerationError(Exception):
    pass


class ConfigError(GenerationError):
    pass


class TemplateNotFound(GenerationError):
    def __init__(self, format: str, source: str):
        super().__init__(f"no template for format {format!r} ({format}.tpl not found in {source})")
        self.format = format
        self.source = source


class TemplateParseError(GenerationError):
    def __init__(self, format: str, message: str, lineno: int | None = None):
        where = f" line {lineno}" if lineno is not None else ""
        super().__init__(f"invalid template {format}.tpl{where}: {message}")
        self.format = format
        self.lineno = lineno


class RenderError(GenerationError):
    def __init__(self, format: str, filename: str, cause: BaseException):
        super().__init__(f"rendering {filename} as {format} failed: {cause}")
        self.format = format
        self.filename = filename
        self.cause = cause


class ProtoSyntaxError(GenerationError):
    def __init__(self, path: str, line: int, message: str):
        super().__init__(f"{path}:{line}: {message}")
        self.path = path
        self.line = line
