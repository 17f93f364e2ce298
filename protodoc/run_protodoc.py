"""Generate documentation for .proto files without going through protoc.

Usage:
    protodoc --format markdown --out docs api/service.proto api/types.proto
    protodoc --proto-path protos --format html --out build/docs protos/
    protodoc --descriptor-set build/api.binpb --templates docs/templates --format adoc
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from protodoc.config import default_opts
from protodoc.descriptor import FileNode
from protodoc.descriptor_loader import read_descriptor_set
from protodoc.errors import ConfigError, GenerationError
from protodoc.generate import generate, write_artifacts
from protodoc.proto_parser import parse_proto_files

log = logging.getLogger("protodoc")


def _expand_inputs(inputs: list[Path]) -> list[Path]:
    paths = []
    for path in inputs:
        if path.is_dir():
            paths.extend(sorted(path.rglob("*.proto")))
        else:
            paths.append(path)
    return paths


def load_targets(args: argparse.Namespace) -> list[FileNode]:
    if args.descriptor_set is not None:
        pool = read_descriptor_set(args.descriptor_set)
        if not args.protos:
            return list(pool.files)
        targets = []
        for name in args.protos:
            file = pool.file(Path(name).as_posix())
            if file is None:
                raise ConfigError(f"{name} is not in descriptor set {args.descriptor_set}")
            targets.append(file)
        return targets

    paths = _expand_inputs(args.protos)
    if not paths:
        raise ConfigError("No .proto files given")
    _, targets = parse_proto_files(paths, import_paths=args.proto_path or None)
    return targets


def run_protodoc(args: argparse.Namespace) -> list[Path]:
    opts = default_opts(args.config).with_overrides(format=args.format, template_dir=args.templates)
    targets = load_targets(args)
    artifacts = generate(targets, opts)
    written = write_artifacts(artifacts, args.out)
    for path in written:
        log.info("Wrote %s", path)
    return written


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Render documentation for protobuf schema files.")
    parser.add_argument("protos", nargs="*", type=Path, help=".proto files or directories to document")
    parser.add_argument("--format", default=None, help="Output format / template name (default: markdown)")
    parser.add_argument("--templates", type=Path, default=None, help="Directory with custom <format>.tpl templates")
    parser.add_argument("--config", type=Path, default=None, help="YAML file with format/templates defaults")
    parser.add_argument("--out", type=Path, default=Path("."), help="Directory to write generated files to")
    parser.add_argument(
        "-I",
        "--proto-path",
        action="append",
        type=Path,
        default=None,
        help="Directory to search for imports (repeatable, default: current directory)",
    )
    parser.add_argument(
        "--descriptor-set",
        type=Path,
        default=None,
        help="Serialized FileDescriptorSet to document instead of parsing .proto sources",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )
    try:
        run_protodoc(args)
    except GenerationError as err:
        log.error("%s", err)
        return 1
    except OSError as err:
        log.error("I/O error: %s", err)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
