from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from protodoc.config import GenOpts
from protodoc.descriptor import FileNode
from protodoc.renderer import render
from protodoc.templates import TemplateResolver

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class OutputArtifact:
    filename: str
    content: bytes


def output_filename(file: FileNode, format: str) -> str:
    return f"{file.generated_filename_prefix}.{format}"


def generate(files: Iterable[FileNode], opts: GenOpts) -> list[OutputArtifact]:
    """Render every file with the template for ``opts.format``.

    Either every file renders or the first error propagates; no partial
    result is returned.
    """
    program = TemplateResolver(opts.template_dir).load(opts.format)
    artifacts = []
    for file in files:
        filename = output_filename(file, opts.format)
        log.info("Generating %s", filename)
        artifacts.append(OutputArtifact(filename, render(program, file)))
    return artifacts


def write_artifacts(artifacts: Iterable[OutputArtifact], out_dir: Path) -> list[Path]:
    written = []
    for artifact in artifacts:
        path = out_dir / artifact.filename
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(artifact.content)
        written.append(path)
    return written
