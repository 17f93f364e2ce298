from __future__ import annotations

import logging

from protodoc.descriptor import FileNode
from protodoc.errors import RenderError
from protodoc.templates import TemplateProgram

log = logging.getLogger(__name__)

OUTPUT_BLOCK = "output"
ENCODING = "utf-8"


def _skip_block(context):
    return iter(())


def render(program: TemplateProgram, file: FileNode) -> bytes:
    """Execute the template's ``output`` block with ``file`` bound.

    Top-level ``macro``, ``import`` and ``set`` statements are evaluated
    first so the block can use them; top-level text is discarded.
    """
    template = program.template
    block = template.blocks.get(OUTPUT_BLOCK)
    if block is None:
        raise RenderError(program.format, file.path, LookupError(f"template has no {OUTPUT_BLOCK!r} block"))

    try:
        context = template.new_context({"file": file})
        context.blocks[OUTPUT_BLOCK] = [_skip_block]
        for _ in template.root_render_func(context):
            pass
        text = "".join(block(context))
    except Exception as err:
        raise RenderError(program.format, file.path, err) from err

    log.debug("Rendered %s as %s (%d chars)", file.path, program.format, len(text))
    return text.encode(ENCODING)
