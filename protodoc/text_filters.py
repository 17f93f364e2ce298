"""Paragraph and line-break reflow filters for comment text."""

from __future__ import annotations

import re

from markupsafe import Markup, escape

# A line break plus any ASCII whitespace after it starts a new paragraph.
PARA_PATTERN = re.compile(r"(?:\n|\r|\r\n)[\t\n\f\r ]*")
SPACE_PATTERN = re.compile(r" +")
MULTI_NEWLINE_PATTERN = re.compile(r"(?:\r\n|\r|\n){2,}")


def p(content) -> Markup:
    """Wrap every paragraph in ``<p>`` tags.

    Paragraph text is escaped unless it already is ``Markup``; the result is
    ``Markup`` so an autoescaping template emits it unchanged.
    """
    trusted = isinstance(content, Markup)
    paragraphs = [
        Markup(paragraph) if trusted else escape(paragraph)
        for paragraph in PARA_PATTERN.split(str(content))
    ]
    return Markup("<p>%s</p>") % Markup("</p><p>").join(paragraphs)


def para(content) -> str:
    """Wrap every paragraph in DocBook ``<para>`` tags."""
    paragraphs = PARA_PATTERN.split(str(content))
    return "<para>" + "</para><para>".join(paragraphs) + "</para>"


def nobr(content) -> str:
    """Join wrapped lines inside each paragraph, keeping blank-line breaks."""
    normalized = str(content).replace("\r\n", "\n")
    paragraphs = MULTI_NEWLINE_PATTERN.split(normalized)
    reflowed = []
    for paragraph in paragraphs:
        single_line = paragraph.replace("\r", " ").replace("\n", " ")
        reflowed.append(SPACE_PATTERN.sub(" ", single_line))
    return "\n\n".join(reflowed)
