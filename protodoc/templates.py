"""Locate and compile the template for an output format.

Templates are named ``<format>.tpl``. Without an override directory they come
from the set shipped in ``protodoc/templates``; with one, that directory is
the only place searched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import jinja2

from protodoc.errors import TemplateNotFound, TemplateParseError
from protodoc.helpers import HELPERS

log = logging.getLogger(__name__)

TEMPLATE_SUFFIX = ".tpl"
DEFAULT_TEMPLATE_PACKAGE = "protodoc"
DEFAULT_TEMPLATE_DIR = "templates"
AUTOESCAPE_FORMATS = frozenset({"html"})


@dataclass(frozen=True)
class TemplateProgram:
    format: str
    template: jinja2.Template


def template_filename(format: str) -> str:
    return f"{format}{TEMPLATE_SUFFIX}"


class TemplateResolver:
    def __init__(self, template_dir: Path | None = None):
        self.template_dir = template_dir

    @property
    def source(self) -> str:
        if self.template_dir is None:
            return "embedded templates"
        return str(self.template_dir)

    def _loader(self) -> jinja2.BaseLoader:
        if self.template_dir is None:
            return jinja2.PackageLoader(DEFAULT_TEMPLATE_PACKAGE, DEFAULT_TEMPLATE_DIR)
        return jinja2.FileSystemLoader(str(self.template_dir))

    def environment(self, format: str) -> jinja2.Environment:
        env = jinja2.Environment(
            loader=self._loader(),
            undefined=jinja2.StrictUndefined,
            autoescape=format in AUTOESCAPE_FORMATS,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
            cache_size=0,
        )
        env.globals.update(HELPERS)
        env.filters.update(HELPERS)
        return env

    def load(self, format: str) -> TemplateProgram:
        name = template_filename(format)
        env = self.environment(format)
        try:
            template = env.get_template(name)
        except jinja2.TemplateNotFound as err:
            raise TemplateNotFound(format, self.source) from err
        except jinja2.TemplateSyntaxError as err:
            raise TemplateParseError(format, err.message or str(err), err.lineno) from err
        except UnicodeDecodeError as err:
            raise TemplateParseError(format, f"not valid UTF-8: {err}") from err
        log.debug("Loaded %s from %s", name, self.source)
        return TemplateProgram(format=format, template=template)
