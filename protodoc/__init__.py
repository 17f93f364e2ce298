"""Render protobuf schema documentation through pluggable Jinja2 templates."""

__version__ = "0.1.0"
