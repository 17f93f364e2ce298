from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from pathlib import Path

import yaml

from protodoc.errors import ConfigError

log = logging.getLogger(__name__)

DEFAULT_FORMAT = "markdown"
CONFIG_ENV_VAR = "PROTODOC_CONFIG"

# plugin parameter / config file key -> GenOpts attribute
OPTION_KEYS = {"format": "format", "templates": "template_dir"}


@dataclass(frozen=True)
class GenOpts:
    format: str = DEFAULT_FORMAT
    template_dir: Path | None = None

    def with_overrides(self, **overrides) -> GenOpts:
        values = {key: value for key, value in overrides.items() if value not in (None, "")}
        if "template_dir" in values:
            values["template_dir"] = Path(values["template_dir"])
        return replace(self, **values)


def _options_from_mapping(data: dict, source: str) -> dict:
    options = {}
    for key, value in data.items():
        attr = OPTION_KEYS.get(key)
        if attr is None:
            raise ConfigError(f"Unknown option {key!r} in {source}")
        options[attr] = str(value) if value is not None else None
    return options


def parse_parameter(parameter: str, base: GenOpts | None = None) -> GenOpts:
    """Parse a protoc plugin parameter such as ``format=html,templates=docs/tpl``."""
    base = base or GenOpts()
    data = {}
    for item in parameter.split(","):
        item = item.strip()
        if not item:
            continue
        key, sep, value = item.partition("=")
        if not sep:
            raise ConfigError(f"Malformed plugin parameter {item!r}: expected key=value")
        data[key.strip()] = value.strip()
    return base.with_overrides(**_options_from_mapping(data, "plugin parameter"))


def load_config_file(path: Path, base: GenOpts | None = None) -> GenOpts:
    base = base or GenOpts()
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except OSError as err:
        raise ConfigError(f"Cannot read config file {path}: {err}") from err
    except yaml.YAMLError as err:
        raise ConfigError(f"Invalid YAML in config file {path}: {err}") from err
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")

    opts = base.with_overrides(**_options_from_mapping(data, str(path)))
    # relative template directories are relative to the config file
    if opts.template_dir is not None and not opts.template_dir.is_absolute():
        opts = replace(opts, template_dir=Path(path).parent / opts.template_dir)
    log.debug("Loaded options from %s: %s", path, opts)
    return opts


def default_opts(config_path: Path | None = None) -> GenOpts:
    """Defaults, overlaid with the config file from the argument or $PROTODOC_CONFIG."""
    if config_path is None and os.environ.get(CONFIG_ENV_VAR):
        config_path = Path(os.environ[CONFIG_ENV_VAR])
    if config_path is None:
        return GenOpts()
    return load_config_file(config_path)
