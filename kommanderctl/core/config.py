"""Driver configuration loading."""

from __future__ import annotations

import os
from dataclasses import replace
from pathlib import Path
from typing import Any

from kommanderctl.core.errors import ConfigError
from kommanderctl.core.model import DriverConfig
from kommanderctl.core.profile_loader import read_yaml, validate_document


def default_config_path() -> Path:
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return xdg_config / "kommanderctl/config.yaml"


def config_from_mapping(doc: dict[str, Any], source: Path | str = "<mapping>") -> DriverConfig:
    validate_document(doc, "config.schema.json", Path(str(source)), error_cls=ConfigError)
    return DriverConfig(
        url=doc["url"],
        reconnect=doc.get("reconnect", True),
        debug_messages=doc.get("debug_messages", False),
        reset_variables=doc.get("reset_variables", True),
        profile=doc.get("profile", "kommander"),
    )


def load_config(path: Path | None = None) -> DriverConfig:
    """Read a YAML driver config; ``path`` defaults to the XDG config location."""
    source = path or default_config_path()
    if not source.exists():
        raise ConfigError(f"Config file {source} does not exist")
    doc = read_yaml(source, load_error=ConfigError, validation_error=ConfigError)
    return config_from_mapping(doc, source)


def merge_overrides(config: DriverConfig | None, **overrides: Any) -> DriverConfig:
    """Apply non-None overrides on top of ``config``; a URL is required if no config is given."""
    present = {key: value for key, value in overrides.items() if value is not None}
    if config is None:
        if "url" not in present:
            raise ConfigError("A target URL is required (use --url or a config file)")
        return DriverConfig(**present)
    return replace(config, **present)
