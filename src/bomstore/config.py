"""
Configuration loader.

Settings come from an optional YAML file and may be overridden by
environment variables:

    BOMSTORE_FORMAT        json-pretty | json | yaml | xml
    BOMSTORE_VERBOSITY     compact | full
    BOMSTORE_SPEC_VERSION  e.g. SPDX-2.3
    BOMSTORE_LOG_LEVEL     DEBUG | INFO | WARNING | ERROR
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml

from bomstore.serialization import Format, Verbosity


CURRENT_SPEC_VERSION = "SPDX-2.3"

ENV_PREFIX = "BOMSTORE_"


@dataclass
class StoreConfig:
    """
    Serialization defaults and logging level.

    Properties:
        format: Default wire format for serialize()
        verbosity: Default verbosity for serialize()
        spec_version: Spec version written into new documents
        log_level: Level the CLI configures logging with
    """

    format: Format = Format.JSON_PRETTY
    verbosity: Verbosity = Verbosity.COMPACT
    spec_version: str = CURRENT_SPEC_VERSION
    log_level: str = "INFO"

    def __post_init__(self):
        self.format = Format(self.format)
        self.verbosity = Verbosity(self.verbosity)
        level = str(self.log_level).upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {self.log_level}")
        self.log_level = level


def _from_mapping(data: Mapping[str, Any]) -> StoreConfig:
    known = {"format", "verbosity", "spec_version", "log_level"}
    unknown = set(data) - known
    if unknown:
        raise ValueError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")
    return StoreConfig(**dict(data))


def load_config(
    config_path: Optional[Union[str, Path]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> StoreConfig:
    """
    Load configuration from YAML, then apply environment overrides.

    Args:
        config_path: Optional YAML file; missing keys keep their defaults
        environ: Environment mapping (defaults to os.environ)

    Returns:
        StoreConfig

    Raises:
        FileNotFoundError: If config_path is given but does not exist
        ValueError: If a key or value is not recognised
    """
    settings: Dict[str, Any] = {}

    if config_path is not None:
        config_path = Path(config_path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
        with open(config_path, encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"Config file must contain a mapping: {config_path}")
        settings.update(loaded)

    env = os.environ if environ is None else environ
    for key in ("format", "verbosity", "spec_version", "log_level"):
        value = env.get(ENV_PREFIX + key.upper())
        if value:
            settings[key] = value

    return _from_mapping(settings)
