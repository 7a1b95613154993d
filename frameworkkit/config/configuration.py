"""
User configuration for FrameworkKit.

The configuration is a small YAML document, by default stored at
``~/.frameworkkit.yaml``::

    home_dir: /data/frameworkkit
    maven_snapshot_endpoint_url: https://repository.corp/build-snapshots/
    cache_mode: Default
"""

import logging
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from frameworkkit.core.exceptions import ConfigurationError
from frameworkkit.core.filesystem import atomic_write
from frameworkkit.framework.cache_mode import CacheMode

logger = logging.getLogger(__name__)

CONFIG_PATH_ENV = "FRAMEWORKKIT_CONFIG"


def get_config_path() -> Path:
    """Return the configuration file path (``FRAMEWORKKIT_CONFIG`` or default)."""
    override = os.environ.get(CONFIG_PATH_ENV)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".frameworkkit.yaml"


@dataclass
class Configuration:
    """Persisted user options."""

    home_dir: Optional[str] = None
    maven_snapshot_endpoint_url: Optional[str] = None
    cache_mode: Optional[str] = None

    def __post_init__(self):
        for option in fields(self):
            value = getattr(self, option.name)
            if value is not None and not isinstance(value, str):
                raise ConfigurationError(
                    f"Configuration option '{option.name}' must be a string, "
                    f"got {type(value).__name__}"
                )
        if self.cache_mode is not None:
            try:
                self.cache_mode = CacheMode.from_value(self.cache_mode).value
            except ValueError as e:
                raise ConfigurationError(str(e)) from e

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Configuration":
        known = {option.name for option in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(
                f"Unknown configuration option(s): {', '.join(unknown)}. "
                f"Supported options: {', '.join(sorted(known))}"
            )
        return cls(**data)

    def to_dict(self) -> Dict[str, Any]:
        return {key: value for key, value in asdict(self).items() if value is not None}

    @classmethod
    def from_file(cls, path: Optional[Union[str, Path]] = None) -> "Configuration":
        """
        Load the configuration file.

        A missing file yields an empty configuration.

        Raises:
            ConfigurationError: If the file is not valid YAML or contains
                unknown options
        """
        config_path = Path(path) if path else get_config_path()
        if not config_path.exists():
            logger.debug(f"Config file not found (optional): {config_path}")
            return cls()

        logger.debug(f"Loading configuration from {config_path}")
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

        data = data or {}
        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Invalid configuration in {config_path}: expected a mapping"
            )
        return cls.from_dict(data)

    def to_file(self, path: Optional[Union[str, Path]] = None) -> Path:
        """Write the configuration file atomically and return its path."""
        config_path = Path(path) if path else get_config_path()
        content = yaml.safe_dump(self.to_dict(), default_flow_style=False, sort_keys=True)
        atomic_write(config_path, content)
        logger.debug(f"Saved configuration to {config_path}")
        return config_path
