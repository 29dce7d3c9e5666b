"""
Config system - schema-wide settings.

Settings are a plain dataclass. ConfigLoader builds them from the
environment with merge precedence:

    overrides > environment variables > .env file > defaults
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, fields, asdict
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import dotenv_values

from .faults import ConfigurationFault

logger = logging.getLogger("missy.config")

__all__ = ["SchemaSettings", "ConfigLoader"]


@dataclass
class SchemaSettings:
    """
    Schema settings.

    Attributes:
        query_when_connected: Make verbs wait for the driver to connect
            instead of failing with DriverFault when it is not connected
        reconnect: Reconnect after an unexpected driver disconnect
        reconnect_step: Back-off increment per reconnect attempt, seconds
        reconnect_max_delay: Back-off cap, seconds
    """

    query_when_connected: bool = False
    reconnect: bool = True
    reconnect_step: float = 0.1
    reconnect_max_delay: float = 1.0

    @classmethod
    def prepare(cls, value: Any = None) -> "SchemaSettings":
        """Accept None, a dict or a SchemaSettings instance."""
        if value is None:
            return cls()
        if isinstance(value, cls):
            return value
        if not isinstance(value, dict):
            raise ConfigurationFault(
                f"Schema settings must be a dict, got {type(value).__name__}"
            )

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(value) - known)
        if unknown:
            raise ConfigurationFault(
                f"Unknown schema settings: {', '.join(unknown)}",
                metadata={"unknown": unknown},
            )

        settings = cls(**value)
        if settings.reconnect_step < 0 or settings.reconnect_max_delay < 0:
            raise ConfigurationFault("Reconnect delays must not be negative")
        return settings

    def to_dict(self) -> dict:
        return asdict(self)


class ConfigLoader:
    """
    Loads SchemaSettings from the environment.

    Variables are named after the setting with a prefix:
    ``MISSY_QUERY_WHEN_CONNECTED=yes``, ``MISSY_RECONNECT_STEP=0.5``.
    """

    def __init__(self, env_prefix: str = "MISSY_"):
        self.env_prefix = env_prefix
        self.config_data: Dict[str, Any] = {}

    @classmethod
    def load(
        cls,
        env_prefix: str = "MISSY_",
        env_file: Optional[str] = None,
        overrides: Optional[Dict[str, Any]] = None,
    ) -> "ConfigLoader":
        """
        Load configuration from all sources.

        Args:
            env_prefix: Prefix for environment variables
            env_file: Path to a .env file
            overrides: Manual overrides (highest precedence)
        """
        loader = cls(env_prefix=env_prefix)

        if env_file:
            loader._load_env_file(env_file)

        loader._load_from_env()

        if overrides:
            loader.config_data.update(overrides)

        return loader

    def _load_env_file(self, path: str):
        env_path = Path(path)
        if not env_path.exists():
            logger.debug(f"No env file at {env_path}")
            return
        self._load_mapping(dotenv_values(env_path))

    def _load_from_env(self):
        self._load_mapping(os.environ)

    def _load_mapping(self, mapping):
        for key, value in mapping.items():
            if key.startswith(self.env_prefix) and value is not None:
                name = key[len(self.env_prefix):].lower()
                self.config_data[name] = self._parse_value(value)

    def _parse_value(self, value: str) -> Any:
        """Parse string value to appropriate type."""
        if value.lower() in ("true", "yes", "1"):
            return True
        if value.lower() in ("false", "no", "0"):
            return False

        try:
            if "." in value:
                return float(value)
            return int(value)
        except ValueError:
            pass

        if value.startswith(("{", "[")):
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                pass

        return value

    def get(self, name: str, default: Any = None) -> Any:
        return self.config_data.get(name, default)

    def to_dict(self) -> dict:
        return dict(self.config_data)

    def get_schema_settings(self) -> SchemaSettings:
        """Settings from the loaded values; unrelated prefixed keys are ignored."""
        known = {f.name for f in fields(SchemaSettings)}
        return SchemaSettings.prepare(
            {k: v for k, v in self.config_data.items() if k in known}
        )
