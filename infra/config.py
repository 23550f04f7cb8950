"""
Configuration Manager
---------------------
Loads krabctl settings from YAML with environment variable overrides.

Rules:
- A missing config file is fine, every key has a default
- KRABCTL_<SECTION>_<KEY> overrides the file
- Command-line flags override both (handled by the caller)
"""

from pathlib import Path
from typing import Any, Dict, Optional
import os

import yaml

from core.errors import ConfigError

from .logging import get_logger


ENV_PREFIX = "KRABCTL_"
DEFAULT_CONFIG_FILE = "krabctl.yaml"


class ConfigManager:
    """
    Centralized configuration management.

    Recognized keys:
        command_map     alternative command table
        cwd             working directory for the tool
        tools.<name>    binary used in place of a tool, e.g. tools.cargo
        logging.level   console log level
        logging.dir     directory for JSON log lines
    """

    def __init__(
        self,
        config_path: Optional[str] = DEFAULT_CONFIG_FILE,
        environ: Optional[Dict[str, str]] = None,
    ):
        self._config_path = Path(config_path) if config_path else None
        self._environ = os.environ if environ is None else environ
        self._config: Dict[str, Any] = {}
        self._logger = get_logger("infra.config")

        self._load_config()

    def _load_config(self) -> None:
        """Load configuration from file."""
        if self._config_path is None or not self._config_path.exists():
            self._logger.debug(f"No config file at {self._config_path}, using defaults")
            self._config = {}
            return

        try:
            with open(self._config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(
                f"Cannot read config file {self._config_path}: {e}",
                {"path": str(self._config_path)},
            ) from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigError(
                f"Config file {self._config_path} must contain a mapping",
                {"path": str(self._config_path)},
            )

        self._config = data
        self._logger.debug(f"Loaded config from {self._config_path}")

    @property
    def path(self) -> Optional[Path]:
        return self._config_path

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value.
        Supports dot notation: 'section.key'
        Environment variables override file config.
        """
        env_key = f"{ENV_PREFIX}{key.upper().replace('.', '_')}"
        env_value = self._environ.get(env_key)
        if env_value is not None:
            return env_value

        value: Any = self._config
        for part in key.split("."):
            if isinstance(value, dict) and part in value:
                value = value[part]
            else:
                return default

        return value

    def get_section(self, section: str) -> Dict[str, Any]:
        """Get an entire configuration section."""
        value = self._config.get(section, {})
        return dict(value) if isinstance(value, dict) else {}

    def tool_overrides(self, tools=("cargo",)) -> Dict[str, str]:
        """
        Binary substitutions for delegated tools.

        Covers every tool named in the file's 'tools' section plus the
        given tool names, so an environment override works without a file.
        """
        names = set(self.get_section("tools")) | set(tools)
        overrides = {}
        for name in names:
            value = self.get(f"tools.{name}")
            if value:
                overrides[name] = str(value)
        return overrides
