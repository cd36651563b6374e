"""Configuration management for bagport."""

from __future__ import annotations

import os
import textwrap
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping

import yaml

from .exceptions import ConfigError
from .models import BagportConfig, BagSettings, ImportSettings
from .resolver import expand_env, flatten_for_env, resolve_with_precedence

DEFAULT_CONFIG_PATH = Path("~/.bagport/config.yaml")
_CONFIG_HEADER = textwrap.dedent(
    """\
    # bagport configuration file
    # Generated automatically; manage via `bagport config edit` or `bagport config set`.
    """
)


class ConfigManager:
    """Load and persist configuration data, applying precedence rules."""

    def __init__(
        self,
        config_path: Path | None = None,
        *,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self._config_path = (config_path or DEFAULT_CONFIG_PATH).expanduser()
        self._env = env if env is not None else os.environ

    @property
    def config_path(self) -> Path:
        """Return the resolved configuration path."""
        return self._config_path

    def load(
        self,
        *,
        cli_overrides: Mapping[str, Any] | None = None,
        include_env: bool = True,
    ) -> BagportConfig:
        """Resolve the effective configuration, creating the file on first use.

        Raises:
            ConfigError: If the file or an override is invalid.
        """
        self.ensure_exists()
        return resolve_with_precedence(
            defaults=BagportConfig(),
            file_overrides=self.load_file_overrides(),
            env_overrides=expand_env(self._env) if include_env else None,
            cli_overrides=cli_overrides,
        )

    def save(self, config: BagportConfig | Mapping[str, Any]) -> None:
        """Persist configuration data to disk."""
        if isinstance(config, BagportConfig):
            data = config.model_dump(mode="python")
        else:
            data = dict(config)
        self._write_file(data)

    def ensure_exists(self) -> Path:
        """Create a configuration file with defaults if one does not exist."""
        if not self._config_path.exists():
            self._write_file(BagportConfig().model_dump(mode="python"))
        return self._config_path

    def read_text(self) -> str:
        """Return the current configuration file contents."""
        if not self._config_path.exists():
            return ""
        return self._config_path.read_text(encoding="utf-8")

    def load_file_overrides(self) -> dict[str, Any]:
        """Return the raw mapping stored on disk, or an empty one."""
        if not self._config_path.exists():
            return {}

        try:
            raw = yaml.safe_load(self._config_path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Failed to parse configuration file: {exc}") from exc

        if not isinstance(raw, dict):
            raise ConfigError("Configuration file must contain a mapping at the top level.")
        return raw

    def _write_file(self, data: Mapping[str, Any]) -> None:
        self._config_path.parent.mkdir(parents=True, exist_ok=True)
        serialized = yaml.safe_dump(dict(data), sort_keys=False)
        stamp = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
        self._config_path.write_text(
            f"{_CONFIG_HEADER}# Last updated: {stamp}\n{serialized}", encoding="utf-8"
        )


__all__ = [
    "ConfigManager",
    "DEFAULT_CONFIG_PATH",
    "BagportConfig",
    "BagSettings",
    "ImportSettings",
    "resolve_with_precedence",
    "expand_env",
    "flatten_for_env",
    "ConfigError",
]
