"""Configuration resolution helpers."""

from __future__ import annotations

from collections.abc import Mapping as MappingABC
from copy import deepcopy
from typing import Any, Dict, Mapping

import yaml
from pydantic import ValidationError

from .exceptions import ConfigError
from .models import BagportConfig

ENV_PREFIX = "BAGPORT__"


def resolve_with_precedence(
    *,
    defaults: BagportConfig,
    file_overrides: Mapping[str, Any] | None = None,
    env_overrides: Mapping[str, Any] | None = None,
    cli_overrides: Mapping[str, Any] | None = None,
) -> BagportConfig:
    """Merge configuration layers; later layers win (defaults < file < env < CLI).

    Args:
        defaults: Baseline configuration model.
        file_overrides: Values read from the YAML configuration file.
        env_overrides: Nested values decoded from `BAGPORT__*` variables.
        cli_overrides: Values supplied on the command line, dotted keys allowed.

    Returns:
        BagportConfig: Validated configuration.

    Raises:
        ConfigError: If an override is malformed or fails validation.
    """
    merged = defaults.model_dump(mode="python")
    layers = (("file", file_overrides), ("environment", env_overrides), ("cli", cli_overrides))
    for name, layer in layers:
        if layer is None:
            continue
        merged = _deep_merge(merged, _expand_dotted(layer, source_name=name))

    try:
        return BagportConfig.model_validate(merged)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration values: {exc}") from exc


def flatten_for_env(config: BagportConfig) -> Dict[str, str]:
    """Render the config as `BAGPORT__SECTION__KEY` environment variable mappings."""
    flat: Dict[str, str] = {}

    def _walk(prefix: list[str], value: Any) -> None:
        if isinstance(value, dict) and value:
            for key, child in value.items():
                _walk(prefix + [str(key)], child)
            return
        env_key = ENV_PREFIX + "__".join(part.upper() for part in prefix)
        if isinstance(value, (dict, list)):
            flat[env_key] = yaml.safe_dump(value, default_flow_style=True).strip()
        else:
            flat[env_key] = "null" if value is None else str(value)

    for key, value in config.model_dump(mode="python").items():
        _walk([str(key)], value)
    return flat


def expand_env(env: Mapping[str, str]) -> dict[str, Any]:
    """Decode `BAGPORT__SECTION__KEY` variables into nested overrides.

    Values are parsed as YAML literals; unparsable values are kept as strings.
    """
    dotted: dict[str, Any] = {}
    for key, raw_value in env.items():
        if not key.startswith(ENV_PREFIX):
            continue
        segments = [part.lower() for part in key[len(ENV_PREFIX) :].split("__") if part]
        if not segments:
            continue
        try:
            dotted[".".join(segments)] = yaml.safe_load(raw_value)
        except yaml.YAMLError:
            dotted[".".join(segments)] = raw_value
    return _expand_dotted(dotted, source_name="environment")


def _expand_dotted(source: Mapping[str, Any], *, source_name: str) -> dict[str, Any]:
    if not isinstance(source, MappingABC):
        raise ConfigError(f"{source_name.capitalize()} overrides must be a mapping.")

    result: dict[str, Any] = {}
    for key, value in source.items():
        if not isinstance(key, str):
            raise ConfigError(f"{source_name.capitalize()} override keys must be strings.")
        path = key.split(".")
        node = result
        for segment in path[:-1]:
            child = node.setdefault(segment, {})
            if not isinstance(child, dict):
                raise ConfigError(
                    f"{source_name.capitalize()} override for {key} conflicts with existing value."
                )
            node = child
        leaf = path[-1]
        if isinstance(value, MappingABC):
            nested = _expand_dotted(value, source_name=source_name)
            existing = node.get(leaf)
            node[leaf] = _deep_merge(existing if isinstance(existing, dict) else {}, nested)
        else:
            node[leaf] = value
    return result


def _deep_merge(base: Mapping[str, Any], overrides: Mapping[str, Any]) -> dict[str, Any]:
    merged = {key: deepcopy(value) for key, value in base.items()}
    for key, value in overrides.items():
        current = merged.get(key)
        if isinstance(value, MappingABC) and isinstance(current, MappingABC):
            merged[key] = _deep_merge(current, value)
        else:
            merged[key] = deepcopy(value)
    return merged


__all__ = ["resolve_with_precedence", "expand_env", "flatten_for_env", "ENV_PREFIX"]
