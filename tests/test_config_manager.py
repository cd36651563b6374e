"""Unit tests for configuration management."""

from pathlib import Path

import pytest

from bagport.config import (
    BagportConfig,
    ConfigError,
    ConfigManager,
    expand_env,
    flatten_for_env,
    resolve_with_precedence,
)


def _fresh_manager(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> ConfigManager:
    monkeypatch.setenv("HOME", str(tmp_path))
    return ConfigManager()


def test_ensure_exists_creates_default_file(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)

    path = manager.ensure_exists()

    assert path == tmp_path / ".bagport" / "config.yaml"
    text = path.read_text(encoding="utf-8")
    assert "bagport configuration file" in text
    assert "Last updated:" in text

    config = manager.load(include_env=False)
    assert isinstance(config, BagportConfig)
    assert config.importer.rdf_extension == ".ttl"
    assert config.importer.rdf_language == "text/turtle"


def test_resolve_with_precedence_respects_order(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)
    manager.ensure_exists()

    manager.save({"bag": {"serialization": "zip"}, "importer": {"source": "http://old/rest"}})

    env = {"BAGPORT__IMPORTER__SOURCE": "http://env/rest", "BAGPORT__BAG__ALGORITHMS": "[md5]"}
    cli = {"importer.source": "http://cli/rest"}

    config = ConfigManager(env=env).load(cli_overrides=cli)

    assert config.bag.serialization == "zip"
    assert config.bag.algorithms == ["md5"]
    # CLI overrides take precedence over environment
    assert config.importer.source == "http://cli/rest"


def test_invalid_yaml_raises_config_error(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)
    manager.ensure_exists()

    manager.config_path.write_text("- not-a-mapping", encoding="utf-8")

    with pytest.raises(ConfigError):
        manager.load()


def test_flatten_for_env_renders_defaults() -> None:
    flat = flatten_for_env(BagportConfig())

    assert flat["BAGPORT__IMPORTER__RDF_EXTENSION"] == ".ttl"
    assert flat["BAGPORT__BAG__SERIALIZATION"] == "tar"
    assert flat["BAGPORT__BAG__PROFILE"] == "null"


def test_expand_env_reads_back_flattened_values() -> None:
    config = BagportConfig.model_validate(
        {"importer": {"source": "http://src/rest"}, "bag": {"algorithms": ["md5", "sha256"]}}
    )
    env = flatten_for_env(config)
    env["UNRELATED"] = "ignored"

    expanded = expand_env(env)

    assert "unrelated" not in expanded
    assert expanded["importer"]["source"] == "http://src/rest"
    assert expanded["bag"]["algorithms"] == ["md5", "sha256"]
    assert expanded["bag"]["profile"] is None
    assert resolve_with_precedence(defaults=BagportConfig(), env_overrides=expanded) == config


def test_resolve_with_precedence_invalid_value_raises() -> None:
    with pytest.raises(ConfigError):
        resolve_with_precedence(
            defaults=BagportConfig(),
            file_overrides={"bag": {"serialization": "rar"}},
        )


def test_unknown_keys_are_rejected() -> None:
    with pytest.raises(ConfigError):
        resolve_with_precedence(defaults=BagportConfig(), cli_overrides={"importer.bogus": 1})
