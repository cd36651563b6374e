"""CLI tests for configuration commands."""

import os
from pathlib import Path
from typing import Any

from click.testing import CliRunner

from bagport.cli import cli
from bagport.config import ConfigManager


def _env_with_home(tmp_path: Path) -> dict[str, Any]:
    env = dict(os.environ)
    env["HOME"] = str(tmp_path)
    return env


def _config_path(tmp_path: Path) -> Path:
    return tmp_path / ".bagport" / "config.yaml"


def test_config_view_creates_and_displays_config(tmp_path: Path) -> None:
    runner = CliRunner()
    env = _env_with_home(tmp_path)

    result = runner.invoke(cli, ["config", "view"], env=env)

    assert result.exit_code == 0
    assert "importer:" in result.output
    assert _config_path(tmp_path).exists()


def test_config_view_env_prints_variables_with_overrides(tmp_path: Path) -> None:
    runner = CliRunner()
    env = _env_with_home(tmp_path)
    env["BAGPORT__BAG__SERIALIZATION"] = "zip"

    result = runner.invoke(cli, ["config", "view", "--env"], env=env)

    assert result.exit_code == 0
    lines = result.output.splitlines()
    assert "BAGPORT__BAG__SERIALIZATION=zip" in lines
    assert "BAGPORT__IMPORTER__RDF_EXTENSION=.ttl" in lines


def test_config_set_updates_value_and_writes_diff(tmp_path: Path) -> None:
    runner = CliRunner()
    env = _env_with_home(tmp_path)

    result = runner.invoke(cli, ["config", "set", "bag.serialization", "--value", "zip"], env=env)

    assert result.exit_code == 0
    assert "Updated bag.serialization" in result.output

    manager = ConfigManager(config_path=_config_path(tmp_path))
    config = manager.load(include_env=False)
    assert config.bag.serialization == "zip"


def test_config_set_rejects_invalid_value(tmp_path: Path) -> None:
    runner = CliRunner()
    env = _env_with_home(tmp_path)

    result = runner.invoke(cli, ["config", "set", "bag.serialization", "--value", "rar"], env=env)

    assert result.exit_code != 0
    manager = ConfigManager(config_path=_config_path(tmp_path))
    assert manager.load(include_env=False).bag.serialization == "tar"


def test_config_edit_applies_changes(tmp_path: Path, monkeypatch) -> None:
    runner = CliRunner()
    env = _env_with_home(tmp_path)

    manager = ConfigManager(config_path=_config_path(tmp_path))
    manager.ensure_exists()

    def _mock_edit(text: str, **_: Any) -> str:
        return text.replace("level: WARNING", "level: DEBUG")

    monkeypatch.setattr("bagport.cli.click.edit", _mock_edit)

    result = runner.invoke(cli, ["config", "edit"], env=env)

    assert result.exit_code == 0
    assert "updated" in result.output.lower()

    config = manager.load(include_env=False)
    assert config.logging.level == "DEBUG"
