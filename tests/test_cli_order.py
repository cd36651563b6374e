"""CLI tests for the import order command."""

import json
import os
from pathlib import Path
from typing import Any

from click.testing import CliRunner

from bagport.cli import cli

REPOSITORY = "http://localhost:8080/rest"
LAST_MODIFIED = "<http://fedora.info/definitions/v4/repository#lastModified>"
DATE_TIME = "<http://www.w3.org/2001/XMLSchema#dateTime>"


def _env_with_home(tmp_path: Path) -> dict[str, Any]:
    env = {key: value for key, value in os.environ.items() if not key.startswith("BAGPORT__")}
    env["HOME"] = str(tmp_path / "home")
    return env


def _export(base: Path) -> Path:
    resources = {
        "rest/b.ttl": "2021-02-01T00:00:00Z",
        "rest/a.ttl": "2021-01-01T00:00:00Z",
        "rest/a/child.ttl": "2021-03-01T00:00:00Z",
    }
    for relative, modified in resources.items():
        path = base / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        uri = f"{REPOSITORY}/{relative[len('rest/'):-len('.ttl')]}"
        path.write_text(f'<{uri}> {LAST_MODIFIED} "{modified}"^^{DATE_TIME} .\n', encoding="utf-8")
    return base


def test_order_prints_identifiers_chronologically(tmp_path: Path) -> None:
    runner = CliRunner()
    base = _export(tmp_path / "export")

    result = runner.invoke(
        cli, ["order", str(base), "--source", REPOSITORY, "--json"], env=_env_with_home(tmp_path)
    )

    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert payload["context"]["count"] == 3
    assert [record["uri"] for record in payload["resources"]] == [
        f"{REPOSITORY}/a",
        f"{REPOSITORY}/b",
        f"{REPOSITORY}/a/child",
    ]


def test_order_uses_configured_repository(tmp_path: Path) -> None:
    runner = CliRunner()
    env = _env_with_home(tmp_path)
    base = _export(tmp_path / "export")
    configured = runner.invoke(
        cli, ["config", "set", "importer.source", "--value", REPOSITORY], env=env
    )
    assert configured.exit_code == 0, configured.output

    result = runner.invoke(cli, ["order", str(base), "--summary"], env=env)

    assert result.exit_code == 0, result.output
    assert "resources=3" in result.output
    assert f"{REPOSITORY}/a/child" not in result.output


def test_order_requires_a_repository_uri(tmp_path: Path) -> None:
    runner = CliRunner()

    result = runner.invoke(
        cli, ["order", str(_export(tmp_path / "export"))], env=_env_with_home(tmp_path)
    )

    assert result.exit_code != 0
    assert "--source or --destination" in result.output


def test_order_reports_malformed_timestamps(tmp_path: Path) -> None:
    runner = CliRunner()
    base = _export(tmp_path / "export")
    (base / "rest" / "bad.ttl").write_text(
        f'<{REPOSITORY}/bad> {LAST_MODIFIED} "soon"^^{DATE_TIME} .\n', encoding="utf-8"
    )

    result = runner.invoke(
        cli, ["order", str(base), "--source", REPOSITORY, "--json"], env=_env_with_home(tmp_path)
    )

    assert result.exit_code == 1
    assert json.loads(result.output)["error"]["code"] == "malformed_metadata"
