"""Smoke tests for the CLI entrypoint."""

from click.testing import CliRunner

from bagport.cli import cli


def test_cli_help_displays_commands() -> None:
    runner = CliRunner()
    result = runner.invoke(cli, ["--help"])

    assert result.exit_code == 0
    assert "Bagport orders exported repository resources" in result.output
    for command in ("order", "bag", "validate", "pack", "unpack", "config"):
        assert command in result.output
