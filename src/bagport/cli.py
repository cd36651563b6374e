"""Command line interface for the bagport project."""

from __future__ import annotations

import difflib
import logging
from pathlib import Path
from typing import Any, Callable

import click
import yaml
from click.core import ParameterSource
from rich.console import Console
from rich.logging import RichHandler
from rich.syntax import Syntax
from rich.table import Table

from bagport.bagit import (
    SUPPORTED_ALGORITHMS,
    BagProfile,
    SerializationKind,
    check_serialization,
    create_bag,
    deserialize,
    serialize,
    validate_bag,
    verify_bag,
)
from bagport.config import (
    BagportConfig,
    ConfigError,
    ConfigManager,
    flatten_for_env,
    resolve_with_precedence,
)
from bagport.errors import (
    ArchiveFormatViolation,
    BagportError,
    BagVerificationError,
    IoFailure,
    MalformedMetadata,
    ProfileValidationFailure,
    UnsupportedEncoding,
)
from bagport.importer import (
    ChronologicalImportIterator,
    ChronologicalSequencer,
    FileSystemResourceFactory,
    UriTranslator,
)

console = Console()
LOGGER = logging.getLogger(__name__)

_ERROR_CODES: tuple[tuple[type[BagportError], str], ...] = (
    (IoFailure, "io_failure"),
    (MalformedMetadata, "malformed_metadata"),
    (ArchiveFormatViolation, "archive_format_violation"),
    (UnsupportedEncoding, "unsupported_encoding"),
    (ProfileValidationFailure, "profile_validation_failure"),
    (BagVerificationError, "bag_verification_failure"),
)

_SERIALIZATION_CHOICES = [kind.label for kind in SerializationKind] + ["tgz"]


def _handle_cli_error(
    message: str,
    *,
    code: str,
    json_output: bool,
    details: Any | None = None,
    original: Exception | None = None,
) -> None:
    """Emit a standardized error and terminate the command appropriately.

    Args:
        message: Human-readable error message.
        code: Machine-readable error identifier.
        json_output: Indicates whether JSON mode is active.
        details: Optional structured details to include in the payload.
        original: Original exception for chaining when not using JSON.

    Raises:
        SystemExit: When emitting JSON output to terminate the command.
        click.ClickException: For non-JSON flows to surface the error.
    """

    if json_output:
        payload: dict[str, Any] = {"error": {"code": code, "message": message}}
        if details is not None:
            payload["error"]["details"] = details
        console.print_json(data=payload)
        raise SystemExit(1)

    if isinstance(original, click.ClickException):
        raise original

    raise click.ClickException(message) from original


def _handle_bagport_error(exc: BagportError, *, json_output: bool) -> None:
    """Map a library error onto its machine code and surface it."""

    code = next((name for kind, name in _ERROR_CODES if isinstance(exc, kind)), "bagport_error")
    details: Any | None = None
    if isinstance(exc, ProfileValidationFailure):
        details = {"section": exc.section, "violations": exc.violations}
    elif isinstance(exc, BagVerificationError):
        details = {"problems": exc.problems}
    _handle_cli_error(str(exc), code=code, json_output=json_output, details=details, original=exc)


def _emit_message(message: Any, *, mode: str, quiet: bool, summary_only: bool) -> None:
    """Conditionally print CLI output according to quiet/summary settings.

    Args:
        message: Renderable or string to emit.
        mode: Output mode identifier (`detail`, `summary`, `warning`, or `error`).
        quiet: Whether quiet mode is active.
        summary_only: Whether only summary lines should be emitted.
    """

    if quiet and mode != "error":
        return

    important_modes = {"summary", "warning", "error"}
    if summary_only and mode not in important_modes:
        return

    console.print(message)


def _format_summary_line(command: str, root: Path | str, metrics: dict[str, Any]) -> str:
    """Return a consistent summary line for CLI commands.

    Args:
        command: Command name to include in the summary.
        root: Target path relevant to the command.
        metrics: Ordered mapping of metric names to values.

    Returns:
        str: Rich-formatted summary string.
    """

    parts = ", ".join(f"{key}={value}" for key, value in metrics.items())
    return f"[green]{command} summary for {root}: {parts}.[/green]"


def _configure_logging(level: str) -> None:
    """Route library logging to stderr through rich.

    Raises:
        ConfigError: If `level` is not a logging level name.
    """

    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        raise ConfigError(f"Unknown logging level {level!r}.")
    logging.basicConfig(
        level=numeric,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def _load_config(cli_overrides: dict[str, Any] | None = None) -> BagportConfig:
    """Load the effective configuration and configure logging from it."""

    manager = ConfigManager()
    manager.ensure_exists()
    overrides = {key: value for key, value in (cli_overrides or {}).items() if value is not None}
    config = manager.load(cli_overrides=overrides or None)
    _configure_logging(config.logging.level)
    return config


def _resolve_output_modes(
    ctx: click.Context,
    config: BagportConfig,
    *,
    quiet: bool,
    summary_mode: bool,
    json_output: bool,
) -> tuple[bool, bool]:
    """Combine explicit flags with configured defaults.

    Returns:
        tuple[bool, bool]: Effective quiet and summary-only flags.

    Raises:
        click.ClickException: If the requested modes conflict.
    """

    explicit_quiet = ctx.get_parameter_source("quiet") == ParameterSource.COMMANDLINE
    explicit_summary = ctx.get_parameter_source("summary_mode") == ParameterSource.COMMANDLINE

    quiet_enabled = quiet if explicit_quiet else config.cli.quiet_default
    summary_only = summary_mode if explicit_summary else config.cli.summary_default

    if json_output:
        if explicit_quiet and quiet_enabled:
            raise click.ClickException("--json cannot be combined with --quiet.")
        if explicit_summary and summary_only:
            raise click.ClickException("--json cannot be combined with --summary.")
        return False, False

    if quiet_enabled and summary_only:
        raise click.ClickException(
            "Quiet and summary modes cannot both be enabled. Adjust CLI defaults or flags."
        )
    return quiet_enabled, summary_only


def _load_profile(path: str | None) -> BagProfile | None:
    if not path:
        return None
    return BagProfile.load(Path(path).expanduser())


def _parse_info_items(items: tuple[str, ...]) -> dict[str, dict[str, str]]:
    """Parse `SECTION.FIELD=VALUE` options into nested tag-file fields.

    Raises:
        click.BadParameter: If an item does not follow the expected shape.
    """

    parsed: dict[str, dict[str, str]] = {}
    for item in items:
        key, separator, value = item.partition("=")
        section, dot, field = key.partition(".")
        if not separator or not dot or not section.strip() or not field.strip():
            raise click.BadParameter(
                f"Expected SECTION.FIELD=VALUE, got {item!r}.", param_hint="--info"
            )
        parsed.setdefault(section.strip(), {})[field.strip()] = value.strip()
    return parsed


def _assign_nested(target: dict[str, Any], path: list[str], value: Any) -> None:
    """Assign a nested value within a dictionary for a dotted path.

    Args:
        target: Mapping to mutate in-place.
        path: Sequence of keys representing the nested location.
        value: Value to assign at the nested location.

    Raises:
        ConfigError: If a non-mapping value is encountered along the path.
    """

    node = target
    for segment in path[:-1]:
        existing = node.get(segment)
        if existing is None:
            existing = {}
            node[segment] = existing
        elif not isinstance(existing, dict):
            raise ConfigError(
                f"Cannot assign into '{segment}' because it is not a mapping in the config file."
            )
        node = existing
    node[path[-1]] = value


def _warning_sink(collected: list[str]) -> Callable[[str], None]:
    def _collect(message: str) -> None:
        LOGGER.debug("Profile warning: %s", message)
        collected.append(message)

    return _collect


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(package_name="bagport")
def cli() -> None:
    """Bagport orders exported repository resources and packages them as BagIt bags.

    Returns:
        None: This function is invoked for its side effects.
    """


@cli.command()
@click.argument("base_dir", type=click.Path(exists=True, file_okay=False, path_type=str))
@click.option("--source", type=str, help="Base URI the resources were exported from.")
@click.option("--destination", type=str, help="Base URI of the repository receiving the import.")
@click.option("--rdf-extension", type=str, help="Filename suffix of resource descriptions.")
@click.option("--rdf-language", type=str, help="RDF syntax of resource descriptions.")
@click.option("--resources", "show_resources", is_flag=True, help="Show the files behind each URI.")
@click.option("--json", "json_output", is_flag=True, help="Emit the import order as JSON.")
@click.option("--summary", "summary_mode", is_flag=True, help="Only emit summary lines.")
@click.option("--quiet", is_flag=True, help="Suppress non-error output.")
@click.pass_context
def order(
    ctx: click.Context,
    base_dir: str,
    source: str | None,
    destination: str | None,
    rdf_extension: str | None,
    rdf_language: str | None,
    show_resources: bool,
    json_output: bool,
    summary_mode: bool,
    quiet: bool,
) -> None:
    """Print the resources exported under BASE_DIR in chronological import order.

    Args:
        ctx: Click context used for parameter source inspection.
        base_dir: Root of the exported resource tree.
        source: Base URI of the exporting repository.
        destination: Base URI of the importing repository.
        rdf_extension: Override for the description file suffix.
        rdf_language: Override for the RDF syntax.
        show_resources: If True, include metadata and binary paths.
        json_output: If True, emit JSON instead of text.
        summary_mode: When True, limit output to summary lines and warnings.
        quiet: When True, suppress non-error CLI output entirely.

    Raises:
        click.ClickException: If configuration or ordering fails.
    """

    try:
        config = _load_config(
            {
                "importer.source": source,
                "importer.destination": destination,
                "importer.rdf_extension": rdf_extension,
                "importer.rdf_language": rdf_language,
            }
        )
        quiet_enabled, summary_only = _resolve_output_modes(
            ctx, config, quiet=quiet, summary_mode=summary_mode, json_output=json_output
        )
        settings = config.importer
        if settings.source is None and settings.destination is None:
            raise click.ClickException(
                "Provide --source or --destination, or set importer.source in the configuration."
            )

        base = Path(base_dir).expanduser().resolve()
        sequencer = ChronologicalSequencer.from_settings(base, settings)
        total = len(sequencer)
        records: list[dict[str, Any]] = []
        if show_resources:
            translator = UriTranslator(
                settings.source,
                settings.destination,
                rdf_extension=settings.rdf_extension,
                binary_extension=settings.binary_extension,
            )
            factory = FileSystemResourceFactory(translator, base)
            for resource in ChronologicalImportIterator(sequencer, factory):
                records.append(
                    {
                        "uri": resource.uri,
                        "metadata": str(resource.metadata_path),
                        "binary": str(resource.binary_path) if resource.binary_path else None,
                    }
                )
        else:
            records = [{"uri": uri} for uri in sequencer]
    except ConfigError as exc:
        _handle_cli_error(str(exc), code="config_error", json_output=json_output, original=exc)
        return
    except BagportError as exc:
        _handle_bagport_error(exc, json_output=json_output)
        return

    if json_output:
        console.print_json(
            data={"context": {"base": str(base), "count": total}, "resources": records}
        )
        return

    if show_resources and records:
        table = Table(title="Import order")
        table.add_column("#", justify="right")
        table.add_column("URI", overflow="fold")
        table.add_column("Metadata", overflow="fold")
        table.add_column("Binary", overflow="fold")
        for position, record in enumerate(records, start=1):
            table.add_row(str(position), record["uri"], record["metadata"], record["binary"] or "-")
        _emit_message(table, mode="detail", quiet=quiet_enabled, summary_only=summary_only)
    else:
        for record in records:
            _emit_message(
                record["uri"], mode="detail", quiet=quiet_enabled, summary_only=summary_only
            )

    _emit_message(
        _format_summary_line("Order", base, {"resources": total}),
        mode="summary",
        quiet=quiet_enabled,
        summary_only=summary_only,
    )


@cli.command()
@click.argument("payload_dir", type=click.Path(exists=True, file_okay=False, path_type=str))
@click.argument("bag_dir", type=click.Path(file_okay=False, path_type=str))
@click.option(
    "--profile",
    "profile_path",
    type=click.Path(exists=True, dir_okay=False, path_type=str),
    help="BagIt profile the new bag must satisfy.",
)
@click.option(
    "--info",
    "info_items",
    multiple=True,
    metavar="SECTION.FIELD=VALUE",
    help="Tag-file field to record, e.g. Bag-Info.Source-Organization=Acme.",
)
@click.option(
    "--algorithm",
    "algorithms",
    multiple=True,
    type=click.Choice(SUPPORTED_ALGORITHMS),
    help="Digest algorithm for manifests (repeatable).",
)
@click.option(
    "--serialization",
    type=click.Choice(_SERIALIZATION_CHOICES),
    help="Also pack the finished bag with this serialization.",
)
@click.option("--json", "json_output", is_flag=True, help="Emit the result as JSON.")
@click.option("--summary", "summary_mode", is_flag=True, help="Only emit summary lines.")
@click.option("--quiet", is_flag=True, help="Suppress non-error output.")
@click.pass_context
def bag(
    ctx: click.Context,
    payload_dir: str,
    bag_dir: str,
    profile_path: str | None,
    info_items: tuple[str, ...],
    algorithms: tuple[str, ...],
    serialization: str | None,
    json_output: bool,
    summary_mode: bool,
    quiet: bool,
) -> None:
    """Create a bag at BAG_DIR from the files in PAYLOAD_DIR.

    The bag is validated against the profile, when one is configured, before
    it is optionally packed.

    Raises:
        click.ClickException: If the bag cannot be created, validated, or packed.
    """

    warnings: list[str] = []
    try:
        config = _load_config({"bag.profile": profile_path})
        quiet_enabled, summary_only = _resolve_output_modes(
            ctx, config, quiet=quiet, summary_mode=summary_mode, json_output=json_output
        )
        settings = config.bag
        profile = _load_profile(settings.profile)

        info = {section: dict(fields) for section, fields in settings.info.items()}
        for section, fields in _parse_info_items(info_items).items():
            info.setdefault(section, {}).update(fields)

        kind = SerializationKind.DIRECTORY
        if serialization:
            kind = SerializationKind.from_name(serialization)
        if profile is not None:
            check_serialization(profile, kind)

        try:
            bag_path = create_bag(
                Path(payload_dir).expanduser().resolve(),
                Path(bag_dir).expanduser().resolve(),
                info=info,
                algorithms=list(algorithms) or settings.algorithms,
                profile=profile,
            )
        except ValueError as exc:
            raise click.BadParameter(str(exc), param_hint="--algorithm") from exc

        if profile is not None:
            validate_bag(bag_path, profile, warn=_warning_sink(warnings))
        output = serialize(bag_path, kind)
    except ConfigError as exc:
        _handle_cli_error(str(exc), code="config_error", json_output=json_output, original=exc)
        return
    except BagportError as exc:
        _handle_bagport_error(exc, json_output=json_output)
        return

    if json_output:
        console.print_json(
            data={
                "bag": str(bag_path),
                "serialization": kind.label,
                "output": str(output),
                "warnings": warnings,
            }
        )
        return

    for warning in warnings:
        _emit_message(
            f"[yellow]{warning}[/yellow]",
            mode="warning",
            quiet=quiet_enabled,
            summary_only=summary_only,
        )
    _emit_message(
        _format_summary_line("Bag", bag_path, {"serialization": kind.label, "output": output}),
        mode="summary",
        quiet=quiet_enabled,
        summary_only=summary_only,
    )


@cli.command()
@click.argument("bag_path", type=click.Path(exists=True, path_type=str))
@click.option(
    "--profile",
    "profile_path",
    type=click.Path(exists=True, dir_okay=False, path_type=str),
    help="BagIt profile to validate against.",
)
@click.option("--json", "json_output", is_flag=True, help="Emit the result as JSON.")
@click.option("--summary", "summary_mode", is_flag=True, help="Only emit summary lines.")
@click.option("--quiet", is_flag=True, help="Suppress non-error output.")
@click.pass_context
def validate(
    ctx: click.Context,
    bag_path: str,
    profile_path: str | None,
    json_output: bool,
    summary_mode: bool,
    quiet: bool,
) -> None:
    """Verify the bag at BAG_PATH, unpacking it first when it is an archive.

    Raises:
        click.ClickException: If the bag is incomplete or violates the profile.
    """

    warnings: list[str] = []
    try:
        config = _load_config({"bag.profile": profile_path})
        quiet_enabled, summary_only = _resolve_output_modes(
            ctx, config, quiet=quiet, summary_mode=summary_mode, json_output=json_output
        )
        profile = _load_profile(config.bag.profile)

        source = Path(bag_path).expanduser().resolve()
        kind = SerializationKind.from_path(source)
        if profile is not None:
            check_serialization(profile, kind)
        bag_dir = deserialize(source)
        verify_bag(bag_dir)
        if profile is not None:
            validate_bag(bag_dir, profile, warn=_warning_sink(warnings))
    except ConfigError as exc:
        _handle_cli_error(str(exc), code="config_error", json_output=json_output, original=exc)
        return
    except BagportError as exc:
        _handle_bagport_error(exc, json_output=json_output)
        return

    if json_output:
        console.print_json(
            data={
                "bag": str(bag_dir),
                "serialization": kind.label,
                "valid": True,
                "warnings": warnings,
            }
        )
        return

    for warning in warnings:
        _emit_message(
            f"[yellow]{warning}[/yellow]",
            mode="warning",
            quiet=quiet_enabled,
            summary_only=summary_only,
        )
    _emit_message(
        _format_summary_line(
            "Validate", bag_dir, {"serialization": kind.label, "warnings": len(warnings)}
        ),
        mode="summary",
        quiet=quiet_enabled,
        summary_only=summary_only,
    )


@cli.command()
@click.argument("bag_dir", type=click.Path(exists=True, file_okay=False, path_type=str))
@click.option(
    "--format",
    "format_name",
    type=click.Choice(_SERIALIZATION_CHOICES),
    help="Archive format; defaults to bag.serialization.",
)
@click.option(
    "--output",
    type=click.Path(dir_okay=False, path_type=str),
    help="Archive path; defaults to BAG_DIR plus the format suffix.",
)
@click.option("--quiet", is_flag=True, help="Suppress non-error output.")
def pack(bag_dir: str, format_name: str | None, output: str | None, quiet: bool) -> None:
    """Serialize BAG_DIR into a single archive.

    Raises:
        click.ClickException: If the archive cannot be written.
    """

    try:
        config = _load_config()
        kind = SerializationKind.from_name(format_name or config.bag.serialization)
        destination = Path(output).expanduser().resolve() if output else None
        archive = serialize(Path(bag_dir).expanduser().resolve(), kind, destination)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc
    except BagportError as exc:
        _handle_bagport_error(exc, json_output=False)
        return

    _emit_message(
        f"[green]Packed {bag_dir} as {kind.label}: {archive}[/green]",
        mode="summary",
        quiet=quiet,
        summary_only=False,
    )


@cli.command()
@click.argument("archive", type=click.Path(exists=True, dir_okay=False, path_type=str))
@click.option("--quiet", is_flag=True, help="Suppress non-error output.")
def unpack(archive: str, quiet: bool) -> None:
    """Extract ARCHIVE next to itself, replacing any previous extraction.

    Raises:
        click.ClickException: If the archive is unsupported, corrupt, or unsafe.
    """

    try:
        _load_config()
        target = deserialize(Path(archive).expanduser().resolve())
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc
    except BagportError as exc:
        _handle_bagport_error(exc, json_output=False)
        return

    _emit_message(
        f"[green]Unpacked {archive} into {target}[/green]",
        mode="summary",
        quiet=quiet,
        summary_only=False,
    )


@cli.group()
def config() -> None:
    """Manage bagport configuration files and overrides.

    Returns:
        None: This function is invoked for its side effects.
    """


@config.command("view")
@click.option("--no-env", is_flag=True, help="Ignore environment overrides when displaying output.")
@click.option(
    "--env", "as_env", is_flag=True, help="Print the configuration as BAGPORT__ variables."
)
def config_view(no_env: bool, as_env: bool) -> None:
    """Display the effective configuration after applying precedence rules.

    Args:
        no_env: If True, ignore environment-derived overrides.
        as_env: If True, print `KEY=VALUE` lines suitable for the environment.

    Raises:
        click.ClickException: If configuration cannot be loaded.
    """
    try:
        config = ConfigManager().load(include_env=not no_env)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    if as_env:
        for key, value in flatten_for_env(config).items():
            click.echo(f"{key}={value}")
        return

    yaml_text = yaml.safe_dump(config.model_dump(mode="python"), sort_keys=False)
    console.print(Syntax(yaml_text, "yaml", word_wrap=True))


@config.command("set")
@click.argument("key")
@click.option("--value", required=True, help="Value to assign to KEY.")
def config_set(key: str, value: str) -> None:
    """Persist a configuration value expressed as a dotted KEY.

    Args:
        key: Dotted path describing the configuration field to update.
        value: YAML-literal value to write into the configuration file.

    Raises:
        click.ClickException: If parsing, assignment, or validation fails.
    """
    manager = ConfigManager()
    manager.ensure_exists()

    before = manager.read_text().splitlines()
    segments = [segment.strip() for segment in key.split(".") if segment.strip()]
    if not segments:
        raise click.ClickException("KEY must specify a dotted path such as 'bag.serialization'.")

    try:
        parsed_value = yaml.safe_load(value)
    except yaml.YAMLError as exc:
        raise click.ClickException(f"Unable to parse value: {exc}") from exc

    try:
        file_data = manager.load_file_overrides()
        _assign_nested(file_data, segments, parsed_value)
        resolve_with_precedence(defaults=BagportConfig(), file_overrides=file_data)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    manager.save(file_data)
    after = manager.read_text().splitlines()

    diff = list(
        difflib.unified_diff(
            before,
            after,
            fromfile="config.yaml (before)",
            tofile="config.yaml (after)",
            lineterm="",
        )
    )

    if diff:
        console.print(Syntax("\n".join(diff), "diff", word_wrap=False))
    else:
        console.print("[yellow]No changes applied; value already up to date.[/yellow]")
        return

    console.print(f"[green]Updated {'.'.join(segments)}.[/green]")


@config.command("edit")
def config_edit() -> None:
    """Open the configuration file in an interactive editor session.

    Raises:
        click.ClickException: If edited content is invalid or cannot be saved.
    """
    manager = ConfigManager()
    manager.ensure_exists()

    original = manager.read_text()
    edited = click.edit(original, extension=".yaml")

    if edited is None:
        console.print("[yellow]Edit cancelled; no changes applied.[/yellow]")
        return

    if edited == original:
        console.print("[yellow]No changes detected.[/yellow]")
        return

    try:
        parsed = yaml.safe_load(edited) or {}
    except yaml.YAMLError as exc:
        raise click.ClickException(f"Invalid YAML: {exc}") from exc

    if not isinstance(parsed, dict):
        raise click.ClickException("Configuration file must contain a top-level mapping.")

    try:
        resolve_with_precedence(defaults=BagportConfig(), file_overrides=parsed)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    manager.save(parsed)
    console.print("[green]Configuration updated successfully.[/green]")


def main() -> None:
    """Invoke the Click CLI as the console script entry point.

    Returns:
        None: This function is invoked for its side effects.
    """
    cli()


if __name__ == "__main__":
    main()
