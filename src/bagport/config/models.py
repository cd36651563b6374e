"""Configuration models describing bagport settings."""

from __future__ import annotations

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class BagportBaseModel(BaseModel):
    """Shared configuration for bagport Pydantic models."""

    model_config = ConfigDict(extra="forbid")


class ImportSettings(BagportBaseModel):
    """Options controlling how exported resources are read back for import.

    Attributes:
        rdf_extension: Filename suffix of serialized resource descriptions.
        rdf_language: MIME type handed to the RDF parser.
        binary_extension: Filename suffix of exported binary content.
        source: Base URI of the repository the resources were exported from.
        destination: Base URI of the repository receiving the import.
    """

    rdf_extension: str = ".ttl"
    rdf_language: str = "text/turtle"
    binary_extension: str = ".binary"
    source: Optional[str] = None
    destination: Optional[str] = None


class BagSettings(BagportBaseModel):
    """Options used when writing and packaging bags.

    Attributes:
        profile: Path to a BagIt profile document used for validation.
        algorithms: Digest algorithms used for payload and tag manifests.
        serialization: Default serialization applied by `bagport pack`.
        info: Tag-file fields keyed by profile section (e.g. `Bag-Info`).
    """

    profile: Optional[str] = None
    algorithms: List[str] = Field(default_factory=lambda: ["sha1"])
    serialization: Literal["directory", "tar", "tar.gz", "tgz", "tar.bz2", "zip"] = "tar"
    info: Dict[str, Dict[str, str]] = Field(default_factory=dict)


class LoggingSettings(BagportBaseModel):
    """Runtime logging configuration.

    Attributes:
        level: Logging verbosity level.
    """

    level: str = "WARNING"


class CLIOptions(BagportBaseModel):
    """CLI behavior defaults and presentation preferences.

    Attributes:
        quiet_default: Whether commands suppress non-error output by default.
        summary_default: Whether commands only print summary lines by default.
    """

    quiet_default: bool = False
    summary_default: bool = False


class BagportConfig(BagportBaseModel):
    """Top-level configuration struct for bagport.

    Attributes:
        importer: Import ordering settings.
        bag: Bag creation and packaging settings.
        logging: Logging configuration.
        cli: CLI presentation defaults.
    """

    importer: ImportSettings = Field(default_factory=ImportSettings)
    bag: BagSettings = Field(default_factory=BagSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    cli: CLIOptions = Field(default_factory=CLIOptions)


__all__ = [
    "BagportBaseModel",
    "ImportSettings",
    "BagSettings",
    "LoggingSettings",
    "CLIOptions",
    "BagportConfig",
]
