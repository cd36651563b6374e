"""Data models shared by the import ordering components."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from pydantic import BaseModel

UNKNOWN_TIMESTAMP = 0


@dataclass(frozen=True, slots=True)
class TimestampedIdentifier:
    """A resource identifier paired with its creation time.

    Attributes:
        timestamp_millis: Epoch milliseconds; `UNKNOWN_TIMESTAMP` when absent.
        identifier: Absolute URI of the resource in the destination repository.
        source_path: Description file the identifier was read from.
    """

    timestamp_millis: int
    identifier: str
    source_path: Optional[Path] = None


class ImportResource(BaseModel):
    """Loadable descriptor for one resource of an export tree.

    Attributes:
        uri: Identifier of the resource in the destination repository.
        metadata_path: Serialized description of the resource.
        binary_path: Exported binary content, for non-RDF sources.
    """

    uri: str
    metadata_path: Path
    binary_path: Optional[Path] = None

    @property
    def is_binary(self) -> bool:
        """Return whether the resource carries binary content."""
        return self.binary_path is not None


__all__ = ["UNKNOWN_TIMESTAMP", "TimestampedIdentifier", "ImportResource"]
