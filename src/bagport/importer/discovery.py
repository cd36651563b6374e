"""Resource description discovery."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator

from bagport.errors import IoFailure

LOGGER = logging.getLogger(__name__)

VERSIONS_SEGMENT = "fcr%3Aversions"


class ResourceTreeWalker:
    """Enumerate serialized resource descriptions below an export root."""

    def __init__(self, base_directory: Path, rdf_extension: str = ".ttl") -> None:
        self.base_directory = base_directory
        self.rdf_extension = rdf_extension

    def is_resource_file(self, path: Path) -> bool:
        """Return whether `path` names a resource description (not a version index)."""
        name = path.name
        if not name.endswith(self.rdf_extension):
            return False
        return not name.endswith(VERSIONS_SEGMENT + self.rdf_extension)

    def walk(self) -> Iterator[Path]:
        """Yield description files in filesystem order.

        Raises:
            IoFailure: If the base directory does not exist or cannot be listed.
        """
        root = self.base_directory.expanduser()
        if not root.is_dir():
            raise IoFailure(f"Resource directory does not exist: {root}")

        try:
            for path in root.rglob("*"):
                if not path.is_file():
                    continue
                if not self.is_resource_file(path):
                    LOGGER.debug("Skipping non-resource file %s", path)
                    continue
                yield path
        except OSError as exc:
            raise IoFailure(f"Failed to walk {root}: {exc}") from exc


__all__ = ["ResourceTreeWalker", "VERSIONS_SEGMENT"]
