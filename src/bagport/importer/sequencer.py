"""Chronological ordering of resources for replay into a repository."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator

from bagport.config.models import ImportSettings
from bagport.errors import MalformedMetadata

from .discovery import ResourceTreeWalker
from .timestamps import TimestampExtractor
from .translation import UriTranslator

LOGGER = logging.getLogger(__name__)


class ChronologicalSequencer(Iterator[str]):
    """Single-pass iterator over resource identifiers in creation order.

    The whole tree is walked and sorted during construction, so the order is
    fixed before the first identifier is produced. Identifiers sharing a
    timestamp keep the order in which the walker discovered them.
    """

    def __init__(self, walker: ResourceTreeWalker, extractor: TimestampExtractor) -> None:
        identifiers: list[str] = []
        keys: list[tuple[int, int]] = []
        origins: dict[str, Path] = {}

        for path in walker.walk():
            entry = extractor.extract(path)
            previous = origins.get(entry.identifier)
            if previous is not None:
                raise MalformedMetadata(
                    f"Duplicate resource identifier {entry.identifier} in {previous} and {path}"
                )
            origins[entry.identifier] = path
            keys.append((entry.timestamp_millis, len(identifiers)))
            identifiers.append(entry.identifier)

        keys.sort()
        self._ordered = [identifiers[index] for _, index in keys]
        self._position = 0
        LOGGER.info("Sequenced %d resources under %s", len(self._ordered), walker.base_directory)

    @classmethod
    def from_settings(
        cls, base_directory: Path, settings: ImportSettings
    ) -> "ChronologicalSequencer":
        """Build a sequencer wired with the default walker, translator, and extractor."""
        translator = UriTranslator(
            settings.source,
            settings.destination,
            rdf_extension=settings.rdf_extension,
            binary_extension=settings.binary_extension,
        )
        walker = ResourceTreeWalker(base_directory, settings.rdf_extension)
        extractor = TimestampExtractor(
            translator,
            base_directory,
            rdf_format=settings.rdf_language,
            map_uri=translator.map_uri,
        )
        return cls(walker, extractor)

    def __iter__(self) -> "ChronologicalSequencer":
        return self

    def __next__(self) -> str:
        if self._position >= len(self._ordered):
            raise StopIteration
        identifier = self._ordered[self._position]
        self._position += 1
        return identifier

    def __len__(self) -> int:
        return len(self._ordered)

    @property
    def remaining(self) -> int:
        """Return how many identifiers have not been consumed yet."""
        return len(self._ordered) - self._position


__all__ = ["ChronologicalSequencer"]
