"""Import resource factories and the chronological resource iterator."""

from __future__ import annotations

from pathlib import Path
from typing import Iterator, Protocol

from .models import ImportResource
from .sequencer import ChronologicalSequencer
from .translation import UriTranslator


class ImportResourceFactory(Protocol):
    """Turn an identifier into a loadable resource descriptor."""

    def create_from_uri(self, uri: str) -> ImportResource:
        """Return the import resource for `uri`."""
        ...


class FileSystemResourceFactory:
    """Locate the exported files backing a resource identifier."""

    def __init__(self, translator: UriTranslator, base_directory: Path) -> None:
        self.translator = translator
        self.base_directory = base_directory

    def create_from_uri(self, uri: str) -> ImportResource:
        binary = self.translator.binary_for_uri(uri, self.base_directory)
        if binary.is_file():
            metadata = self.translator.description_for_binary(uri, self.base_directory)
            return ImportResource(uri=uri, metadata_path=metadata, binary_path=binary)
        metadata = self.translator.file_for_uri(uri, self.base_directory)
        return ImportResource(uri=uri, metadata_path=metadata)


class ChronologicalImportIterator(Iterator[ImportResource]):
    """Yield import resources in the order fixed by a sequencer."""

    def __init__(self, sequencer: ChronologicalSequencer, factory: ImportResourceFactory) -> None:
        self._sequencer = sequencer
        self._factory = factory

    def __iter__(self) -> "ChronologicalImportIterator":
        return self

    def __next__(self) -> ImportResource:
        return self._factory.create_from_uri(next(self._sequencer))


__all__ = [
    "ImportResourceFactory",
    "FileSystemResourceFactory",
    "ChronologicalImportIterator",
]
