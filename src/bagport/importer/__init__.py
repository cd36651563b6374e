"""Import ordering: discovery, timestamp extraction, and chronological sequencing."""

from .discovery import VERSIONS_SEGMENT, ResourceTreeWalker
from .factory import ChronologicalImportIterator, FileSystemResourceFactory, ImportResourceFactory
from .models import UNKNOWN_TIMESTAMP, ImportResource, TimestampedIdentifier
from .sequencer import ChronologicalSequencer
from .timestamps import FEDORA_LAST_MODIFIED, LDP_NON_RDF_SOURCE, TimestampExtractor
from .translation import UriTranslator

__all__ = [
    "ResourceTreeWalker",
    "VERSIONS_SEGMENT",
    "TimestampExtractor",
    "LDP_NON_RDF_SOURCE",
    "FEDORA_LAST_MODIFIED",
    "UNKNOWN_TIMESTAMP",
    "TimestampedIdentifier",
    "ImportResource",
    "ChronologicalSequencer",
    "ImportResourceFactory",
    "FileSystemResourceFactory",
    "ChronologicalImportIterator",
    "UriTranslator",
]
