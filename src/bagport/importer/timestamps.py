"""Creation timestamp extraction for serialized resource descriptions."""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, timezone
from pathlib import Path
from typing import Callable, Optional

from rdflib import RDF, XSD, Graph, Literal, Namespace, URIRef
from rdflib.term import Node

from bagport.errors import IoFailure, MalformedMetadata

from .models import UNKNOWN_TIMESTAMP, TimestampedIdentifier

LOGGER = logging.getLogger(__name__)

LDP = Namespace("http://www.w3.org/ns/ldp#")
FEDORA = Namespace("http://fedora.info/definitions/v4/repository#")

LDP_NON_RDF_SOURCE = LDP.NonRDFSource
FEDORA_LAST_MODIFIED = FEDORA.lastModified

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_DATE_DATATYPES = frozenset({XSD.dateTime, XSD.dateTimeStamp, XSD.date})

UriTranslation = Callable[[Path, Path], str]


def to_epoch_millis(value: Node) -> int:
    """Convert an `xsd:dateTime`, `xsd:dateTimeStamp` or `xsd:date` literal to epoch millis.

    Raises:
        MalformedMetadata: If the node is not a parsable literal of those datatypes.
    """
    if not isinstance(value, Literal) or value.datatype not in _DATE_DATATYPES:
        raise MalformedMetadata(f"Expected a date-time literal, found {value!r}")

    parsed = value.toPython()
    if not isinstance(parsed, date):
        try:
            parsed = datetime.fromisoformat(str(value).strip())
        except ValueError as exc:
            raise MalformedMetadata(f"Unparsable date-time literal {str(value)!r}") from exc
    if not isinstance(parsed, datetime):
        parsed = datetime.combine(parsed, time())

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return (parsed - _EPOCH) // timedelta(milliseconds=1)


class TimestampExtractor:
    """Derive the identifier and creation time of one resource description."""

    def __init__(
        self,
        translate: UriTranslation,
        base_directory: Path,
        *,
        rdf_format: str = "text/turtle",
        map_uri: Optional[Callable[[str], str]] = None,
    ) -> None:
        self.translate = translate
        self.base_directory = base_directory
        self.rdf_format = rdf_format
        self.map_uri = map_uri

    def extract(self, path: Path) -> TimestampedIdentifier:
        """Parse `path` and return its timestamped identifier."""
        return self.extract_from_graph(self.parse(path), path)

    def parse(self, path: Path) -> Graph:
        """Read and parse a description file, remapping URIs when configured.

        Raises:
            IoFailure: If the file cannot be read.
            MalformedMetadata: If the content is not valid RDF in the configured syntax.
        """
        try:
            content = path.read_bytes()
        except OSError as exc:
            raise IoFailure(f"Unable to read {path}: {exc}") from exc

        graph = Graph()
        try:
            graph.parse(data=content, format=self.rdf_format)
        except Exception as exc:  # rdflib parsers raise heterogeneous error types
            raise MalformedMetadata(f"Unable to parse {path} as {self.rdf_format}: {exc}") from exc

        if self.map_uri is None:
            return graph

        mapped = Graph()
        for triple in graph:
            mapped.add(tuple(self._map_node(node) for node in triple))  # type: ignore[arg-type]
        return mapped

    def extract_from_graph(self, graph: Graph, path: Path) -> TimestampedIdentifier:
        """Return the identifier and timestamp described by an already parsed graph."""
        binaries = sorted(
            str(subject)
            for subject in graph.subjects(RDF.type, LDP_NON_RDF_SOURCE)
            if isinstance(subject, URIRef)
        )
        if binaries:
            identifier = binaries[0]
        else:
            identifier = self.translate(path, self.base_directory)

        modified = graph.value(URIRef(identifier), FEDORA_LAST_MODIFIED)
        if modified is None:
            LOGGER.debug("No last-modified date for %s; ordering it first", identifier)
            return TimestampedIdentifier(UNKNOWN_TIMESTAMP, identifier, path)

        try:
            millis = to_epoch_millis(modified)
        except MalformedMetadata as exc:
            raise MalformedMetadata(f"{path}: {exc}") from exc
        return TimestampedIdentifier(millis, identifier, path)

    def _map_node(self, node: Node) -> Node:
        if isinstance(node, URIRef) and self.map_uri is not None:
            return URIRef(self.map_uri(str(node)))
        return node


__all__ = [
    "TimestampExtractor",
    "LDP_NON_RDF_SOURCE",
    "FEDORA_LAST_MODIFIED",
    "UNKNOWN_TIMESTAMP",
    "to_epoch_millis",
]
