"""Translation between export-tree file paths and repository URIs."""

from __future__ import annotations

from pathlib import Path
from urllib.parse import quote, unquote, urlsplit, urlunsplit

from bagport.errors import MalformedMetadata

METADATA_SEGMENT = "fcr:metadata"


class UriTranslator:
    """Map exported files onto URIs in the destination repository.

    Exports lay resources out below the base directory by URI path, so
    `http://host/rest/a/b` is stored as `<base>/rest/a/b.ttl`. Binary content
    sits next to its description as `<base>/rest/a/b.binary`, described by
    `<base>/rest/a/b/fcr%3Ametadata.ttl`.
    """

    def __init__(
        self,
        source: str | None = None,
        destination: str | None = None,
        *,
        rdf_extension: str = ".ttl",
        binary_extension: str = ".binary",
    ) -> None:
        if source is None and destination is None:
            raise ValueError("A source or destination base URI is required.")
        self.source = (source or destination or "").rstrip("/")
        self.destination = (destination or source or "").rstrip("/")
        self.rdf_extension = rdf_extension
        self.binary_extension = binary_extension
        self._source_path = urlsplit(self.source).path.rstrip("/")
        self._destination = urlsplit(self.destination)

    def __call__(self, path: Path, base_directory: Path) -> str:
        return self.uri_for_file(path, base_directory)

    def uri_for_file(self, path: Path, base_directory: Path) -> str:
        """Return the destination URI of an exported file.

        Raises:
            MalformedMetadata: If the file does not live below the base directory.
        """
        try:
            relative = path.relative_to(base_directory).as_posix()
        except ValueError as exc:
            raise MalformedMetadata(f"{path} is outside the export root {base_directory}") from exc

        for extension in (self.rdf_extension, self.binary_extension):
            if relative.endswith(extension):
                relative = relative[: -len(extension)]
                break

        resource_path = "/" + unquote(relative)
        if resource_path.endswith("/" + METADATA_SEGMENT):
            resource_path = resource_path[: -len(METADATA_SEGMENT) - 1]
        return self._rebase(resource_path)

    def file_for_uri(self, uri: str, base_directory: Path) -> Path:
        """Return the description file an export would hold for `uri`."""
        relative = self._relative_export_path(uri)
        return base_directory / (relative + self.rdf_extension)

    def binary_for_uri(self, uri: str, base_directory: Path) -> Path:
        """Return the binary content file an export would hold for `uri`."""
        relative = self._relative_export_path(uri)
        return base_directory / (relative + self.binary_extension)

    def description_for_binary(self, uri: str, base_directory: Path) -> Path:
        """Return the description file of a binary resource."""
        relative = self._relative_export_path(uri)
        segment = quote(METADATA_SEGMENT, safe="")
        return base_directory / relative / (segment + self.rdf_extension)

    def map_uri(self, uri: str) -> str:
        """Rewrite a source-repository URI onto the destination repository."""
        if self.source == self.destination:
            return uri
        if uri == self.source or uri.startswith(self.source + "/"):
            return self.destination + uri[len(self.source) :]
        return uri

    def _rebase(self, resource_path: str) -> str:
        source_path = self._source_path
        if source_path and (
            resource_path == source_path or resource_path.startswith(source_path + "/")
        ):
            resource_path = resource_path[len(source_path) :]
            resource_path = self._destination.path.rstrip("/") + resource_path
        elif not source_path:
            resource_path = self._destination.path.rstrip("/") + resource_path
        scheme, netloc = self._destination.scheme, self._destination.netloc
        return urlunsplit((scheme, netloc, resource_path, "", ""))

    def _relative_export_path(self, uri: str) -> str:
        path = unquote(urlsplit(uri).path)
        destination_path = self._destination.path.rstrip("/")
        if destination_path and (
            path == destination_path or path.startswith(destination_path + "/")
        ):
            path = self._source_path + path[len(destination_path) :]
        elif not destination_path:
            path = self._source_path + path
        segments = [quote(segment, safe="") for segment in path.strip("/").split("/") if segment]
        return "/".join(segments)


__all__ = ["UriTranslator", "METADATA_SEGMENT"]
