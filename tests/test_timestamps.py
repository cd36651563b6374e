"""Tests for creation timestamp extraction."""

from pathlib import Path

import pytest
from rdflib import XSD, Literal, URIRef

from bagport.errors import MalformedMetadata
from bagport.importer import UNKNOWN_TIMESTAMP, TimestampExtractor, UriTranslator
from bagport.importer.timestamps import to_epoch_millis

REPOSITORY = "http://localhost:8080/rest"
LDP = "http://www.w3.org/ns/ldp#"
LAST_MODIFIED = "<http://fedora.info/definitions/v4/repository#lastModified>"


def _write_description(
    base: Path,
    relative: str,
    uri: str,
    *,
    modified: str | None = None,
    binary: bool = False,
) -> Path:
    kind = "NonRDFSource" if binary else "RDFSource"
    lines = [f"<{uri}> a <{LDP}{kind}> ."]
    if modified is not None:
        lines.append(f'<{uri}> {LAST_MODIFIED} "{modified}"^^<{XSD.dateTime}> .')
    path = base / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def _extractor(base: Path) -> TimestampExtractor:
    return TimestampExtractor(UriTranslator(REPOSITORY, REPOSITORY), base)


def test_extract_reads_last_modified(tmp_path: Path) -> None:
    path = _write_description(
        tmp_path, "rest/a.ttl", f"{REPOSITORY}/a", modified="1970-01-01T00:00:01.500Z"
    )

    entry = _extractor(tmp_path).extract(path)

    assert entry.identifier == f"{REPOSITORY}/a"
    assert entry.timestamp_millis == 1500
    assert entry.source_path == path


def test_missing_last_modified_sorts_as_unknown(tmp_path: Path) -> None:
    path = _write_description(tmp_path, "rest/a.ttl", f"{REPOSITORY}/a")

    entry = _extractor(tmp_path).extract(path)

    assert entry.timestamp_millis == UNKNOWN_TIMESTAMP


def test_last_modified_on_other_subject_is_ignored(tmp_path: Path) -> None:
    path = _write_description(
        tmp_path, "rest/a.ttl", f"{REPOSITORY}/other", modified="2020-01-01T00:00:00Z"
    )

    entry = _extractor(tmp_path).extract(path)

    assert entry.identifier == f"{REPOSITORY}/a"
    assert entry.timestamp_millis == UNKNOWN_TIMESTAMP


def test_non_rdf_source_node_provides_identifier(tmp_path: Path) -> None:
    path = _write_description(
        tmp_path,
        "rest/img/fcr%3Ametadata.ttl",
        f"{REPOSITORY}/img",
        modified="2020-01-01T00:00:00Z",
        binary=True,
    )

    entry = _extractor(tmp_path).extract(path)

    assert entry.identifier == f"{REPOSITORY}/img"
    assert entry.timestamp_millis == 1577836800000


def test_malformed_last_modified_is_fatal(tmp_path: Path) -> None:
    path = _write_description(tmp_path, "rest/a.ttl", f"{REPOSITORY}/a", modified="yesterday")

    with pytest.raises(MalformedMetadata) as excinfo:
        _extractor(tmp_path).extract(path)

    assert str(path) in str(excinfo.value)


def test_unparsable_rdf_is_malformed(tmp_path: Path) -> None:
    path = tmp_path / "rest" / "a.ttl"
    path.parent.mkdir(parents=True)
    path.write_text("<unterminated", encoding="utf-8")

    with pytest.raises(MalformedMetadata):
        _extractor(tmp_path).extract(path)


def test_uris_are_mapped_to_destination(tmp_path: Path) -> None:
    translator = UriTranslator("http://old:8080/rest", "http://new:9090/rest")
    path = _write_description(
        tmp_path,
        "rest/img/fcr%3Ametadata.ttl",
        "http://old:8080/rest/img",
        modified="2020-01-01T00:00:00Z",
        binary=True,
    )
    extractor = TimestampExtractor(translator, tmp_path, map_uri=translator.map_uri)

    entry = extractor.extract(path)

    assert entry.identifier == "http://new:9090/rest/img"
    assert entry.timestamp_millis == 1577836800000


def test_to_epoch_millis_treats_naive_values_as_utc() -> None:
    value = Literal("2020-01-01T00:00:00", datatype=XSD.dateTime)

    assert to_epoch_millis(value) == 1577836800000


def test_to_epoch_millis_rejects_non_literals() -> None:
    with pytest.raises(MalformedMetadata):
        to_epoch_millis(URIRef("http://example.org/not-a-date"))


def test_to_epoch_millis_reads_dates_as_utc_midnight() -> None:
    assert to_epoch_millis(Literal("1970-01-02", datatype=XSD.date)) == 86400000


@pytest.mark.parametrize(
    "value",
    [
        Literal("2021-01-01"),
        Literal("2021-01-01T00:00:00Z", datatype=XSD.string),
        Literal(1609459200000),
    ],
    ids=["untyped", "string", "integer"],
)
def test_to_epoch_millis_rejects_other_datatypes(value: Literal) -> None:
    with pytest.raises(MalformedMetadata):
        to_epoch_millis(value)


def test_untyped_last_modified_is_fatal(tmp_path: Path) -> None:
    uri = f"{REPOSITORY}/a"
    path = tmp_path / "rest" / "a.ttl"
    path.parent.mkdir(parents=True)
    path.write_text(f'<{uri}> {LAST_MODIFIED} "2021-01-01" .\n', encoding="utf-8")

    with pytest.raises(MalformedMetadata, match="2021-01-01"):
        _extractor(tmp_path).extract(path)
