"""Tests for chronological resource sequencing."""

from pathlib import Path
from typing import Iterator

import pytest
from rdflib import XSD

from bagport.config.models import ImportSettings
from bagport.errors import IoFailure, MalformedMetadata
from bagport.importer import (
    ChronologicalSequencer,
    ResourceTreeWalker,
    TimestampExtractor,
    UriTranslator,
)

REPOSITORY = "http://localhost:8080/rest"
LAST_MODIFIED = "<http://fedora.info/definitions/v4/repository#lastModified>"


class _ListWalker(ResourceTreeWalker):
    """Walker replaying a fixed discovery order."""

    def __init__(self, base_directory: Path, paths: list[Path]) -> None:
        super().__init__(base_directory)
        self._paths = paths

    def walk(self) -> Iterator[Path]:
        yield from self._paths


def _write(
    base: Path, name: str, *, modified: str | None = None, subject: str | None = None
) -> Path:
    uri = subject or f"{REPOSITORY}/{name}"
    lines = [f"<{uri}> <http://purl.org/dc/terms/title> \"{name}\" ."]
    if modified is not None:
        lines.append(f'<{uri}> {LAST_MODIFIED} "{modified}"^^<{XSD.dateTime}> .')
    path = base / "rest" / f"{name}.ttl"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def _settings() -> ImportSettings:
    return ImportSettings(source=REPOSITORY, destination=REPOSITORY)


def _extractor(base: Path) -> TimestampExtractor:
    return TimestampExtractor(UriTranslator(REPOSITORY, REPOSITORY), base)


def test_identifiers_follow_timestamp_order(tmp_path: Path) -> None:
    _write(tmp_path, "c", modified="2021-03-01T00:00:00Z")
    _write(tmp_path, "a", modified="2021-01-01T00:00:00Z")
    _write(tmp_path, "b", modified="2021-02-01T00:00:00Z")

    sequencer = ChronologicalSequencer.from_settings(tmp_path, _settings())

    assert list(sequencer) == [f"{REPOSITORY}/a", f"{REPOSITORY}/b", f"{REPOSITORY}/c"]


def test_untimestamped_resources_sort_first_in_discovery_order(tmp_path: Path) -> None:
    dated = _write(tmp_path, "dated", modified="2000-01-01T00:00:00Z")
    first = _write(tmp_path, "zeta")
    second = _write(tmp_path, "alpha")
    third = _write(tmp_path, "mid")

    walker = _ListWalker(tmp_path, [dated, first, second, third])
    sequencer = ChronologicalSequencer(walker, _extractor(tmp_path))

    assert list(sequencer) == [
        f"{REPOSITORY}/zeta",
        f"{REPOSITORY}/alpha",
        f"{REPOSITORY}/mid",
        f"{REPOSITORY}/dated",
    ]


def test_equal_timestamps_keep_discovery_order(tmp_path: Path) -> None:
    stamp = "2020-06-01T12:00:00Z"
    paths = [_write(tmp_path, name, modified=stamp) for name in ("b", "c", "a")]
    early = _write(tmp_path, "early", modified="2019-01-01T00:00:00Z")

    sequencer = ChronologicalSequencer(_ListWalker(tmp_path, [*paths, early]), _extractor(tmp_path))

    assert list(sequencer) == [
        f"{REPOSITORY}/early",
        f"{REPOSITORY}/b",
        f"{REPOSITORY}/c",
        f"{REPOSITORY}/a",
    ]


def test_version_indexes_are_not_sequenced(tmp_path: Path) -> None:
    _write(tmp_path, "a", modified="2021-01-01T00:00:00Z")
    versions = tmp_path / "rest" / "a" / "fcr%3Aversions.ttl"
    versions.parent.mkdir(parents=True)
    versions.write_text("this is not turtle", encoding="utf-8")

    sequencer = ChronologicalSequencer.from_settings(tmp_path, _settings())

    assert list(sequencer) == [f"{REPOSITORY}/a"]


def test_duplicate_identifiers_are_rejected(tmp_path: Path) -> None:
    _write(tmp_path, "a", modified="2021-01-01T00:00:00Z")
    clash = tmp_path / "rest" / "b.ttl"
    clash.write_text(
        f"<{REPOSITORY}/a> a <http://www.w3.org/ns/ldp#NonRDFSource> .\n", encoding="utf-8"
    )

    with pytest.raises(MalformedMetadata, match="Duplicate resource identifier"):
        ChronologicalSequencer.from_settings(tmp_path, _settings())


def test_sequence_is_single_pass(tmp_path: Path) -> None:
    _write(tmp_path, "a", modified="2021-01-01T00:00:00Z")
    _write(tmp_path, "b", modified="2021-02-01T00:00:00Z")

    sequencer = ChronologicalSequencer.from_settings(tmp_path, _settings())

    assert len(sequencer) == 2
    assert next(sequencer) == f"{REPOSITORY}/a"
    assert sequencer.remaining == 1
    assert next(sequencer) == f"{REPOSITORY}/b"
    assert sequencer.remaining == 0
    with pytest.raises(StopIteration):
        next(sequencer)
    assert list(sequencer) == []


def test_malformed_timestamp_aborts_construction(tmp_path: Path) -> None:
    _write(tmp_path, "a", modified="2021-01-01T00:00:00Z")
    _write(tmp_path, "b", modified="not-a-date")

    with pytest.raises(MalformedMetadata):
        ChronologicalSequencer.from_settings(tmp_path, _settings())


def test_missing_base_directory_is_io_failure(tmp_path: Path) -> None:
    with pytest.raises(IoFailure):
        ChronologicalSequencer.from_settings(tmp_path / "missing", _settings())
