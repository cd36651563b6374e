"""Tests for resource description discovery."""

from pathlib import Path

import pytest

from bagport.errors import IoFailure
from bagport.importer import ResourceTreeWalker


def _touch(path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("", encoding="utf-8")
    return path


def test_walker_yields_descriptions_and_skips_version_indexes(tmp_path: Path) -> None:
    expected = {
        _touch(tmp_path / "rest" / "a.ttl"),
        _touch(tmp_path / "rest" / "a" / "b.ttl"),
        _touch(tmp_path / "rest" / "img" / "fcr%3Ametadata.ttl"),
    }
    _touch(tmp_path / "rest" / "a" / "fcr%3Aversions.ttl")
    _touch(tmp_path / "rest" / "img.binary")
    _touch(tmp_path / "rest" / "notes.txt")

    walker = ResourceTreeWalker(tmp_path, ".ttl")

    assert set(walker.walk()) == expected


def test_walker_honours_configured_extension(tmp_path: Path) -> None:
    jsonld = _touch(tmp_path / "rest" / "a.jsonld")
    _touch(tmp_path / "rest" / "b.ttl")
    _touch(tmp_path / "rest" / "fcr%3Aversions.jsonld")

    walker = ResourceTreeWalker(tmp_path, ".jsonld")

    assert list(walker.walk()) == [jsonld]


def test_is_resource_file_rejects_versions_only_with_matching_suffix() -> None:
    walker = ResourceTreeWalker(Path("."), ".ttl")

    assert walker.is_resource_file(Path("fcr%3Aversions.ttl")) is False
    assert walker.is_resource_file(Path("fcr%3Aversions.nt")) is False
    assert walker.is_resource_file(Path("fcr%3Aversions-old.ttl")) is True
    assert walker.is_resource_file(Path("thing.ttl")) is True


def test_walker_raises_for_missing_directory(tmp_path: Path) -> None:
    walker = ResourceTreeWalker(tmp_path / "missing")

    with pytest.raises(IoFailure):
        list(walker.walk())
