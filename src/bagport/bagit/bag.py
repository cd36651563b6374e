"""Bag writing, tag-file parsing, and manifest verification."""

from __future__ import annotations

import hashlib
import logging
import shutil
from datetime import date
from pathlib import Path
from typing import Dict, Iterable, Mapping, Optional

from bagport.errors import BagVerificationError, IoFailure

from .models import BagProfile

LOGGER = logging.getLogger(__name__)

BAGIT_VERSION = "1.0"
BAG_INFO_SECTION = "Bag-Info"
SUPPORTED_ALGORITHMS = ("md5", "sha1", "sha256", "sha512")
_CHUNK_SIZE = 1024 * 1024


def tag_file_name(section: str) -> str:
    """Return the tag file holding a profile section (`Bag-Info` -> `bag-info.txt`)."""
    return f"{section.lower()}.txt"


def payload_directory(bag_dir: Path) -> Path:
    """Return the payload directory of a bag."""
    return bag_dir / "data"


def read_tag_file(path: Path) -> Dict[str, str]:
    """Parse `Label: value` lines, folding indented continuation lines.

    Later occurrences of a repeated label replace earlier ones.

    Raises:
        IoFailure: If the file cannot be read.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise IoFailure(f"Unable to read tag file {path}: {exc}") from exc

    fields: Dict[str, str] = {}
    current: Optional[str] = None
    for line in text.splitlines():
        if not line.strip():
            continue
        if line[0] in " \t" and current is not None:
            fields[current] = f"{fields[current]} {line.strip()}"
            continue
        label, separator, value = line.partition(":")
        if not separator:
            LOGGER.warning("Ignoring malformed line in %s: %r", path, line)
            current = None
            continue
        current = label.strip()
        fields[current] = value.strip()
    return fields


def write_tag_file(path: Path, fields: Mapping[str, str]) -> None:
    """Write `fields` as a tag file, one `Label: value` line per field."""
    lines = "".join(f"{label}: {value}\n" for label, value in fields.items())
    path.write_text(lines, encoding="utf-8")


def create_bag(
    payload_dir: Path,
    bag_dir: Path,
    *,
    info: Optional[Mapping[str, Mapping[str, str]]] = None,
    algorithms: Iterable[str] = ("sha1",),
    profile: Optional[BagProfile] = None,
) -> Path:
    """Copy `payload_dir` into a new bag at `bag_dir` and write its tag files.

    Args:
        payload_dir: Directory whose contents become the bag payload.
        bag_dir: Bag directory to create; must not exist or be empty.
        info: Tag-file fields keyed by profile section.
        algorithms: Digest algorithms for payload and tag manifests.
        profile: Profile whose identifier is recorded in `bag-info.txt`.

    Returns:
        Path: The bag directory.

    Raises:
        ValueError: If an algorithm is not supported.
        IoFailure: If the payload cannot be copied or hashed.
    """
    algorithms = list(dict.fromkeys(algorithms))
    unsupported = [name for name in algorithms if name not in SUPPORTED_ALGORITHMS]
    if unsupported or not algorithms:
        raise ValueError(
            f"Unsupported digest algorithm(s): {', '.join(unsupported) or '(none)'}; "
            f"choose from {', '.join(SUPPORTED_ALGORITHMS)}."
        )
    if bag_dir.exists() and any(bag_dir.iterdir()):
        raise IoFailure(f"Bag directory {bag_dir} already exists and is not empty.")

    data_dir = payload_directory(bag_dir)
    try:
        bag_dir.mkdir(parents=True, exist_ok=True)
        shutil.copytree(payload_dir, data_dir)
    except OSError as exc:
        raise IoFailure(f"Unable to copy payload from {payload_dir}: {exc}") from exc

    payload = sorted(path for path in data_dir.rglob("*") if path.is_file())
    digests: Dict[str, Dict[str, str]] = {name: {} for name in algorithms}
    octets = 0
    for path in payload:
        relative = path.relative_to(bag_dir).as_posix()
        for name, value in _digest_file(path, algorithms).items():
            digests[name][relative] = value
        octets += path.stat().st_size

    write_tag_file(
        bag_dir / "bagit.txt",
        {"BagIt-Version": BAGIT_VERSION, "Tag-File-Character-Encoding": "UTF-8"},
    )
    for name in algorithms:
        _write_manifest(bag_dir / f"manifest-{name}.txt", digests[name])

    sections = {section: dict(fields) for section, fields in (info or {}).items()}
    bag_info = sections.pop(BAG_INFO_SECTION, {})
    bag_info["Bagging-Date"] = date.today().isoformat()
    bag_info["Bag-Size"] = _human_size(octets)
    bag_info["Payload-Oxum"] = f"{octets}.{len(payload)}"
    if profile is not None and profile.identifier:
        bag_info["BagIt-Profile-Identifier"] = profile.identifier
    write_tag_file(bag_dir / tag_file_name(BAG_INFO_SECTION), bag_info)
    for section, fields in sections.items():
        write_tag_file(bag_dir / tag_file_name(section), fields)

    tag_files = sorted(
        path
        for path in bag_dir.iterdir()
        if path.is_file() and not path.name.startswith("tagmanifest-")
    )
    for name in algorithms:
        entries = {path.name: _digest_file(path, [name])[name] for path in tag_files}
        _write_manifest(bag_dir / f"tagmanifest-{name}.txt", entries)

    LOGGER.info("Created bag %s with %d payload files (%d bytes)", bag_dir, len(payload), octets)
    return bag_dir


def verify_bag(bag_dir: Path) -> None:
    """Check every manifest of a bag against the files on disk.

    All problems are collected before failing so they can be fixed in one pass.

    Raises:
        BagVerificationError: If files are missing, unlisted, or corrupt.
        IoFailure: If a file cannot be read.
    """
    problems: list[str] = []
    if not (bag_dir / "bagit.txt").is_file():
        raise BagVerificationError(bag_dir, ["bagit.txt is missing"])

    manifests = sorted(bag_dir.glob("manifest-*.txt"))
    if not manifests:
        problems.append("no payload manifest found")

    payload = {
        path.relative_to(bag_dir).as_posix()
        for path in payload_directory(bag_dir).rglob("*")
        if path.is_file()
    }
    for manifest in manifests:
        listed = _check_manifest(bag_dir, manifest, problems)
        for unlisted in sorted(payload - listed):
            problems.append(f"{unlisted} is not listed in {manifest.name}")

    for manifest in sorted(bag_dir.glob("tagmanifest-*.txt")):
        _check_manifest(bag_dir, manifest, problems)

    bag_info_path = bag_dir / tag_file_name(BAG_INFO_SECTION)
    if bag_info_path.is_file():
        oxum = read_tag_file(bag_info_path).get("Payload-Oxum")
        if oxum:
            octets = sum((bag_dir / name).stat().st_size for name in payload)
            actual = f"{octets}.{len(payload)}"
            if oxum != actual:
                problems.append(f"Payload-Oxum {oxum} does not match payload {actual}")

    if problems:
        raise BagVerificationError(bag_dir, problems)
    LOGGER.info("Verified bag %s", bag_dir)


def _check_manifest(bag_dir: Path, manifest: Path, problems: list[str]) -> set[str]:
    algorithm = manifest.stem.split("-", 1)[1]
    if algorithm not in SUPPORTED_ALGORITHMS:
        problems.append(f"{manifest.name} uses unsupported algorithm {algorithm}")
        return set()

    root = bag_dir.resolve()
    listed: set[str] = set()
    for expected, relative in _read_manifest(manifest):
        target = bag_dir / relative
        if not target.resolve().is_relative_to(root):
            problems.append(f"{relative} listed in {manifest.name} is outside the bag")
            continue
        listed.add(relative)
        if not target.is_file():
            problems.append(f"{relative} is listed in {manifest.name} but missing")
            continue
        actual = _digest_file(target, [algorithm])[algorithm]
        if actual != expected.lower():
            problems.append(f"{relative} {algorithm} mismatch: expected {expected}, found {actual}")
    return listed


def _digest_file(path: Path, algorithms: Iterable[str]) -> Dict[str, str]:
    hashers = {name: hashlib.new(name) for name in algorithms}
    try:
        with path.open("rb") as handle:
            for chunk in iter(lambda: handle.read(_CHUNK_SIZE), b""):
                for hasher in hashers.values():
                    hasher.update(chunk)
    except OSError as exc:
        raise IoFailure(f"Unable to read {path}: {exc}") from exc
    return {name: hasher.hexdigest() for name, hasher in hashers.items()}


def _encode_path(relative: str) -> str:
    return relative.replace("%", "%25").replace("\n", "%0A").replace("\r", "%0D")


def _decode_path(encoded: str) -> str:
    return encoded.replace("%0A", "\n").replace("%0D", "\r").replace("%25", "%")


def _write_manifest(path: Path, entries: Mapping[str, str]) -> None:
    lines = "".join(f"{digest}  {_encode_path(name)}\n" for name, digest in sorted(entries.items()))
    path.write_text(lines, encoding="utf-8")


def _read_manifest(path: Path) -> list[tuple[str, str]]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise IoFailure(f"Unable to read manifest {path}: {exc}") from exc
    entries = []
    for line in text.splitlines():
        if not line.strip():
            continue
        digest, _, name = line.partition(" ")
        entries.append((digest, _decode_path(name.lstrip(" *"))))
    return entries


def _human_size(octets: int) -> str:
    size = float(octets)
    for unit in ("bytes", "KB", "MB", "GB", "TB"):
        if size < 1024 or unit == "TB":
            return f"{int(size)} {unit}" if unit == "bytes" else f"{size:.1f} {unit}"
        size /= 1024
    return f"{octets} bytes"


__all__ = [
    "BAGIT_VERSION",
    "BAG_INFO_SECTION",
    "SUPPORTED_ALGORITHMS",
    "tag_file_name",
    "payload_directory",
    "read_tag_file",
    "write_tag_file",
    "create_bag",
    "verify_bag",
]
