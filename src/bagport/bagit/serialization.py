"""Serialization of bag directories into portable archives and back."""

from __future__ import annotations

import bz2
import gzip
import logging
import os
import shutil
import stat
import tarfile
import tempfile
import zipfile
import zlib
from dataclasses import dataclass
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import IO, Any, Callable, Iterator, NamedTuple, Sequence

from bagport.errors import (
    ArchiveFormatViolation,
    BagportError,
    IoFailure,
    UnsupportedEncoding,
)

LOGGER = logging.getLogger(__name__)

_ZIP_EPOCH = (1980, 1, 1, 0, 0, 0)
_COPY_CHUNK = 1024 * 1024


class SerializationKind(Enum):
    """Supported bag serializations with their suffixes and MIME types."""

    DIRECTORY = ("directory", (), ())
    TAR = ("tar", (".tar",), ("application/tar", "application/x-tar"))
    TAR_GZ = (
        "tar.gz",
        (".tar.gz", ".tgz"),
        ("application/gzip", "application/x-gzip", "application/x-compressed-tar"),
    )
    TAR_BZ2 = ("tar.bz2", (".tar.bz2",), ("application/x-bzip2", "application/x-bzip"))
    ZIP = ("zip", (".zip",), ("application/zip",))

    def __init__(self, label: str, suffixes: tuple[str, ...], mimetypes: tuple[str, ...]) -> None:
        self.label = label
        self.suffixes = suffixes
        self.mimetypes = mimetypes

    @classmethod
    def from_path(cls, path: Path) -> "SerializationKind":
        """Select a serialization from an existing directory or an archive suffix.

        Suffixes are matched case-sensitively, longest first.

        Raises:
            UnsupportedEncoding: If no suffix matches.
        """
        if path.is_dir():
            return cls.DIRECTORY
        name = path.name
        for suffix, kind in _SUFFIX_TABLE:
            if name.endswith(suffix) and len(name) > len(suffix):
                return kind
        raise UnsupportedEncoding(f"Unrecognized archive suffix for {path}")

    @classmethod
    def from_name(cls, name: str) -> "SerializationKind":
        """Resolve a configuration value such as `tar.gz` or `zip`.

        Raises:
            UnsupportedEncoding: If the name is not a known serialization.
        """
        normalized = name.strip().lstrip(".")
        for kind in cls:
            if normalized == kind.label or f".{normalized}" in kind.suffixes:
                return kind
        raise UnsupportedEncoding(f"Unknown serialization {name!r}")


_SUFFIX_TABLE = sorted(
    ((suffix, kind) for kind in SerializationKind for suffix in kind.suffixes),
    key=lambda item: len(item[0]),
    reverse=True,
)


@dataclass(frozen=True, slots=True)
class ArchiveEntry:
    """One file or directory inside an archive.

    Attributes:
        path: Normalized path relative to the extraction root.
        is_directory: Whether the entry is a directory.
        size: Declared content size in bytes (0 for directories).
        mode: Permission bits recorded in the archive, 0 when absent.
    """

    path: PurePosixPath
    is_directory: bool
    size: int
    mode: int


class _Member(NamedTuple):
    name: str
    is_directory: bool
    is_file: bool
    size: int
    mode: int
    handle: Any


class _TarReader:
    def __init__(self, archive: Path, mode: str) -> None:
        self._tar = tarfile.open(archive, mode)

    def __enter__(self) -> "_TarReader":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self._tar.close()

    def members(self) -> list[_Member]:
        return [
            _Member(
                member.name,
                member.isdir(),
                member.isfile(),
                member.size,
                member.mode & 0o777,
                member,
            )
            for member in self._tar.getmembers()
        ]

    def open(self, member: _Member) -> IO[bytes]:
        stream = self._tar.extractfile(member.handle)
        if stream is None:
            raise ArchiveFormatViolation(f"Tar entry {member.name} has no content stream")
        return stream


class _ZipReader:
    def __init__(self, archive: Path) -> None:
        self._zip = zipfile.ZipFile(archive)

    def __enter__(self) -> "_ZipReader":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self._zip.close()

    def members(self) -> list[_Member]:
        members = []
        for info in self._zip.infolist():
            unix_mode = info.external_attr >> 16
            is_directory = info.is_dir()
            # Many writers record permission bits without a file type.
            file_type = stat.S_IFMT(unix_mode)
            is_file = not is_directory and (file_type == 0 or file_type == stat.S_IFREG)
            members.append(
                _Member(
                    info.filename,
                    is_directory,
                    is_file,
                    info.file_size,
                    unix_mode & 0o777,
                    info,
                )
            )
        return members

    def open(self, member: _Member) -> IO[bytes]:
        return self._zip.open(member.handle)


class _Codec(NamedTuple):
    reader: Callable[[Path], Any]
    writer: Callable[[Path, Sequence[ArchiveEntry], Path], None]


def _write_tar(compression: str) -> Callable[[Path, Sequence[ArchiveEntry], Path], None]:
    def _write(directory: Path, entries: Sequence[ArchiveEntry], output: Path) -> None:
        with output.open("wb") as raw:
            if compression == "gz":
                with gzip.GzipFile(filename="", mode="wb", fileobj=raw, mtime=0) as stream:
                    _fill_tar(directory, entries, stream)
            elif compression == "bz2":
                with bz2.BZ2File(raw, "wb") as stream:
                    _fill_tar(directory, entries, stream)
            else:
                _fill_tar(directory, entries, raw)

    return _write


def _fill_tar(directory: Path, entries: Sequence[ArchiveEntry], stream: IO[bytes]) -> None:
    with tarfile.open(fileobj=stream, mode="w", format=tarfile.PAX_FORMAT) as tar:
        for entry in entries:
            info = tarfile.TarInfo(entry.path.as_posix())
            info.mtime = 0
            info.uid = info.gid = 0
            info.uname = info.gname = ""
            info.mode = entry.mode
            if entry.is_directory:
                info.type = tarfile.DIRTYPE
                tar.addfile(info)
                continue
            info.size = entry.size
            with directory.joinpath(*entry.path.parts).open("rb") as handle:
                tar.addfile(info, handle)


def _write_zip(directory: Path, entries: Sequence[ArchiveEntry], output: Path) -> None:
    with zipfile.ZipFile(output, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for entry in entries:
            name = entry.path.as_posix()
            if entry.is_directory:
                info = zipfile.ZipInfo(name + "/", date_time=_ZIP_EPOCH)
                info.create_system = 3
                info.external_attr = ((stat.S_IFDIR | entry.mode) << 16) | 0x10
                archive.writestr(info, b"")
                continue
            info = zipfile.ZipInfo(name, date_time=_ZIP_EPOCH)
            info.create_system = 3
            info.external_attr = (stat.S_IFREG | entry.mode) << 16
            info.compress_type = zipfile.ZIP_DEFLATED
            with directory.joinpath(*entry.path.parts).open("rb") as source:
                force_zip64 = entry.size > zipfile.ZIP64_LIMIT
                with archive.open(info, "w", force_zip64=force_zip64) as target:
                    shutil.copyfileobj(source, target, _COPY_CHUNK)


_CODECS: dict[SerializationKind, _Codec] = {
    SerializationKind.TAR: _Codec(lambda path: _TarReader(path, "r:"), _write_tar("")),
    SerializationKind.TAR_GZ: _Codec(lambda path: _TarReader(path, "r:gz"), _write_tar("gz")),
    SerializationKind.TAR_BZ2: _Codec(lambda path: _TarReader(path, "r:bz2"), _write_tar("bz2")),
    SerializationKind.ZIP: _Codec(_ZipReader, _write_zip),
}

# Decoder failures that mean the container itself is damaged.
_FORMAT_ERRORS = (
    tarfile.TarError,
    zipfile.BadZipFile,
    gzip.BadGzipFile,
    zlib.error,
    EOFError,
)


def strip_suffix(path: Path, kind: SerializationKind) -> Path:
    """Return the extraction directory for an archive of the given kind."""
    for suffix in sorted(kind.suffixes, key=len, reverse=True):
        if path.name.endswith(suffix):
            return path.with_name(path.name[: -len(suffix)])
    return path


def normalize_entry_path(name: str) -> PurePosixPath:
    """Normalize an archive entry name, rejecting names that leave the root.

    Raises:
        ArchiveFormatViolation: For absolute names or `..` segments escaping the root.
    """
    if name.startswith("/") or (len(name) > 1 and name[1] == ":"):
        raise ArchiveFormatViolation(f"Archive entry {name!r} has an absolute path")
    parts: list[str] = []
    for part in PurePosixPath(name).parts:
        if part in ("", "."):
            continue
        if part == "..":
            if not parts:
                raise ArchiveFormatViolation(f"Archive entry {name!r} escapes the target directory")
            parts.pop()
            continue
        parts.append(part)
    return PurePosixPath(*parts)


def iter_entries(archive: Path) -> Iterator[ArchiveEntry]:
    """Yield the validated entries of an archive in encounter order.

    Raises:
        UnsupportedEncoding: If the suffix is not recognized.
        ArchiveFormatViolation: If the container or one of its entries is invalid.
        IoFailure: If the archive cannot be read.
    """
    kind = SerializationKind.from_path(archive)
    if kind is SerializationKind.DIRECTORY:
        raise UnsupportedEncoding(f"{archive} is a directory, not an archive")
    planned = _guarded(archive, lambda: _plan(archive, kind))
    for entry, _member in planned:
        yield entry


def deserialize(archive: Path) -> Path:
    """Extract an archive next to itself, named after the archive minus its suffix.

    Every entry is validated before anything is written; content is extracted
    into a staging directory that replaces the target only on success, so a
    failed run leaves the target untouched.

    Returns:
        Path: The extracted bag directory.

    Raises:
        UnsupportedEncoding: If the suffix is not recognized.
        ArchiveFormatViolation: For corrupt containers, size mismatches, or unsafe paths.
        IoFailure: For filesystem errors.
    """
    kind = SerializationKind.from_path(archive)
    if kind is SerializationKind.DIRECTORY:
        return archive

    target = strip_suffix(archive, kind)
    LOGGER.info("Extracting serialized bag %s into %s", archive, target)
    staging = _guarded(archive, lambda: _extract_to_staging(archive, kind, target))
    try:
        if target.is_dir() and not target.is_symlink():
            shutil.rmtree(target)
        elif target.exists() or target.is_symlink():
            target.unlink()
        os.replace(staging, target)
    except OSError as exc:
        shutil.rmtree(staging, ignore_errors=True)
        raise IoFailure(f"Unable to move extracted bag into {target}: {exc}") from exc
    return target


def serialize(directory: Path, kind: SerializationKind, destination: Path | None = None) -> Path:
    """Pack a directory into an archive of the given kind.

    Entries are written in lexical order of their relative paths with
    normalized ownership and timestamps, so identical trees produce identical
    archives. The archive is written to a temporary file and renamed into
    place on success.

    Returns:
        Path: The archive path (or `directory` itself for DIRECTORY).

    Raises:
        IoFailure: If a source file cannot be read or the archive cannot be written.
    """
    if kind is SerializationKind.DIRECTORY:
        return directory
    if not directory.is_dir():
        raise IoFailure(f"Cannot serialize {directory}: not a directory")

    destination = destination or directory.with_name(directory.name + kind.suffixes[0])
    entries = _collect_entries(directory, exclude=destination)
    LOGGER.info("Serializing %s (%d entries) to %s", directory, len(entries), destination)

    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
        handle, temporary = tempfile.mkstemp(
            prefix=f".{destination.name}.", suffix=".part", dir=destination.parent
        )
        os.close(handle)
    except OSError as exc:
        raise IoFailure(f"Unable to create {destination}: {exc}") from exc

    partial = Path(temporary)
    try:
        _CODECS[kind].writer(directory, entries, partial)
        partial.chmod(0o644)
        os.replace(partial, destination)
    except OSError as exc:
        raise IoFailure(f"Failed to serialize {directory}: {exc}") from exc
    finally:
        if partial.exists():
            partial.unlink()
    return destination


def _collect_entries(directory: Path, *, exclude: Path) -> list[ArchiveEntry]:
    excluded = exclude.resolve()
    entries = []
    try:
        paths = sorted(
            directory.rglob("*"), key=lambda path: path.relative_to(directory).as_posix()
        )
        for path in paths:
            if path.resolve() == excluded:
                continue
            info = path.stat()
            relative = PurePosixPath(path.relative_to(directory).as_posix())
            mode = stat.S_IMODE(info.st_mode)
            if stat.S_ISDIR(info.st_mode):
                entries.append(ArchiveEntry(relative, True, 0, mode))
            elif stat.S_ISREG(info.st_mode):
                entries.append(ArchiveEntry(relative, False, info.st_size, mode))
            else:
                LOGGER.warning("Skipping special file %s", path)
    except OSError as exc:
        raise IoFailure(f"Unable to read {directory}: {exc}") from exc
    return entries


def _plan(archive: Path, kind: SerializationKind) -> list[tuple[ArchiveEntry, _Member]]:
    with _CODECS[kind].reader(archive) as reader:
        return _plan_members(reader.members())


def _plan_members(members: Sequence[_Member]) -> list[tuple[ArchiveEntry, _Member]]:
    planned = []
    files: set[PurePosixPath] = set()
    directories: set[PurePosixPath] = set()
    for member in members:
        path = normalize_entry_path(member.name)
        if not member.is_directory and not member.is_file:
            raise ArchiveFormatViolation(
                f"Archive entry {member.name!r} is not a file or directory"
            )
        if not path.parts:
            if member.is_directory:
                continue
            raise ArchiveFormatViolation(f"Archive entry {member.name!r} has an empty path")
        if any(parent in files for parent in path.parents):
            raise ArchiveFormatViolation(f"Archive entry {member.name!r} is nested under a file")
        if path in (files if member.is_directory else directories):
            raise ArchiveFormatViolation(
                f"Archive entry {member.name!r} is both a file and a directory"
            )
        directories.update(path.parents)
        (directories if member.is_directory else files).add(path)
        size = 0 if member.is_directory else member.size
        planned.append((ArchiveEntry(path, member.is_directory, size, member.mode), member))
    return planned


def _extract_to_staging(archive: Path, kind: SerializationKind, target: Path) -> Path:
    with _CODECS[kind].reader(archive) as reader:
        planned = _plan_members(reader.members())
        staging = Path(
            tempfile.mkdtemp(prefix=f".{target.name}.", suffix=".partial", dir=target.parent)
        )
        try:
            staging.chmod(0o755)
            root = staging.resolve()
            for entry, member in planned:
                destination = staging.joinpath(*entry.path.parts)
                if not destination.resolve().is_relative_to(root):
                    raise ArchiveFormatViolation(
                        f"Archive entry {member.name!r} escapes the target directory"
                    )
                if entry.is_directory:
                    destination.mkdir(parents=True, exist_ok=True)
                    continue
                destination.parent.mkdir(parents=True, exist_ok=True)
                with reader.open(member) as source, destination.open("wb") as sink:
                    written = _copy_stream(source, sink)
                if written != entry.size:
                    raise ArchiveFormatViolation(
                        f"Archive entry {member.name!r} declared {entry.size} bytes "
                        f"but held {written}"
                    )
            for entry, _member in reversed(planned):
                _apply_mode(staging.joinpath(*entry.path.parts), entry.mode)
        except BaseException:
            shutil.rmtree(staging, ignore_errors=True)
            raise
    return staging


def _copy_stream(source: IO[bytes], sink: IO[bytes]) -> int:
    written = 0
    for chunk in iter(lambda: source.read(_COPY_CHUNK), b""):
        sink.write(chunk)
        written += len(chunk)
    return written


def _apply_mode(path: Path, mode: int) -> None:
    if not mode:
        return
    if path.is_dir():
        # Directories must stay writable and traversable for later cleanup.
        mode |= 0o700
    try:
        path.chmod(mode)
    except OSError as exc:
        LOGGER.debug("Could not apply mode %o to %s: %s", mode, path, exc)


def _guarded(archive: Path, operation: Callable[[], Any]) -> Any:
    try:
        return operation()
    except BagportError:
        raise
    except _FORMAT_ERRORS as exc:
        raise ArchiveFormatViolation(f"Corrupt or truncated archive {archive}: {exc}") from exc
    except OSError as exc:
        raise IoFailure(f"Unable to read archive {archive}: {exc}") from exc


__all__ = [
    "SerializationKind",
    "ArchiveEntry",
    "serialize",
    "deserialize",
    "iter_entries",
    "strip_suffix",
    "normalize_entry_path",
]
