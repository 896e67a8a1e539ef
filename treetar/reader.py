from __future__ import annotations

import gzip
import os
import shutil
import stat
import zlib
from typing import BinaryIO, Iterator, List, Optional, Tuple

from .config import ArchiveConfig
from .constants import DEFAULT_ENCODING
from .entry import ArchiveEntry, EntryKind
from .errors import ArchiveIOError, EntryNotFoundError, FormatError
from .pathutil import destination_path
from .records import EntryReader, TarStreamReader
from .symlink import create_symlink


def iter_entries(source: BinaryIO, *, encoding: str = DEFAULT_ENCODING) -> Iterator[Tuple[ArchiveEntry, EntryReader]]:
    """Yield ``(entry, reader)`` for every entry in the tar stream ``source``.

    Each reader is only valid until the iteration moves on.
    """
    yield from TarStreamReader(source, encoding=encoding)


def find_file(source: BinaryIO, name: str, *, encoding: str = DEFAULT_ENCODING) -> Tuple[ArchiveEntry, EntryReader]:
    """Return the header and content reader of the entry called ``name``.

    The reader is positioned at the start of the entry's content. Raises
    EntryNotFoundError once the whole stream has been scanned without a match.
    """
    wanted = name.rstrip("/")
    for entry, content in TarStreamReader(source, encoding=encoding):
        if entry.path == wanted:
            return entry, content
    raise EntryNotFoundError(f"{name} not found", path=name)


class ArchivedFile:
    """Content reader for one file inside a gzipped archive.

    Owns the gzip layer and the archive stream; closing it closes both.
    """

    def __init__(self, entry: ArchiveEntry, content: EntryReader, gz: gzip.GzipFile, archive: BinaryIO):
        self.entry = entry
        self._content = content
        self._gz = gz
        self._archive = archive
        self.closed = False

    def read(self, size: int = -1) -> bytes:
        try:
            return self._content.read(size)
        except (OSError, EOFError, zlib.error) as exc:
            raise FormatError(f"cannot read {self.entry.name!r}: {exc}", path=self.entry.name) from exc

    def readable(self) -> bool:
        return True

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        try:
            self._gz.close()
        finally:
            self._archive.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


def extract_archived_file(archive: BinaryIO, filename: str, *, encoding: str = DEFAULT_ENCODING) -> ArchivedFile:
    """Open ``filename`` from within the gzipped tar stream ``archive``.

    The returned ArchivedFile takes over ``archive`` and closes it along with
    itself; if anything fails here, ``archive`` is closed before the error
    propagates. For uncompressed archives use :func:`find_file` directly.
    """
    if os.path.isabs(filename) or filename.startswith("/"):
        archive.close()
        raise ValueError(f"filename must be relative, got {filename!r}")
    gz = gzip.GzipFile(fileobj=archive, mode="rb")
    try:
        entry, content = find_file(gz, filename, encoding=encoding)
    except (OSError, EOFError, zlib.error) as exc:
        gz.close()
        archive.close()
        raise FormatError(f"cannot unzip {filename!r}: {exc}", path=filename) from exc
    except Exception:
        gz.close()
        archive.close()
        raise
    return ArchivedFile(entry, content, gz, archive)


class Extractor:
    """Rebuilds a directory tree from a tar stream.

    Entries are applied strictly in stream order:

    - directories are created writable (ancestors on demand, existing
      directories are fine); their encoded mode is applied once the whole
      stream has been extracted, deepest first
    - symlinks are created pointing at the encoded target verbatim
    - regular files receive exactly the declared number of bytes, then their
      encoded permission bits (applied as-is, no umask)
    - anything else (pax global headers, hard links, devices) is skipped

    Nothing is ever created through a symlink below the destination, including
    links extracted earlier from the same stream.

    Extraction is not atomic; a failure leaves whatever was created so far.
    Two extractions into the same destination at once are not supported.
    """

    def __init__(self, destination, config: Optional[ArchiveConfig] = None):
        self.config = config or ArchiveConfig()
        self.destination = os.fspath(destination)
        self.log = self.config.logger
        self.created = 0
        self.skipped = 0
        self._dir_modes: List[Tuple[str, ArchiveEntry]] = []

    def extract(self, source: BinaryIO) -> None:
        reader = TarStreamReader(source, encoding=self.config.encoding)
        for entry, content in reader:
            self.extract_entry(entry, content)
        self.apply_directory_modes()

    def apply_directory_modes(self) -> None:
        """Set the encoded mode on every directory extracted so far."""
        pending, self._dir_modes = self._dir_modes, []
        for path, entry in sorted(pending, key=lambda item: item[0], reverse=True):
            try:
                os.chmod(path, entry.mode)
            except OSError as exc:
                raise ArchiveIOError(f"cannot set mode on {entry.name!r}: {exc}", path=entry.name) from exc

    def extract_entry(self, entry: ArchiveEntry, content: EntryReader) -> None:
        if entry.kind is EntryKind.OTHER:
            self.log.debug("skipping %r (type %r)", entry.name, entry.typeflag)
            self.skipped += 1
            return
        path = destination_path(self.destination, entry.path)
        self._check_no_links(entry, path)
        if entry.kind is EntryKind.DIRECTORY:
            self._make_dir(entry, path)
        elif entry.kind is EntryKind.SYMLINK:
            self._make_symlink(entry, path)
        elif entry.kind is EntryKind.FILE:
            self._make_file(entry, path, content)
        else:
            raise AssertionError(f"unhandled entry kind {entry.kind}")
        self.created += 1
        self.log.debug("extracted %s %s", entry.kind.value, entry.name)

    def _check_no_links(self, entry: ArchiveEntry, path: str) -> None:
        # Every component below the destination must be a real directory. The
        # last one may be a link for file and symlink entries.
        rel = os.path.relpath(path, self.destination)
        if rel == os.curdir:
            return
        parts = rel.split(os.sep)
        current = self.destination
        for i, part in enumerate(parts):
            current = os.path.join(current, part)
            try:
                st = os.lstat(current)
            except FileNotFoundError:
                return
            except OSError as exc:
                raise ArchiveIOError(f"cannot stat {current!r}: {exc}", path=entry.name) from exc
            if not stat.S_ISLNK(st.st_mode):
                continue
            if i == len(parts) - 1 and entry.kind is not EntryKind.DIRECTORY:
                return
            raise FormatError(f"entry {entry.name!r} would be extracted through symlink {current!r}", path=entry.name)

    def _make_parent(self, entry: ArchiveEntry, path: str) -> None:
        parent = os.path.dirname(path)
        if not parent:
            return
        try:
            os.makedirs(parent, exist_ok=True)
        except OSError as exc:
            raise ArchiveIOError(f"cannot extract {entry.name!r}: {exc}", path=entry.name) from exc

    def _make_dir(self, entry: ArchiveEntry, path: str) -> None:
        try:
            os.makedirs(path, exist_ok=True)
        except OSError as exc:
            raise ArchiveIOError(f"cannot extract directory {entry.name!r}: {exc}", path=entry.name) from exc
        self._dir_modes.append((path, entry))

    def _make_symlink(self, entry: ArchiveEntry, path: str) -> None:
        self._make_parent(entry, path)
        create_symlink(entry.linkname, path)

    def _make_file(self, entry: ArchiveEntry, path: str, content: EntryReader) -> None:
        self._make_parent(entry, path)
        try:
            if os.path.islink(path):
                # replace the link, never write through it
                os.unlink(path)
            fh = open(path, "wb")
        except OSError as exc:
            raise ArchiveIOError(f"cannot extract file {entry.name!r}: {exc}", path=entry.name) from exc
        with fh:
            try:
                shutil.copyfileobj(content, fh, self.config.copy_chunk_size)
            except OSError as exc:
                raise ArchiveIOError(f"failed while writing {entry.name!r}: {exc}", path=entry.name) from exc
        try:
            os.chmod(path, entry.mode)
        except OSError as exc:
            raise ArchiveIOError(f"cannot set mode on {entry.name!r}: {exc}", path=entry.name) from exc


def extract(
    source: BinaryIO,
    destination,
    *,
    config: Optional[ArchiveConfig] = None,
    compressed: bool = False,
) -> None:
    """Extract the tar stream ``source`` under ``destination``.

    With ``compressed`` the stream is gunzipped first.
    """
    extractor = Extractor(destination, config)
    if not compressed:
        extractor.extract(source)
        return
    try:
        with gzip.GzipFile(fileobj=source, mode="rb") as gz:
            extractor.extract(gz)
    except (EOFError, zlib.error, gzip.BadGzipFile) as exc:
        raise FormatError(f"cannot decompress archive: {exc}") from exc
