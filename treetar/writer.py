from __future__ import annotations

import gzip
import os
import stat
from typing import BinaryIO, Iterable, Optional

from .config import ArchiveConfig
from .entry import ArchiveEntry, EntryKind
from .errors import ArchiveIOError, EncodingError
from .hashutil import HashingWriter
from .pathutil import entry_name, normalize_prefix
from .records import TarStreamWriter
from .symlink import resolve_target


class Archiver:
    """Streaming tar writer for files, directory trees and symlinks.

    Entries are written depth-first in the order roots are added. Nothing is
    buffered beyond one copy chunk, and the sink is never seeked, so the output
    can go straight to a pipe or socket.

    Typical use::

        with Archiver(sink, strip_prefix="work/") as ar:
            ar.add("work/docs")
            ar.add("work/readme.txt")
    """

    def __init__(self, sink: BinaryIO, strip_prefix: str = "", config: Optional[ArchiveConfig] = None):
        self.config = config or ArchiveConfig()
        self.strip_prefix = normalize_prefix(strip_prefix, self.config.sep)
        self.log = self.config.logger
        self._tar = TarStreamWriter(
            sink,
            tar_format=self.config.tar_format,
            encoding=self.config.encoding,
            copy_chunk_size=self.config.copy_chunk_size,
        )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        # A failed archive is unusable anyway; only terminate it on success.
        if exc_type is None:
            self.close()

    def close(self) -> None:
        self._tar.close()

    def _normalize_root(self, path) -> str:
        path = os.fspath(path)
        if self.config.sep == os.sep:
            return os.path.normpath(path)
        return path

    def add(self, path) -> None:
        """Archive ``path`` and, for directories, everything below it."""
        self._add_tree(self._normalize_root(path))

    def add_all(self, paths: Iterable) -> None:
        for path in paths:
            self.add(path)

    def _lstat(self, path: str) -> os.stat_result:
        try:
            return os.lstat(path)
        except OSError as exc:
            raise ArchiveIOError(f"cannot stat {path!r}: {exc}", path=path) from exc

    def _add_tree(self, path: str) -> None:
        st = self._lstat(path)
        name = entry_name(path, self.strip_prefix, self.config.sep)
        linkname = resolve_target(path) if stat.S_ISLNK(st.st_mode) else ""
        if not name:
            # The root is the strip prefix itself: only its children get entries.
            if not stat.S_ISDIR(st.st_mode):
                raise EncodingError(f"{path!r} is the strip prefix itself and has no entry name", path=path)
            self._add_children(path)
            return
        entry = ArchiveEntry.from_stat(name, st, linkname)

        if entry.kind is EntryKind.FILE:
            self._add_file(path, entry)
        elif entry.kind is EntryKind.DIRECTORY:
            self._write(entry)
            self._add_children(path)
        elif entry.kind is EntryKind.SYMLINK:
            # Recorded as a link; its target is never read or descended into.
            self._write(entry)
        else:
            raise AssertionError(f"unhandled entry kind {entry.kind}")

    def _write(self, entry: ArchiveEntry, content: Optional[BinaryIO] = None, source_path: Optional[str] = None) -> None:
        try:
            self._tar.write_entry(entry, content, source_path=source_path)
        except OSError as exc:
            where = source_path or entry.name
            raise ArchiveIOError(f"failed to write {where!r}: {exc}", path=where) from exc
        self.log.debug("archived %s %s", entry.kind.value, entry.name)

    def _add_file(self, path: str, entry: ArchiveEntry) -> None:
        try:
            fh = open(path, "rb")
        except OSError as exc:
            raise ArchiveIOError(f"cannot open {path!r}: {exc}", path=path) from exc
        with fh:
            self._write(entry, fh, source_path=path)

    def _add_children(self, dirname: str) -> None:
        try:
            with os.scandir(dirname) as it:
                names = [de.name for de in it]
        except OSError as exc:
            raise ArchiveIOError(f"error reading directory {dirname!r}: {exc}", path=dirname) from exc
        if self.config.sort_entries:
            names.sort()
        for basename in names:
            self._add_tree(os.path.join(dirname, basename))


def archive(
    root_paths: Iterable,
    strip_prefix: str,
    sink: BinaryIO,
    *,
    config: Optional[ArchiveConfig] = None,
    compress: bool = False,
) -> str:
    """Write a tar stream of ``root_paths`` into ``sink``.

    ``strip_prefix`` is removed from every entry name (much like ``tar -C``).
    Returns the base64-encoded digest (SHA-1 by default, as used by RFC 3230
    Digest headers) of exactly the bytes written to ``sink``. With ``compress``
    the tar stream is gzipped first and the digest covers the gzip bytes.

    On error the sink holds a truncated archive that must be discarded.
    """
    config = config or ArchiveConfig()
    hashw = HashingWriter(sink, algorithm=config.digest_algorithm)
    if compress:
        # mtime=0 keeps the gzip header, and therefore the digest, reproducible
        with gzip.GzipFile(fileobj=hashw, mode="wb", mtime=0) as gz:
            _archive_into(root_paths, strip_prefix, gz, config)
    else:
        _archive_into(root_paths, strip_prefix, hashw, config)
    hashw.flush()
    return hashw.base64_sum()


def _archive_into(root_paths: Iterable, strip_prefix: str, out: BinaryIO, config: ArchiveConfig) -> None:
    ar = Archiver(out, strip_prefix, config)
    ar.add_all(root_paths)
    ar.close()


def archive_gzipped(root_paths: Iterable, strip_prefix: str, sink: BinaryIO, *, config: Optional[ArchiveConfig] = None) -> str:
    return archive(root_paths, strip_prefix, sink, config=config, compress=True)


def create(
    filename,
    root_paths: Iterable,
    strip_prefix: str = "",
    *,
    config: Optional[ArchiveConfig] = None,
    compress: bool = False,
) -> str:
    """Write the archive to a new file ``filename`` and return its digest."""
    try:
        fh = open(filename, "wb")
    except OSError as exc:
        raise ArchiveIOError(f"could not create archive file {os.fspath(filename)!r}: {exc}", path=os.fspath(filename)) from exc
    with fh:
        return archive(root_paths, strip_prefix, fh, config=config, compress=compress)
