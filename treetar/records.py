from __future__ import annotations

import io
import re
import tarfile
from typing import BinaryIO, Dict, Iterator, Optional

from .constants import (
    BLOCKSIZE,
    DEFAULT_COPY_CHUNK_SIZE,
    DEFAULT_ENCODING,
    DEFAULT_FORMAT,
    DIRTYPE,
    END_OF_ARCHIVE,
    GNUTYPE_LONGLINK,
    GNUTYPE_LONGNAME,
    NUL,
    RECORDSIZE,
    XHDTYPE,
)
from .entry import ArchiveEntry, EntryKind
from .errors import ArchiveIOError, EncodingError, FormatError


# Header string fields use the platform's tarfile convention for undecodable bytes.
HEADER_ERRORS = "surrogateescape"

_PAX_LENGTH_RE = re.compile(rb"(\d+) ")
_ZERO_BLOCK = NUL * BLOCKSIZE


def block_padding(size: int) -> bytes:
    remainder = size % BLOCKSIZE
    return NUL * (BLOCKSIZE - remainder) if remainder else b""


def encode_header(entry: ArchiveEntry, *, tar_format: int = DEFAULT_FORMAT, encoding: str = DEFAULT_ENCODING) -> bytes:
    """Encode ``entry`` as one or more 512-byte header blocks.

    Long names and large values spill into pax ``x`` headers or GNU ``L``/``K``
    headers, depending on ``tar_format``; plain ustar raises EncodingError.
    """
    info = entry.to_tarinfo()
    try:
        return info.tobuf(tar_format, encoding, HEADER_ERRORS)
    except (ValueError, UnicodeError) as exc:
        raise EncodingError(f"cannot create tar header for {entry.name!r}: {exc}", path=entry.name) from exc


def parse_pax_records(buf: bytes, encoding: str = DEFAULT_ENCODING) -> Dict[str, str]:
    """Parse pax extended header records ("%d %s=%s\\n")."""
    headers: Dict[str, str] = {}
    pos = 0
    while pos < len(buf) and buf[pos] != 0:
        match = _PAX_LENGTH_RE.match(buf, pos)
        if match is None:
            raise FormatError("invalid pax header record")
        length = int(match.group(1))
        end = pos + length
        if length < 5 or end > len(buf) or buf[end - 1] != 0x0A:
            raise FormatError("invalid pax header record")
        keyword, equals, value = buf[match.end():end - 1].partition(b"=")
        if not keyword or not equals:
            raise FormatError("invalid pax header record")
        headers[keyword.decode("utf-8", HEADER_ERRORS)] = value.decode(encoding, HEADER_ERRORS)
        pos = end
    return headers


def _apply_pax(info: tarfile.TarInfo, headers: Dict[str, str]) -> None:
    try:
        if "path" in headers:
            info.name = headers["path"]
        if "linkpath" in headers:
            info.linkname = headers["linkpath"]
        if "size" in headers:
            info.size = int(headers["size"])
        if "mtime" in headers:
            info.mtime = float(headers["mtime"])
        if "uid" in headers:
            info.uid = int(headers["uid"])
        if "gid" in headers:
            info.gid = int(headers["gid"])
    except ValueError as exc:
        raise FormatError(f"invalid pax header value: {exc}", path=info.name) from exc
    if info.size < 0:
        raise FormatError("negative entry size", path=info.name)


class TarStreamWriter:
    """Single-pass tar writer: header, content, padding, nothing else.

    Never seeks or rewrites; the only buffering is one copy chunk.
    """

    def __init__(
        self,
        fileobj: BinaryIO,
        *,
        tar_format: int = DEFAULT_FORMAT,
        encoding: str = DEFAULT_ENCODING,
        copy_chunk_size: int = DEFAULT_COPY_CHUNK_SIZE,
    ):
        self.fileobj = fileobj
        self.tar_format = tar_format
        self.encoding = encoding
        self.copy_chunk_size = copy_chunk_size
        self.offset = 0
        self.closed = False

    def _write(self, data: bytes) -> None:
        self.fileobj.write(data)
        self.offset += len(data)

    def write_entry(self, entry: ArchiveEntry, content: Optional[BinaryIO] = None, *, source_path: Optional[str] = None) -> None:
        """Write ``entry``; for files, stream exactly ``entry.size`` bytes of ``content``."""
        if self.closed:
            raise ValueError("archive already closed")
        self._write(encode_header(entry, tar_format=self.tar_format, encoding=self.encoding))
        if entry.kind is not EntryKind.FILE:
            return
        if content is None:
            raise ValueError("file entries need content")
        remaining = entry.size
        while remaining > 0:
            chunk = content.read(min(self.copy_chunk_size, remaining))
            if not chunk:
                # Source shrank after it was stat'd; the header already promised more.
                raise ArchiveIOError(
                    f"failed to write {entry.name!r}: file ended {remaining} bytes early",
                    path=source_path or entry.name,
                )
            self._write(chunk)
            remaining -= len(chunk)
        self._write(block_padding(entry.size))

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._write(END_OF_ARCHIVE)
        remainder = self.offset % RECORDSIZE
        if remainder:
            self._write(NUL * (RECORDSIZE - remainder))


class EntryReader(io.RawIOBase):
    """Reads the content of the current entry, never past its declared size."""

    def __init__(self, source: BinaryIO, size: int, name: str):
        super().__init__()
        self._source = source
        self.name = name
        self.size = size
        self.remaining = size

    def readable(self) -> bool:
        return True

    def readinto(self, b) -> int:
        if self.remaining <= 0:
            return 0
        view = memoryview(b).cast("B")
        want = min(len(view), self.remaining)
        if want == 0:
            return 0
        data = self._source.read(want)
        if not data:
            raise FormatError(
                f"unexpected end of data: {self.name!r} declares {self.size} bytes, "
                f"{self.remaining} missing",
                path=self.name,
            )
        n = len(data)
        view[:n] = data
        self.remaining -= n
        return n

    def drain(self, chunk_size: int = DEFAULT_COPY_CHUNK_SIZE) -> None:
        while self.remaining > 0:
            self.read(min(chunk_size, self.remaining))


class TarStreamReader:
    """Sequential tar header reader over a non-seekable byte stream.

    Iterating yields ``(ArchiveEntry, EntryReader)`` pairs. The reader for an
    entry is only valid until the next entry is requested; whatever is left of
    its content (and block padding) is consumed then.

    pax ``x`` and GNU ``L``/``K`` headers are folded into the entry they
    describe. Everything else, pax global headers included, is surfaced as an
    entry; callers that do not understand it skip it.
    """

    def __init__(self, source: BinaryIO, *, encoding: str = DEFAULT_ENCODING):
        self.source = source
        self.encoding = encoding
        self.offset = 0
        self._current: Optional[EntryReader] = None
        self._done = False

    def __iter__(self) -> Iterator:
        while True:
            item = self.next()
            if item is None:
                return
            yield item

    def _read_exact(self, n: int, what: str) -> bytes:
        parts = []
        got = 0
        while got < n:
            data = self.source.read(n - got)
            if not data:
                break
            parts.append(data)
            got += len(data)
        buf = b"".join(parts)
        if len(buf) != n and (buf or what != "header"):
            raise FormatError(f"unexpected end of data in {what} at offset {self.offset}")
        self.offset += len(buf)
        return buf

    def _finish_current(self) -> None:
        current = self._current
        if current is None:
            return
        self._current = None
        current.drain()
        self.offset += current.size
        pad = len(block_padding(current.size))
        if pad:
            self._read_exact(pad, "padding")

    def _read_data(self, size: int, what: str) -> bytes:
        data = self._read_exact(size, what)
        pad = len(block_padding(size))
        if pad:
            self._read_exact(pad, "padding")
        return data

    def _read_header(self) -> Optional[tarfile.TarInfo]:
        start = self.offset
        block = self._read_exact(BLOCKSIZE, "header")
        if not block or block == _ZERO_BLOCK:
            return None
        try:
            return tarfile.TarInfo.frombuf(block, self.encoding, HEADER_ERRORS)
        except tarfile.HeaderError as exc:
            raise FormatError(f"invalid tar header at offset {start}: {exc}") from exc

    def next(self):
        """Return the next ``(entry, reader)`` pair, or None at end of archive."""
        if self._done:
            return None
        self._finish_current()

        pax: Dict[str, str] = {}
        long_name: Optional[str] = None
        long_link: Optional[str] = None
        pending = False
        while True:
            info = self._read_header()
            if info is None:
                if pending:
                    raise FormatError(f"archive ends after an extension header at offset {self.offset}")
                self._done = True
                return None
            if info.type == XHDTYPE:
                pax.update(parse_pax_records(self._read_data(info.size, "pax header"), self.encoding))
                pending = True
                continue
            if info.type in (GNUTYPE_LONGNAME, GNUTYPE_LONGLINK):
                raw = self._read_data(info.size, "long name")
                value = raw.split(NUL, 1)[0].decode(self.encoding, HEADER_ERRORS)
                if info.type == GNUTYPE_LONGNAME:
                    long_name = value
                else:
                    long_link = value
                pending = True
                continue
            break

        if long_name is not None:
            info.name = long_name
        if long_link is not None:
            info.linkname = long_link
        _apply_pax(info, pax)
        if info.type == DIRTYPE:
            info.name = info.name.rstrip("/")

        entry = ArchiveEntry.from_tarinfo(info)
        self._current = EntryReader(self.source, entry.size, entry.name)
        return entry, self._current
