from __future__ import annotations

import base64
import hashlib
from typing import BinaryIO, Callable, Tuple

from .constants import DEFAULT_DIGEST_ALGORITHM, DEFAULT_COPY_CHUNK_SIZE
from .errors import ArchiveIOError


class HashingWriter:
    """Write-through proxy that hashes every byte the wrapped sink accepts.

    The sink is written first; the hash only ever sees bytes the sink took,
    so the digest always matches what actually reached the sink.
    """

    def __init__(self, sink: BinaryIO, hasher=None, *, algorithm: str = DEFAULT_DIGEST_ALGORITHM):
        self.sink = sink
        self.hasher = hasher if hasher is not None else hashlib.new(algorithm)
        self.bytes_written = 0

    def writable(self) -> bool:
        return True

    def write(self, data) -> int:
        view = memoryview(data)
        n = self.sink.write(view)
        # Buffered writers may return None; they either take everything or raise.
        if n is None:
            n = len(view)
        if n:
            self.hasher.update(view[:n])
            self.bytes_written += n
        if n < len(view):
            raise ArchiveIOError(f"short write: {n} of {len(view)} bytes accepted by sink")
        return n

    def flush(self) -> None:
        flush = getattr(self.sink, "flush", None)
        if flush is not None:
            flush()

    def digest(self) -> bytes:
        return self.hasher.digest()

    def hexdigest(self) -> str:
        return self.digest().hex()

    def base64_sum(self) -> str:
        return base64.b64encode(self.digest()).decode("ascii")


def wrap(sink: BinaryIO, algorithm: str = DEFAULT_DIGEST_ALGORITHM) -> Tuple[HashingWriter, Callable[[], str]]:
    """Return a fan-out writer for ``sink`` and a function producing its digest.

    The digest function must only be called once writing is complete; calling
    it earlier yields the digest of the bytes written so far.
    """
    writer = HashingWriter(sink, algorithm=algorithm)
    return writer, writer.base64_sum


def base64_file_digest(fh: BinaryIO, algorithm: str = DEFAULT_DIGEST_ALGORITHM,
                       chunk_size: int = DEFAULT_COPY_CHUNK_SIZE) -> str:
    # Independent re-hash of already written output
    h = hashlib.new(algorithm)
    while True:
        block = fh.read(chunk_size)
        if not block:
            break
        h.update(block)
    return base64.b64encode(h.digest()).decode("ascii")
