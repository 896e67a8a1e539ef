from __future__ import annotations

import base64
import hashlib
import io
import unittest

from treetar.errors import ArchiveIOError
from treetar.hashutil import HashingWriter, base64_file_digest, wrap


class _FailingSink:
    def __init__(self, err: Exception):
        self.err = err
        self.calls = 0

    def write(self, data):
        self.calls += 1
        raise self.err


class _ShortSink:
    """Accepts at most ``limit`` bytes per call, like a raw unbuffered file."""

    def __init__(self, limit: int):
        self.limit = limit
        self.data = bytearray()

    def write(self, data):
        taken = bytes(data[: self.limit])
        self.data += taken
        return len(taken)


class _NoneReturningSink(io.BytesIO):
    def write(self, data):
        super().write(data)
        return None


class _FakeHasher:
    def __init__(self, *, sum_: bytes = b"", err: Exception | None = None):
        self.sum = sum_
        self.err = err
        self.seen = bytearray()

    def update(self, data):
        if self.err is not None:
            raise self.err
        self.seen += bytes(data)

    def digest(self) -> bytes:
        return self.sum


def _b64_sha1(data: bytes) -> str:
    return base64.b64encode(hashlib.sha1(data).digest()).decode("ascii")


class HashingWriterTests(unittest.TestCase):
    def test_write_empty(self):
        sink = io.BytesIO()
        hasher = _FakeHasher()
        w = HashingWriter(sink, hasher)
        self.assertEqual(0, w.write(b""))
        self.assertEqual(b"", sink.getvalue())
        self.assertEqual(b"", bytes(hasher.seen))

    def test_write_small(self):
        sink = io.BytesIO()
        hasher = _FakeHasher()
        w = HashingWriter(sink, hasher)
        self.assertEqual(4, w.write(b"spam"))
        self.assertEqual(b"spam", sink.getvalue())
        self.assertEqual(b"spam", bytes(hasher.seen))
        self.assertEqual(4, w.bytes_written)

    def test_sink_error_skips_hash(self):
        failure = OSError("<failed>")
        sink = _FailingSink(failure)
        hasher = _FakeHasher()
        w = HashingWriter(sink, hasher)
        with self.assertRaises(OSError) as ctx:
            w.write(b"spam")
        self.assertIs(failure, ctx.exception)
        self.assertEqual(1, sink.calls)
        self.assertEqual(b"", bytes(hasher.seen))

    def test_hasher_error_propagates(self):
        hasher = _FakeHasher(err=ValueError("failed!"))
        w = HashingWriter(io.BytesIO(), hasher)
        with self.assertRaisesRegex(ValueError, "failed!"):
            w.write(b"spam")

    def test_short_write_hashes_accepted_prefix(self):
        sink = _ShortSink(2)
        hasher = _FakeHasher()
        w = HashingWriter(sink, hasher)
        with self.assertRaises(ArchiveIOError):
            w.write(b"spam")
        self.assertEqual(b"sp", bytes(sink.data))
        self.assertEqual(b"sp", bytes(hasher.seen))

    def test_sink_returning_none_counts_as_full_write(self):
        sink = _NoneReturningSink()
        w = HashingWriter(sink)
        self.assertEqual(4, w.write(b"spam"))
        self.assertEqual(_b64_sha1(b"spam"), w.base64_sum())

    def test_base64_sum(self):
        w = HashingWriter(io.BytesIO(), _FakeHasher(sum_=b"spam"))
        self.assertEqual("c3BhbQ==", w.base64_sum())

    def test_hexdigest(self):
        w = HashingWriter(io.BytesIO(), _FakeHasher(sum_=b"spam"))
        self.assertEqual("7370616d", w.hexdigest())

    def test_default_algorithm_is_sha1(self):
        sink = io.BytesIO()
        writer, digest = wrap(sink)
        for part in (b"hello ", b"wor", b"ld"):
            writer.write(part)
        self.assertEqual(b"hello world", sink.getvalue())
        self.assertEqual(_b64_sha1(b"hello world"), digest())

    def test_other_algorithm(self):
        writer, digest = wrap(io.BytesIO(), algorithm="sha256")
        writer.write(b"abc")
        expected = base64.b64encode(hashlib.sha256(b"abc").digest()).decode("ascii")
        self.assertEqual(expected, digest())

    def test_file_digest_matches_writer(self):
        sink = io.BytesIO()
        writer, digest = wrap(sink)
        writer.write(b"x" * 200_000)
        self.assertEqual(digest(), base64_file_digest(io.BytesIO(sink.getvalue()), chunk_size=4096))


if __name__ == "__main__":
    unittest.main()
