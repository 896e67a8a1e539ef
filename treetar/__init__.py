"""
treetar: stream directory trees into tar archives and back.

Features:

- Single-pass archiving of files, directories and symlinks into a tar stream
  (pax by default) with no seeking, so the output can be a pipe or socket.
- Content fingerprint (base64 SHA-1, as used by RFC 3230 Digest headers) of
  exactly the bytes that reached the sink, computed while writing.
- Sequential extraction that recreates directories, symlinks and files with
  their permission bits, skipping entry types it does not handle.
- Lookup of a single entry by name, including inside gzipped archives.

Configuration is explicit: pass an ArchiveConfig to the writer/reader.
"""

__version__ = "0.1"

__all__ = [
    "constants",
    "config",
    "entry",
    "errors",
    "hashutil",
    "pathutil",
    "reader",
    "records",
    "symlink",
    "writer",
]

# Programmatic API lives in treetar.writer (archive/create) and
# treetar.reader (extract/find_file/extract_archived_file); the CLI in
# treetar.cli wraps the same calls.
