from __future__ import annotations

from typing import Optional


class TreeTarError(Exception):
    """Base class for treetar errors.

    ``path`` names the filesystem path or archive entry the failure is about,
    when there is one.
    """

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


# Filesystem side
class ArchiveIOError(TreeTarError):
    """Open/read/write/stat/chmod failure on a source or destination path."""


class UnsupportedOperationError(TreeTarError):
    """The platform cannot perform the requested filesystem operation."""


# Container side
class FormatError(TreeTarError):
    """Malformed or truncated container data."""


class EncodingError(TreeTarError):
    """A source node cannot be represented as a container entry."""


class EntryNotFoundError(TreeTarError):
    pass
