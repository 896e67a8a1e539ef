from __future__ import annotations

import errno
import os

from .errors import ArchiveIOError, UnsupportedOperationError


_UNSUPPORTED_ERRNOS = {errno.EPERM, errno.EOPNOTSUPP}
if hasattr(errno, "ENOTSUP"):
    _UNSUPPORTED_ERRNOS.add(errno.ENOTSUP)
# ERROR_PRIVILEGE_NOT_HELD: Windows without developer mode / SeCreateSymbolicLinkPrivilege
_UNSUPPORTED_WINERRORS = {1314}


def symlinks_supported() -> bool:
    return getattr(os, "symlink", None) is not None


def create_symlink(target: str, path: str) -> None:
    """Create a symlink at ``path`` pointing at ``target`` verbatim."""
    symlink_fn = getattr(os, "symlink", None)
    if symlink_fn is None:
        raise UnsupportedOperationError("symlinks are not supported on this platform", path=path)
    try:
        symlink_fn(target, path)
    except NotImplementedError as exc:
        raise UnsupportedOperationError("symlinks are not supported on this platform", path=path) from exc
    except OSError as exc:
        if exc.errno in _UNSUPPORTED_ERRNOS or getattr(exc, "winerror", None) in _UNSUPPORTED_WINERRORS:
            raise UnsupportedOperationError(f"cannot create symlink {path!r}: {exc}", path=path) from exc
        raise ArchiveIOError(f"cannot create symlink {path!r} -> {target!r}: {exc}", path=path) from exc


def resolve_target(path: str) -> str:
    """Resolve the symlink at ``path`` to the absolute path it finally points at.

    Every link along the way is followed; a dangling link is an error.
    """
    try:
        return os.path.realpath(path, strict=True)
    except OSError as exc:
        raise ArchiveIOError(f"cannot dereference symlink {path!r}: {exc}", path=path) from exc
