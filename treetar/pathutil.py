from __future__ import annotations

import os

from .errors import FormatError


def normalize_prefix(prefix: str, sep: str = os.sep) -> str:
    """Normalize a strip prefix so it only ever matches whole path segments.

    An empty prefix stays empty. Anything else is normalized and gets exactly
    one trailing separator, so ``"work"`` and ``"work/"`` both strip
    ``work/docs`` to ``docs`` but leave ``workshop/x`` untouched.
    """
    if not prefix:
        return ""
    p = os.path.normpath(prefix) if sep == os.sep else prefix.rstrip(sep) or sep
    if p.endswith(sep):
        return p
    return p + sep


def entry_name(path: str, prefix: str, sep: str = os.sep) -> str:
    """Build the archive entry name for ``path``.

    ``prefix`` must already be normalized with :func:`normalize_prefix`.
    Returns ``""`` when ``path`` is the prefix directory itself.

    Rules:
    - Remove the prefix when it matches on a segment boundary
    - Convert host separators to '/'
    - Strip leading slashes (names are always relative)
    """
    if prefix:
        if path == prefix.rstrip(sep) or path + sep == prefix:
            return ""
        if path.startswith(prefix):
            path = path[len(prefix):]
    if sep != "/":
        path = path.replace(sep, "/")
    return path.lstrip("/")


def destination_path(root: str, name: str) -> str:
    """Resolve entry ``name`` under the destination ``root``.

    Rejects names that would land outside of ``root``: absolute names and
    names with '..' segments.
    """
    if name.startswith("/"):
        raise FormatError(f"absolute entry name {name!r}", path=name)
    parts = [q for q in name.split("/") if q not in ("", ".")]
    for q in parts:
        if q == "..":
            raise FormatError(f"entry name {name!r} may not contain '..'", path=name)
    if not parts:
        return root
    return os.path.join(root, *parts)
