from __future__ import annotations

import enum
import os
import stat
import tarfile
from dataclasses import dataclass
from typing import Optional

from .constants import DIRTYPE, HEADER_ONLY_TYPES, PERMISSION_MASK, REGTYPE, REGULAR_TYPES, SYMTYPE
from .errors import EncodingError


class EntryKind(enum.Enum):
    FILE = "file"
    DIRECTORY = "dir"
    SYMLINK = "symlink"
    # Decode-only: pax global headers, hard links, devices, FIFOs, vendor types
    OTHER = "other"

    @classmethod
    def from_typeflag(cls, typeflag: bytes) -> "EntryKind":
        if typeflag in REGULAR_TYPES:
            return cls.FILE
        if typeflag == DIRTYPE:
            return cls.DIRECTORY
        if typeflag == SYMTYPE:
            return cls.SYMLINK
        return cls.OTHER

    def typeflag(self) -> bytes:
        if self is EntryKind.FILE:
            return REGTYPE
        if self is EntryKind.DIRECTORY:
            return DIRTYPE
        if self is EntryKind.SYMLINK:
            return SYMTYPE
        raise EncodingError(f"entry kind {self.value!r} cannot be written")


@dataclass
class ArchiveEntry:
    name: str
    kind: EntryKind
    size: int = 0
    mode: int = 0o644
    mtime: int = 0
    linkname: str = ""
    uid: int = 0
    gid: int = 0
    typeflag: Optional[bytes] = None

    def __post_init__(self):
        if self.typeflag is None and self.kind is not EntryKind.OTHER:
            self.typeflag = self.kind.typeflag()
        if self.kind is not EntryKind.FILE and self.size and self.kind is not EntryKind.OTHER:
            raise EncodingError(f"{self.kind.value} entry {self.name!r} cannot carry content", path=self.name)

    @classmethod
    def from_stat(cls, name: str, st: os.stat_result, linkname: str = "") -> "ArchiveEntry":
        """Describe a filesystem node (as returned by ``os.lstat``)."""
        fmt = stat.S_IFMT(st.st_mode)
        if fmt == stat.S_IFREG:
            kind, size = EntryKind.FILE, st.st_size
        elif fmt == stat.S_IFDIR:
            kind, size = EntryKind.DIRECTORY, 0
        elif fmt == stat.S_IFLNK:
            kind, size = EntryKind.SYMLINK, 0
        else:
            raise EncodingError(f"unsupported file type {stat.filemode(st.st_mode)[0]!r} for {name!r}", path=name)
        if kind is EntryKind.DIRECTORY and name and not name.endswith("/"):
            name += "/"
        return cls(
            name=name,
            kind=kind,
            size=size,
            mode=st.st_mode & PERMISSION_MASK,
            mtime=int(st.st_mtime),
            linkname=linkname if kind is EntryKind.SYMLINK else "",
            uid=getattr(st, "st_uid", 0),
            gid=getattr(st, "st_gid", 0),
        )

    @classmethod
    def from_tarinfo(cls, info: tarfile.TarInfo) -> "ArchiveEntry":
        kind = EntryKind.from_typeflag(info.type)
        return cls(
            name=info.name,
            kind=kind,
            size=0 if info.type in HEADER_ONLY_TYPES else info.size,
            mode=info.mode & PERMISSION_MASK,
            mtime=int(info.mtime),
            linkname=info.linkname,
            uid=info.uid,
            gid=info.gid,
            typeflag=info.type,
        )

    def to_tarinfo(self) -> tarfile.TarInfo:
        info = tarfile.TarInfo(self.name)
        info.type = self.kind.typeflag()
        info.size = self.size if self.kind is EntryKind.FILE else 0
        info.mode = self.mode
        info.mtime = self.mtime
        info.linkname = self.linkname
        info.uid = self.uid
        info.gid = self.gid
        return info

    @property
    def path(self) -> str:
        """Entry name without the trailing '/' directories carry."""
        return self.name.rstrip("/")
