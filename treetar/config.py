from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

from .constants import (
    DEFAULT_COPY_CHUNK_SIZE,
    DEFAULT_DIGEST_ALGORITHM,
    DEFAULT_ENCODING,
    DEFAULT_FORMAT,
    FORMATS,
)


def _default_logger() -> logging.Logger:
    return logging.getLogger("treetar")


@dataclass(frozen=True)
class ArchiveConfig:
    """Settings shared by the archiver and the extractor.

    Passed explicitly at construction time; nothing here is read from
    module-level state.
    """

    sep: str = os.sep
    sort_entries: bool = True
    tar_format: int = DEFAULT_FORMAT
    encoding: str = DEFAULT_ENCODING
    digest_algorithm: str = DEFAULT_DIGEST_ALGORITHM
    copy_chunk_size: int = DEFAULT_COPY_CHUNK_SIZE
    logger: logging.Logger = field(default_factory=_default_logger, compare=False)

    def __post_init__(self):
        if not self.sep:
            raise ValueError("sep must be a non-empty string")
        if self.tar_format not in FORMATS.values():
            raise ValueError(f"Unknown tar format: {self.tar_format!r}")
        if self.copy_chunk_size <= 0:
            raise ValueError("copy_chunk_size must be positive")

    @classmethod
    def from_format_name(cls, name: str, **kwargs) -> "ArchiveConfig":
        try:
            fmt = FORMATS[name.lower()]
        except KeyError:
            raise ValueError(f"Unknown tar format: {name!r}") from None
        return cls(tar_format=fmt, **kwargs)
