from __future__ import annotations

import argparse
import gzip as _gzip
import logging
import sys
from typing import List, Optional

from treetar.config import ArchiveConfig
from treetar.entry import EntryKind
from treetar.errors import TreeTarError
from treetar.hashutil import base64_file_digest
from treetar.reader import extract, extract_archived_file, find_file, iter_entries
from treetar.writer import create


def _config(args) -> ArchiveConfig:
    kwargs = {}
    if getattr(args, "unsorted", False):
        kwargs["sort_entries"] = False
    fmt = getattr(args, "format", None)
    if fmt:
        return ArchiveConfig.from_format_name(fmt, **kwargs)
    return ArchiveConfig(**kwargs)


def cmd_pack(output: str, inputs: List[str], *, strip: str = "", gzip: bool = False,
             config: Optional[ArchiveConfig] = None) -> str:
    """Write a tar archive of ``inputs`` to ``output`` and print its digest.

    Args:
        output: Archive file to create.
        inputs: Files or directories to store, in order.
        strip: Prefix removed from every entry name.
        gzip: Compress the archive; the digest then covers the gzip bytes.
    """
    digest = create(output, inputs, strip, config=config, compress=gzip)
    print(f"digest: {digest}")
    return digest


def cmd_unpack(archive: str, *, outdir: str = ".", gzip: bool = False,
               config: Optional[ArchiveConfig] = None) -> bool:
    """Extract ``archive`` under ``outdir``."""
    with open(archive, "rb") as fh:
        extract(fh, outdir, config=config, compressed=gzip)
    return True


def _print_entries(source) -> None:
    for entry, _content in iter_entries(source):
        if entry.kind is EntryKind.FILE:
            print(f"{entry.kind.value}\t{entry.size}\t{entry.name}")
        elif entry.kind is EntryKind.SYMLINK:
            print(f"{entry.kind.value}\t-> {entry.linkname}\t{entry.name}")
        else:
            print(f"{entry.kind.value}\t{entry.name}")


def cmd_list(archive: str, *, gzip: bool = False) -> bool:
    """Print one line per entry: kind, size (or link target), name."""
    with open(archive, "rb") as fh:
        if gzip:
            with _gzip.GzipFile(fileobj=fh, mode="rb") as gz:
                _print_entries(gz)
        else:
            _print_entries(fh)
    return True


def cmd_cat(archive: str, name: str, *, gzip: bool = False) -> bool:
    """Copy the content of one entry to stdout."""
    out = sys.stdout.buffer
    if gzip:
        with extract_archived_file(open(archive, "rb"), name) as af:
            out.write(af.read())
    else:
        with open(archive, "rb") as fh:
            _entry, content = find_file(fh, name)
            out.write(content.read())
    out.flush()
    return True


def cmd_digest(path: str) -> str:
    with open(path, "rb") as fh:
        digest = base64_file_digest(fh)
    print(digest)
    return digest


def main(argv: Optional[List[str]] = None):
    ap = argparse.ArgumentParser(prog="treetar", description="Stream directory trees into tar archives and back")
    ap.add_argument("--verbose", "-v", action="store_true", help="Log every entry archived or extracted")
    sub = ap.add_subparsers(dest="cmd", required=True)

    ap_pack = sub.add_parser("pack", help="Create an archive and print its digest")
    ap_pack.add_argument("output", help="Archive path")
    ap_pack.add_argument("inputs", nargs="+", help="Input files/directories")
    ap_pack.add_argument("--strip", default="", help="Prefix removed from entry names (like tar -C)")
    ap_pack.add_argument("--gzip", "-z", action="store_true", help="Gzip the archive")
    ap_pack.add_argument("--unsorted", action="store_true", help="Keep raw directory listing order")
    ap_pack.add_argument("--format", choices=["pax", "gnu", "ustar"], help="Header format (default: pax)")

    ap_unpack = sub.add_parser("unpack", help="Extract an archive")
    ap_unpack.add_argument("archive", help="Archive path")
    ap_unpack.add_argument("--outdir", "-o", default=".", help="Output directory")
    ap_unpack.add_argument("--gzip", "-z", action="store_true", help="Archive is gzipped")

    ap_list = sub.add_parser("list", help="List archive entries")
    ap_list.add_argument("archive", help="Archive path")
    ap_list.add_argument("--gzip", "-z", action="store_true", help="Archive is gzipped")

    ap_cat = sub.add_parser("cat", help="Write one entry's content to stdout")
    ap_cat.add_argument("archive", help="Archive path")
    ap_cat.add_argument("name", help="Entry name")
    ap_cat.add_argument("--gzip", "-z", action="store_true", help="Archive is gzipped")

    ap_digest = sub.add_parser("digest", help="Print the base64 SHA-1 of a file")
    ap_digest.add_argument("path", help="File path")

    args = ap.parse_args(argv)
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")
    try:
        if args.cmd == "pack":
            cmd_pack(args.output, args.inputs, strip=args.strip, gzip=args.gzip, config=_config(args))
        elif args.cmd == "unpack":
            cmd_unpack(args.archive, outdir=args.outdir, gzip=args.gzip, config=_config(args))
        elif args.cmd == "list":
            cmd_list(args.archive, gzip=args.gzip)
        elif args.cmd == "cat":
            cmd_cat(args.archive, args.name, gzip=args.gzip)
        elif args.cmd == "digest":
            cmd_digest(args.path)
        else:
            raise RuntimeError("Unknown command")
    except (TreeTarError, OSError, ValueError, RuntimeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
