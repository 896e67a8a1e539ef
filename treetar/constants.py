import tarfile


# Block layout
BLOCKSIZE = tarfile.BLOCKSIZE        # 512-byte header/content block
RECORDSIZE = tarfile.RECORDSIZE      # 20 blocks; archives are padded to a full record
NUL = b"\x00"
END_OF_ARCHIVE = NUL * (2 * BLOCKSIZE)

# Type flags (ustar + extensions)
REGTYPE = tarfile.REGTYPE            # b"0"
AREGTYPE = tarfile.AREGTYPE          # b"\0" (pre-POSIX regular file)
CONTTYPE = tarfile.CONTTYPE          # b"7" contiguous file, read as regular
SYMTYPE = tarfile.SYMTYPE            # b"2"
DIRTYPE = tarfile.DIRTYPE            # b"5"
XHDTYPE = tarfile.XHDTYPE            # b"x" pax extended header (next entry)
XGLTYPE = tarfile.XGLTYPE            # b"g" pax global header
GNUTYPE_LONGNAME = tarfile.GNUTYPE_LONGNAME  # b"L"
GNUTYPE_LONGLINK = tarfile.GNUTYPE_LONGLINK  # b"K"

REGULAR_TYPES = (REGTYPE, AREGTYPE, CONTTYPE)

# Header formats accepted by ArchiveConfig.tar_format
FORMATS = {
    "ustar": tarfile.USTAR_FORMAT,
    "gnu": tarfile.GNU_FORMAT,
    "pax": tarfile.PAX_FORMAT,
}
DEFAULT_FORMAT = tarfile.PAX_FORMAT
DEFAULT_ENCODING = "utf-8"

# Fingerprint
DEFAULT_DIGEST_ALGORITHM = "sha1"    # RFC 3230 Digest header compatible

DEFAULT_COPY_CHUNK_SIZE = 65_536     # 64 KiB
PERMISSION_MASK = 0o7777

# Types whose header size field never describes trailing content
HEADER_ONLY_TYPES = (
    tarfile.LNKTYPE,
    SYMTYPE,
    tarfile.CHRTYPE,
    tarfile.BLKTYPE,
    DIRTYPE,
    tarfile.FIFOTYPE,
)
