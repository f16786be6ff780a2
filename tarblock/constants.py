BLOCK_SIZE = 512
FOOTER_BLOCKS = 2  # Two zero-filled header blocks close the archive
CHUNK_SIZE_DEFAULT = 64 * 1024  # 64KB for disk reads/writes

# Header record length, the same for both profiles
HEADER_SIZE = 512
# Pre-POSIX (legacy) records leave everything from the magic onwards zero
USTAR_MAGIC_OFFSET = 257

# Checksum field: 6 octal digits + NUL + space
CHECKSUM_OFFSET = 148
CHECKSUM_WIDTH = 8
CHECKSUM_SEED = 256  # Eight ASCII spaces (8 * 32)

LIMIT_NAME_BYTES = 100
LIMIT_PREFIX_BYTES = 155
LIMIT_LINKNAME_BYTES = 100
LIMIT_OWNER_BYTES = 32

USTAR_MAGIC = b"ustar\0"
USTAR_VERSION = b"00"


DEFAULT_EXCLUDES = [
    ".DS_Store",
    "Thumbs.db",
    "__pycache__",
    "*.sock",
]
