import logging

from .constants import (
    CHECKSUM_OFFSET,
    CHECKSUM_SEED,
    CHECKSUM_WIDTH,
    LIMIT_LINKNAME_BYTES,
    LIMIT_NAME_BYTES,
    LIMIT_OWNER_BYTES,
    LIMIT_PREFIX_BYTES,
    USTAR_MAGIC,
    USTAR_MAGIC_OFFSET,
    USTAR_VERSION,
)
from .enums import EntryType, TarFormat
from .exceptions import BadChecksumError, InvalidHeaderError, NullRecordError
from .schemas import Header

logger = logging.getLogger(__name__)

ENCODING = "utf-8"
ERRORS = "surrogateescape"


def split_path(path: str) -> tuple[str, str]:
    """
    Splits a path to ensure USTAR compatibility.
    Limits: Name (100 bytes), Prefix (155 bytes).
    """
    SEPARATOR = "/"

    path_bytes = path.encode(ENCODING, ERRORS)
    if len(path_bytes) <= LIMIT_NAME_BYTES:
        return path, ""

    # Find a '/' such that:
    # - Left part (prefix) <= 155 bytes
    # - Right part (name) <= 100 bytes
    best_split_index = -1
    for i, char in enumerate(path):
        if char != SEPARATOR:
            continue

        prefix_size = len(path[0:i].encode(ENCODING, ERRORS))
        name_size = len(path[i + 1 :].encode(ENCODING, ERRORS))

        if prefix_size <= LIMIT_PREFIX_BYTES and 0 < name_size <= LIMIT_NAME_BYTES:
            best_split_index = i

    if best_split_index == -1:
        raise ValueError(
            f"Path is too long or cannot be split to fit USTAR limits: '{path}'"
        )

    return path[best_split_index + 1 :], path[0:best_split_index]


def join_path(name: str, prefix: str) -> str:
    if prefix:
        return f"{prefix}/{name}"
    return name


def calculate_checksum(record: bytes) -> int:
    """
    Unsigned sum of every header byte outside the checksum field.

    The checksum field itself counts as eight ASCII spaces, hence the seed.
    """
    end = CHECKSUM_OFFSET + CHECKSUM_WIDTH
    return CHECKSUM_SEED + sum(record[:CHECKSUM_OFFSET]) + sum(record[end:])


class TarHeader:
    """
    Low-level TAR header builder.

    Every numeric field is written as zero-padded ASCII octal ending in NUL,
    every string as a NUL-padded UTF-8 slice. Records are always 512 bytes;
    the legacy layout leaves everything after the link name zero.
    """

    def __init__(self, header: Header, tar_format: TarFormat = TarFormat.USTAR):
        self.header = header
        self.tar_format = tar_format
        self.buffer = bytearray(tar_format.header_size)

    def set_string(self, offset: int, field_width: int, value: str):
        """Writes a UTF-8 encoded string to the buffer, refusing to truncate."""
        data = value.encode(ENCODING, ERRORS)
        if len(data) > field_width:
            raise ValueError(
                f"{offset=} '{value}' too long for field ({len(data)} > {field_width})"
            )

        self.buffer[offset : offset + len(data)] = data

    def set_octal(self, offset: int, field_width: int, value: int):
        """
        Writes a number in octal format following the TAR standard:
        1. Converts the number to octal.
        2. Pads with leading zeros.
        3. Leaves space for the NULL terminator at the end.
        """
        if value < 0:
            raise ValueError(f"Negative value {value} cannot be stored as octal")

        octal_string = oct(int(value))[2:]

        # Available space for digits is field_width - 1 (NULL terminator)
        max_digits = field_width - 1

        if len(octal_string) > max_digits:
            raise ValueError(
                f"Number {value} too large for octal field width {field_width}"
            )

        final_string = octal_string.zfill(max_digits) + "\0"
        self.buffer[offset : offset + field_width] = final_string.encode("ascii")

    def set_bytes(self, offset: int, value: bytes):
        """Writes raw bytes at a specific offset."""
        if offset + len(value) > len(self.buffer):
            raise ValueError(f"Write overflow at offset {offset}")

        self.buffer[offset : offset + len(value)] = value

    def calculate_checksum(self):
        """
        Calculates and writes the header checksum.

        Stored as 6 octal digits, followed by a NULL byte and a space.
        """
        total_sum = calculate_checksum(self.buffer)
        final_string = oct(total_sum)[2:].zfill(6) + "\0" + " "
        end = CHECKSUM_OFFSET + CHECKSUM_WIDTH
        self.buffer[CHECKSUM_OFFSET:end] = final_string.encode("ascii")

    def build(self) -> bytes:
        """Constructs the raw record for the header."""
        h = self.header

        if self.tar_format is TarFormat.USTAR:
            name, prefix = split_path(h.name)
        else:
            name, prefix = h.name, ""

        self.set_string(0, LIMIT_NAME_BYTES, name)  # name
        self.set_octal(100, 8, h.mode)  # mode
        self.set_octal(108, 8, h.uid)  # uid
        self.set_octal(116, 8, h.gid)  # gid
        self.set_octal(124, 12, h.size)  # size
        self.set_octal(136, 12, h.mtime)  # mtime
        self.set_bytes(156, h.type.code)  # typeflag
        self.set_string(157, LIMIT_LINKNAME_BYTES, h.linkname)  # linkname

        if self.tar_format is TarFormat.USTAR:
            # USTAR Signature (Essential for the Prefix field to be recognized)
            self.set_bytes(USTAR_MAGIC_OFFSET, USTAR_MAGIC)
            self.set_bytes(263, USTAR_VERSION)
            self.set_string(265, LIMIT_OWNER_BYTES, h.uname)
            self.set_string(297, LIMIT_OWNER_BYTES, h.gname)
            self.set_octal(329, 8, h.devmajor)
            self.set_octal(337, 8, h.devminor)
            # Prefix allows full path to reach 255 chars (155 prefix + 100 name)
            self.set_string(345, LIMIT_PREFIX_BYTES, prefix)

        self.calculate_checksum()
        return bytes(self.buffer)


def _get_string(raw: bytes, offset: int, field_width: int) -> str:
    """Reads a NUL-terminated string, truncated to the field width."""
    field = raw[offset : offset + field_width]
    return field.split(b"\0", 1)[0].decode(ENCODING, ERRORS)


def _get_octal(raw: bytes, offset: int, field_width: int) -> int:
    field = raw[offset : offset + field_width].split(b"\0", 1)[0].strip()
    if not field:
        return 0
    try:
        return int(field, 8)
    except ValueError:
        raise InvalidHeaderError(
            f"Field at offset {offset} is not octal text: {field!r}"
        )


def encode_header(header: Header, tar_format: TarFormat = TarFormat.USTAR) -> bytes:
    return TarHeader(header, tar_format).build()


def decode_header(raw: bytes, tar_format: TarFormat = TarFormat.USTAR) -> Header:
    """
    Parses a raw header record.

    Raises NullRecordError for the end-of-archive sentinel and
    BadChecksumError when the record does not match its checksum.
    """
    if len(raw) != tar_format.header_size:
        raise InvalidHeaderError(
            f"Header record must be {tar_format.header_size} bytes, got {len(raw)}"
        )

    # If the checksum starts with a null byte the record is the sentinel
    if raw[CHECKSUM_OFFSET] == 0:
        raise NullRecordError("Null record (end of archive)")

    try:
        stored = _get_octal(raw, CHECKSUM_OFFSET, CHECKSUM_WIDTH)
    except InvalidHeaderError as e:
        raise BadChecksumError(f"Unreadable checksum field: {e}") from e

    computed = calculate_checksum(raw)
    if stored != computed:
        raise BadChecksumError(
            f"Checksum mismatch: stored {stored:o}, computed {computed:o}"
        )

    try:
        entry_type = EntryType.from_code(raw[156])
    except ValueError:
        raise InvalidHeaderError(f"Unsupported entry type {chr(raw[156])!r}")

    fields = dict(
        name=_get_string(raw, 0, 100),
        mode=_get_octal(raw, 100, 8),
        uid=_get_octal(raw, 108, 8),
        gid=_get_octal(raw, 116, 8),
        size=_get_octal(raw, 124, 12),
        mtime=_get_octal(raw, 136, 12),
        type=entry_type,
        linkname=_get_string(raw, 157, 100),
    )

    magic = raw[USTAR_MAGIC_OFFSET : USTAR_MAGIC_OFFSET + 5]
    if tar_format is TarFormat.USTAR and magic == USTAR_MAGIC[:5]:
        fields.update(
            name=join_path(fields["name"], _get_string(raw, 345, 155)),
            uname=_get_string(raw, 265, 32),
            gname=_get_string(raw, 297, 32),
            devmajor=_get_octal(raw, 329, 8),
            devminor=_get_octal(raw, 337, 8),
        )

    return Header(**fields)
