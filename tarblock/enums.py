from enum import Enum

from .constants import HEADER_SIZE


class EntryType(str, Enum):
    """Type flag stored as a single byte at offset 156."""

    REGULAR = "0"
    HARD_LINK = "1"
    SYMLINK = "2"
    CHAR_DEVICE = "3"
    BLOCK_DEVICE = "4"
    DIRECTORY = "5"
    FIFO = "6"

    @property
    def code(self) -> bytes:
        return self.value.encode("ascii")

    @classmethod
    def from_code(cls, code: int) -> "EntryType":
        """
        Maps the raw type byte to an entry type.
        Old archives use NUL for regular files and '7' (contiguous) is read as one.
        """
        if code in (0, ord("7")):
            return cls.REGULAR
        return cls(chr(code))


class TarFormat(str, Enum):
    """Header profile used to encode and decode an archive."""

    USTAR = "ustar"
    LEGACY = "legacy"

    @property
    def header_size(self) -> int:
        """Both profiles use full 512-byte records; only the populated fields differ."""
        return HEADER_SIZE
