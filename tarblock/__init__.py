import logging

from .archive import TarArchive
from .catalog import Catalog
from .constants import DEFAULT_EXCLUDES
from .enums import EntryType, TarFormat
from .exceptions import (
    BadChecksumError,
    HeaderError,
    InvalidHeaderError,
    MediumError,
    NotFoundError,
    NullRecordError,
    OpenFailedError,
    ReadFailedError,
    SeekFailedError,
    StaleCatalogError,
    TarError,
    TarIntegrityError,
    UnsafePathError,
    WriteFailedError,
)
from .header import decode_header, encode_header
from .identity import IdentityCache
from .schemas import Header
from .storage import FileStorage, MemoryStorage, Storage
from .stream import align_up

__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "TarArchive",
    "Catalog",
    "DEFAULT_EXCLUDES",
    "EntryType",
    "TarFormat",
    "Header",
    "IdentityCache",
    "Storage",
    "FileStorage",
    "MemoryStorage",
    "align_up",
    "encode_header",
    "decode_header",
    "TarError",
    "MediumError",
    "OpenFailedError",
    "ReadFailedError",
    "WriteFailedError",
    "SeekFailedError",
    "HeaderError",
    "BadChecksumError",
    "NullRecordError",
    "InvalidHeaderError",
    "NotFoundError",
    "UnsafePathError",
    "StaleCatalogError",
    "TarIntegrityError",
]
