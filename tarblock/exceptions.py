class TarError(Exception):
    """Base class for tarblock errors."""


# Medium-level faults
class MediumError(TarError):
    pass


class OpenFailedError(MediumError):
    pass


class ReadFailedError(MediumError):
    pass


class WriteFailedError(MediumError):
    pass


class SeekFailedError(MediumError):
    pass


# Format-level faults
class HeaderError(TarError):
    pass


class BadChecksumError(HeaderError):
    """Stored checksum does not match the header bytes."""


class NullRecordError(HeaderError):
    """Zero-filled record: the end-of-archive sentinel."""


class InvalidHeaderError(HeaderError):
    pass


class NotFoundError(TarError):
    """Requested entry is not in the archive."""


class UnsafePathError(TarError):
    """Entry would be written outside the extraction root."""


class StaleCatalogError(TarError):
    """Catalog offsets no longer match the archive."""


class TarIntegrityError(TarError):
    """Exception thrown when a source file does not match the header already written for it."""
