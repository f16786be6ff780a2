import logging
from typing import Generator, Iterator, Tuple

from .enums import TarFormat
from .exceptions import NotFoundError, NullRecordError, ReadFailedError
from .header import decode_header
from .schemas import Header
from .stream import BlockStream, align_up

logger = logging.getLogger(__name__)


class ArchiveNavigator:
    """
    Walks the header records of an archive.

    The navigator is always either on a header, inside a payload (while the
    engine reads it) or past the end-of-archive sentinel. Headers are returned
    as values; the only shared state is the stream cursor.
    """

    def __init__(self, stream: BlockStream, tar_format: TarFormat = TarFormat.USTAR):
        self.stream = stream
        self.tar_format = tar_format

    @property
    def header_size(self) -> int:
        return self.tar_format.header_size

    def rewind(self):
        self.stream.rewind()

    def read_header(self) -> Header:
        """
        Decodes the header at the current offset without consuming it.

        The cursor is moved back to the start of the header afterwards.
        """
        cursor = self.stream.cursor
        start = cursor.position
        cursor.last_header = start

        raw = self.stream.read(self.header_size)
        self.stream.seek(start)

        if not raw:
            # Archive ends without a terminator; treat the end of the medium as one
            raise NullRecordError(f"End of medium at offset {start}")
        if len(raw) != self.header_size:
            raise ReadFailedError(
                f"Truncated header at offset {start}: {len(raw)} of {self.header_size} bytes"
            )

        return decode_header(raw, self.tar_format)

    def next_offset(self, header: Header) -> int:
        last = self.stream.cursor.last_header
        return last + self.header_size + align_up(header.payload_size, self.stream.block_size)

    def advance(self, header: Header):
        """Seeks past the header, its payload and padding to the next record."""
        cursor = self.stream.cursor
        cursor.in_payload = False
        cursor.remaining = 0
        self.stream.seek(self.next_offset(header))

    def goto(self, offset: int) -> Header:
        """Positions the cursor on a known header offset and reads it."""
        cursor = self.stream.cursor
        cursor.in_payload = False
        cursor.remaining = 0
        self.stream.seek(offset)
        return self.read_header()

    def walk(self) -> Generator[Tuple[int, Header], None, int]:
        """
        Yields (offset, header) for every record from the start of the archive.

        Returns the offset of the end-of-archive sentinel. Checksum failures are
        not skipped: they end the walk with BadChecksumError.
        """
        self.rewind()
        while True:
            offset = self.stream.current_position()
            try:
                header = self.read_header()
            except NullRecordError:
                return offset

            yield offset, header

            # The consumer may have moved the cursor (payload reads)
            self.stream.seek(offset)
            self.stream.cursor.last_header = offset
            self.advance(header)

    def __iter__(self) -> Iterator[Header]:
        for _, header in self.walk():
            yield header

    def seek_end(self) -> int:
        """Moves the cursor onto the end-of-archive sentinel."""
        walker = self.walk()
        while True:
            try:
                next(walker)
            except StopIteration as stop:
                end = stop.value
                break
        self.stream.seek(end)
        return end

    def find(self, name: str) -> Header:
        """
        Finds the first entry whose path matches `name`.

        The cursor is left on the matching header.
        """
        target = name.rstrip("/")
        self.rewind()
        while True:
            try:
                header = self.read_header()
            except NullRecordError:
                raise NotFoundError(f"'{name}' not found in archive")

            if header.name.rstrip("/") == target:
                logger.debug(f"Found '{name}' at offset {self.stream.cursor.last_header}")
                return header

            self.advance(header)
