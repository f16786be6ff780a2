import io
import logging
from pathlib import Path
from typing import BinaryIO, Optional, Union

from .exceptions import (
    OpenFailedError,
    ReadFailedError,
    SeekFailedError,
    WriteFailedError,
)

logger = logging.getLogger(__name__)


class Storage:
    """
    Byte medium an archive lives on.

    Wraps a binary file object and turns its faults into tarblock errors.
    Reads and writes are passed straight through: no buffering or read-ahead
    beyond what the file object itself does.
    """

    def __init__(self, fileobj: BinaryIO, name: Optional[str] = None):
        self.fileobj = fileobj
        self.name = name

    def read(self, size: int) -> bytes:
        try:
            return self.fileobj.read(size)
        except (OSError, ValueError) as e:
            raise ReadFailedError(f"Read of {size} bytes failed: {e}") from e

    def write(self, data: bytes) -> int:
        try:
            written = self.fileobj.write(data)
        except (OSError, ValueError) as e:
            raise WriteFailedError(f"Write of {len(data)} bytes failed: {e}") from e

        if written is not None and written != len(data):
            raise WriteFailedError(f"Short write: {written} of {len(data)} bytes")
        return len(data)

    def seek(self, pos: int) -> int:
        try:
            return self.fileobj.seek(pos)
        except (OSError, ValueError) as e:
            raise SeekFailedError(f"Seek to {pos} failed: {e}") from e

    def tell(self) -> int:
        try:
            return self.fileobj.tell()
        except (OSError, ValueError) as e:
            raise SeekFailedError(f"Cannot query position: {e}") from e

    def flush(self):
        try:
            self.fileobj.flush()
        except (OSError, ValueError) as e:
            raise WriteFailedError(f"Flush failed: {e}") from e

    def close(self):
        if not self.fileobj.closed:
            self.fileobj.close()

    @property
    def closed(self) -> bool:
        return self.fileobj.closed


class FileStorage(Storage):
    """Archive stored in a file on disk."""

    MODES = {"r": "rb", "w": "wb", "a": "r+b"}

    def __init__(self, path: Union[str, Path], mode: str = "r"):
        if mode not in self.MODES:
            raise ValueError(f"Invalid mode '{mode}', expected one of 'r', 'w', 'a'")

        self.path = Path(path)
        file_mode = self.MODES[mode]
        if mode == "a" and not self.path.exists():
            file_mode = "w+b"

        try:
            fileobj = open(self.path, file_mode)
        except OSError as e:
            raise OpenFailedError(f"Cannot open archive '{self.path}': {e}") from e

        logger.debug(f"Opened archive {self.path} ({file_mode})")
        super().__init__(fileobj, name=str(self.path.absolute()))


class MemoryStorage(Storage):
    """Archive kept in an in-memory buffer."""

    def __init__(self, data: bytes = b""):
        super().__init__(io.BytesIO(data), name=None)

    def getvalue(self) -> bytes:
        return self.fileobj.getvalue()  # type: ignore

    def close(self):
        # The buffer stays readable through getvalue() after the archive closes
        pass
