import logging

from .constants import BLOCK_SIZE
from .exceptions import ReadFailedError
from .schemas import CursorState
from .storage import Storage

logger = logging.getLogger(__name__)


def align_up(offset: int, block_size: int = BLOCK_SIZE) -> int:
    """Rounds an offset up to the next multiple of the block size."""
    return offset + (block_size - offset % block_size) % block_size


def padding_for(size: int, block_size: int = BLOCK_SIZE) -> int:
    return align_up(size, block_size) - size


class BlockStream:
    """
    Byte cursor over an archive medium.

    Every read, write and seek goes through here so that the cursor state
    always reflects the medium position.
    """

    def __init__(self, storage: Storage, block_size: int = BLOCK_SIZE):
        self.storage = storage
        self.block_size = block_size
        self.cursor = CursorState()

    def current_position(self) -> int:
        return self.cursor.position

    def seek(self, pos: int):
        """Absolute repositioning. Raises SeekFailedError if the medium refuses."""
        self.storage.seek(pos)
        self.cursor.position = pos

    def rewind(self):
        self.seek(0)
        self.cursor.reset()

    def read(self, size: int) -> bytes:
        data = self.storage.read(size)
        self.cursor.position += len(data)
        return data

    def read_exact(self, size: int) -> bytes:
        data = self.read(size)
        if len(data) != size:
            raise ReadFailedError(
                f"Unexpected end of archive at offset {self.cursor.position}: "
                f"wanted {size} bytes, got {len(data)}"
            )
        return data

    def write(self, data: bytes):
        self.storage.write(data)
        self.cursor.position += len(data)

    def write_padding(self, n: int):
        if n > 0:
            self.write(b"\0" * n)

    def pad_payload(self, size: int) -> int:
        """Pads a payload of `size` bytes up to the block boundary."""
        padding_size = padding_for(size, self.block_size)
        self.write_padding(padding_size)
        return padding_size
