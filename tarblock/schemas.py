from pydantic import BaseModel

from .enums import EntryType


class Header(BaseModel):
    """Metadata of one archive entry, as stored in its header record."""

    name: str  # Full path inside the archive (prefix + '/' + name on disk)
    mode: int = 0o644
    uid: int = 0
    gid: int = 0
    size: int = 0
    mtime: int = 0
    type: EntryType = EntryType.REGULAR
    linkname: str = ""
    uname: str = ""
    gname: str = ""
    devmajor: int = 0
    devminor: int = 0

    @property
    def is_file(self) -> bool:
        return self.type == EntryType.REGULAR

    @property
    def is_dir(self) -> bool:
        return self.type == EntryType.DIRECTORY

    @property
    def is_symlink(self) -> bool:
        return self.type == EntryType.SYMLINK

    @property
    def payload_size(self) -> int:
        """Only regular files carry a data body after the header."""
        return self.size if self.is_file else 0


class CursorState(BaseModel):
    """Read/write position of an open archive stream."""

    position: int = 0
    last_header: int = 0
    remaining: int = 0
    in_payload: bool = False

    def reset(self):
        self.position = 0
        self.last_header = 0
        self.remaining = 0
        self.in_payload = False
