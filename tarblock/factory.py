import logging
import os
import stat as stat_module
from pathlib import Path, PurePosixPath
from typing import Callable, List, Optional, Union

from .enums import EntryType
from .identity import IdentityCache
from .schemas import Header

ExcludeType = Union[str, List[str], Callable[[Path], bool]]

logger = logging.getLogger(__name__)


def normalize_arcname(name: str) -> str:
    """Archive paths use '/' and never start with a root or drive."""
    name = name.replace("\\", "/")
    parts = [p for p in PurePosixPath(name).parts if p not in ("/", ".")]
    if parts and parts[0].endswith(":"):
        parts = parts[1:]
    return "/".join(parts)


class HeaderFactory:
    """
    Exclusively responsible for inspecting the file system
    and instantiating Header objects.

    Centralizes:
    1. Usage of lstat (to avoid following symlinks).
    2. Type filtering (sockets and unknown types are not archived).
    3. Metadata extraction (Users, Groups, Permissions).
    """

    def __init__(self, identities: Optional[IdentityCache] = None):
        self.identities = identities or IdentityCache()

    @staticmethod
    def diagnose_type(mode: int) -> Optional[EntryType]:
        if stat_module.S_ISREG(mode):
            return EntryType.REGULAR
        if stat_module.S_ISDIR(mode):
            return EntryType.DIRECTORY
        if stat_module.S_ISLNK(mode):
            return EntryType.SYMLINK
        if stat_module.S_ISCHR(mode):
            return EntryType.CHAR_DEVICE
        if stat_module.S_ISBLK(mode):
            return EntryType.BLOCK_DEVICE
        if stat_module.S_ISFIFO(mode):
            return EntryType.FIFO
        return None

    def create(self, source_path: Union[str, Path], arcname: str) -> Optional[Header]:
        """
        Analyzes a path and creates its Header.
        Returns None if the file is an unsupported type (Socket, Door, etc).
        Raises OSError/FileNotFoundError if there are access issues.
        """
        path = Path(source_path)
        st = path.lstat()

        entry_type = self.diagnose_type(st.st_mode)
        if entry_type is None:
            logger.info(f"Skipping unsupported file type: {path}")
            return None

        name = normalize_arcname(arcname)
        linkname = ""
        size = 0
        devmajor = devminor = 0

        if entry_type == EntryType.REGULAR:
            size = st.st_size
        elif entry_type == EntryType.DIRECTORY:
            name = name + "/" if name else name
        elif entry_type == EntryType.SYMLINK:
            linkname = os.readlink(path)
        elif entry_type in (EntryType.CHAR_DEVICE, EntryType.BLOCK_DEVICE):
            devmajor = os.major(st.st_rdev)
            devminor = os.minor(st.st_rdev)

        return Header(
            name=name,
            # S_IMODE drops the type bits and keeps only the permissions
            mode=stat_module.S_IMODE(st.st_mode),
            uid=st.st_uid,
            gid=st.st_gid,
            uname=self.identities.user_name(st.st_uid),
            gname=self.identities.group_name(st.st_gid),
            size=size,
            mtime=int(st.st_mtime),
            type=entry_type,
            linkname=linkname,
            devmajor=devmajor,
            devminor=devminor,
        )
