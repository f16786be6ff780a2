import logging
from typing import Dict, Optional

try:
    import grp
    import pwd
except ImportError:
    pwd = None
    grp = None

logger = logging.getLogger(__name__)


class IdentityCache:
    """
    Maps numeric owner/group IDs to names and back.

    Lookups are cached for the lifetime of the object, failures included.
    A lookup never raises: unknown IDs give an empty name and unknown names
    give back the numeric fallback.
    """

    def __init__(self):
        self._users: Dict[int, str] = {}
        self._groups: Dict[int, str] = {}
        self._uids: Dict[str, Optional[int]] = {}
        self._gids: Dict[str, Optional[int]] = {}

    def user_name(self, uid: int) -> str:
        if uid not in self._users:
            name = ""
            if pwd:
                try:
                    name = pwd.getpwuid(uid).pw_name  # type: ignore
                except (KeyError, AttributeError, OverflowError):
                    logger.debug(f"No user name for uid {uid}")
            self._users[uid] = name
        return self._users[uid]

    def group_name(self, gid: int) -> str:
        if gid not in self._groups:
            name = ""
            if grp:
                try:
                    name = grp.getgrgid(gid).gr_name  # type: ignore
                except (KeyError, AttributeError, OverflowError):
                    logger.debug(f"No group name for gid {gid}")
            self._groups[gid] = name
        return self._groups[gid]

    def user_id(self, name: str, default: int) -> int:
        """Resolves a user name, falling back to the numeric ID from the header."""
        if not name:
            return default
        if name not in self._uids:
            uid = None
            if pwd:
                try:
                    uid = pwd.getpwnam(name).pw_uid  # type: ignore
                except (KeyError, AttributeError):
                    logger.debug(f"Unknown user '{name}', using uid {default}")
            self._uids[name] = uid
        uid = self._uids[name]
        return default if uid is None else uid

    def group_id(self, name: str, default: int) -> int:
        if not name:
            return default
        if name not in self._gids:
            gid = None
            if grp:
                try:
                    gid = grp.getgrnam(name).gr_gid  # type: ignore
                except (KeyError, AttributeError):
                    logger.debug(f"Unknown group '{name}', using gid {default}")
            self._gids[name] = gid
        gid = self._gids[name]
        return default if gid is None else gid
