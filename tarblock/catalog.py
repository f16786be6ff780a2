import logging
from pathlib import Path
from typing import List, Union

import peewee

from .archive import TarArchive
from .database import CatalogDatabase
from .enums import TarFormat
from .exceptions import NotFoundError
from .models import CatalogMetadata, Member

logger = logging.getLogger(__name__)


class Catalog:
    """
    Persistent index of an archive's members (SQLite through peewee).

    Built with one sequential scan; afterwards an entry can be reached through
    its recorded offset instead of scanning the archive from the start.
    """

    BATCH_SIZE = 300

    def __init__(self, database: CatalogDatabase):
        self.database = database
        self.path = database.db_path

    @classmethod
    def build(cls, archive: TarArchive, db_path: Union[str, Path]) -> "Catalog":
        """Scans the archive and records every header with its offsets."""
        if db_path != ":memory:" and Path(db_path).exists():
            raise FileExistsError(f"Catalog already exists at: {db_path}")

        archive._check_readable()
        catalog = cls(CatalogDatabase(db_path).connect(create=True))
        logger.info(f"Building catalog {db_path}")

        try:
            buffer: List[dict] = []
            walker = archive.navigator.walk()
            count = 0
            with catalog.database.transaction():
                while True:
                    try:
                        offset, header = next(walker)
                    except StopIteration as stop:
                        end = stop.value
                        break

                    end_offset = archive.navigator.next_offset(header)
                    buffer.append(Member.row_from_header(header, offset, end_offset))
                    count += 1

                    if len(buffer) >= cls.BATCH_SIZE:
                        Member.insert_many(buffer).execute()
                        buffer = []

                if buffer:
                    Member.insert_many(buffer).execute()

                archive_size = end + archive.tar_format.header_size * 2
                CatalogMetadata.insert(key="format", value=archive.tar_format.value).execute()
                CatalogMetadata.insert(key="archive_size", value=str(archive_size)).execute()
                CatalogMetadata.insert(key="member_count", value=str(count)).execute()
        except Exception:
            catalog.close()
            raise

        logger.info(f"Catalog recorded {count} members")
        return catalog

    @classmethod
    def open(cls, db_path: Union[str, Path]) -> "Catalog":
        """Opens an existing catalog."""
        logger.info(f"Opening catalog from: {db_path}")
        if not Path(db_path).exists():
            raise FileNotFoundError(f"The catalog does not exist in: {db_path}")
        try:
            return cls(CatalogDatabase(db_path).connect())
        except peewee.DatabaseError as e:
            logger.error(f"Failed to open catalog at {db_path}: {e}")
            raise FileNotFoundError(
                f"Failed to open catalog at {db_path}. Is it a valid catalog file?"
            ) from e

    def _metadata(self, key: str) -> str:
        with self.database.bound():
            return CatalogMetadata.get(CatalogMetadata.key == key).value

    @property
    def tar_format(self) -> TarFormat:
        return TarFormat(self._metadata("format"))

    @property
    def archive_size(self) -> int:
        """Size of the archive up to and including the end-of-archive sentinel."""
        return int(self._metadata("archive_size"))

    @property
    def member_count(self) -> int:
        return int(self._metadata("member_count"))

    def members(self) -> List[Member]:
        """Returns all members in stream order."""
        with self.database.bound():
            return list(Member.select().order_by(Member.offset))

    def lookup(self, name: str) -> Member:
        """First member (in stream order) whose path is `name`."""
        with self.database.bound():
            member = (
                Member.select()
                .where(Member.path == name.rstrip("/"))
                .order_by(Member.offset)
                .first()
            )
        if member is None:
            raise NotFoundError(f"'{name}' not found in catalog")
        return member

    def locate(self, name: str) -> int:
        """Offset of the first header whose path is `name`."""
        return self.lookup(name).offset

    def close(self):
        self.database.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
