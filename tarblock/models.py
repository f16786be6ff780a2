from typing import cast

from peewee import CharField, IntegerField, Model

from tarblock.enums import EntryType
from tarblock.schemas import Header


class BaseModel(Model):
    """Bound to a catalog connection at query time (see CatalogDatabase.bound)."""


class CatalogMetadata(BaseModel):
    """Global information about the indexed archive (format, size, member count)."""

    key = CharField(unique=True)
    value = CharField()


class Member(BaseModel):
    """One header record of the archive and where it sits in the stream."""

    path = cast(str, CharField(index=True))
    offset = cast(int, IntegerField(unique=True))
    end_offset = cast(int, IntegerField())

    # Tar Header
    size = cast(int, IntegerField())
    mtime = cast(int, IntegerField())
    mode = cast(int, IntegerField())
    uid = cast(int, IntegerField())
    gid = cast(int, IntegerField())
    uname = cast(str, CharField(default=""))
    gname = cast(str, CharField(default=""))
    type = cast(str, CharField(max_length=1))
    linkname = cast(str, CharField(default=""))
    devmajor = cast(int, IntegerField(default=0))
    devminor = cast(int, IntegerField(default=0))

    @property
    def is_dir(self) -> bool:
        return self.type == EntryType.DIRECTORY.value

    @property
    def total_block_size(self) -> int:
        """Header, payload and padding taken by this member in the stream."""
        return self.end_offset - self.offset

    @classmethod
    def row_from_header(cls, header: Header, offset: int, end_offset: int) -> dict:
        return dict(
            path=header.name.rstrip("/"),
            offset=offset,
            end_offset=end_offset,
            size=header.size,
            mtime=header.mtime,
            mode=header.mode,
            uid=header.uid,
            gid=header.gid,
            uname=header.uname,
            gname=header.gname,
            type=header.type.value,
            linkname=header.linkname,
            devmajor=header.devmajor,
            devminor=header.devminor,
        )

    def as_header(self) -> Header:
        return Header(
            name=self.path + "/" if self.is_dir and self.path else self.path,
            mode=self.mode,
            uid=self.uid,
            gid=self.gid,
            size=self.size,
            mtime=self.mtime,
            type=EntryType(self.type),
            linkname=self.linkname,
            uname=self.uname,
            gname=self.gname,
            devmajor=self.devmajor,
            devminor=self.devminor,
        )


MODELS = [Member, CatalogMetadata]
