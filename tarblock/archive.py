import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING, BinaryIO, List, Optional, Union

from .constants import CHUNK_SIZE_DEFAULT, FOOTER_BLOCKS
from .enums import EntryType, TarFormat
from .exceptions import (
    NullRecordError,
    OpenFailedError,
    ReadFailedError,
    StaleCatalogError,
    TarError,
    TarIntegrityError,
    UnsafePathError,
    WriteFailedError,
)
from .factory import ExcludeType, HeaderFactory, normalize_arcname
from .header import encode_header
from .identity import IdentityCache
from .navigator import ArchiveNavigator
from .schemas import Header
from .storage import FileStorage, Storage
from .stream import BlockStream

if TYPE_CHECKING:
    from .catalog import Catalog

logger = logging.getLogger(__name__)


class TarArchive:
    """
    Reads and writes one archive stream.

    The archive owns its cursor: archive and extract calls must not be
    interleaved on the same instance.
    """

    MODES = ("r", "w", "a")

    def __init__(
        self,
        storage: Storage,
        mode: str = "r",
        tar_format: TarFormat = TarFormat.USTAR,
        chunk_size: int = CHUNK_SIZE_DEFAULT,
        identities: Optional[IdentityCache] = None,
    ):
        if mode not in self.MODES:
            raise ValueError(f"Invalid mode '{mode}', expected one of {self.MODES}")
        if chunk_size <= 0:
            raise ValueError(f"Chunk size must be positive, got {chunk_size}")

        self.storage = storage
        self.mode = mode
        self.tar_format = tar_format
        self.chunk_size = chunk_size
        self.identities = identities or IdentityCache()
        self.factory = HeaderFactory(self.identities)

        self.stream = BlockStream(storage)
        self.navigator = ArchiveNavigator(self.stream, tar_format)
        self._closed = False

        if mode == "a":
            end = self.navigator.seek_end()
            logger.info(f"Appending to archive at offset {end}")

    @classmethod
    def open(cls, path: Union[str, Path], mode: str = "r", **kwargs) -> "TarArchive":
        """Opens an archive file on disk."""
        logger.info(f"Opening archive {path} (mode '{mode}')")
        storage = FileStorage(path, mode)
        try:
            return cls(storage, mode=mode, **kwargs)
        except Exception:
            storage.close()
            raise

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            self.close()
        else:
            # No sentinel after a failed write: the archive is incomplete
            self._closed = True
            self.storage.close()

    def close(self):
        """Writes the end-of-archive sentinel (write modes) and releases the medium."""
        if self._closed:
            return
        try:
            if self.mode in ("w", "a"):
                self.stream.write_padding(self.tar_format.header_size * FOOTER_BLOCKS)
                self.storage.flush()
                logger.info(f"Archive closed at {self.stream.current_position()} bytes")
        finally:
            self._closed = True
            self.storage.close()

    def _check_writable(self):
        if self._closed:
            raise WriteFailedError("Archive is closed")
        if self.mode not in ("w", "a"):
            raise WriteFailedError(f"Archive opened in mode '{self.mode}' is not writable")

    def _check_readable(self):
        if self._closed:
            raise ReadFailedError("Archive is closed")
        if self.mode not in ("r", "a"):
            raise ReadFailedError(f"Archive opened in mode '{self.mode}' is not readable")

    # Writing

    def add(self, header: Header, fileobj: Optional[BinaryIO] = None) -> Header:
        """
        Writes a header followed by exactly `header.size` bytes from `fileobj`
        and the padding that closes the block.
        """
        self._check_writable()
        if header.payload_size and fileobj is None:
            raise ValueError(f"'{header.name}' has {header.size} bytes but no file object")

        raw = encode_header(header, self.tar_format)

        cursor = self.stream.cursor
        cursor.last_header = self.stream.current_position()
        self.stream.write(raw)

        if header.payload_size:
            self._copy_payload(fileobj, header)  # type: ignore
        self.stream.pad_payload(header.payload_size)
        return header

    def _copy_payload(self, fileobj: BinaryIO, header: Header):
        cursor = self.stream.cursor
        cursor.remaining = header.payload_size
        cursor.in_payload = True

        while cursor.remaining > 0:
            try:
                chunk = fileobj.read(min(self.chunk_size, cursor.remaining))
            except OSError as e:
                raise ReadFailedError(f"Error reading source of '{header.name}'") from e

            if not chunk:
                msg = (
                    f"File shrunk during read: '{header.name}'. "
                    f"Missing {cursor.remaining} bytes."
                )
                logger.error(msg)
                raise TarIntegrityError(msg)

            self.stream.write(chunk)
            cursor.remaining -= len(chunk)

        cursor.in_payload = False

    def archive_file(
        self, path: Union[str, Path], arcname: Optional[str] = None
    ) -> Optional[Header]:
        """
        Adds a single file system entry (no recursion).

        Returns the written header, or None for unsupported types (sockets).
        """
        path = Path(path)
        name = arcname if arcname is not None else path.name

        try:
            header = self.factory.create(path, name)
        except OSError as e:
            raise OpenFailedError(f"Cannot stat '{path}': {e}") from e

        if header is None:
            return None

        if not header.is_file:
            self.add(header)
            logger.debug(f"Archived {header.type.name.lower()} '{header.name}'")
            return header

        try:
            source = open(path, "rb")
        except OSError as e:
            raise OpenFailedError(f"Cannot open '{path}': {e}") from e

        with source:
            self.add(header, source)

            # Try to read 1 extra byte. If successful, the file is bigger than promised.
            try:
                grew = source.read(1)
            except OSError as e:
                raise ReadFailedError(f"Error reading '{path}'") from e
            if grew:
                msg = f"File grew during read: '{path}'. Content exceeds promised size."
                logger.error(msg)
                raise TarIntegrityError(msg)

        logger.debug(f"Archived '{header.name}' ({header.size} bytes)")
        return header

    def archive_tree(
        self,
        root: Union[str, Path],
        arcname: Optional[str] = None,
        include_directories: bool = True,
        exclude: Optional[ExcludeType] = None,
    ) -> List[Header]:
        """
        Adds a file, or a directory and everything below it.

        `arcname` defaults to the root's own name; an empty `arcname` stores the
        directory contents without the root folder.
        """
        root = Path(root)
        if arcname is None:
            arcname = root.name or root.resolve().name

        if not root.is_dir() or root.is_symlink():
            header = self.archive_file(root, arcname)
            return [header] if header else []

        logger.info(f"Archiving tree {root} as '{arcname or '.'}'")
        headers: List[Header] = []
        archive_path = Path(self.storage.name).resolve() if self.storage.name else None

        if include_directories and arcname:
            header = self.archive_file(root, arcname)
            if header:
                headers.append(header)

        stack = [(root, arcname)]
        while stack:
            curr_dir, arc_prefix = stack.pop()
            try:
                # sorted() keeps the traversal deterministic
                entries = sorted(os.listdir(curr_dir))
            except PermissionError:
                logger.warning(f"Permission denied: {curr_dir}")
                continue

            for name in entries:
                full_path = curr_dir / name
                if self._should_exclude(full_path, exclude, archive_path):
                    continue

                arc_name = f"{arc_prefix}/{name}" if arc_prefix else name
                is_dir = full_path.is_dir() and not full_path.is_symlink()

                if not is_dir or include_directories:
                    header = self.archive_file(full_path, arc_name)
                    if header:
                        headers.append(header)

                if is_dir:
                    stack.append((full_path, arc_name))

        logger.info(f"Archived {len(headers)} entries from {root}")
        return headers

    @staticmethod
    def _should_exclude(
        path: Path, exclude: Optional[ExcludeType], archive_path: Optional[Path]
    ) -> bool:
        """Determines if a path should be skipped."""
        if archive_path is not None and path.resolve() == archive_path:
            logger.info(f"Skipping the archive itself: {path}")
            return True
        if exclude is None:
            return False
        if callable(exclude):
            return exclude(path)
        if isinstance(exclude, str):
            return path.match(exclude) or path.name == exclude
        if isinstance(exclude, list):
            return any(path.match(p) or path.name == p for p in exclude)
        return False

    # Reading

    def read_header(self) -> Header:
        self._check_readable()
        return self.navigator.read_header()

    def find(self, name: str) -> Header:
        self._check_readable()
        return self.navigator.find(name)

    def members(self) -> List[Header]:
        self._check_readable()
        return list(self.navigator)

    def read_data(self, size: int) -> bytes:
        """
        Reads up to `size` payload bytes of the entry under the cursor.

        The first call reads the header and moves to the payload start. Once
        the payload is exhausted the cursor goes back to the header.
        """
        cursor = self.stream.cursor
        if not cursor.in_payload:
            header = self.read_header()
            self.stream.seek(cursor.last_header + self.navigator.header_size)
            cursor.remaining = header.payload_size
            cursor.in_payload = True

        data = self.stream.read_exact(min(size, cursor.remaining))
        cursor.remaining -= len(data)

        if cursor.remaining == 0:
            cursor.in_payload = False
            self.stream.seek(cursor.last_header)
        return data

    def extract_entry(self, destination: BinaryIO, header: Optional[Header] = None) -> int:
        """
        Copies the payload of the entry under the cursor into `destination`.

        `header` must be the header most recently read; when omitted it is
        read from the current position. Returns the number of bytes copied.
        """
        if header is None:
            header = self.read_header()

        cursor = self.stream.cursor
        if not cursor.in_payload:
            self.stream.seek(cursor.last_header + self.navigator.header_size)
            cursor.remaining = header.payload_size
            cursor.in_payload = True

        copied = 0
        while cursor.in_payload:
            chunk = self.read_data(self.chunk_size)
            if chunk:
                try:
                    destination.write(chunk)
                except OSError as e:
                    raise WriteFailedError(f"Cannot write '{header.name}': {e}") from e
            copied += len(chunk)
        return copied

    def extract(
        self,
        name: str,
        output_root: Union[str, Path] = ".",
        catalog: Optional["Catalog"] = None,
    ) -> Path:
        """
        Extracts a single entry below `output_root`.

        With a catalog the entry is reached directly through its recorded
        offset instead of scanning from the start.
        """
        self._check_readable()
        if catalog is not None:
            header = self._locate(name, catalog)
        else:
            header = self.navigator.find(name)

        root = Path(output_root)
        target = self._target_path(root, header.name)
        self._extract_member(header, target, root)
        if header.is_dir:
            self._restore_metadata(target, header)

        logger.info(f"Extracted '{header.name}' to {target}")
        return target

    def extract_all(self, output_root: Union[str, Path] = ".") -> List[Header]:
        """
        Extracts every entry below `output_root`.

        Stops at the first damaged record: position recovery in a corrupted
        stream cannot be trusted to land on a real header.
        """
        self._check_readable()
        root = Path(output_root)
        root.mkdir(parents=True, exist_ok=True)
        logger.info(f"Extracting all entries to {root}")

        extracted: List[Header] = []
        directories = []

        self.navigator.rewind()
        while True:
            try:
                header = self.navigator.read_header()
            except NullRecordError:
                break

            target = self._target_path(root, header.name)
            self._extract_member(header, target, root)
            if header.is_dir:
                directories.append((target, header))
            extracted.append(header)

            self.navigator.advance(header)

        # Directory metadata last, deepest first, so that writing the
        # contents does not reset mtimes or hit read-only modes
        directories.sort(key=lambda item: len(item[0].parts), reverse=True)
        for target, header in directories:
            self._restore_metadata(target, header)

        logger.info(f"Extracted {len(extracted)} entries")
        return extracted

    def _locate(self, name: str, catalog: "Catalog") -> Header:
        if catalog.tar_format is not self.tar_format:
            raise StaleCatalogError(
                f"Catalog was built for '{catalog.tar_format.value}' archives"
            )

        member = catalog.lookup(name)
        offset = member.offset
        try:
            header = self.navigator.goto(offset)
        except NullRecordError:
            raise StaleCatalogError(f"No header at offset {offset} for '{name}'")

        if header.name.rstrip("/") != name.rstrip("/"):
            raise StaleCatalogError(
                f"Offset {offset} holds '{header.name}', expected '{name}'"
            )

        extent = self.navigator.next_offset(header) - offset
        if extent != member.total_block_size:
            raise StaleCatalogError(
                f"'{name}' takes {extent} bytes, catalog recorded {member.total_block_size}"
            )
        return header

    @staticmethod
    def _target_path(root: Path, name: str) -> Path:
        """Resolves an entry path below root, refusing anything that escapes it."""
        root_resolved = root.resolve()
        rel = normalize_arcname(name)
        if not rel:
            return root_resolved

        target = root_resolved / rel
        parent = target.parent.resolve()
        if parent != root_resolved and root_resolved not in parent.parents:
            raise UnsafePathError(f"Entry '{name}' points outside {root_resolved}")
        return parent / target.name

    def _extract_member(self, header: Header, target: Path, root: Path):
        """Materializes one entry; metadata is restored for everything but directories."""
        try:
            if header.is_dir:
                if target.is_symlink():
                    target.unlink()
                target.mkdir(parents=True, exist_ok=True)
                return
            target.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise WriteFailedError(f"Cannot create directory for '{header.name}': {e}") from e

        if header.is_file:
            self._write_file(header, target)
        elif header.type in (EntryType.SYMLINK, EntryType.HARD_LINK):
            self._make_link(header, target, root)
        elif not self._make_special(header, target):
            return

        self._restore_metadata(target, header)
        logger.debug(f"Extracted '{header.name}'")

    @staticmethod
    def _clear_target(target: Path):
        """Removes a file, symlink or hard link that an earlier entry left at `target`."""
        if target.is_symlink() or (target.exists() and not target.is_dir()):
            target.unlink()

    def _write_file(self, header: Header, target: Path):
        try:
            self._clear_target(target)
            destination = open(target, "wb")
        except OSError as e:
            raise OpenFailedError(f"Cannot create '{target}': {e}") from e

        try:
            with destination:
                self.extract_entry(destination, header)
        except (TarError, OSError):
            logger.error(f"Extraction of '{header.name}' failed, removing {target}")
            target.unlink(missing_ok=True)
            raise

    def _make_link(self, header: Header, target: Path, root: Path):
        try:
            self._clear_target(target)
            if header.is_symlink:
                os.symlink(header.linkname, target)
            else:
                os.link(
                    self._target_path(root, header.linkname), target, follow_symlinks=False
                )
        except OSError as e:
            raise WriteFailedError(
                f"Cannot link '{header.name}' to '{header.linkname}': {e}"
            ) from e

    def _make_special(self, header: Header, target: Path) -> bool:
        """Creates a FIFO or device node. Returns False when the host does not allow it."""
        try:
            self._clear_target(target)
            if header.type == EntryType.FIFO:
                os.mkfifo(target, header.mode & 0o7777)
            else:
                kind = 0o020000 if header.type == EntryType.CHAR_DEVICE else 0o060000
                os.mknod(
                    target,
                    kind | (header.mode & 0o7777),
                    os.makedev(header.devmajor, header.devminor),
                )
        except (OSError, AttributeError) as e:
            logger.warning(f"Skipping {header.type.name.lower()} '{header.name}': {e}")
            return False
        return True

    def _restore_metadata(self, target: Path, header: Header):
        """Applies owner, mode and mtime where the platform allows it."""
        is_link = target.is_symlink()
        if hasattr(os, "geteuid") and os.geteuid() == 0:
            uid = self.identities.user_id(header.uname, header.uid)
            gid = self.identities.group_id(header.gname, header.gid)
            try:
                if is_link:
                    os.lchown(target, uid, gid)
                else:
                    os.chown(target, uid, gid)
            except OSError as e:
                logger.warning(f"Cannot restore owner of {target}: {e}")

        # Never follow a link: its target may be outside the output root
        if is_link:
            return

        try:
            os.chmod(target, header.mode & 0o7777)
        except OSError as e:
            logger.warning(f"Cannot restore mode of {target}: {e}")

        try:
            os.utime(target, (header.mtime, header.mtime))
        except OSError as e:
            logger.warning(f"Cannot restore mtime of {target}: {e}")
