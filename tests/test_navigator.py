import io
import unittest

from tarblock.archive import TarArchive
from tarblock.enums import TarFormat
from tarblock.exceptions import (
    BadChecksumError,
    NotFoundError,
    NullRecordError,
    ReadFailedError,
)
from tarblock.navigator import ArchiveNavigator
from tarblock.storage import MemoryStorage
from tarblock.stream import BlockStream
from tests.base import TarBlockTestCase


class TestArchiveNavigator(TarBlockTestCase):
    def setUp(self):
        super().setUp()
        self.data = self.build_memory_archive(
            [("a.txt", b"A" * 5), ("b.txt", b"B" * 600), ("c.txt", b"")]
        )

    def _navigator(self, data: bytes, tar_format=TarFormat.USTAR) -> ArchiveNavigator:
        return ArchiveNavigator(BlockStream(MemoryStorage(data)), tar_format)

    def test_archive_layout(self):
        # 3 headers + 5 padded to 512 + 600 padded to 1024 + footer
        self.assertEqual(len(self.data), 512 * 3 + 512 + 1024 + 1024)

    def test_walk_offsets(self):
        nav = self._navigator(self.data)
        records = [(offset, h.name) for offset, h in nav.walk()]
        self.assertEqual(records, [(0, "a.txt"), (1024, "b.txt"), (2560, "c.txt")])

    def test_iteration(self):
        names = [h.name for h in self._navigator(self.data)]
        self.assertEqual(names, ["a.txt", "b.txt", "c.txt"])

    def test_read_header_does_not_consume(self):
        nav = self._navigator(self.data)
        first = nav.read_header()
        self.assertEqual(nav.stream.current_position(), 0)
        self.assertEqual(nav.read_header(), first)
        self.assertEqual(nav.stream.cursor.last_header, 0)

    def test_advance(self):
        nav = self._navigator(self.data)
        header = nav.read_header()
        nav.advance(header)
        self.assertEqual(nav.stream.current_position(), 1024)
        self.assertEqual(nav.read_header().name, "b.txt")

    def test_goto(self):
        nav = self._navigator(self.data)
        self.assertEqual(nav.goto(2560).name, "c.txt")
        self.assertEqual(nav.stream.cursor.last_header, 2560)

    def test_seek_end(self):
        nav = self._navigator(self.data)
        self.assertEqual(nav.seek_end(), 3072)
        self.assertEqual(nav.stream.current_position(), 3072)

    def test_end_of_archive_only(self):
        """Two zero blocks decode as a null record and nothing else."""
        nav = self._navigator(b"\0" * 1024)
        with self.assertRaises(NullRecordError):
            nav.read_header()
        self.assertEqual(list(nav), [])

    def test_empty_medium_is_end_of_archive(self):
        nav = self._navigator(b"")
        with self.assertRaises(NullRecordError):
            nav.read_header()

    def test_truncated_header(self):
        nav = self._navigator(self.data[:300])
        with self.assertRaises(ReadFailedError):
            nav.read_header()

    def test_find(self):
        nav = self._navigator(self.data)
        header = nav.find("b.txt")
        self.assertEqual(header.size, 600)
        self.assertEqual(nav.stream.cursor.last_header, 1024)
        self.assertEqual(nav.stream.current_position(), 1024)

    def test_find_ignores_trailing_slash(self):
        data = self.build_memory_archive([("folder/", b"")])
        self.assertEqual(self._navigator(data).find("folder").name, "folder/")

    def test_find_first_match_wins(self):
        data = self.build_memory_archive([("dup.txt", b"first"), ("dup.txt", b"second!")])
        header = self._navigator(data).find("dup.txt")
        self.assertEqual(header.size, 5)

    def test_find_missing(self):
        with self.assertRaises(NotFoundError):
            self._navigator(self.data).find("missing.txt")

    def test_find_aborts_on_bad_checksum(self):
        corrupted = bytearray(self.data)
        corrupted[1024 + 10] ^= 0xFF  # inside the name of b.txt

        nav = self._navigator(bytes(corrupted))
        self.assertEqual(nav.find("a.txt").name, "a.txt")
        with self.assertRaises(BadChecksumError):
            nav.find("c.txt")
        with self.assertRaises(BadChecksumError):
            list(nav)

    def test_legacy_profile_offsets(self):
        storage = MemoryStorage()
        with TarArchive(storage, mode="w", tar_format=TarFormat.LEGACY) as tar:
            tar.add(self.create_header(name="x", size=3), io.BytesIO(b"xyz"))
            tar.add(self.create_header(name="y", size=0))

        data = storage.getvalue()
        self.assertEqual(len(data), 512 + 512 + 512 + 1024)

        nav = self._navigator(data, TarFormat.LEGACY)
        self.assertEqual([(o, h.name) for o, h in nav.walk()], [(0, "x"), (1024, "y")])

    def test_legacy_payload_ends_on_block_boundary(self):
        storage = MemoryStorage()
        tar = TarArchive(storage, mode="w", tar_format=TarFormat.LEGACY)
        for n in (0, 3, 500, 512, 1000):
            with self.subTest(n=n):
                tar.add(self.create_header(name=f"f{n}", size=n), io.BytesIO(b"x" * n))
                self.assertEqual(tar.stream.current_position() % 512, 0)


if __name__ == "__main__":
    unittest.main()
