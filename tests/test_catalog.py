import unittest

from tarblock.archive import TarArchive
from tarblock.catalog import Catalog
from tarblock.enums import EntryType, TarFormat
from tarblock.exceptions import NotFoundError, StaleCatalogError
from tests.base import TarBlockTestCase


class TestCatalog(TarBlockTestCase):
    def setUp(self):
        super().setUp()
        self.create_file("a/b.txt", "12345")
        self.create_file("a/c.txt", "")
        self.create_file("d.txt", "x" * 600)

        self.archive_path = self.tmp / "indexed.tar"
        with TarArchive.open(self.archive_path, "w") as tar:
            tar.archive_tree(self.data_dir, arcname="")

        self.db_path = self.tmp / "indexed.db"

    def test_build_records_every_member(self):
        with TarArchive.open(self.archive_path) as tar:
            expected = [(offset, h) for offset, h in tar.navigator.walk()]
            with Catalog.build(tar, self.db_path) as catalog:
                rows = list(catalog.members())

                self.assertEqual(catalog.member_count, 4)
                self.assertEqual(catalog.tar_format, TarFormat.USTAR)
                self.assertEqual(catalog.archive_size, self.archive_path.stat().st_size)

        self.assertEqual([r.offset for r in rows], [o for o, _ in expected])
        self.assertEqual([r.as_header() for r in rows], [h for _, h in expected])
        self.assertEqual([r.path for r in rows], ["a", "d.txt", "a/b.txt", "a/c.txt"])
        self.assertTrue(rows[0].is_dir)
        self.assertEqual(rows[0].as_header().type, EntryType.DIRECTORY)
        self.assertEqual(rows[1].total_block_size, 512 + 1024)

    def test_locate(self):
        with TarArchive.open(self.archive_path) as tar:
            with Catalog.build(tar, self.db_path) as catalog:
                self.assertEqual(catalog.locate("a/b.txt"), 2048)
                self.assertEqual(catalog.locate("a/"), 0)
                with self.assertRaises(NotFoundError):
                    catalog.locate("missing.txt")

    def test_extract_through_catalog(self):
        with TarArchive.open(self.archive_path) as tar:
            Catalog.build(tar, self.db_path).close()

        with Catalog.open(self.db_path) as catalog, TarArchive.open(self.archive_path) as tar:
            target = tar.extract("d.txt", output_root=self.out_dir, catalog=catalog)
            self.assertEqual(tar.stream.cursor.last_header, catalog.locate("d.txt"))

        self.assertEqual(target.read_text(), "x" * 600)

    def test_catalog_of_another_archive_is_stale(self):
        with TarArchive.open(self.archive_path) as tar:
            Catalog.build(tar, self.db_path).close()

        other_path = self.tmp / "other.tar"
        other_path.write_bytes(self.build_memory_archive([("z.txt", b""), ("y.txt", b"")]))

        with Catalog.open(self.db_path) as catalog, TarArchive.open(other_path) as tar:
            # Offset past the end of the shorter archive
            with self.assertRaises(StaleCatalogError):
                tar.extract("a/b.txt", output_root=self.out_dir, catalog=catalog)
            # Offset of a different member
            with self.assertRaises(StaleCatalogError):
                tar.extract("d.txt", output_root=self.out_dir, catalog=catalog)

        self.assertFalse(self.out_dir.exists())

    def test_catalog_of_other_format_is_stale(self):
        with TarArchive.open(self.archive_path) as tar:
            Catalog.build(tar, self.db_path).close()

        with Catalog.open(self.db_path) as catalog:
            with TarArchive.open(self.archive_path, tar_format=TarFormat.LEGACY) as tar:
                with self.assertRaises(StaleCatalogError):
                    tar.extract("d.txt", output_root=self.out_dir, catalog=catalog)

    def test_build_refuses_existing_catalog(self):
        self.db_path.write_bytes(b"")
        with TarArchive.open(self.archive_path) as tar:
            with self.assertRaises(FileExistsError):
                Catalog.build(tar, self.db_path)

    def test_open_missing_catalog(self):
        with self.assertRaises(FileNotFoundError):
            Catalog.open(self.tmp / "nope.db")

    def test_resized_member_is_stale(self):
        """Same name at the same offset, but a different payload length."""
        recorded = self.tmp / "recorded.tar"
        recorded.write_bytes(self.build_memory_archive([("x.txt", b"1"), ("d.txt", b"y" * 600)]))
        changed = self.tmp / "changed.tar"
        changed.write_bytes(self.build_memory_archive([("x.txt", b"1"), ("d.txt", b"y" * 2000)]))

        with TarArchive.open(recorded) as tar:
            Catalog.build(tar, self.db_path).close()

        with Catalog.open(self.db_path) as catalog:
            self.assertEqual(catalog.lookup("d.txt").total_block_size, 512 + 1024)
            with TarArchive.open(changed) as tar:
                with self.assertRaisesRegex(StaleCatalogError, "catalog recorded 1536"):
                    tar.extract("d.txt", output_root=self.out_dir, catalog=catalog)
            with TarArchive.open(recorded) as tar:
                target = tar.extract("d.txt", output_root=self.out_dir, catalog=catalog)
        self.assertEqual(target.stat().st_size, 600)

    def test_catalogs_open_side_by_side(self):
        other_archive = self.tmp / "other.tar"
        other_archive.write_bytes(self.build_memory_archive([("only.txt", b"x")]))
        other_db = self.tmp / "other.db"

        with TarArchive.open(self.archive_path) as tar:
            first = Catalog.build(tar, self.db_path)
        with TarArchive.open(other_archive) as tar:
            second = Catalog.build(tar, other_db)

        try:
            self.assertEqual(first.member_count, 4)
            self.assertEqual(second.member_count, 1)
            self.assertEqual(first.locate("d.txt"), 512)
            self.assertEqual(second.locate("only.txt"), 0)
            with self.assertRaises(NotFoundError):
                first.locate("only.txt")
        finally:
            first.close()
            second.close()

        with Catalog.open(self.db_path) as a, Catalog.open(other_db) as b:
            self.assertEqual([m.path for m in b.members()], ["only.txt"])
            self.assertEqual(len(a.members()), 4)

    def test_open_file_that_is_not_a_catalog(self):
        bogus = self.tmp / "bogus.db"
        bogus.write_bytes(b"this is not sqlite" * 100)
        with self.assertRaises(FileNotFoundError):
            Catalog.open(bogus)

    def test_in_memory_catalog(self):
        with TarArchive.open(self.archive_path) as tar:
            with Catalog.build(tar, ":memory:") as catalog:
                self.assertEqual(catalog.member_count, 4)
                self.assertEqual(catalog.locate("d.txt"), 512)


if __name__ == "__main__":
    unittest.main()
