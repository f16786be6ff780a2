import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Literal, Union

import peewee

from tarblock.models import MODELS

logger = logging.getLogger(__name__)


class CatalogDatabase:
    """
    SQLite connection owned by a single catalog.

    The models carry no database of their own: they are bound to this
    connection only inside `bound()`, so several catalogs can be open at once.
    """

    PRAGMAS = {"journal_mode": "wal", "cache_size": -1024 * 64}

    def __init__(self, db_path: Union[Union[str, Path], Literal[":memory:"]]):
        self.db_path = Path(db_path) if db_path != ":memory:" else db_path
        self.db = peewee.SqliteDatabase(str(self.db_path), pragmas=self.PRAGMAS, timeout=10)

    def connect(self, create: bool = False) -> "CatalogDatabase":
        """
        Opens the connection. With `create` the file and tables are made as
        needed; otherwise the tables must already be there.
        """
        if create and isinstance(self.db_path, Path):
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            self.db.connect()
            if create:
                with self.db.bind_ctx(MODELS):
                    self.db.create_tables(MODELS, safe=True)
            else:
                missing = [m for m in MODELS if not self.db.table_exists(m._meta.table_name)]
                if missing:
                    raise peewee.OperationalError(
                        f"Not a catalog database: missing {[m.__name__ for m in missing]}"
                    )
        except peewee.DatabaseError:
            self.db.close()
            raise

        logger.debug(f"Catalog database connected: {self.db_path}")
        return self

    @contextmanager
    def bound(self) -> Iterator[peewee.SqliteDatabase]:
        """Runs the enclosed queries against this connection."""
        with self.db.bind_ctx(MODELS):
            yield self.db

    @contextmanager
    def transaction(self) -> Iterator[peewee.SqliteDatabase]:
        with self.bound() as db, db.atomic():
            yield db

    def close(self):
        if not self.db.is_closed():
            self.db.close()

    def __enter__(self):
        return self.connect()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
