"""
Product store.

Stored products live in one table keyed by product id. PostgreSQL is used
when DATABASE_URL is set (and not in local mode); otherwise a SQLite file.
InMemoryProductStore offers the same interface without a database.
"""

import logging
import sqlite3
from typing import Dict, List, Optional

import psycopg2

from .config import Settings
from .errors import StoreUnavailable, WriteError


logger = logging.getLogger(__name__)


COLUMNS = ('id', 'name', 'sku', 'price', 'gear_shop_url', 'date_indexed')


# =============================================================================
# Database Connection Wrapper (reconnect on connection loss)
# =============================================================================

class DatabaseConnection:
    """
    Wrapper for a PostgreSQL or SQLite connection.

    Connection-loss errors trigger a reconnect so the next operation gets a
    live connection. The failed operation itself is not retried.
    """

    def __init__(self, database_url: Optional[str] = None, db_path: str = "gearshop.db"):
        self.database_url = database_url
        self.db_path = db_path
        self._conn = None
        self._is_postgres = False

    def connect(self):
        """Establish database connection."""
        if self.database_url:
            self._conn = psycopg2.connect(self.database_url)
            self._is_postgres = True
            logger.info("Connected to PostgreSQL")
        else:
            self._conn = sqlite3.connect(self.db_path)
            self._conn.row_factory = sqlite3.Row
            self._is_postgres = False
            logger.info("Connected to SQLite: %s", self.db_path)
        return self._conn

    def reconnect(self):
        """Reconnect to database after connection loss."""
        logger.warning("Reconnecting to database...")
        self.close()
        return self.connect()

    def is_connection_error(self, error: Exception) -> bool:
        """Check if exception is a connection-related error."""
        error_str = str(error).lower()
        connection_errors = [
            'connection already closed',
            'connection is closed',
            'server closed the connection',
            'could not receive data',
            'ssl syscall error',
            'operation timed out',
            'connection refused',
            'connection reset',
            'broken pipe',
            'network is unreachable',
            'cannot operate on a closed database',
        ]
        return any(err in error_str for err in connection_errors)

    def handle_error(self, error: Exception) -> None:
        """Roll back after a failed statement and reconnect if the link dropped."""
        if self.is_connection_error(error):
            try:
                self.reconnect()
            except (sqlite3.Error, psycopg2.Error) as e:
                logger.error("Reconnect failed: %s", e)
            return
        if self._conn is None:
            return
        try:
            self._conn.rollback()
        except (sqlite3.Error, psycopg2.Error) as e:
            logger.error("Rollback failed: %s", e)

    @property
    def conn(self):
        """Get the underlying connection."""
        return self._conn

    @property
    def is_postgres(self) -> bool:
        return self._is_postgres

    @property
    def placeholder(self) -> str:
        """Return the correct placeholder for the database type."""
        return '%s' if self._is_postgres else '?'

    def cursor(self):
        """Get a cursor, connecting first if the connection was closed."""
        if self._conn is None:
            self.connect()
        return self._conn.cursor()

    def commit(self):
        self._conn.commit()

    def close(self):
        """Close the database connection."""
        if self._conn is not None:
            try:
                self._conn.close()
            except (sqlite3.Error, psycopg2.Error):
                pass
            self._conn = None


# =============================================================================
# Stores
# =============================================================================

class ProductStore:
    """Products table on a DatabaseConnection."""

    def __init__(self, db: DatabaseConnection, table: str):
        self.db = db
        self.table = table

    def ensure_schema(self) -> None:
        cursor = self.db.cursor()
        cursor.execute(f'''
            CREATE TABLE IF NOT EXISTS {self.table} (
                id TEXT PRIMARY KEY,
                name TEXT,
                sku TEXT,
                price TEXT,
                gear_shop_url TEXT,
                date_indexed TEXT
            )
        ''')
        self.db.commit()

    def scan_all(self) -> List[Dict]:
        """
        Return every stored product as a dict.

        Raises:
            StoreUnavailable: If the scan fails.
        """
        try:
            cursor = self.db.cursor()
            cursor.execute(f'SELECT {", ".join(COLUMNS)} FROM {self.table}')
            rows = cursor.fetchall()
        except (sqlite3.Error, psycopg2.Error) as e:
            self.db.handle_error(e)
            raise StoreUnavailable(f"Scan of {self.table} failed: {e}") from e
        return [dict(zip(COLUMNS, row)) for row in rows]

    def put(self, item: Dict) -> None:
        """
        Write one product, replacing any row with the same id.

        Raises:
            WriteError: If the insert or commit fails.
        """
        ph = self.db.placeholder
        values = tuple(item.get(col) for col in COLUMNS)
        updates = ', '.join(f'{col} = excluded.{col}' for col in COLUMNS[1:])
        try:
            cursor = self.db.cursor()
            cursor.execute(f'''
                INSERT INTO {self.table} ({", ".join(COLUMNS)})
                VALUES ({", ".join([ph] * len(COLUMNS))})
                ON CONFLICT (id) DO UPDATE SET {updates}
            ''', values)
            self.db.commit()
        except (sqlite3.Error, psycopg2.Error) as e:
            self.db.handle_error(e)
            raise WriteError(item.get('id', ''), str(e)) from e

    def close(self) -> None:
        self.db.close()


class InMemoryProductStore:
    """Dict-backed store for local runs and tests."""

    def __init__(self, items: Optional[List[Dict]] = None):
        self.items: Dict[str, Dict] = {}
        for item in items or []:
            self.items[item['id']] = dict(item)

    def scan_all(self) -> List[Dict]:
        return [dict(item) for item in self.items.values()]

    def put(self, item: Dict) -> None:
        if not item.get('id'):
            raise WriteError('', "item has no id")
        self.items[item['id']] = dict(item)

    def close(self) -> None:
        pass


def open_store(settings: Settings) -> ProductStore:
    """
    Connect to the configured database and make sure the table exists.

    Local mode always uses the SQLite file.

    Raises:
        StoreUnavailable: If the database cannot be opened.
    """
    database_url = None if settings.local else settings.database_url
    db = DatabaseConnection(database_url=database_url, db_path=settings.database_file)
    store = ProductStore(db, settings.table_name)
    try:
        db.connect()
        store.ensure_schema()
    except (sqlite3.Error, psycopg2.Error) as e:
        db.close()
        raise StoreUnavailable(f"Could not open product store: {e}") from e
    return store
