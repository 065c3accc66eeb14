"""
Local SQLite cache for the unauthenticated dataset and the client session id.

The cache is a small string-keyed store: the transaction list and the
category state are kept as two independent JSON entries, and the session
identifier delivered by the sign-in popup is kept under its own key.
"""

import datetime
import enum
import json
import logging
import sqlite3
import time
from typing import Any, Optional

from PySide6 import QtCore

from .models import CategoryState, Dataset, transactions_from_list
from ..settings import lib
from ..status import status

STORE_SCHEMA = {
    'key': 'TEXT PRIMARY KEY',
    'value': 'TEXT NOT NULL',
    'updated': 'TEXT NOT NULL',
}


class Table(enum.StrEnum):
    """Enum for database tables."""
    Store = 'store'


class Key(enum.StrEnum):
    """Keys of the entries kept in the local cache."""
    Transactions = 'fintrack_transactions'
    Categories = 'fintrack_categories'
    SessionId = 'fintrack_sid'


def now_str() -> str:
    """Return current UTC date and time as an ISO 8601 string."""
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


class DatabaseAPI(QtCore.QObject):
    """Key-value access to the local cache database."""

    itemChanged = QtCore.Signal(str)  # key

    def __init__(self, parent: Optional[QtCore.QObject] = None) -> None:
        super().__init__(parent=parent)
        self._initialize_schema_if_needed()

    def _initialize_schema_if_needed(self) -> None:
        """
        Ensures the database file and the store table exist with the expected columns.
        An invalid table is dropped and recreated.
        """
        conn: Optional[sqlite3.Connection] = None
        try:
            conn = self.connection()
            table_is_valid = False
            if self._table_exists_in_conn(conn, Table.Store.value):
                cursor = conn.execute(f'PRAGMA table_info({Table.Store.value})')
                current_columns = {row[1] for row in cursor.fetchall()}
                if set(STORE_SCHEMA.keys()).issubset(current_columns):
                    table_is_valid = True
                else:
                    missing_cols = set(STORE_SCHEMA.keys()) - current_columns
                    logging.warning(
                        f'Table "{Table.Store.value}" schema is invalid. Missing columns: {missing_cols}. '
                        f'Schema will be recreated.'
                    )

            if not table_is_valid:
                conn.execute(f'DROP TABLE IF EXISTS {Table.Store.value}')
                cols_sql = ', '.join(f'"{name}" {typedef}' for name, typedef in STORE_SCHEMA.items())
                conn.execute(f'CREATE TABLE {Table.Store.value} ({cols_sql})')
                conn.commit()
                logging.info(f'Local cache table "{Table.Store.value}" created.')

        except sqlite3.Error as e:
            logging.error(f'SQLite error during schema initialization: {e}. Attempting recovery.', exc_info=True)
            if conn:
                try:
                    conn.close()
                except sqlite3.Error:
                    pass
                conn = None

            try:
                self.delete()
                self._initialize_schema_if_needed()
                logging.info('Local cache schema recreated after an error and delete.')
            except Exception as final_e:
                logging.critical(f'Failed to recover local cache schema: {final_e}', exc_info=True)
                raise status.CacheInvalidException(f'Unrecoverable DB schema error: {final_e}') from final_e
        finally:
            if conn:
                conn.close()

    @classmethod
    def connection(cls) -> sqlite3.Connection:
        """Return a new connection to the cache database."""
        lib.settings.db_path.parent.mkdir(parents=True, exist_ok=True)
        return sqlite3.connect(str(lib.settings.db_path), timeout=2.0)

    @classmethod
    def _table_exists_in_conn(cls, conn: sqlite3.Connection, table_name: str) -> bool:
        cursor = conn.execute(
            """SELECT name FROM sqlite_master WHERE type='table' AND name=?""",
            (table_name,)
        )
        return cursor.fetchone() is not None

    def get_item(self, key: str) -> Optional[str]:
        """Return the stored string for ``key``, or None when absent."""
        conn: Optional[sqlite3.Connection] = None
        try:
            conn = self.connection()
            row = conn.execute(
                f'SELECT value FROM {Table.Store.value} WHERE key=?', (str(key),)
            ).fetchone()
            return row[0] if row else None
        except sqlite3.Error as e:
            raise status.CacheInvalidException(f'Failed to read "{key}": {e}') from e
        finally:
            if conn:
                conn.close()

    def set_item(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""
        conn: Optional[sqlite3.Connection] = None
        try:
            conn = self.connection()
            conn.execute(
                f'INSERT OR REPLACE INTO {Table.Store.value} (key, value, updated) VALUES (?, ?, ?)',
                (str(key), value, now_str())
            )
            conn.commit()
        except sqlite3.Error as e:
            raise status.CacheInvalidException(f'Failed to write "{key}": {e}') from e
        finally:
            if conn:
                conn.close()
        self.itemChanged.emit(str(key))

    def remove_item(self, key: str) -> None:
        """Remove ``key``. Missing keys are ignored."""
        conn: Optional[sqlite3.Connection] = None
        try:
            conn = self.connection()
            conn.execute(f'DELETE FROM {Table.Store.value} WHERE key=?', (str(key),))
            conn.commit()
        except sqlite3.Error as e:
            raise status.CacheInvalidException(f'Failed to remove "{key}": {e}') from e
        finally:
            if conn:
                conn.close()
        self.itemChanged.emit(str(key))

    def _get_json(self, key: Key) -> Any:
        raw = self.get_item(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise status.CacheInvalidException(f'Entry "{key}" is not valid JSON: {e}') from e

    def load_dataset(self) -> Dataset:
        """Read the cached transactions and categories.

        Absent entries yield an empty transaction list and the default categories.

        Raises:
            status.CacheInvalidException: If an entry cannot be parsed.
        """
        transactions = transactions_from_list(self._get_json(Key.Transactions))
        categories = CategoryState.from_dict(self._get_json(Key.Categories))
        logging.debug(f'Loaded {len(transactions)} transaction(s) from the local cache.')
        return Dataset(transactions=transactions, categories=categories)

    def save_dataset(self, dataset: Dataset) -> None:
        """Write both the transaction list and the category state."""
        data = dataset.to_dict()
        self.set_item(Key.Transactions, json.dumps(data['transactions'], ensure_ascii=False))
        self.set_item(Key.Categories, json.dumps(data['categories'], ensure_ascii=False))
        logging.debug(f'Saved {len(dataset.transactions)} transaction(s) to the local cache.')

    def get_session_id(self) -> Optional[str]:
        return self.get_item(Key.SessionId)

    def set_session_id(self, session_id: str) -> None:
        self.set_item(Key.SessionId, session_id)

    def clear_session_id(self) -> None:
        self.remove_item(Key.SessionId)

    @QtCore.Slot()
    def reset_cache(self) -> None:
        """Resets the local cache by deleting the database file and recreating the schema."""
        logging.debug('Resetting local cache database.')
        try:
            DatabaseAPI.delete()
        except status.CacheInvalidException as e:
            logging.error(f'Failed to reset cache (delete DB file): {e}')
            return
        self._initialize_schema_if_needed()

    @classmethod
    def delete(cls) -> None:
        """Delete the local cache database file, retrying on failure.

        Raises:
            status.CacheInvalidException: If unable to remove the database file after retries.
        """
        db_file = lib.settings.db_path
        if not db_file.exists():
            logging.debug('No cache database found to delete.')
            return

        max_attempts = 5
        attempt = 0
        wait_seconds = 0.5

        while attempt < max_attempts:
            attempt += 1
            try:
                db_file.unlink()
                logging.info(f'Cache database removed: {db_file}')
                return
            except OSError as ex:
                logging.error(f'Error removing cache DB (attempt {attempt}/{max_attempts}): {ex}')
                if attempt < max_attempts:
                    time.sleep(wait_seconds)

        raise status.CacheInvalidException(f'Unable to remove cache database at {db_file}.')


database: Optional[DatabaseAPI] = None


def get_database() -> DatabaseAPI:
    """Return the shared :class:`DatabaseAPI`, creating it on first use."""
    global database
    if database is None:
        database = DatabaseAPI()
    return database
