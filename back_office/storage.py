"""
Storage Backend Module

Provides the abstract ledger store interface and implementations for in-memory
(testing), SQLite (default persistence) and PostgreSQL. Records are JSON
documents keyed by id; all monetary values are stored as Decimal strings.

Every mutating operation of the back office runs inside ``atomic()``. A
backend guarantees that nothing written inside the block is visible to other
callers until the block commits, and that any exception rolls back the whole
block. ``lock()`` reads a record while holding it exclusively until the
enclosing transaction ends.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Any, Union
from decimal import Decimal
from datetime import datetime, timezone
from enum import Enum
import functools
import sqlite3
import json
import threading
from dataclasses import dataclass, asdict
from pathlib import Path
from contextlib import contextmanager

from .errors import Conflict, StorageError


ACCOUNTS_TABLE = "accounts"
TRANSACTIONS_TABLE = "transactions"
LOCKERS_TABLE = "lockers"
REQUESTS_TABLE = "requests"
SEQUENCES_TABLE = "sequences"

# Tables holding rows that reference an account number
DEPENDENT_TABLES = (TRANSACTIONS_TABLE, LOCKERS_TABLE, REQUESTS_TABLE)


@dataclass
class StorageRecord:
    """Base class for all stored records"""
    created_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage"""
        result = asdict(self)
        for key, value in result.items():
            if isinstance(value, datetime):
                result[key] = value.isoformat()
            elif isinstance(value, Decimal):
                result[key] = str(value)
            elif isinstance(value, Enum):
                result[key] = value.value
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'StorageRecord':
        """Create instance from dictionary"""
        data = dict(data)
        for key, value in data.items():
            if key.endswith('_at') and isinstance(value, str):
                data[key] = datetime.fromisoformat(value)
        return cls(**data)


def _translate_errors(method):
    """Re-raise driver exceptions from a backend method as StorageError"""
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        try:
            return method(self, *args, **kwargs)
        except self.driver_errors as e:
            raise StorageError(f"Storage {method.__name__} failed: {e}") from e
    return wrapper


class StorageInterface(ABC):
    """Abstract interface for storage backends"""

    driver_errors: tuple = ()

    @abstractmethod
    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        """Insert or replace a record"""
        pass

    @abstractmethod
    def insert(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        """Insert a new record; raises Conflict if the id is taken"""
        pass

    @abstractmethod
    def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        """Load a record from storage"""
        pass

    def lock(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        """Load a record and hold it exclusively until the transaction ends"""
        return self.load(table, record_id)

    @abstractmethod
    def load_all(self, table: str) -> List[Dict[str, Any]]:
        """Load all records from a table"""
        pass

    @abstractmethod
    def delete(self, table: str, record_id: str) -> bool:
        """Delete a record from storage"""
        pass

    @abstractmethod
    def exists(self, table: str, record_id: str) -> bool:
        """Check if a record exists"""
        pass

    @abstractmethod
    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Find records matching filters"""
        pass

    @abstractmethod
    def count(self, table: str) -> int:
        """Count records in table"""
        pass

    @abstractmethod
    def clear_table(self, table: str) -> None:
        """Clear all records from a table"""
        pass

    @abstractmethod
    def close(self) -> None:
        """Close storage connection"""
        pass

    @abstractmethod
    def begin_transaction(self) -> None:
        """Start a transaction, or join the one already open on this thread"""
        pass

    @abstractmethod
    def commit(self) -> None:
        """Commit the current transaction (only the outermost level commits)"""
        pass

    @abstractmethod
    def rollback(self) -> None:
        """Rollback the current transaction (only the outermost level rolls back)"""
        pass

    @contextmanager
    def atomic(self):
        """Context manager for atomic operations"""
        self.begin_transaction()
        try:
            yield
        except BaseException:
            self.rollback()
            raise
        self.commit()

    def next_id(self, sequence: str) -> int:
        """Allocate the next value of a monotonic sequence"""
        with self.atomic():
            row = self.lock(SEQUENCES_TABLE, sequence)
            value = (row['value'] if row else 0) + 1
            self.save(SEQUENCES_TABLE, sequence, {'value': value})
            return value


class InMemoryStorage(StorageInterface):
    """In-memory storage implementation for testing"""

    def __init__(self):
        self._data: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._lock = threading.RLock()
        self._depth = 0
        self._snapshot: Optional[Dict[str, Dict[str, Dict[str, Any]]]] = None

    def _ensure_table(self, table: str) -> None:
        """Ensure table exists"""
        if table not in self._data:
            self._data[table] = {}

    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        """Save a record to memory"""
        with self._lock:
            self._ensure_table(table)
            # Deep copy to prevent external mutation
            self._data[table][record_id] = json.loads(json.dumps(data, default=str))

    def insert(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        with self._lock:
            self._ensure_table(table)
            if record_id in self._data[table]:
                raise Conflict(f"Record {record_id} already exists in {table}")
            self.save(table, record_id, data)

    def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        """Load a record from memory"""
        with self._lock:
            self._ensure_table(table)
            record = self._data[table].get(record_id)
            if record is not None:
                return json.loads(json.dumps(record))
            return None

    def load_all(self, table: str) -> List[Dict[str, Any]]:
        """Load all records from a table"""
        with self._lock:
            self._ensure_table(table)
            return [json.loads(json.dumps(record)) for record in self._data[table].values()]

    def delete(self, table: str, record_id: str) -> bool:
        """Delete a record from memory"""
        with self._lock:
            self._ensure_table(table)
            if record_id in self._data[table]:
                del self._data[table][record_id]
                return True
            return False

    def exists(self, table: str, record_id: str) -> bool:
        """Check if a record exists"""
        with self._lock:
            self._ensure_table(table)
            return record_id in self._data[table]

    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Find records matching filters"""
        with self._lock:
            self._ensure_table(table)
            results = []
            for record in self._data[table].values():
                match = True
                for key, value in filters.items():
                    if key not in record or record[key] != value:
                        match = False
                        break
                if match:
                    results.append(json.loads(json.dumps(record)))
            return results

    def count(self, table: str) -> int:
        """Count records in table"""
        with self._lock:
            self._ensure_table(table)
            return len(self._data[table])

    def clear_table(self, table: str) -> None:
        """Clear all records from a table"""
        with self._lock:
            self._data[table] = {}

    def begin_transaction(self) -> None:
        # The lock stays held until the matching commit/rollback
        self._lock.acquire()
        if self._depth == 0:
            self._snapshot = json.loads(json.dumps(self._data))
        self._depth += 1

    def commit(self) -> None:
        try:
            if self._depth == 1:
                self._snapshot = None
        finally:
            self._depth -= 1
            self._lock.release()

    def rollback(self) -> None:
        try:
            if self._depth == 1 and self._snapshot is not None:
                self._data = self._snapshot
                self._snapshot = None
        finally:
            self._depth -= 1
            self._lock.release()

    def close(self) -> None:
        """Close storage (no-op for in-memory)"""
        pass


class SQLiteStorage(StorageInterface):
    """SQLite storage implementation for persistence"""

    # Python ints past 64 bits overflow in parameter binding
    driver_errors = (sqlite3.Error, OverflowError)

    def __init__(self, db_path: Union[str, Path] = ":memory:", timeout: float = 30.0):
        self.db_path = str(db_path)
        # Autocommit mode: transactions are opened explicitly in begin_transaction
        self._connection = sqlite3.connect(
            self.db_path, timeout=timeout, check_same_thread=False, isolation_level=None
        )
        self._connection.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self._depth = 0
        self._tables = set()

        # Enable WAL mode so readers never block on (or see) an open write transaction
        if self.db_path != ":memory:":
            with self._lock:
                self._connection.execute("PRAGMA journal_mode = WAL")
                self._connection.execute("PRAGMA synchronous = NORMAL")

    def _ensure_table(self, table: str) -> None:
        """Ensure table exists with proper schema"""
        if table in self._tables:
            return
        self._connection.execute(f"""
            CREATE TABLE IF NOT EXISTS {table} (
                id TEXT PRIMARY KEY,
                data TEXT NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)
        self._connection.execute(f"""
            CREATE INDEX IF NOT EXISTS idx_{table}_created_at
            ON {table}(created_at)
        """)
        # DDL inside a transaction is undone by a rollback, so only remember committed tables
        if not self._depth:
            self._tables.add(table)

    @_translate_errors
    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        """Save a record to SQLite"""
        with self._lock:
            self._ensure_table(table)

            now = datetime.now(timezone.utc).isoformat()
            data_json = json.dumps(data, default=str)

            self._connection.execute(f"""
                INSERT OR REPLACE INTO {table} (id, data, created_at, updated_at)
                VALUES (?, ?,
                    COALESCE((SELECT created_at FROM {table} WHERE id = ?), ?),
                    ?)
            """, (record_id, data_json, record_id, now, now))

    @_translate_errors
    def insert(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        with self._lock:
            self._ensure_table(table)

            now = datetime.now(timezone.utc).isoformat()
            try:
                self._connection.execute(f"""
                    INSERT INTO {table} (id, data, created_at, updated_at)
                    VALUES (?, ?, ?, ?)
                """, (record_id, json.dumps(data, default=str), now, now))
            except sqlite3.IntegrityError as e:
                raise Conflict(f"Record {record_id} already exists in {table}") from e

    @_translate_errors
    def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        """Load a record from SQLite"""
        with self._lock:
            self._ensure_table(table)
            cursor = self._connection.execute(f"""
                SELECT data FROM {table} WHERE id = ?
            """, (record_id,))
            row = cursor.fetchone()
            if row:
                return json.loads(row['data'])
            return None

    @_translate_errors
    def load_all(self, table: str) -> List[Dict[str, Any]]:
        """Load all records from a table"""
        with self._lock:
            self._ensure_table(table)
            cursor = self._connection.execute(f"""
                SELECT data FROM {table} ORDER BY created_at
            """)
            return [json.loads(row['data']) for row in cursor.fetchall()]

    @_translate_errors
    def delete(self, table: str, record_id: str) -> bool:
        """Delete a record from SQLite"""
        with self._lock:
            self._ensure_table(table)
            cursor = self._connection.execute(f"""
                DELETE FROM {table} WHERE id = ?
            """, (record_id,))
            return cursor.rowcount > 0

    @_translate_errors
    def exists(self, table: str, record_id: str) -> bool:
        """Check if a record exists"""
        with self._lock:
            self._ensure_table(table)
            cursor = self._connection.execute(f"""
                SELECT 1 FROM {table} WHERE id = ? LIMIT 1
            """, (record_id,))
            return cursor.fetchone() is not None

    @_translate_errors
    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Find records whose top-level JSON fields equal the filter values"""
        with self._lock:
            self._ensure_table(table)
            where = " AND ".join("json_extract(data, ?) IS ?" for _ in filters) or "1"
            params = []
            for key, value in filters.items():
                params.extend([f"$.{key}", value])

            cursor = self._connection.execute(
                f"SELECT data FROM {table} WHERE {where} ORDER BY created_at", params
            )
            return [json.loads(row['data']) for row in cursor.fetchall()]

    @_translate_errors
    def count(self, table: str) -> int:
        """Count records in table"""
        with self._lock:
            self._ensure_table(table)
            cursor = self._connection.execute(f"""
                SELECT COUNT(*) as count FROM {table}
            """)
            return cursor.fetchone()['count']

    @_translate_errors
    def clear_table(self, table: str) -> None:
        """Clear all records from a table"""
        with self._lock:
            self._ensure_table(table)
            self._connection.execute(f"DELETE FROM {table}")

    def begin_transaction(self) -> None:
        """Start a transaction holding the database write lock"""
        self._lock.acquire()
        if self._depth == 0:
            try:
                # IMMEDIATE takes the write lock up front so concurrent writers serialize
                self._connection.execute("BEGIN IMMEDIATE")
            except sqlite3.Error as e:
                self._lock.release()
                raise StorageError(f"Could not begin transaction: {e}") from e
        self._depth += 1

    def commit(self) -> None:
        """Commit current transaction"""
        try:
            if self._depth == 1:
                try:
                    self._connection.execute("COMMIT")
                except sqlite3.Error as e:
                    if self._connection.in_transaction:
                        self._connection.execute("ROLLBACK")
                    raise StorageError(f"Commit failed: {e}") from e
        finally:
            self._depth -= 1
            self._lock.release()

    def rollback(self) -> None:
        """Rollback current transaction"""
        try:
            if self._depth == 1 and self._connection.in_transaction:
                self._connection.execute("ROLLBACK")
        finally:
            self._depth -= 1
            self._lock.release()

    def close(self) -> None:
        """Close SQLite connection"""
        with self._lock:
            if self._connection:
                self._connection.close()
                self._connection = None


class PostgreSQLStorage(StorageInterface):
    """PostgreSQL storage backend with row-level locking"""

    def __init__(self, connection_string: str):
        try:
            import psycopg2
            import psycopg2.extras
            self.psycopg2 = psycopg2
            self.extras = psycopg2.extras
        except ImportError:
            raise ImportError("psycopg2 is required for PostgreSQL storage. Install with: pip install psycopg2-binary")

        self.driver_errors = (psycopg2.Error,)
        self.connection_string = connection_string
        self._connection = None
        self._lock = threading.RLock()
        self._depth = 0
        self._tables = set()
        self._connect()

    def _connect(self) -> None:
        """Establish database connection"""
        with self._lock:
            self._connection = self.psycopg2.connect(
                self.connection_string,
                cursor_factory=self.extras.RealDictCursor
            )
            # Statements outside atomic() commit on their own; atomic() issues BEGIN explicitly
            self._connection.autocommit = True

    def _ensure_table(self, table: str) -> None:
        """Ensure table exists with proper schema"""
        if table in self._tables:
            return
        with self._connection.cursor() as cursor:
            cursor.execute(f"""
                CREATE TABLE IF NOT EXISTS {table} (
                    id TEXT PRIMARY KEY,
                    data JSONB NOT NULL,
                    created_at TIMESTAMP DEFAULT NOW(),
                    updated_at TIMESTAMP DEFAULT NOW()
                )
            """)
            cursor.execute(f"""
                CREATE INDEX IF NOT EXISTS idx_{table}_created_at
                ON {table}(created_at)
            """)
        if not self._depth:
            self._tables.add(table)

    @_translate_errors
    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        """Save a record to PostgreSQL using UPSERT"""
        with self._lock:
            self._ensure_table(table)

            now = datetime.now(timezone.utc)
            data_json = json.dumps(data, default=str)

            with self._connection.cursor() as cursor:
                cursor.execute(f"""
                    INSERT INTO {table} (id, data, created_at, updated_at)
                    VALUES (%s, %s, %s, %s)
                    ON CONFLICT (id) DO UPDATE SET
                        data = EXCLUDED.data,
                        updated_at = EXCLUDED.updated_at
                """, (record_id, data_json, now, now))

    @_translate_errors
    def insert(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        with self._lock:
            self._ensure_table(table)

            now = datetime.now(timezone.utc)
            with self._connection.cursor() as cursor:
                try:
                    cursor.execute(f"""
                        INSERT INTO {table} (id, data, created_at, updated_at)
                        VALUES (%s, %s, %s, %s)
                    """, (record_id, json.dumps(data, default=str), now, now))
                except self.psycopg2.IntegrityError as e:
                    raise Conflict(f"Record {record_id} already exists in {table}") from e

    @_translate_errors
    def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        """Load a record from PostgreSQL"""
        with self._lock:
            self._ensure_table(table)
            with self._connection.cursor() as cursor:
                cursor.execute(f"""
                    SELECT data FROM {table} WHERE id = %s
                """, (record_id,))
                row = cursor.fetchone()
                if row:
                    return dict(row['data'])
                return None

    @_translate_errors
    def lock(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        """Load a record with SELECT ... FOR UPDATE"""
        with self._lock:
            self._ensure_table(table)
            with self._connection.cursor() as cursor:
                cursor.execute(f"""
                    SELECT data FROM {table} WHERE id = %s FOR UPDATE
                """, (record_id,))
                row = cursor.fetchone()
                if row:
                    return dict(row['data'])
                return None

    @_translate_errors
    def load_all(self, table: str) -> List[Dict[str, Any]]:
        """Load all records from a table"""
        with self._lock:
            self._ensure_table(table)
            with self._connection.cursor() as cursor:
                cursor.execute(f"""
                    SELECT data FROM {table} ORDER BY created_at
                """)
                return [dict(row['data']) for row in cursor.fetchall()]

    @_translate_errors
    def delete(self, table: str, record_id: str) -> bool:
        """Delete a record from PostgreSQL"""
        with self._lock:
            self._ensure_table(table)
            with self._connection.cursor() as cursor:
                cursor.execute(f"""
                    DELETE FROM {table} WHERE id = %s
                """, (record_id,))
                return cursor.rowcount > 0

    @_translate_errors
    def exists(self, table: str, record_id: str) -> bool:
        """Check if a record exists"""
        with self._lock:
            self._ensure_table(table)
            with self._connection.cursor() as cursor:
                cursor.execute(f"""
                    SELECT 1 FROM {table} WHERE id = %s LIMIT 1
                """, (record_id,))
                return cursor.fetchone() is not None

    @_translate_errors
    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Find records matching filters using JSONB containment"""
        with self._lock:
            self._ensure_table(table)
            with self._connection.cursor() as cursor:
                if not filters:
                    cursor.execute(f"""
                        SELECT data FROM {table} ORDER BY created_at
                    """)
                else:
                    # @> keeps JSON types intact, so 1001 never matches "1001"
                    cursor.execute(f"""
                        SELECT data FROM {table}
                        WHERE data @> %s::jsonb
                        ORDER BY created_at
                    """, (json.dumps(filters, default=str),))
                return [dict(row['data']) for row in cursor.fetchall()]

    @_translate_errors
    def count(self, table: str) -> int:
        """Count records in table"""
        with self._lock:
            self._ensure_table(table)
            with self._connection.cursor() as cursor:
                cursor.execute(f"""
                    SELECT COUNT(*) as count FROM {table}
                """)
                return cursor.fetchone()['count']

    @_translate_errors
    def clear_table(self, table: str) -> None:
        """Clear all records from a table"""
        with self._lock:
            self._ensure_table(table)
            with self._connection.cursor() as cursor:
                cursor.execute(f"DELETE FROM {table}")

    @_translate_errors
    def next_id(self, sequence: str) -> int:
        """Allocate a sequence value with a single atomic upsert"""
        with self._lock:
            self._ensure_table(SEQUENCES_TABLE)
            now = datetime.now(timezone.utc)
            with self._connection.cursor() as cursor:
                cursor.execute(f"""
                    INSERT INTO {SEQUENCES_TABLE} (id, data, created_at, updated_at)
                    VALUES (%s, '{{"value": 1}}'::jsonb, %s, %s)
                    ON CONFLICT (id) DO UPDATE SET
                        data = jsonb_build_object('value', ({SEQUENCES_TABLE}.data->>'value')::bigint + 1),
                        updated_at = EXCLUDED.updated_at
                    RETURNING data
                """, (sequence, now, now))
                return int(cursor.fetchone()['data']['value'])

    def begin_transaction(self) -> None:
        """Start a database transaction"""
        self._lock.acquire()
        if self._depth == 0:
            try:
                with self._connection.cursor() as cursor:
                    cursor.execute("BEGIN")
            except self.psycopg2.Error as e:
                self._lock.release()
                raise StorageError(f"Could not begin transaction: {e}") from e
        self._depth += 1

    def commit(self) -> None:
        """Commit current transaction"""
        try:
            if self._depth == 1:
                try:
                    with self._connection.cursor() as cursor:
                        cursor.execute("COMMIT")
                except self.psycopg2.Error as e:
                    with self._connection.cursor() as cursor:
                        cursor.execute("ROLLBACK")
                    raise StorageError(f"Commit failed: {e}") from e
        finally:
            self._depth -= 1
            self._lock.release()

    def rollback(self) -> None:
        """Rollback current transaction"""
        try:
            if self._depth == 1:
                with self._connection.cursor() as cursor:
                    cursor.execute("ROLLBACK")
        finally:
            self._depth -= 1
            self._lock.release()

    def close(self) -> None:
        """Close PostgreSQL connection"""
        with self._lock:
            if self._connection:
                self._connection.close()
                self._connection = None


def create_storage(database_url: str, timeout: float = 30.0) -> StorageInterface:
    """
    Select a storage backend from a database URL.

    ``memory://`` gives InMemoryStorage, ``sqlite:///path`` (or bare
    ``sqlite://`` for an in-memory database) gives SQLiteStorage, and
    ``postgresql://...`` gives PostgreSQLStorage.
    """
    if database_url.startswith("memory://"):
        return InMemoryStorage()
    if database_url.startswith(("postgresql://", "postgres://")):
        return PostgreSQLStorage(database_url)
    if database_url.startswith("sqlite://"):
        path = database_url[len("sqlite:///"):] if database_url.startswith("sqlite:///") else ""
        return SQLiteStorage(path or ":memory:", timeout=timeout)
    raise ValueError(f"Unsupported database URL: {database_url}")
