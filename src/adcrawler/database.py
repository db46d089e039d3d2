# src/adcrawler/database.py
"""Database abstraction layer supporting local SQLite and remote Turso backends."""

import sqlite3
from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Any, Sequence, Tuple
import logging

from adcrawler.config import settings
from adcrawler.models import RunRecord

logger = logging.getLogger(__name__)

# SQL schema shared between backends
SCHEMA_STATEMENTS = [
    """
    CREATE TABLE IF NOT EXISTS crawl (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        job_id INTEGER,
        name TEXT,
        start_time TIMESTAMP NOT NULL,
        completed_time TIMESTAMP,
        completed BOOLEAN NOT NULL DEFAULT 0,
        crawl_list TEXT,
        crawl_list_current_index INTEGER NOT NULL DEFAULT 0,
        crawl_list_length INTEGER NOT NULL,
        profile_id TEXT,
        profile_dir TEXT,
        crawler_hostname TEXT,
        crawler_ip TEXT
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS page (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        timestamp TIMESTAMP NOT NULL,
        job_id INTEGER,
        crawl_id INTEGER NOT NULL REFERENCES crawl(id),
        original_url TEXT NOT NULL,
        url TEXT,
        page_type TEXT NOT NULL,
        referrer_page INTEGER REFERENCES page(id),
        referrer_page_url TEXT,
        referrer_ad INTEGER,
        reload INTEGER NOT NULL DEFAULT 0,
        title TEXT,
        html_path TEXT,
        screenshot_path TEXT,
        text_length INTEGER,
        error TEXT
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS ad (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        timestamp TIMESTAMP NOT NULL,
        job_id INTEGER,
        crawl_id INTEGER NOT NULL REFERENCES crawl(id),
        parent_page INTEGER NOT NULL REFERENCES page(id),
        original_url TEXT,
        page_type TEXT,
        selector TEXT,
        html TEXT,
        screenshot_path TEXT,
        width REAL,
        height REAL,
        error TEXT
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS request (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        timestamp TIMESTAMP NOT NULL,
        job_id INTEGER,
        crawl_id INTEGER NOT NULL REFERENCES crawl(id),
        parent_page INTEGER NOT NULL,
        initiator TEXT,
        target_url TEXT NOT NULL,
        resource_type TEXT
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_crawl_name ON crawl(name);",
    "CREATE INDEX IF NOT EXISTS idx_page_crawl ON page(crawl_id);",
    "CREATE INDEX IF NOT EXISTS idx_request_parent ON request(parent_page);",
]


def _to_db_value(value: Any) -> Any:
    """Convert values to types both backends accept."""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return value


class AbstractDatabase(ABC):
    """Abstract base class defining the database interface.

    Backends only implement connection handling and statement execution;
    the crawl, page, ad and request operations are shared.
    """

    @abstractmethod
    def connect(self) -> None:
        """Establish database connection."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Close database connection."""
        pass

    @abstractmethod
    def execute(self, sql: str, params: Sequence[Any] = ()) -> Tuple[List[Dict[str, Any]], Optional[int]]:
        """Execute a statement.

        Returns:
            Tuple of (rows as dictionaries, last inserted row id).
        """
        pass

    def create_schema(self) -> None:
        """Create the crawl, page, ad and request tables if they don't exist."""
        for statement in SCHEMA_STATEMENTS:
            self.execute(statement)
        logger.debug(f"Schema verified/created for {type(self).__name__}")

    def get_table_columns(self, table: str) -> set:
        """Get the set of column names in a table."""
        rows, _ = self.execute(f"PRAGMA table_info({table});")
        return {row['name'] for row in rows}

    def insert(self, table: str, data: Dict[str, Any]) -> int:
        """Insert a row, ignoring keys that are not columns of the table.

        Returns:
            The id of the inserted row.
        """
        table_columns = self.get_table_columns(table)
        valid = {k: _to_db_value(v) for k, v in data.items() if k in table_columns}

        columns = ', '.join(valid.keys())
        placeholders = ', '.join('?' for _ in valid)
        _, row_id = self.execute(
            f"INSERT INTO {table} ({columns}) VALUES ({placeholders})",
            tuple(valid.values()),
        )
        return row_id

    def update(self, table: str, row_id: int, data: Dict[str, Any]) -> None:
        """Update columns of one row by id, ignoring unknown keys."""
        table_columns = self.get_table_columns(table)
        valid = {k: _to_db_value(v) for k, v in data.items() if k in table_columns and k != 'id'}
        if not valid:
            return

        assignments = ', '.join(f"{column}=?" for column in valid)
        self.execute(
            f"UPDATE {table} SET {assignments} WHERE id=?",
            tuple(valid.values()) + (row_id,),
        )

    # -- crawl ------------------------------------------------------------

    def create_run(
        self,
        crawl_list: Optional[str],
        crawl_list_length: int,
        name: Optional[str] = None,
        job_id: Optional[int] = None,
        profile_id: Optional[str] = None,
        profile_dir: Optional[str] = None,
        crawler_hostname: Optional[str] = None,
        crawler_ip: Optional[str] = None,
    ) -> int:
        """Insert a new crawl record starting at index 0."""
        run_id = self.insert("crawl", {
            "job_id": job_id,
            "name": name,
            "start_time": datetime.now(),
            "completed": False,
            "crawl_list": crawl_list,
            "crawl_list_current_index": 0,
            "crawl_list_length": crawl_list_length,
            "profile_id": profile_id,
            "profile_dir": profile_dir,
            "crawler_hostname": crawler_hostname,
            "crawler_ip": crawler_ip,
        })
        logger.info(f"Created crawl {run_id} (name={name}, length={crawl_list_length})")
        return run_id

    def find_run_by_name(self, name: str) -> Optional[RunRecord]:
        """Most recent crawl with the given name, if any."""
        rows, _ = self.execute("SELECT * FROM crawl WHERE name = ? ORDER BY id DESC LIMIT 1", (name,))
        return RunRecord.from_row(rows[0]) if rows else None

    def get_run(self, run_id: int) -> Optional[RunRecord]:
        rows, _ = self.execute("SELECT * FROM crawl WHERE id = ?", (run_id,))
        return RunRecord.from_row(rows[0]) if rows else None

    def update_run_progress(self, run_id: int, index: int) -> None:
        self.execute(
            "UPDATE crawl SET crawl_list_current_index = ? WHERE id = ?",
            (index, run_id),
        )

    def complete_run(self, run_id: int, completion_time: Optional[datetime] = None) -> None:
        self.execute(
            "UPDATE crawl SET completed = 1, completed_time = ? WHERE id = ?",
            (_to_db_value(completion_time or datetime.now()), run_id),
        )
        logger.info(f"Crawl {run_id} marked completed")

    # -- page / ad / request ----------------------------------------------

    def create_page_visit(self, fields: Dict[str, Any]) -> int:
        """Insert the initial record for a page, to be updated after loading."""
        if 'crawl_id' not in fields or 'original_url' not in fields:
            raise ValueError("The 'crawl_id' and 'original_url' fields are required.")
        return self.insert("page", {"timestamp": datetime.now(), **fields})

    def update_page_visit(self, page_id: int, fields: Dict[str, Any]) -> None:
        self.update("page", page_id, fields)

    def get_page_visit(self, page_id: int) -> Optional[Dict[str, Any]]:
        rows, _ = self.execute("SELECT * FROM page WHERE id = ?", (page_id,))
        return rows[0] if rows else None

    def get_pages_for_run(self, run_id: int) -> List[Dict[str, Any]]:
        rows, _ = self.execute(
            "SELECT * FROM page WHERE crawl_id = ? ORDER BY id ASC", (run_id,)
        )
        return rows

    def count_pages_for_run(self, run_id: int) -> int:
        rows, _ = self.execute(
            "SELECT COUNT(*) AS n FROM page WHERE crawl_id = ?", (run_id,)
        )
        return rows[0]["n"]

    def record_ad(self, fields: Dict[str, Any]) -> int:
        return self.insert("ad", {"timestamp": datetime.now(), **fields})

    def record_captured_request(self, fields: Dict[str, Any]) -> int:
        return self.insert("request", fields)

    def get_requests_for_page(self, page_id: int) -> List[Dict[str, Any]]:
        rows, _ = self.execute(
            "SELECT * FROM request WHERE parent_page = ? ORDER BY id ASC", (page_id,)
        )
        return rows


class LocalSqliteDatabase(AbstractDatabase):
    """SQLite database implementation for local storage."""

    def __init__(self, db_url: Optional[str] = None):
        """Initialize local SQLite database.

        Args:
            db_url: Database URL (sqlite:///path/to/db.db). Defaults to settings.DATABASE_URL.
        """
        self.db_url = db_url or settings.DATABASE_URL
        self.db_path = self.db_url.replace("sqlite:///", "")
        self.conn: Optional[sqlite3.Connection] = None
        self.connect()
        self.create_schema()

    def connect(self) -> None:
        """Establish SQLite connection."""
        self.conn = sqlite3.connect(self.db_path, timeout=30.0)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA journal_mode=WAL")
        logger.debug(f"Connected to local SQLite database: {self.db_path}")

    def close(self) -> None:
        """Close SQLite connection."""
        if self.conn:
            self.conn.close()
            self.conn = None
            logger.debug("Closed local SQLite connection")

    def execute(self, sql: str, params: Sequence[Any] = ()) -> Tuple[List[Dict[str, Any]], Optional[int]]:
        with self.conn:
            cursor = self.conn.execute(sql, tuple(params))
            rows = [dict(row) for row in cursor.fetchall()]
        return rows, cursor.lastrowid


class TursoDatabase(AbstractDatabase):
    """Turso (libSQL) database implementation for remote storage."""

    def __init__(
        self,
        database_url: Optional[str] = None,
        auth_token: Optional[str] = None,
    ):
        """Initialize Turso database connection.

        Args:
            database_url: Turso database URL (libsql://...). Defaults to settings.TURSO_DATABASE_URL.
            auth_token: Turso auth token. Defaults to settings.TURSO_AUTH_TOKEN.
        """
        self.database_url = database_url or settings.TURSO_DATABASE_URL
        self.auth_token = auth_token or settings.TURSO_AUTH_TOKEN
        self.client = None
        self._table_columns: Dict[str, set] = {}

        if not self.database_url:
            raise ValueError("TURSO_DATABASE_URL is required for Turso backend")
        if not self.auth_token:
            raise ValueError("TURSO_AUTH_TOKEN is required for Turso backend")

        self.connect()
        self.create_schema()

    def connect(self) -> None:
        """Establish Turso connection using libsql-client."""
        try:
            import libsql_client
        except ImportError:
            raise ImportError(
                "libsql-client is required for Turso backend. "
                "Install it with: pip install 'adcrawler[turso]'"
            )
        self.client = libsql_client.create_client_sync(
            url=self.database_url,
            auth_token=self.auth_token,
        )
        logger.info(f"Connected to Turso database: {self.database_url}")

    def close(self) -> None:
        """Close Turso connection."""
        if self.client:
            self.client.close()
            self.client = None
            logger.debug("Closed Turso connection")

    def get_table_columns(self, table: str) -> set:
        if table not in self._table_columns:
            self._table_columns[table] = super().get_table_columns(table)
        return self._table_columns[table]

    def execute(self, sql: str, params: Sequence[Any] = ()) -> Tuple[List[Dict[str, Any]], Optional[int]]:
        result = self.client.execute(sql, list(params))
        rows = [dict(zip(result.columns, row)) for row in result.rows]
        return rows, result.last_insert_rowid


def get_db_client(
    backend: Optional[str] = None,
    **kwargs,
) -> AbstractDatabase:
    """Factory function to create the appropriate database client.

    Args:
        backend: Database backend ('local' or 'turso'). Defaults to settings.DB_BACKEND.
        **kwargs: Additional arguments passed to the database constructor.

    Returns:
        An instance of AbstractDatabase (either LocalSqliteDatabase or TursoDatabase).

    Raises:
        ValueError: If an unknown backend is specified.
    """
    backend = backend or settings.DB_BACKEND

    if backend == "local":
        logger.info("Using local SQLite database backend")
        return LocalSqliteDatabase(**kwargs)
    elif backend == "turso":
        logger.info("Using Turso database backend")
        return TursoDatabase(**kwargs)
    else:
        raise ValueError(
            f"Unknown database backend: {backend}. Use 'local' or 'turso'."
        )
