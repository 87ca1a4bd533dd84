"""
DuckDB access for trigger state

One DatabaseManager owns one connection to the state file. It can be used as a
context manager so the connection is released when a poll finishes.
"""

import duckdb
from pathlib import Path
from typing import Any, Optional, Tuple

TRIGGER_STATE_DDL = """
CREATE TABLE IF NOT EXISTS trigger_state (
    node_id VARCHAR PRIMARY KEY,
    last_poll_time VARCHAR NOT NULL,
    last_updated TIMESTAMP DEFAULT CURRENT_TIMESTAMP
)
"""


class DatabaseConnectionError(Exception):
    """Raised when the state database cannot be opened or is used while closed"""
    pass


class DatabaseManager:
    """Owns the DuckDB connection holding trigger watermarks"""

    def __init__(self, db_path: Optional[Path] = None):
        self.db_path = db_path
        self._connection: Optional[duckdb.DuckDBPyConnection] = None

    def __enter__(self) -> 'DatabaseManager':
        if self.db_path is None:
            raise DatabaseConnectionError("No state database path given")
        self.create_connection(self.db_path)
        self.create_tables()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close_connection()

    @property
    def is_connected(self) -> bool:
        return self._connection is not None

    def create_connection(self, db_path: Path) -> duckdb.DuckDBPyConnection:
        """
        Open the state database, creating its directory when missing

        Raises:
            DatabaseConnectionError: If a connection is already open or DuckDB refuses the file
        """
        if self.is_connected:
            raise DatabaseConnectionError(f"State database already open: {self.db_path}")

        db_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._connection = duckdb.connect(str(db_path))
        except duckdb.Error as e:
            raise DatabaseConnectionError(f"Cannot open state database {db_path}: {e}") from e

        self.db_path = db_path
        return self._connection

    def close_connection(self) -> None:
        if self._connection is None:
            return
        try:
            self._connection.close()
        except duckdb.Error:
            pass  # Already closed by DuckDB
        finally:
            self._connection = None

    def create_tables(self) -> None:
        """Create the trigger_state table if it does not exist"""
        connection = self._require_connection()
        try:
            connection.execute(TRIGGER_STATE_DDL)
        except duckdb.Error as e:
            raise DatabaseConnectionError(f"Cannot create trigger_state table: {e}") from e

    def execute_with_transaction(self, query: str, params: Tuple = ()) -> Any:
        """
        Run a write statement in its own transaction

        The transaction is rolled back and the error re-raised if the statement fails.
        """
        connection = self._require_connection()
        connection.begin()
        try:
            result = connection.execute(query, params)
        except Exception:
            connection.rollback()
            raise
        connection.commit()
        return result

    def fetch_one(self, query: str, params: Tuple = ()) -> Optional[Tuple]:
        """Run a read query and return its first row, or None"""
        return self._require_connection().execute(query, params).fetchone()

    def _require_connection(self) -> duckdb.DuckDBPyConnection:
        if self._connection is None:
            raise DatabaseConnectionError("State database is not open")
        return self._connection
