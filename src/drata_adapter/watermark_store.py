"""
Watermark stores holding the last poll time of a trigger instance
"""

from datetime import datetime
from typing import Optional, Protocol

from .database_manager import DatabaseManager


class WatermarkStore(Protocol):
    """Key/value slot scoped to one trigger instance"""

    def get(self) -> Optional[str]:
        """Return the stored ISO timestamp, or None before the first poll"""
        ...

    def set(self, value: str) -> None:
        """Persist a new ISO timestamp"""
        ...


class InMemoryWatermarkStore:
    """Watermark kept in process memory, for hosts that persist static data themselves"""

    def __init__(self, initial: Optional[str] = None):
        self.value = initial

    def get(self) -> Optional[str]:
        return self.value

    def set(self, value: str) -> None:
        self.value = value


class DuckDBWatermarkStore:
    """Watermark persisted in the DuckDB trigger_state table, one row per node id"""

    def __init__(self, database_manager: DatabaseManager, node_id: str):
        self.db_manager = database_manager
        self.node_id = node_id

    def get(self) -> Optional[str]:
        """
        Load the last poll time for this node

        Raises:
            DatabaseConnectionError: If no active database connection
        """
        row = self.db_manager.fetch_one(
            "SELECT last_poll_time FROM trigger_state WHERE node_id = ?",
            (self.node_id,)
        )
        if row is None:
            return None
        return row[0]

    def set(self, value: str) -> None:
        """
        Save the last poll time using an UPSERT

        Raises:
            DatabaseConnectionError: If no active database connection
        """
        upsert_sql = """
        INSERT INTO trigger_state (node_id, last_poll_time, last_updated)
        VALUES (?, ?, ?)
        ON CONFLICT (node_id) DO UPDATE SET
            last_poll_time = EXCLUDED.last_poll_time,
            last_updated = EXCLUDED.last_updated
        """
        self.db_manager.execute_with_transaction(upsert_sql, (self.node_id, value, datetime.now()))
