"""
Test suite for watermark stores
Following TDD approach with AAA pattern and descriptive naming
"""

import tempfile
from pathlib import Path
from drata_adapter.database_manager import DatabaseManager
from drata_adapter.watermark_store import InMemoryWatermarkStore, DuckDBWatermarkStore


class TestInMemoryWatermarkStore:
    """Test suite for the in-process watermark"""

    def test_get_before_first_set_returns_none(self):
        """
        Test that a fresh store has no watermark
        """
        # Act & Assert
        assert InMemoryWatermarkStore().get() is None

    def test_set_then_get_returns_latest_value(self):
        """
        Test that set overwrites the previous watermark
        """
        # Arrange
        store = InMemoryWatermarkStore('2024-01-01T00:00:00.000Z')

        # Act
        store.set('2024-01-02T00:00:00.000Z')

        # Assert
        assert store.get() == '2024-01-02T00:00:00.000Z'


class TestDuckDBWatermarkStore:
    """Test suite for the DuckDB-backed watermark"""

    def test_get_for_unknown_node_returns_none(self):
        """
        Test that a node without a row has no watermark
        """
        with tempfile.TemporaryDirectory() as temp_dir:
            # Arrange
            db_manager = DatabaseManager()
            db_manager.create_connection(Path(temp_dir) / "state.db")
            db_manager.create_tables()
            store = DuckDBWatermarkStore(db_manager, "trigger-a")

            # Act
            result = store.get()

            # Assert
            assert result is None
            db_manager.close_connection()

    def test_set_twice_upserts_single_row_per_node(self):
        """
        Test that repeated saves update the same row and nodes stay isolated
        """
        with tempfile.TemporaryDirectory() as temp_dir:
            # Arrange
            db_manager = DatabaseManager()
            db_manager.create_connection(Path(temp_dir) / "state.db")
            db_manager.create_tables()
            store_a = DuckDBWatermarkStore(db_manager, "trigger-a")
            store_b = DuckDBWatermarkStore(db_manager, "trigger-b")

            # Act
            store_a.set('2024-01-01T00:00:00.000Z')
            store_a.set('2024-01-01T00:05:00.000Z')
            store_b.set('2023-12-31T23:00:00.000Z')

            # Assert
            assert store_a.get() == '2024-01-01T00:05:00.000Z'
            assert store_b.get() == '2023-12-31T23:00:00.000Z'
            row = db_manager.fetch_one(
                "SELECT COUNT(*) FROM trigger_state WHERE node_id = ?", ("trigger-a",)
            )
            assert row == (1,)
            db_manager.close_connection()

    def test_watermark_survives_reconnect(self):
        """
        Test that the watermark is persisted across connections
        """
        with tempfile.TemporaryDirectory() as temp_dir:
            # Arrange
            db_path = Path(temp_dir) / "state.db"
            db_manager = DatabaseManager()
            db_manager.create_connection(db_path)
            db_manager.create_tables()
            DuckDBWatermarkStore(db_manager, "trigger-a").set('2024-06-01T12:00:00.000Z')
            db_manager.close_connection()

            # Act
            db_manager.create_connection(db_path)
            result = DuckDBWatermarkStore(db_manager, "trigger-a").get()

            # Assert
            assert result == '2024-06-01T12:00:00.000Z'
            db_manager.close_connection()
