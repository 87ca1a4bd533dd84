"""
Test suite for DatabaseManager component
Following TDD approach with AAA pattern and descriptive naming
"""

import pytest
import tempfile
from pathlib import Path
from drata_adapter.database_manager import DatabaseManager, DatabaseConnectionError


class TestDatabaseManager:
    """Test suite for DuckDB connection and trigger state table management"""

    def test_create_connection_with_nested_path_creates_parent_directories(self):
        """
        Test that connecting creates missing directories and the database file
        """
        with tempfile.TemporaryDirectory() as temp_dir:
            # Arrange
            db_path = Path(temp_dir) / "databases" / "state.db"
            db_manager = DatabaseManager()

            # Act
            db_manager.create_connection(db_path)

            # Assert
            assert db_manager.is_connected
            assert db_path.exists()
            db_manager.close_connection()
            assert not db_manager.is_connected

    def test_create_connection_twice_raises_database_connection_error(self):
        """
        Test that an open connection must be closed before reconnecting
        """
        with tempfile.TemporaryDirectory() as temp_dir:
            # Arrange
            db_manager = DatabaseManager()
            db_manager.create_connection(Path(temp_dir) / "state.db")

            # Act & Assert
            with pytest.raises(DatabaseConnectionError) as exc_info:
                db_manager.create_connection(Path(temp_dir) / "state.db")

            assert "already open" in str(exc_info.value)
            db_manager.close_connection()

    def test_create_tables_without_connection_raises(self):
        """
        Test that table creation requires a connection
        """
        # Act & Assert
        with pytest.raises(DatabaseConnectionError) as exc_info:
            DatabaseManager().create_tables()

        assert "not open" in str(exc_info.value)

    def test_create_tables_is_repeatable(self):
        """
        Test that creating the state table twice does not fail
        """
        with tempfile.TemporaryDirectory() as temp_dir:
            # Arrange
            db_manager = DatabaseManager()
            db_manager.create_connection(Path(temp_dir) / "state.db")

            # Act
            db_manager.create_tables()
            db_manager.create_tables()

            # Assert
            row = db_manager.fetch_one("SELECT COUNT(*) FROM trigger_state")
            assert row == (0,)
            db_manager.close_connection()

    def test_execute_with_transaction_with_failing_query_rolls_back_and_raises(self):
        """
        Test that a failing statement propagates and leaves the connection usable
        """
        with tempfile.TemporaryDirectory() as temp_dir:
            # Arrange
            db_manager = DatabaseManager()
            db_manager.create_connection(Path(temp_dir) / "state.db")
            db_manager.create_tables()

            # Act & Assert
            with pytest.raises(Exception):
                db_manager.execute_with_transaction("INSERT INTO missing_table VALUES (1)")

            row = db_manager.fetch_one("SELECT COUNT(*) FROM trigger_state")
            assert row == (0,)
            db_manager.close_connection()

    def test_context_manager_opens_creates_table_and_closes(self):
        """
        Test that the with-block form prepares the state table and releases the connection
        """
        with tempfile.TemporaryDirectory() as temp_dir:
            # Arrange
            db_manager = DatabaseManager(Path(temp_dir) / "state" / "trigger.db")

            # Act
            with db_manager as active:
                row = active.fetch_one("SELECT COUNT(*) FROM trigger_state")

            # Assert
            assert row == (0,)
            assert not db_manager.is_connected

    def test_close_connection_without_connection_is_noop(self):
        """
        Test that closing twice is safe
        """
        # Arrange
        db_manager = DatabaseManager()

        # Act
        db_manager.close_connection()

        # Assert
        assert not db_manager.is_connected
