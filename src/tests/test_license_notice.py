"""
Test suite for the licensing notice guard
Following TDD approach with AAA pattern and descriptive naming
"""

import pytest
from unittest.mock import Mock
from drata_adapter.license_notice import LicenseNotice, emit_license_notice, LICENSING_NOTICE


@pytest.fixture(autouse=True)
def fresh_notice():
    LicenseNotice.reset()
    yield
    LicenseNotice.reset()


class TestLicenseNotice:
    """Test suite for once-per-process notice emission"""

    def test_emit_first_call_logs_warning_and_returns_true(self):
        """
        Test that the first emit logs the notice
        """
        # Arrange
        logger = Mock()
        notice = LicenseNotice(logger=logger)

        # Act
        result = notice.emit()

        # Assert
        assert result is True
        assert notice.emitted
        logger.warning.assert_called_once_with(LICENSING_NOTICE)

    def test_emit_second_call_is_silent(self):
        """
        Test that later emits do not log again
        """
        # Arrange
        logger = Mock()
        notice = LicenseNotice(logger=logger)
        notice.emit()

        # Act
        result = notice.emit()

        # Assert
        assert result is False
        assert logger.warning.call_count == 1

    def test_instance_returns_shared_guard(self):
        """
        Test that the module-level helper uses one shared guard
        """
        # Act
        first = emit_license_notice()
        second = emit_license_notice()

        # Assert
        assert first is True
        assert second is False
        assert LicenseNotice.instance() is LicenseNotice.instance()

    def test_reset_gives_fresh_unemitted_instance(self):
        """
        Test that reset() drops the shared guard so each test case starts clean
        """
        # Arrange
        first = LicenseNotice.instance()
        first.emit()

        # Act
        LicenseNotice.reset()
        second = LicenseNotice.instance()

        # Assert
        assert second is not first
        assert not second.emitted
