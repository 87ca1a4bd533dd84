"""
Test suite for payload and date helpers
Following TDD approach with AAA pattern and descriptive naming
"""

from datetime import datetime, timedelta, timezone
from drata_adapter.helpers import (
    clean_object, parse_date, to_iso_string, to_iso_date, format_date_for_api, days_until
)


class TestCleanObject:
    """Test suite for clean_object"""

    def test_clean_object_drops_none_and_empty_string(self):
        """
        Test that None and '' entries are removed
        """
        # Arrange
        filters = {'status': 'PASSING', 'owner': None, 'search': '', 'frameworkId': 12}

        # Act
        result = clean_object(filters)

        # Assert
        assert result == {'status': 'PASSING', 'frameworkId': 12}

    def test_clean_object_keeps_zero_and_false(self):
        """
        Test that falsy but meaningful values survive
        """
        # Arrange
        filters = {'score': 0, 'isActive': False, 'tags': []}

        # Act
        result = clean_object(filters)

        # Assert
        assert result == {'score': 0, 'isActive': False, 'tags': []}

    def test_clean_object_is_idempotent_and_does_not_mutate_input(self):
        """
        Test that cleaning twice gives the same result and the input is untouched
        """
        # Arrange
        filters = {'a': None, 'b': 'x'}

        # Act
        once = clean_object(filters)
        twice = clean_object(once)

        # Assert
        assert once == twice == {'b': 'x'}
        assert filters == {'a': None, 'b': 'x'}


class TestDateHelpers:
    """Test suite for Drata date conversions"""

    def test_parse_date_with_naive_string_assumes_utc(self):
        """
        Test that naive timestamps are read as UTC
        """
        # Act
        result = parse_date('2024-03-01T12:00:00')

        # Assert
        assert result == datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)

    def test_parse_date_with_epoch_milliseconds(self):
        """
        Test that integer input is treated as epoch milliseconds
        """
        # Act
        result = parse_date(86_400_000)

        # Assert
        assert result == datetime(1970, 1, 2, tzinfo=timezone.utc)

    def test_to_iso_string_renders_milliseconds_and_z_suffix(self):
        """
        Test the watermark string format
        """
        # Arrange
        value = datetime(2024, 5, 6, 7, 8, 9, 123456, tzinfo=timezone.utc)

        # Act
        result = to_iso_string(value)

        # Assert
        assert result == '2024-05-06T07:08:09.123Z'

    def test_to_iso_date_with_empty_input_returns_empty_string(self):
        """
        Test that empty input is passed through as ''
        """
        # Act & Assert
        assert to_iso_date('') == ''

    def test_to_iso_date_with_date_only_returns_midnight_utc(self):
        """
        Test that a plain date expands to a full timestamp
        """
        # Act & Assert
        assert to_iso_date('2024-02-29') == '2024-02-29T00:00:00.000Z'

    def test_format_date_for_api_returns_ten_character_date(self):
        """
        Test that timestamps are truncated to YYYY-MM-DD
        """
        # Act
        result = format_date_for_api('2024-07-04T18:30:00Z')

        # Assert
        assert result == '2024-07-04'
        assert len(result) == 10

    def test_format_date_for_api_normalises_offsets_to_utc(self):
        """
        Test that a positive offset late at night can move the date back
        """
        # Arrange
        value = datetime(2024, 1, 1, 1, 0, tzinfo=timezone(timedelta(hours=5)))

        # Act & Assert
        assert format_date_for_api(value) == '2023-12-31'

    def test_days_until_rounds_partial_days_up(self):
        """
        Test that 30 days and 1 hour is reported as 31 days
        """
        # Arrange
        now = datetime(2024, 1, 1, tzinfo=timezone.utc)
        expiration = now + timedelta(days=30, hours=1)

        # Act & Assert
        assert days_until(expiration, now) == 31

    def test_days_until_with_exact_days_and_past_dates(self):
        """
        Test whole days and already-expired dates
        """
        # Arrange
        now = datetime(2024, 1, 10, tzinfo=timezone.utc)

        # Act & Assert
        assert days_until('2024-01-17T00:00:00Z', now) == 7
        assert days_until('2024-01-08T00:00:00Z', now) == -2
