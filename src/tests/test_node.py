"""
Test suite for DrataNode component
Following TDD approach with AAA pattern and descriptive naming
"""

import pytest
from unittest.mock import Mock
from drata_adapter.context import NodeExecutionContext, NodeItem
from drata_adapter.http_client import ApiError, DrataHTTPClient
from drata_adapter.license_notice import LicenseNotice
from drata_adapter.node import DrataNode
from drata_adapter.operations import OperationRegistry, UnknownOperationError


@pytest.fixture(autouse=True)
def fresh_notice():
    LicenseNotice.reset()
    yield
    LicenseNotice.reset()


def _context(parameters, items=None, continue_on_fail=False):
    return NodeExecutionContext(
        parameters,
        {'apiKey': 'test-key'},
        items=items,
        continue_on_fail=continue_on_fail,
        http_client=Mock(spec=DrataHTTPClient)
    )


class TestDrataNode:
    """Test suite for per-item execution"""

    def test_execute_flattens_list_results_with_paired_item(self):
        """
        Test that list results become one output item per entry
        """
        # Arrange
        local_registry = OperationRegistry()
        local_registry.register('control', 'getAll')(lambda context, i: [{'id': 1}, {'id': 2}])
        context = _context({'resource': 'control', 'operation': 'getAll'})

        # Act
        result = DrataNode(context, local_registry).execute()

        # Assert
        assert result == [
            {'json': {'id': 1}, 'pairedItem': {'item': 0}},
            {'json': {'id': 2}, 'pairedItem': {'item': 0}},
        ]

    def test_execute_runs_handler_for_every_item(self):
        """
        Test that each input item is processed with its own index
        """
        # Arrange
        local_registry = OperationRegistry()
        local_registry.register('risk', 'get')(
            lambda context, i: {'riskId': context.get_parameter('riskId', i)}
        )
        items = [NodeItem(parameters={'riskId': 'R-1'}), NodeItem(parameters={'riskId': 'R-2'})]
        context = _context({'resource': 'risk', 'operation': 'get'}, items=items)

        # Act
        result = DrataNode(context, local_registry).execute()

        # Assert
        assert result == [
            {'json': {'riskId': 'R-1'}, 'pairedItem': {'item': 0}},
            {'json': {'riskId': 'R-2'}, 'pairedItem': {'item': 1}},
        ]

    def test_execute_with_continue_on_fail_reports_error_item(self):
        """
        Test that a failing item becomes an error output and later items still run
        """
        # Arrange
        def handler(context, i):
            if i == 0:
                raise ApiError('Not found', status_code=404)
            return {'ok': True}

        local_registry = OperationRegistry()
        local_registry.register('asset', 'get')(handler)
        context = _context({'resource': 'asset', 'operation': 'get'},
                           items=[NodeItem(), NodeItem()], continue_on_fail=True)

        # Act
        result = DrataNode(context, local_registry).execute()

        # Assert
        assert result == [
            {'json': {'error': '404: Not found'}, 'pairedItem': {'item': 0}},
            {'json': {'ok': True}, 'pairedItem': {'item': 1}},
        ]

    def test_execute_without_continue_on_fail_raises_first_error(self):
        """
        Test that failures propagate by default
        """
        # Arrange
        local_registry = OperationRegistry()
        local_registry.register('asset', 'get')(Mock(side_effect=ApiError('boom', status_code=500)))
        context = _context({'resource': 'asset', 'operation': 'get'})

        # Act & Assert
        with pytest.raises(ApiError):
            DrataNode(context, local_registry).execute()

    def test_execute_with_unknown_operation_raises_before_processing(self):
        """
        Test that an unknown pair fails even with continue_on_fail set
        """
        # Arrange
        context = _context({'resource': 'control', 'operation': 'archive'}, continue_on_fail=True)

        # Act & Assert
        with pytest.raises(UnknownOperationError):
            DrataNode(context).execute()

    def test_execute_emits_license_notice_once(self):
        """
        Test that running the node twice logs the notice only once
        """
        # Arrange
        local_registry = OperationRegistry()
        local_registry.register('user', 'get')(lambda context, i: {})
        context = _context({'resource': 'user', 'operation': 'get'})

        # Act
        DrataNode(context, local_registry).execute()
        DrataNode(context, local_registry).execute()

        # Assert
        assert LicenseNotice.instance().emitted
