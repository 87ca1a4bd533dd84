"""
DrataNode module for running one Drata operation per input item
"""

import logging
from typing import Dict, Any, List

from .context import ExecutionContext
from .license_notice import emit_license_notice
from .operations import OperationRegistry, registry as default_registry


class DrataNode:
    """Executes the configured resource operation for every input item"""

    def __init__(self, context: ExecutionContext, registry: OperationRegistry = default_registry):
        self.context = context
        self.registry = registry
        self.logger = logging.getLogger(__name__)

    def execute(self) -> List[Dict[str, Any]]:
        """
        Run the operation for every input item of the context

        Resource and operation are read once from the first item. List results
        are flattened into one output item per entry.

        Returns:
            Output items, each tagged with the index of the input item that produced it

        Raises:
            UnknownOperationError: If the resource/operation pair is not registered
            Exception: The first per-item failure, unless continue_on_fail is set
        """
        emit_license_notice()

        resource = self.context.get_parameter('resource', 0)
        operation = self.context.get_parameter('operation', 0)
        handler = self.registry.get(resource, operation)
        item_count = self.context.item_count()

        self.logger.info(f"Running {resource}.{operation} for {item_count} item(s)")
        return_data: List[Dict[str, Any]] = []

        for i in range(item_count):
            try:
                response_data = handler(self.context, i)
            except Exception as e:
                if self.context.continue_on_fail:
                    self.logger.warning(f"{resource}.{operation} failed for item {i}: {e}")
                    return_data.append({'json': {'error': str(e)}, 'pairedItem': {'item': i}})
                    continue
                raise

            results = response_data if isinstance(response_data, list) else [response_data]
            return_data.extend({'json': result, 'pairedItem': {'item': i}} for result in results)

        return return_data
