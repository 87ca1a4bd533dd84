"""
Execution context passed explicitly to operation handlers and the trigger
"""

from dataclasses import dataclass, field
from typing import Dict, Any, List, Optional, Protocol

from .http_client import BinaryPayload, DrataHTTPClient, DEFAULT_BASE_URL
from .pagination_strategy import PageBasedPagination, DEFAULT_PAGE_SIZE

_MISSING = object()


class BinaryDataError(Exception):
    """Raised when an input item has no binary data under the requested property"""
    pass


@dataclass
class NodeItem:
    """One input item: JSON fields, binary attachments and per-item parameter overrides"""
    json: Dict[str, Any] = field(default_factory=dict)
    binary: Dict[str, BinaryPayload] = field(default_factory=dict)
    parameters: Dict[str, Any] = field(default_factory=dict)


class ExecutionContext(Protocol):
    """Capabilities a host provides to the adapter"""

    http_client: DrataHTTPClient
    pagination: PageBasedPagination
    continue_on_fail: bool

    def get_parameter(self, name: str, item_index: int = 0, default: Any = _MISSING) -> Any:
        ...

    def get_credentials(self) -> Dict[str, Any]:
        ...

    def item_count(self) -> int:
        ...

    def get_binary_data(self, item_index: int, property_name: str) -> BinaryPayload:
        ...


class NodeExecutionContext:
    """Context built from plain dictionaries, used by the CLI, Prefect flows and tests"""

    def __init__(self, parameters: Dict[str, Any], credentials: Dict[str, Any],
                 items: Optional[List[NodeItem]] = None,
                 continue_on_fail: bool = False,
                 http_client: Optional[DrataHTTPClient] = None,
                 page_size: int = DEFAULT_PAGE_SIZE,
                 timeout: float = 30.0):
        self.parameters = parameters
        self.credentials = credentials
        self.items = items if items is not None else [NodeItem()]
        self.continue_on_fail = continue_on_fail
        self.pagination = PageBasedPagination(page_size=page_size)

        if http_client is None:
            http_client = DrataHTTPClient(
                base_url=credentials.get('baseUrl') or DEFAULT_BASE_URL,
                timeout=timeout
            )
            http_client.authenticate(credentials)
        self.http_client = http_client

    def get_parameter(self, name: str, item_index: int = 0, default: Any = _MISSING) -> Any:
        """
        Resolve a parameter, preferring the item's own override

        Raises:
            ValueError: If the parameter is not set and no default is given
        """
        if 0 <= item_index < len(self.items) and name in self.items[item_index].parameters:
            return self.items[item_index].parameters[name]
        if name in self.parameters:
            return self.parameters[name]
        if default is not _MISSING:
            return default
        raise ValueError(f"Missing required parameter '{name}'")

    def get_credentials(self) -> Dict[str, Any]:
        return self.credentials

    def item_count(self) -> int:
        return len(self.items)

    def get_binary_data(self, item_index: int, property_name: str) -> BinaryPayload:
        """
        Return the binary attachment of an input item

        Raises:
            BinaryDataError: If the item or property does not exist
        """
        if not 0 <= item_index < len(self.items):
            raise BinaryDataError(f"No input item at index {item_index}")

        binary = self.items[item_index].binary
        if property_name not in binary:
            raise BinaryDataError(
                f"Item {item_index} has no binary property named '{property_name}'"
            )
        return binary[property_name]
