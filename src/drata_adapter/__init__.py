"""
Drata compliance API adapter
Provides the HTTP transport, pagination, retry and polling trigger for Drata, plus per-resource operations
"""

from .config_loader import ConfigLoader, APIConfig, ConfigurationError, MissingEnvironmentError
from .database_manager import DatabaseManager, DatabaseConnectionError
from .watermark_store import WatermarkStore, InMemoryWatermarkStore, DuckDBWatermarkStore
from .http_client import DrataHTTPClient, ApiError, BinaryPayload
from .pagination_strategy import PageBasedPagination, fetch_all
from .retry_handler import RetryHandler, ExecutionCancelled
from .context import ExecutionContext, NodeExecutionContext, NodeItem, BinaryDataError
from .operations import OperationRegistry, UnknownOperationError, registry, execute_operation
from .node import DrataNode
from .trigger import DrataTrigger, EventType, TriggerOptions
from .license_notice import LicenseNotice

__all__ = [
    'ConfigLoader',
    'APIConfig',
    'ConfigurationError',
    'MissingEnvironmentError',
    'DatabaseManager',
    'DatabaseConnectionError',
    'WatermarkStore',
    'InMemoryWatermarkStore',
    'DuckDBWatermarkStore',
    'DrataHTTPClient',
    'ApiError',
    'BinaryPayload',
    'PageBasedPagination',
    'fetch_all',
    'RetryHandler',
    'ExecutionCancelled',
    'ExecutionContext',
    'NodeExecutionContext',
    'NodeItem',
    'BinaryDataError',
    'OperationRegistry',
    'UnknownOperationError',
    'registry',
    'execute_operation',
    'DrataNode',
    'DrataTrigger',
    'EventType',
    'TriggerOptions',
    'LicenseNotice'
]
