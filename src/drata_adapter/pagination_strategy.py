"""
PaginationStrategy module for collecting every page of a Drata collection endpoint
"""

import logging
from typing import Dict, Any, List, Optional, Protocol, Callable

DEFAULT_PAGE_SIZE = 50

RequestFunction = Callable[..., Any]


class PaginationStrategy(Protocol):
    """Protocol for pagination strategies"""

    def get_page_params(self, current_params: Dict[str, Any], page_num: int) -> Dict[str, Any]:
        """Return query parameters for the requested page"""
        ...

    def extract_items(self, response: Any) -> Optional[List[Dict[str, Any]]]:
        """Return the items of a page, or None when the response carries no item list"""
        ...

    def is_last_page(self, items: List[Dict[str, Any]]) -> bool:
        """Return True if no further page should be requested"""
        ...


class PageBasedPagination:
    """Page/limit pagination where a short page marks the end of the collection"""

    def __init__(self, page_size: int = DEFAULT_PAGE_SIZE, page_param: str = 'page',
                 size_param: str = 'limit', items_key: str = 'data'):
        if page_size < 1:
            raise ValueError(f"Page size must be positive, got {page_size}")
        self.page_size = page_size
        self.page_param = page_param
        self.size_param = size_param
        self.items_key = items_key

    def get_page_params(self, current_params: Dict[str, Any], page_num: int) -> Dict[str, Any]:
        """Shallow-copy the caller's query and add limit and page"""
        params = dict(current_params)
        params[self.size_param] = self.page_size
        params[self.page_param] = page_num
        return params

    def extract_items(self, response: Any) -> Optional[List[Dict[str, Any]]]:
        if not isinstance(response, dict):
            return None
        items = response.get(self.items_key)
        if not isinstance(items, list):
            return None
        return items

    def is_last_page(self, items: List[Dict[str, Any]]) -> bool:
        return len(items) < self.page_size


def fetch_all(request_fn: RequestFunction, method: str, path: str,
              body: Optional[Dict[str, Any]] = None,
              query: Optional[Dict[str, Any]] = None,
              strategy: Optional[PaginationStrategy] = None) -> List[Dict[str, Any]]:
    """
    Request pages in order until a short page or a response without items

    Args:
        request_fn: Callable with the signature of DrataHTTPClient.request
        method: HTTP method
        path: Collection endpoint path
        body: Optional JSON body sent with every page request
        query: Caller query parameters, not mutated
        strategy: Pagination strategy, defaults to 50 items per page

    Returns:
        All collected items in API order

    Raises:
        ApiError: Propagated from request_fn
    """
    logger = logging.getLogger(__name__)
    strategy = strategy or PageBasedPagination()
    base_params = query or {}
    collected: List[Dict[str, Any]] = []
    page_num = 1

    while True:
        params = strategy.get_page_params(base_params, page_num)
        response = request_fn(method, path, body, params)

        items = strategy.extract_items(response)
        if items is None:
            logger.debug(f"No item list in page {page_num} of {path}, stopping")
            break

        collected.extend(items)

        if strategy.is_last_page(items):
            break
        page_num += 1

    logger.debug(f"Fetched {len(collected)} items from {path} across {page_num} page(s)")
    return collected
