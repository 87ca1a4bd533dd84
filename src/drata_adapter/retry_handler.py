"""
RetryHandler module for retrying rate-limited Drata requests with exponential backoff
"""

import logging
import threading
import time
from typing import Dict, Any, Optional, Callable

from .http_client import ApiError, DrataHTTPClient, JSONResponse

RATE_LIMIT_STATUS = 429


class ExecutionCancelled(Exception):
    """Raised when the surrounding execution is cancelled during a backoff wait"""
    pass


class RetryHandler:
    """Retries requests that fail with HTTP 429, failing fast on any other error"""

    def __init__(self, http_client: DrataHTTPClient, max_retries: int = 3,
                 backoff_factor: float = 2.0,
                 cancel_event: Optional[threading.Event] = None,
                 sleep: Optional[Callable[[float], None]] = None):
        self.http_client = http_client
        self.max_retries = max_retries
        self.backoff_factor = backoff_factor
        self.cancel_event = cancel_event
        self._sleep = sleep
        self.logger = logging.getLogger(__name__)

    def calculate_delay(self, attempt: int) -> float:
        """Backoff in seconds for a zero-based attempt: 1, 2, 4, 8..."""
        return 1.0 * (self.backoff_factor ** attempt)

    def request_with_retry(self, method: str, path: str,
                           body: Optional[Dict[str, Any]] = None,
                           query: Optional[Dict[str, Any]] = None,
                           max_retries: Optional[int] = None) -> JSONResponse:
        """
        Make a request, waiting and retrying while the API reports rate limiting

        Args:
            method: HTTP method
            path: Endpoint path
            body: Optional JSON body
            query: Optional query parameters
            max_retries: Overrides the handler default for this call

        Returns:
            Parsed JSON response

        Raises:
            ApiError: The most recent error once it is not retryable or retries are exhausted
            ExecutionCancelled: If the cancel event is set while waiting
        """
        retries = self.max_retries if max_retries is None else max_retries
        last_error: Optional[ApiError] = None

        for attempt in range(retries + 1):
            self._check_cancelled()
            try:
                return self.http_client.request(method, path, body, query)
            except ApiError as e:
                last_error = e
                if e.status_code == RATE_LIMIT_STATUS and attempt < retries:
                    delay = self.calculate_delay(attempt)
                    self.logger.warning(
                        f"Rate limited on {method} {path}, retrying in {delay:.0f}s "
                        f"(attempt {attempt + 1} of {retries})"
                    )
                    self._wait(delay)
                    continue
                raise

        # Only reached when a negative retry count is passed
        raise last_error or ApiError(f"No attempts made for {method} {path}")

    def _wait(self, delay: float) -> None:
        if self._sleep is not None:
            self._sleep(delay)
            self._check_cancelled()
        elif self.cancel_event is not None:
            if self.cancel_event.wait(delay):
                raise ExecutionCancelled(f"Cancelled during {delay:.0f}s backoff")
        else:
            time.sleep(delay)

    def _check_cancelled(self) -> None:
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise ExecutionCancelled("Execution cancelled before request")
