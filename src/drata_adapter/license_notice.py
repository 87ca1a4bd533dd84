"""
Process-wide licensing notice, logged once on first use of a node
"""

import logging
import threading
from typing import Optional

LICENSING_NOTICE = (
    "[Velocity BPA Licensing Notice]\n"
    "This Drata connector is licensed under the Business Source License 1.1 (BSL 1.1).\n"
    "Use by for-profit organizations in production environments requires a commercial "
    "license from Velocity BPA.\n"
    "For licensing information, visit https://velobpa.com/licensing or contact "
    "licensing@velobpa.com."
)


class LicenseNotice:
    """
    Singleton guard: starts not emitted and flips to emitted on the first call

    Production code never resets it; reset() exists only to isolate test cases.
    """

    _instance: Optional['LicenseNotice'] = None
    _instance_lock = threading.Lock()

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self._emitted = False
        self._lock = threading.Lock()

    @classmethod
    def instance(cls) -> 'LicenseNotice':
        with cls._instance_lock:
            if cls._instance is None:
                cls._instance = cls()
            return cls._instance

    @property
    def emitted(self) -> bool:
        return self._emitted

    def emit(self) -> bool:
        """
        Log the notice if it has not been logged in this process

        Returns:
            True if this call logged the notice
        """
        with self._lock:
            if self._emitted:
                return False
            self.logger.warning(LICENSING_NOTICE)
            self._emitted = True
            return True

    @classmethod
    def reset(cls) -> None:
        """Drop the shared instance; test suites only"""
        with cls._instance_lock:
            cls._instance = None


def emit_license_notice() -> bool:
    return LicenseNotice.instance().emit()
