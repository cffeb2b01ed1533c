"""
Cooperative cancellation.

The pipeline checks the token at the top of a run and before every outbound
call. In-flight calls are never aborted; once cancellation is requested no new
call is issued.
"""

import logging
import threading
from typing import Optional

from order_sync.utils.error_handler import CancelledOperationException
from order_sync.utils.mark import Mark

logger = logging.getLogger(__name__)


class CancellationToken:
    """
    Thread-safe cancellation flag shared between a caller and one or more runs.

    ``cancel()`` may be called from any thread or task.
    """

    def __init__(self):
        self._event = threading.Event()
        self._reason: Optional[str] = None

    @classmethod
    def none(cls) -> "CancellationToken":
        """Token nobody holds a reference to cancel."""
        return cls()

    @property
    def is_cancellation_requested(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def cancel(self, reason: Optional[str] = None) -> None:
        if not self._event.is_set():
            self._reason = reason
            self._event.set()
            logger.debug(f"Cancellation requested: {reason or 'no reason given'}")

    def raise_if_cancelled(
        self, operation: str, mark: Optional[Mark] = None, endpoint: Optional[str] = None
    ) -> None:
        """
        Raise ``CancelledOperationException`` if cancellation was requested.

        Args:
            operation: Human readable name of the operation being gated
            mark: Correlation mark of the current run
            endpoint: Remote endpoint the call would have hit, if any
        """
        if not self.is_cancellation_requested:
            return

        message = f"{operation} request was cancelled"
        if self._reason:
            message = f"{message} ({self._reason})"
        raise CancelledOperationException(message, operation=operation, endpoint=endpoint, mark=mark)

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self.is_cancellation_requested})"
