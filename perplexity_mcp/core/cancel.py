"""Cancellation support for async operations."""

import logging
from collections.abc import Callable

logger = logging.getLogger(__name__)


class CancellationToken:
    """Token for cooperative cancellation of async operations.

    The HTTP layer cancels a connection's token when the peer goes away
    before the handler finishes. Interested parties register callbacks
    with on_cancel(); each callback runs at most once.

    Example:
        token = CancellationToken()
        token.on_cancel(session.close)

        # When the client disconnects:
        token.cancel()
    """

    def __init__(self) -> None:
        self._cancelled = False
        self._callbacks: list[Callable[[], None]] = []

    @property
    def is_cancelled(self) -> bool:
        """Check if cancellation has been requested."""
        return self._cancelled

    def cancel(self) -> None:
        """Request cancellation and notify callbacks."""
        if self._cancelled:
            return  # Already cancelled
        self._cancelled = True
        for callback in self._callbacks:
            self._invoke(callback)

    def on_cancel(self, callback: Callable[[], None]) -> None:
        """Register a callback to be called when cancelled.

        If already cancelled, callback is invoked immediately.
        """
        self._callbacks.append(callback)
        if self._cancelled:
            self._invoke(callback)

    @staticmethod
    def _invoke(callback: Callable[[], None]) -> None:
        # Callback errors must not prevent the remaining callbacks from running
        try:
            callback()
        except Exception as e:
            logger.debug("Cancellation callback failed: %s", e, exc_info=True)
