"""Cooperative cancellation for pipeline runs."""

from __future__ import annotations

import logging
import signal
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from types import FrameType

logger = logging.getLogger(__name__)


class CancelToken:
    """Thread-safe cancellation flag.

    The pipeline checks the token before every step, and shell steps poll it
    while their child process runs, so a request stops the run at the next
    step boundary and kills the in-flight step.

    Examples:
        >>> token = CancelToken()
        >>> token.cancelled
        False
        >>> token.cancel("user request")
        >>> token.cancelled, token.reason
        (True, 'user request')
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._reason: str | None = None

    @property
    def cancelled(self) -> bool:
        """Whether cancellation was requested."""
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        """Reason given with the first cancellation request."""
        return self._reason

    def cancel(self, reason: str = "cancelled") -> None:
        """Request cancellation. Only the first reason is kept."""
        if not self._event.is_set():
            self._reason = reason
            logger.warning("Cancellation requested: %s", reason)
        self._event.set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until cancelled or ``timeout`` elapses; return the flag."""
        return self._event.wait(timeout)


@contextmanager
def cancel_on_signals(
    token: CancelToken,
    signals: tuple[signal.Signals, ...] = (signal.SIGINT, signal.SIGTERM),
) -> Iterator[CancelToken]:
    """Route ``signals`` to ``token.cancel`` for the duration of the block.

    Previous handlers are restored on exit. Must be used from the main thread.
    """
    previous: dict[signal.Signals, object] = {}

    def _handler(signum: int, _frame: FrameType | None) -> None:
        token.cancel(f"received {signal.Signals(signum).name}")

    for sig in signals:
        previous[sig] = signal.getsignal(sig)
        signal.signal(sig, _handler)
    try:
        yield token
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)  # type: ignore[arg-type]


__all__ = [
    "CancelToken",
    "cancel_on_signals",
]
