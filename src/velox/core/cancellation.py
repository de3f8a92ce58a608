"""Cooperative cancellation for database round trips.

A token is checked before every round trip on the connections it is bound
to. Cancellation is treated exactly like a failed step.
"""

from __future__ import annotations

import time

from velox.core.exceptions import CancelledError


class CancellationToken:
    """Explicit cancel flag with an optional deadline in seconds from creation."""

    def __init__(self, timeout: float | None = None) -> None:
        self._cancelled = False
        self._reason: str | None = None
        self._deadline = time.monotonic() + timeout if timeout is not None else None

    def cancel(self, reason: str = "cancelled by caller") -> None:
        self._cancelled = True
        self._reason = reason

    @property
    def cancelled(self) -> bool:
        if self._cancelled:
            return True
        return self._deadline is not None and time.monotonic() >= self._deadline

    def check(self) -> None:
        """Raise CancelledError if cancelled or past the deadline."""
        if self._cancelled:
            raise CancelledError(f"Operation cancelled: {self._reason}")
        if self._deadline is not None and time.monotonic() >= self._deadline:
            raise CancelledError("Operation cancelled: deadline exceeded")
