"""Cooperative cancellation for translation streams."""

from __future__ import annotations

import asyncio
from typing import Optional

from livetranslate.errors import StreamCancelled


class CancellationToken:
    """
    Signals that the caller abandoned a request.

    Streaming code calls ``raise_if_cancelled()`` between upstream updates and uses
    ``sleep()`` for backoff and pacing delays so a cancel interrupts the wait.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "cancelled by caller") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise StreamCancelled(self.reason or "cancelled")

    async def sleep(self, delay: float) -> None:
        """Sleep for ``delay`` seconds, raising ``StreamCancelled`` as soon as the token fires."""
        self.raise_if_cancelled()
        if delay <= 0:
            await asyncio.sleep(0)
            return
        try:
            await asyncio.wait_for(self._event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return
        self.raise_if_cancelled()


async def cancellable_sleep(delay: float, cancel: Optional[CancellationToken]) -> None:
    if cancel is None:
        await asyncio.sleep(max(0.0, delay))
    else:
        await cancel.sleep(delay)
