"""Cooperative cancellation for in-flight searches."""

import asyncio
import logging
from typing import Awaitable, Optional, TypeVar

from coverhunter.api.error_handler import SearchCancelled

logger = logging.getLogger(__name__)

T = TypeVar('T')


class CancellationToken:
    """
    Cancellation signal threaded through every suspension point of a search.

    Cancelling is idempotent. Code holding the token either checks it with
    ``raise_if_cancelled()`` or wraps a blocking await in ``run()``, which
    aborts as soon as the token is cancelled instead of waiting for the
    awaitable to finish.

    Example:
        token = CancellationToken()
        response = await token.run(client.get(url))
    """

    def __init__(self, label: str = ""):
        self.label = label
        self._event = asyncio.Event()
        self._reason: Optional[str] = None

    def cancel(self, reason: str = "superseded") -> None:
        """Request cancellation."""
        if self._event.is_set():
            return
        self._reason = reason
        self._event.set()
        logger.debug(f"Cancellation requested for '{self.label}': {reason}")

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def raise_if_cancelled(self) -> None:
        """
        Raises:
            SearchCancelled: If the token has been cancelled
        """
        if self._event.is_set():
            raise SearchCancelled(f"Search '{self.label}' cancelled ({self._reason})")

    async def wait(self) -> None:
        """Wait until the token is cancelled."""
        await self._event.wait()

    async def run(self, awaitable: Awaitable[T]) -> T:
        """
        Await ``awaitable`` unless the token is cancelled first.

        Args:
            awaitable: Coroutine or future to wait for

        Returns:
            The awaitable's result

        Raises:
            SearchCancelled: If the token is cancelled before the awaitable
                completes; the underlying task is cancelled too
        """
        task = asyncio.ensure_future(awaitable)
        if self._event.is_set():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            self.raise_if_cancelled()

        cancel_waiter = asyncio.ensure_future(self._event.wait())
        try:
            # Race the work against the cancellation signal
            await asyncio.wait(
                [task, cancel_waiter],
                return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            cancel_waiter.cancel()

        if task.done():
            # Completed work wins even if cancellation arrived at the same time;
            # callers check the token again before publishing
            return task.result()

        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        self.raise_if_cancelled()
        # Unreachable: the waiter only completes once the event is set
        raise SearchCancelled(f"Search '{self.label}' cancelled")
