"""Cooperative cancellation for in-flight analyses.

A CancelToken is created by the caller and handed to analyze(); calling
cancel() aborts the active network call and short-circuits backoff waits.

Examples:
    >>> token = CancelToken()
    >>> task = asyncio.create_task(service.analyze_food(image, cancel=token))
    >>> token.cancel()  # task fails with CanceledError
"""

import asyncio

from snapcal.core.errors import CanceledError


class CancelToken:
    """One-shot cancellation signal.

    The underlying asyncio.Event is created lazily so a token can be built
    outside a running event loop.
    """

    def __init__(self) -> None:
        self._event: asyncio.Event | None = None
        self._cancelled = False

    @property
    def _signal(self) -> asyncio.Event:
        if self._event is None:
            self._event = asyncio.Event()
            if self._cancelled:
                self._event.set()
        return self._event

    @property
    def cancelled(self) -> bool:
        """Whether cancel() has been called."""
        return self._cancelled

    def cancel(self) -> None:
        """Signal cancellation. Calling it again has no effect."""
        if self._cancelled:
            return
        self._cancelled = True
        if self._event is not None:
            self._event.set()

    async def wait(self) -> None:
        """Block until the token is cancelled."""
        await self._signal.wait()

    async def sleep(self, delay: float) -> None:
        """Sleep for delay seconds unless cancelled first.

        Raises:
            CanceledError: If the token fires before the delay elapses.
        """
        if self._cancelled:
            raise CanceledError()
        try:
            await asyncio.wait_for(self._signal.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return
        raise CanceledError()

    def raise_if_cancelled(self) -> None:
        """Raise CanceledError if the token has fired."""
        if self._cancelled:
            raise CanceledError()


async def sleep_unless_cancelled(delay: float, cancel: CancelToken | None) -> None:
    """Backoff wait that honors an optional cancel token."""
    if cancel is None:
        await asyncio.sleep(delay)
    else:
        await cancel.sleep(delay)
