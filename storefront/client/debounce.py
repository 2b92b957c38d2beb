"""Single-slot deferred call used to debounce high-frequency triggers"""

import asyncio
from contextlib import suppress
from typing import Any, Awaitable, Callable, Optional


class DeferredCall:
    """
    Run at most one pending call after a fixed delay

    Scheduling again while a call is pending cancels it and restarts the
    delay. Once the delay has elapsed the call is committed: it is no
    longer pending and cancel() will not interrupt it.
    """

    def __init__(self, delay: float):
        self.delay = delay
        self._pending: Optional[asyncio.Task] = None
        self._last: Optional[asyncio.Task] = None

    @property
    def pending(self) -> bool:
        return self._pending is not None and not self._pending.done()

    @property
    def idle(self) -> bool:
        """Nothing pending and the last scheduled call has finished"""
        return self._last is None or self._last.done()

    def schedule(self, func: Callable[..., Awaitable[Any]], *args: Any, **kwargs: Any) -> asyncio.Task:
        """Replace any pending call with func(*args, **kwargs) after the delay"""

        self.cancel()
        task = asyncio.get_running_loop().create_task(self._run(func, args, kwargs))
        self._pending = task
        self._last = task
        return task

    def cancel(self) -> bool:
        """Cancel the pending call; returns False if nothing was pending"""

        if not self.pending:
            return False
        self._pending.cancel()
        self._pending = None
        return True

    async def wait(self) -> None:
        """Wait for the most recently scheduled call to finish or be cancelled"""

        if self._last is None:
            return
        with suppress(asyncio.CancelledError):
            await self._last

    async def _run(self, func, args, kwargs) -> Any:
        await asyncio.sleep(self.delay)
        self._pending = None
        return await func(*args, **kwargs)
