import asyncio
from typing import Awaitable, Optional, TypeVar

T = TypeVar("T")


class AbortError(Exception):
    """Raised when an operation is cancelled through its AbortSignal."""

    def __init__(self, message: str = "The operation was aborted."):
        super().__init__(message)


class AbortSignal:
    def __init__(self):
        self._event: Optional[asyncio.Event] = None
        self._aborted = False

    # Set below to a signal that can never fire.
    none: "AbortSignal"

    @property
    def aborted(self) -> bool:
        return self._aborted

    def _abort(self):
        self._aborted = True
        if self._event is not None:
            self._event.set()

    async def wait(self):
        if self._aborted:
            return
        if self._event is None:
            self._event = asyncio.Event()
        await self._event.wait()

    async def run(self, operation: Awaitable[T]) -> T:
        """Awaits operation unless the signal fires first."""
        if self is AbortSignal.none:
            return await operation

        if self._aborted:
            if asyncio.iscoroutine(operation):
                operation.close()
            raise AbortError()

        task = asyncio.ensure_future(operation)
        waiter = asyncio.ensure_future(self.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            if not waiter.done():
                waiter.cancel()

        if task.done():
            return task.result()

        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        raise AbortError()


class _NeverAbortSignal(AbortSignal):
    def _abort(self):
        pass


AbortSignal.none = _NeverAbortSignal()


class AbortController:
    def __init__(self):
        self.signal = AbortSignal()

    def abort(self):
        self.signal._abort()
