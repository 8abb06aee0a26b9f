import asyncio
import threading
from typing import Awaitable, Callable, List, TypeVar

from lingoplay.utils.errors import OperationCancelled

T = TypeVar('T')


class CancellationToken:
    """
    Liveness flag owned by whoever consumes a resolution.

    The owner calls cancel() on teardown. Work in flight checks the token
    before committing results, and awaits wrapped with guard() are
    interrupted as soon as the token fires.
    """

    def __init__(self):
        self._cancelled = False
        self._callbacks: List[Callable[[], None]] = []
        self._lock = threading.Lock()

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self):
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
            callbacks = list(self._callbacks)
            self._callbacks.clear()
        for callback in callbacks:
            callback()

    def add_callback(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Register a teardown callback. Returns a function that unregisters it."""
        with self._lock:
            if not self._cancelled:
                self._callbacks.append(callback)
                registered = True
            else:
                registered = False
        if not registered:
            callback()
            return lambda: None

        def remove():
            with self._lock:
                if callback in self._callbacks:
                    self._callbacks.remove(callback)
        return remove

    def raise_if_cancelled(self):
        if self._cancelled:
            raise OperationCancelled('Operation cancelled by its consumer')

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """Await `awaitable`, aborting it when the token is cancelled."""
        if self._cancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise OperationCancelled('Operation cancelled by its consumer')
        loop = asyncio.get_running_loop()
        task = asyncio.ensure_future(awaitable)
        remove = self.add_callback(lambda: loop.call_soon_threadsafe(task.cancel))
        try:
            result = await task
        except asyncio.CancelledError:
            if self._cancelled:
                raise OperationCancelled('Operation cancelled by its consumer')
            raise
        finally:
            remove()
        # A late response is discarded rather than handed to a dead consumer
        self.raise_if_cancelled()
        return result


def check(token) -> None:
    """raise_if_cancelled() for an optional token."""
    if token is not None:
        token.raise_if_cancelled()
