"""Cancellation tokens for cooperative request cancellation.

A caller constructs a ``CancellationToken`` and passes it down; components
that add their own deadline derive a ``LinkedCancellation`` which fires on
whichever comes first, the parent token or the timer. Both listeners are
released when the linked scope exits, on every path.
"""
from __future__ import annotations

import asyncio
from enum import Enum
from typing import Awaitable, Callable, List, Optional, TypeVar

T = TypeVar("T")


class CancelReason(Enum):
    """Why a token fired."""

    CALLER = "caller"
    TIMEOUT = "timeout"


class OperationAborted(Exception):
    """Raised by ``run_cancellable`` when a token fired before the work finished."""

    def __init__(self, reason: CancelReason):
        super().__init__(reason.value)
        self.reason = reason


class CancellationToken:
    """A one-shot cancellation signal with listener callbacks."""

    def __init__(self) -> None:
        self._reason: Optional[CancelReason] = None
        self._callbacks: List[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._reason is not None

    @property
    def reason(self) -> Optional[CancelReason]:
        return self._reason

    def cancel(self, reason: CancelReason = CancelReason.CALLER) -> None:
        """Fire the token. Later calls are ignored."""
        if self._reason is not None:
            return
        self._reason = reason
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()

    def add_callback(self, callback: Callable[[], None]) -> None:
        """Register ``callback``; it runs immediately if the token already fired."""
        if self._reason is not None:
            callback()
            return
        self._callbacks.append(callback)

    def remove_callback(self, callback: Callable[[], None]) -> None:
        try:
            self._callbacks.remove(callback)
        except ValueError:
            pass

    @property
    def listener_count(self) -> int:
        return len(self._callbacks)


class LinkedCancellation(CancellationToken):
    """Token that fires when ``parent`` fires or ``timeout`` seconds elapse.

    Use as a context manager inside a running event loop::

        with LinkedCancellation(caller_token, 30.0) as token:
            await run_cancellable(work(), token)
    """

    def __init__(self, parent: Optional[CancellationToken], timeout: Optional[float]):
        super().__init__()
        self._parent = parent
        self._timeout = timeout
        self._timer: Optional[asyncio.TimerHandle] = None

    def _on_parent(self) -> None:
        assert self._parent is not None
        self.cancel(self._parent.reason or CancelReason.CALLER)

    def __enter__(self) -> "LinkedCancellation":
        if self._parent is not None:
            self._parent.add_callback(self._on_parent)
        if self._timeout is not None and self._timeout > 0 and not self.cancelled:
            loop = asyncio.get_running_loop()
            self._timer = loop.call_later(self._timeout, self.cancel, CancelReason.TIMEOUT)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    def release(self) -> None:
        """Detach from the parent token and stop the timer."""
        if self._parent is not None:
            self._parent.remove_callback(self._on_parent)
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None


async def run_cancellable(work: Awaitable[T], token: Optional[CancellationToken]) -> T:
    """Await ``work`` and abort it when ``token`` fires.

    Raises:
        OperationAborted: the token fired before ``work`` completed.
        asyncio.CancelledError: the enclosing task itself was cancelled.
    """
    if token is None:
        return await work
    if token.cancelled:
        if asyncio.iscoroutine(work):
            work.close()
        raise OperationAborted(token.reason or CancelReason.CALLER)

    task = asyncio.ensure_future(work)

    def _abort() -> None:
        task.cancel()

    token.add_callback(_abort)
    try:
        return await task
    except asyncio.CancelledError:
        if token.cancelled and task.cancelled():
            raise OperationAborted(token.reason or CancelReason.CALLER) from None
        raise
    finally:
        token.remove_callback(_abort)
