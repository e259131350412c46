"""Cooperative cancellation for long-running batches.

A :class:`CancellationToken` is a set-once abort flag with a registry of
hooks. Components waiting on something interruptible (backoff delays, the
periodic cache sweeper) register a hook and remove it once the wait ends,
so a token shared by a whole batch never accumulates stale hooks.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import threading
from typing import Callable

from reelvault.shared.errors import ErrorContext, OperationInterruptedError

logger = logging.getLogger(__name__)

CancelHook = Callable[[], None]


class CancellationToken:
    """Set-once abort flag shared by every component of a batch.

    Example:
        >>> token = CancellationToken()
        >>> handle = token.register(lambda: print("aborted"))
        >>> token.cancel()
        aborted
        >>> token.is_cancelled
        True
    """

    def __init__(self) -> None:
        self._cancelled = False
        self._hooks: dict[int, CancelHook] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    @property
    def pending_hooks(self) -> int:
        """Number of hooks currently registered."""
        with self._lock:
            return len(self._hooks)

    def register(self, hook: CancelHook) -> int | None:
        """Register a hook to run when the token is cancelled.

        Args:
            hook: Zero-argument callable

        Returns:
            Handle for :meth:`unregister`, or None if the token was already
            cancelled (in which case the hook runs immediately).
        """
        with self._lock:
            if not self._cancelled:
                handle = next(self._ids)
                self._hooks[handle] = hook
                return handle

        self._invoke(hook)
        return None

    def unregister(self, handle: int | None) -> None:
        if handle is None:
            return
        with self._lock:
            self._hooks.pop(handle, None)

    def cancel(self) -> None:
        """Set the flag and run every registered hook exactly once."""
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
            hooks = list(self._hooks.values())
            self._hooks.clear()

        logger.info("Cancellation requested, notifying %d waiter(s)", len(hooks))
        for hook in hooks:
            self._invoke(hook)

    def raise_if_cancelled(self, operation: str | None = None) -> None:
        if self._cancelled:
            raise OperationInterruptedError(
                "Operation interrupted",
                context=ErrorContext(operation=operation),
            )

    async def sleep(self, delay: float, operation: str | None = None) -> None:
        """Sleep for ``delay`` seconds unless the token fires first.

        Raises:
            OperationInterruptedError: If the token is (or becomes) cancelled
        """
        self.raise_if_cancelled(operation)
        if delay <= 0:
            return

        loop = asyncio.get_running_loop()
        woken: asyncio.Future[None] = loop.create_future()

        def _wake() -> None:
            if not woken.done():
                woken.set_result(None)

        handle = self.register(lambda: loop.call_soon_threadsafe(_wake))
        try:
            await asyncio.wait_for(asyncio.shield(woken), timeout=delay)
        except asyncio.TimeoutError:
            return
        finally:
            self.unregister(handle)
            if not woken.done():
                woken.cancel()

        raise OperationInterruptedError(
            f"Wait of {delay:.2f}s interrupted",
            context=ErrorContext(operation=operation),
        )

    @staticmethod
    def _invoke(hook: CancelHook) -> None:
        try:
            hook()
        except Exception:
            logger.exception("Cancellation hook failed")
