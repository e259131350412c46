"""Tests for the cooperative cancellation token."""

from __future__ import annotations

import asyncio
import time

import pytest

from reelvault.shared.cancellation import CancellationToken
from reelvault.shared.errors import ErrorCode, OperationInterruptedError


class TestCancellationHooks:
    """Hook registration and the set-once flag."""

    def test_cancel_runs_each_hook_once(self) -> None:
        """Hooks run on the first cancel only."""
        # Given
        token = CancellationToken()
        calls: list[str] = []
        token.register(lambda: calls.append("a"))
        token.register(lambda: calls.append("b"))

        # When
        token.cancel()
        token.cancel()

        # Then
        assert token.is_cancelled
        assert calls == ["a", "b"]
        assert token.pending_hooks == 0

    def test_unregistered_hook_does_not_run(self) -> None:
        token = CancellationToken()
        calls: list[int] = []
        handle = token.register(lambda: calls.append(1))

        token.unregister(handle)
        token.cancel()

        assert calls == []

    def test_register_after_cancel_runs_immediately(self) -> None:
        """A late hook is invoked at once and gets no handle."""
        token = CancellationToken()
        token.cancel()
        calls: list[int] = []

        handle = token.register(lambda: calls.append(1))

        assert handle is None
        assert calls == [1]

    def test_failing_hook_does_not_stop_others(self) -> None:
        token = CancellationToken()
        calls: list[str] = []

        def _boom() -> None:
            raise RuntimeError("hook failure")

        token.register(_boom)
        token.register(lambda: calls.append("ok"))

        token.cancel()

        assert calls == ["ok"]

    def test_raise_if_cancelled(self) -> None:
        token = CancellationToken()
        token.raise_if_cancelled("noop")

        token.cancel()

        with pytest.raises(OperationInterruptedError) as exc_info:
            token.raise_if_cancelled("fetch")
        assert exc_info.value.code is ErrorCode.OPERATION_INTERRUPTED
        assert exc_info.value.context.operation == "fetch"


class TestCancellableSleep:
    """CancellationToken.sleep behaviour."""

    @pytest.mark.asyncio
    async def test_sleep_completes_when_not_cancelled(self) -> None:
        token = CancellationToken()

        await token.sleep(0.01)

        assert token.pending_hooks == 0

    @pytest.mark.asyncio
    async def test_cancel_wakes_sleeper_early(self) -> None:
        """A long backoff ends as soon as the token fires."""
        # Given
        token = CancellationToken()
        started = time.monotonic()

        # When
        asyncio.get_running_loop().call_later(0.05, token.cancel)
        with pytest.raises(OperationInterruptedError):
            await token.sleep(30.0, operation="backoff")

        # Then
        assert time.monotonic() - started < 5.0
        assert token.pending_hooks == 0

    @pytest.mark.asyncio
    async def test_sleep_on_cancelled_token_raises_immediately(self) -> None:
        token = CancellationToken()
        token.cancel()

        with pytest.raises(OperationInterruptedError):
            await token.sleep(30.0)

    @pytest.mark.asyncio
    async def test_zero_delay_returns_without_registering(self) -> None:
        token = CancellationToken()

        await token.sleep(0)

        assert token.pending_hooks == 0
