"""Tests for RetryPolicy and RetryExecutor."""

from __future__ import annotations

import asyncio

import pytest

from reelvault.core.retry import RetryExecutor, RetryPolicy
from reelvault.shared.cancellation import CancellationToken
from reelvault.shared.constants import StepStatus
from reelvault.shared.errors import (
    InvalidConfigError,
    NetworkError,
    OperationInterruptedError,
    RetryExhaustedError,
)
from tests.fakes import RecordingObserver


class TestRetryPolicy:
    """Backoff arithmetic and validation."""

    def test_delay_doubles_until_capped(self) -> None:
        policy = RetryPolicy(max_attempts=6, base_delay=1.0, max_delay=10.0)

        delays = [policy.delay_for(k) for k in range(6)]

        assert delays == [1.0, 2.0, 4.0, 8.0, 10.0, 10.0]
        assert delays == sorted(delays)

    def test_huge_attempt_index_is_capped(self) -> None:
        policy = RetryPolicy(base_delay=2.0, max_delay=30.0)

        assert policy.delay_for(5000) == 30.0

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"max_attempts": 0},
            {"base_delay": -1.0},
            {"max_delay": -0.5},
        ],
    )
    def test_invalid_parameters_rejected(self, kwargs: dict) -> None:
        with pytest.raises(InvalidConfigError):
            RetryPolicy(**kwargs)

    def test_wait_strategy_matches_delay_for(self) -> None:
        policy = RetryPolicy(max_attempts=5, base_delay=1.0, max_delay=5.0)
        wait = policy.wait_strategy()

        class _State:
            def __init__(self, attempt_number: int) -> None:
                self.attempt_number = attempt_number

        assert [wait(_State(n)) for n in range(1, 5)] == [policy.delay_for(k) for k in range(4)]


class TestRetryExecutor:
    @pytest.mark.asyncio
    async def test_success_after_transient_failures(self, fast_policy: RetryPolicy) -> None:
        # Given: an operation failing twice before succeeding
        attempts = 0

        async def _flaky() -> str:
            nonlocal attempts
            attempts += 1
            if attempts < 3:
                raise NetworkError("HTTP 503")
            return "payload"

        executor = RetryExecutor(fast_policy)

        # When
        result = await executor.run(_flaky)

        # Then
        assert result == "payload"
        assert attempts == 3

    @pytest.mark.asyncio
    async def test_exhaustion_reports_last_error_and_count(self, fast_policy: RetryPolicy) -> None:
        attempts = 0

        async def _always_fails() -> None:
            nonlocal attempts
            attempts += 1
            raise NetworkError(f"failure {attempts}")

        executor = RetryExecutor(fast_policy, name="download-image")

        with pytest.raises(RetryExhaustedError) as exc_info:
            await executor.run(_always_fails)

        error = exc_info.value
        assert attempts == fast_policy.max_attempts
        assert error.attempts == fast_policy.max_attempts
        assert isinstance(error.last_error, NetworkError)
        assert error.last_error.message == "failure 3"
        assert error.__cause__ is error.last_error

    @pytest.mark.asyncio
    async def test_single_attempt_policy(self) -> None:
        calls = 0

        async def _fails() -> None:
            nonlocal calls
            calls += 1
            raise ValueError("nope")

        with pytest.raises(RetryExhaustedError):
            await RetryExecutor(RetryPolicy(max_attempts=1, base_delay=0, max_delay=0)).run(_fails)
        assert calls == 1

    @pytest.mark.asyncio
    async def test_cancelled_token_prevents_first_attempt(self, fast_policy: RetryPolicy) -> None:
        token = CancellationToken()
        token.cancel()
        calls = 0

        async def _op() -> None:
            nonlocal calls
            calls += 1

        with pytest.raises(OperationInterruptedError):
            await RetryExecutor(fast_policy, token=token).run(_op)
        assert calls == 0

    @pytest.mark.asyncio
    async def test_cancel_interrupts_backoff(self) -> None:
        """A pending 30 second delay ends as soon as the token fires."""
        # Given
        token = CancellationToken()
        policy = RetryPolicy(max_attempts=3, base_delay=30.0, max_delay=30.0)
        executor = RetryExecutor(policy, token=token)

        async def _fails() -> None:
            raise NetworkError("down")

        # When
        asyncio.get_running_loop().call_later(0.05, token.cancel)

        # Then
        with pytest.raises(OperationInterruptedError):
            await asyncio.wait_for(executor.run(_fails), timeout=5.0)

    @pytest.mark.asyncio
    async def test_interruption_inside_operation_is_not_retried(self, fast_policy: RetryPolicy) -> None:
        calls = 0

        async def _interrupted() -> None:
            nonlocal calls
            calls += 1
            raise OperationInterruptedError("stop")

        with pytest.raises(OperationInterruptedError):
            await RetryExecutor(fast_policy).run(_interrupted)
        assert calls == 1

    @pytest.mark.asyncio
    async def test_events_emitted(self, fast_policy: RetryPolicy, observer: RecordingObserver) -> None:
        attempts = 0

        async def _flaky() -> int:
            nonlocal attempts
            attempts += 1
            if attempts == 1:
                raise NetworkError("once")
            return attempts

        executor = RetryExecutor(fast_policy, observer=observer, name="fetch")
        await executor.run(_flaky, task_id="ABC-123")

        assert observer.statuses("fetch") == [StepStatus.STARTED, StepStatus.PROGRESS, StepStatus.COMPLETED]
        assert {event.task_id for event in observer.events} == {"ABC-123"}

    @pytest.mark.asyncio
    async def test_failing_observer_does_not_break_execution(self, fast_policy: RetryPolicy) -> None:
        class _Broken:
            def on_step_event(self, event) -> None:
                raise RuntimeError("observer down")

        async def _op() -> str:
            return "fine"

        assert await RetryExecutor(fast_policy, observer=_Broken()).run(_op) == "fine"
