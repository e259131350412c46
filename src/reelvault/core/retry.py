"""
Retry with exponential backoff and cooperative cancellation.

Every external call made by the organizing pipeline (metadata lookups,
description writes, image downloads, file moves) goes through a
:class:`RetryExecutor`. The executor is a thin layer over tenacity's
``AsyncRetrying``: it supplies the stop/wait strategy from a
:class:`RetryPolicy` and replaces tenacity's sleep with the
:class:`~reelvault.shared.cancellation.CancellationToken` sleep, so an
abort ends every pending backoff at once.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from reelvault.shared.cancellation import CancellationToken
from reelvault.shared.constants import RetryDefaults, StepStatus
from reelvault.shared.errors import (
    OperationInterruptedError,
    RetryExhaustedError,
    create_config_error,
)
from reelvault.shared.logging import log_operation_success
from reelvault.shared.protocols import StepEvent, StepObserver, notify

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded exponential backoff parameters (seconds).

    Attributes:
        max_attempts: Total number of attempts, at least 1
        base_delay: Delay after the first failure
        max_delay: Upper bound of any single delay
    """

    max_attempts: int = RetryDefaults.MAX_ATTEMPTS
    base_delay: float = RetryDefaults.IMAGE_BASE_DELAY
    max_delay: float = RetryDefaults.IMAGE_MAX_DELAY

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """Raise InvalidConfigError for out-of-range parameters."""
        if self.max_attempts < 1:
            raise create_config_error(
                f"max_attempts must be at least 1, got {self.max_attempts}",
                config_key="max_attempts",
                operation="retry_policy",
            )
        if self.base_delay < 0 or self.max_delay < 0:
            raise create_config_error(
                "Retry delays must not be negative "
                f"(base_delay={self.base_delay}, max_delay={self.max_delay})",
                config_key="base_delay" if self.base_delay < 0 else "max_delay",
                operation="retry_policy",
            )

    def delay_for(self, attempt_index: int) -> float:
        """Delay after the failure of attempt ``attempt_index`` (0-based)."""
        try:
            delay = self.base_delay * (2**attempt_index)
        except OverflowError:
            return self.max_delay
        return min(delay, self.max_delay)

    def wait_strategy(self) -> wait_exponential:
        # tenacity counts attempts from 1, so this yields base * 2**index
        return wait_exponential(multiplier=self.base_delay, max=self.max_delay, exp_base=2)


def _is_retryable(error: BaseException) -> bool:
    return isinstance(error, Exception) and not isinstance(error, OperationInterruptedError)


class RetryExecutor:
    """Runs async operations under a :class:`RetryPolicy`.

    Args:
        policy: Backoff profile
        token: Abort token; checked before every attempt and wakes delays
        observer: Optional step observer for started/retry/failure events
        name: Step name reported in logs and events
    """

    def __init__(
        self,
        policy: RetryPolicy,
        token: CancellationToken | None = None,
        observer: StepObserver | None = None,
        name: str = "retry",
    ) -> None:
        policy.validate()
        self.policy = policy
        self.token = token or CancellationToken()
        self.observer = observer
        self.name = name

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        op_id: str | None = None,
        task_id: str = "system",
    ) -> T:
        """
        Run ``operation`` until it succeeds or the attempts are used up.

        Args:
            operation: Zero-argument coroutine function
            op_id: Step name override for this call
            task_id: Item the call belongs to (for events)

        Returns:
            The operation's result

        Raises:
            OperationInterruptedError: The token fired before an attempt or
                during a delay
            RetryExhaustedError: Every attempt failed
        """
        step = op_id or self.name
        started = time.perf_counter()
        self._emit(task_id, step, StepStatus.STARTED, f"max attempts {self.policy.max_attempts}")

        def _before_sleep(retry_state: RetryCallState) -> None:
            error = retry_state.outcome.exception() if retry_state.outcome else None
            delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
            logger.warning(
                "%s [%s] attempt %d/%d failed, retrying in %.2fs: %s",
                step,
                task_id,
                retry_state.attempt_number,
                self.policy.max_attempts,
                delay,
                error,
                extra={"operation": step, "context": {"task_id": task_id}},
            )
            self._emit(
                task_id,
                step,
                StepStatus.PROGRESS,
                f"attempt {retry_state.attempt_number} failed, retrying in {delay:.2f}s: {error}",
            )

        async def _sleep(delay: float) -> None:
            await self.token.sleep(delay, operation=step)

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.policy.max_attempts),
            wait=self.policy.wait_strategy(),
            retry=retry_if_exception(_is_retryable),
            before_sleep=_before_sleep,
            sleep=_sleep,
            reraise=False,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    self.token.raise_if_cancelled(step)
                    result = await operation()
        except RetryError as exc:
            last_attempt = exc.last_attempt
            last_error: Any = last_attempt.exception()
            exhausted = RetryExhaustedError(
                attempts=last_attempt.attempt_number,
                last_error=last_error,
                operation=step,
            )
            self._emit(task_id, step, StepStatus.FAILED, exhausted.message)
            logger.error(
                "%s [%s] %s",
                step,
                task_id,
                exhausted.message,
                extra={"operation": step, "error_code": exhausted.code.value},
            )
            raise exhausted from last_error
        except OperationInterruptedError:
            self._emit(task_id, step, StepStatus.FAILED, "interrupted")
            raise

        log_operation_success(
            logger,
            operation=step,
            duration_ms=(time.perf_counter() - started) * 1000,
            context={"task_id": task_id},
        )
        self._emit(task_id, step, StepStatus.COMPLETED, "")
        return result

    def _emit(self, task_id: str, step: str, status: str, message: str) -> None:
        notify(self.observer, StepEvent(task_id=task_id, step=step, status=status, message=message))
