"""
Retry-with-backoff wrapper for fallible async operations.

Every failure is classified and diagnosed. Failures in a retryable
category are retried with (optionally exponential) backoff until the
retry budget or the caller's deadline runs out; anything else
terminates the call immediately with a ``RetryExhaustedError`` that
carries the full diagnostic trail.

Backoff sleeps go through ``asyncio.sleep`` so only the calling task is
suspended, and task cancellation propagates untouched.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from functools import wraps
from typing import Any, ParamSpec, TypeVar

from dexarb.config.constants import DEFAULT_MAX_RETRIES, DEFAULT_RETRY_BASE_DELAY_MS
from dexarb.core.errors import RetryExhaustedError
from dexarb.core.event_bus import Event, EventBus, EventType
from dexarb.core.types import ErrorDiagnosis, Recommendation, RetryState
from dexarb.resilience.taxonomy import diagnose, is_retryable


logger = logging.getLogger(__name__)

T = TypeVar("T")
P = ParamSpec("P")

SleepFunc = Callable[[float], Awaitable[Any]]
ClockFunc = Callable[[], float]


@dataclass(slots=True, frozen=True)
class RetryPolicy:
    """
    Retry budget and backoff schedule.

    ``max_retries`` counts retries after the initial attempt, so an
    operation runs at most ``max_retries + 1`` times.
    """

    max_retries: int = DEFAULT_MAX_RETRIES
    base_delay_ms: float = DEFAULT_RETRY_BASE_DELAY_MS
    exponential_backoff: bool = True

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")
        if self.base_delay_ms < 0:
            raise ValueError(f"base_delay_ms must be >= 0, got {self.base_delay_ms}")

    def delay_ms(self, retry: int) -> float:
        """
        Delay before the given retry.

        Args:
            retry: 1-based retry number.

        Returns:
            ``base * 2**(retry - 1)`` with exponential backoff, else ``base``.
        """
        if retry < 1:
            raise ValueError(f"retry number must be >= 1, got {retry}")
        if not self.exponential_backoff:
            return float(self.base_delay_ms)
        return float(self.base_delay_ms * 2 ** (retry - 1))


class ResilienceWrapper:
    """
    Runs async operations under a retry policy.

    The wrapper holds no per-call state: each ``call`` owns its own
    :class:`RetryState`, so one wrapper can serve any number of
    concurrent tasks.
    """

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        event_bus: EventBus | None = None,
        sleep: SleepFunc = asyncio.sleep,
        clock: ClockFunc | None = None,
    ) -> None:
        """
        Initialize wrapper.

        Args:
            policy: Retry policy (defaults apply when omitted).
            event_bus: Bus to publish diagnoses, retries and successes on.
            sleep: Awaitable sleep taking seconds. Injected by tests.
            clock: Monotonic clock used for deadlines. Defaults to the
                running event loop's clock.
        """
        self._policy = policy or RetryPolicy()
        self._event_bus = event_bus
        self._sleep = sleep
        self._clock = clock

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    def _now(self) -> float:
        if self._clock is not None:
            return self._clock()
        return asyncio.get_running_loop().time()

    async def call(
        self,
        operation: Callable[[], Awaitable[T]],
        context: Mapping[str, Any] | None = None,
        *,
        deadline: float | None = None,
    ) -> T:
        """
        Execute an operation with classification and retries.

        Args:
            operation: Zero-argument coroutine factory. Called once per
                attempt.
            context: Call context (``operation``, ``source_id``, ...).
                Forwarded to classification and diagnoses.
            deadline: Absolute clock time after which no further retry
                is scheduled.

        Returns:
            The operation's result.

        Raises:
            RetryExhaustedError: On a non-retryable failure, when retries
                run out or when the next backoff would overrun the deadline.
        """
        ctx = dict(context or {})
        state = RetryState()

        while True:
            state.attempt += 1
            try:
                result = await operation()
            except Exception as error:
                state.last_error = error
                diagnosis = diagnose(error, {**ctx, "attempt": state.attempt})
                state.diagnoses.append(diagnosis)
                await self._publish(EventType.ERROR_DIAGNOSED, diagnosis, ctx)

                if not is_retryable(diagnosis.category):
                    logger.debug(
                        f"{_describe(ctx)} failed with non-retryable "
                        f"{diagnosis.category.value}: {diagnosis.error_message}"
                    )
                    raise self._exhausted(error, ctx, state) from error

                if state.retries >= self._policy.max_retries:
                    logger.debug(
                        f"{_describe(ctx)} exhausted {self._policy.max_retries} retries"
                    )
                    raise self._exhausted(error, ctx, state) from error

                delay_ms = self._policy.delay_ms(state.retries + 1)
                if deadline is not None and self._now() + delay_ms / 1000.0 > deadline:
                    logger.debug(
                        f"{_describe(ctx)} retry in {delay_ms:.0f}ms would overrun deadline"
                    )
                    raise self._exhausted(error, ctx, state, deadline_exceeded=True) from error

                state.next_delay_ms = delay_ms
                logger.debug(
                    f"{_describe(ctx)} attempt {state.attempt} failed "
                    f"({diagnosis.category.value}), retrying in {delay_ms:.0f}ms"
                )
                await self._publish(
                    EventType.RETRY_SCHEDULED,
                    {
                        "context": ctx,
                        "attempt": state.attempt,
                        "delay_ms": delay_ms,
                        "category": diagnosis.category,
                    },
                    ctx,
                )
                await self._sleep(delay_ms / 1000.0)
            else:
                await self._publish(
                    EventType.OPERATION_SUCCEEDED,
                    {"context": ctx, "attempts": state.attempt},
                    ctx,
                )
                return result

    def wrap(
        self,
        func: Callable[P, Awaitable[T]],
        context: Mapping[str, Any] | None = None,
    ) -> Callable[P, Awaitable[T]]:
        """
        Decorate an async function so each invocation runs under ``call``.

        Example:
            >>> fetch = wrapper.wrap(client.get_gas_price, {"operation": "gas_price"})
            >>> wei = await fetch()
        """
        ctx = dict(context or {})
        ctx.setdefault("operation", getattr(func, "__name__", "operation"))

        @wraps(func)
        async def wrapped(*args: P.args, **kwargs: P.kwargs) -> T:
            return await self.call(lambda: func(*args, **kwargs), ctx)

        return wrapped

    def _exhausted(
        self,
        error: Exception,
        context: dict[str, Any],
        state: RetryState,
        deadline_exceeded: bool = False,
    ) -> RetryExhaustedError:
        diagnoses = tuple(state.diagnoses)
        return RetryExhaustedError(
            error,
            context=context,
            attempts=state.attempt,
            diagnosis=diagnoses[-1],
            diagnoses=diagnoses,
            recommendations=_merge_recommendations(diagnoses),
            deadline_exceeded=deadline_exceeded,
        )

    async def _publish(self, event_type: EventType, payload: Any, context: dict[str, Any]) -> None:
        if self._event_bus is None:
            return
        await self._event_bus.publish(
            Event(
                type=event_type,
                payload=payload,
                source=str(context.get("source_id") or context.get("operation") or ""),
            )
        )


def _merge_recommendations(diagnoses: tuple[ErrorDiagnosis, ...]) -> tuple[Recommendation, ...]:
    """Union of recommendations across diagnoses, first occurrence wins."""
    seen: set[str] = set()
    merged: list[Recommendation] = []
    for diagnosis in diagnoses:
        for rec in diagnosis.recommendations:
            if rec.action not in seen:
                seen.add(rec.action)
                merged.append(rec)
    return tuple(merged)


def _describe(context: Mapping[str, Any]) -> str:
    operation = context.get("operation", "operation")
    source_id = context.get("source_id")
    return f"{operation}[{source_id}]" if source_id else str(operation)
