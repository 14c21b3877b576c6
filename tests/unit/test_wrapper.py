"""
Unit tests for the retry wrapper.

Tests backoff scheduling, non-retryable failures, deadlines and the
diagnostic payload carried by RetryExhaustedError.
"""

import asyncio

import pytest

from dexarb.chain.client import ChainClientError
from dexarb.core.errors import ConfigurationError, RetryExhaustedError
from dexarb.core.event_bus import Event, EventBus, EventType
from dexarb.core.types import ErrorCategory
from dexarb.resilience.context import ResilienceContext
from dexarb.resilience.wrapper import ResilienceWrapper, RetryPolicy


class FailingOperation:
    """Fails a fixed number of times, then returns a value."""

    def __init__(self, error: Exception, failures: int, result: object = "ok") -> None:
        self.error = error
        self.failures = failures
        self.result = result
        self.calls = 0

    async def __call__(self) -> object:
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return self.result


class FakeClock:
    """Monotonic clock advanced only by its own sleep."""

    def __init__(self, start: float = 0.0) -> None:
        self.time = start
        self.delays: list[float] = []

    def now(self) -> float:
        return self.time

    async def sleep(self, seconds: float) -> None:
        self.delays.append(seconds)
        self.time += seconds


def network_error() -> ChainClientError:
    return ChainClientError("Network error: connection refused", code="NETWORK_ERROR")


class TestRetryPolicy:
    """Tests for RetryPolicy."""

    def test_exponential_delays(self) -> None:
        policy = RetryPolicy(max_retries=3, base_delay_ms=1000)

        assert [policy.delay_ms(n) for n in (1, 2, 3)] == [1000.0, 2000.0, 4000.0]

    def test_constant_delays(self) -> None:
        policy = RetryPolicy(base_delay_ms=500, exponential_backoff=False)

        assert [policy.delay_ms(n) for n in (1, 2, 3)] == [500.0, 500.0, 500.0]

    def test_invalid_values(self) -> None:
        with pytest.raises(ValueError):
            RetryPolicy(max_retries=-1)
        with pytest.raises(ValueError):
            RetryPolicy(base_delay_ms=-1)
        with pytest.raises(ValueError):
            RetryPolicy().delay_ms(0)


class TestResilienceWrapper:
    """Tests for ResilienceWrapper.call."""

    @pytest.mark.asyncio
    async def test_success_first_try(self, resilience: ResilienceContext, fake_sleep) -> None:
        operation = FailingOperation(network_error(), failures=0, result=42)

        result = await resilience.wrapper.call(operation, {"operation": "price_fetch"})

        assert result == 42
        assert operation.calls == 1
        assert fake_sleep.delays == []

    @pytest.mark.asyncio
    async def test_transient_network_failure_recovers(self, resilience: ResilienceContext, fake_sleep) -> None:
        operation = FailingOperation(network_error(), failures=2)

        result = await resilience.wrapper.call(operation, {"operation": "price_fetch"})

        assert result == "ok"
        assert operation.calls == 3
        assert fake_sleep.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_network_retries_exhausted(self, resilience: ResilienceContext, fake_sleep) -> None:
        """Network failures retry max_retries times with increasing delays."""
        operation = FailingOperation(network_error(), failures=100)

        with pytest.raises(RetryExhaustedError) as exc_info:
            await resilience.wrapper.call(operation, {"operation": "price_fetch", "source_id": "A"})

        error = exc_info.value
        assert operation.calls == 4
        assert fake_sleep.delays == [1.0, 2.0, 4.0]
        assert all(a < b for a, b in zip(fake_sleep.delays, fake_sleep.delays[1:]))
        assert error.attempts == 4
        assert error.retry_count == 3
        assert error.category is ErrorCategory.NETWORK
        assert error.code == "NETWORK_ERROR"
        assert error.diagnosis.source_id == "A"
        assert error.diagnosis.context["attempt"] == 4
        assert len(error.diagnoses) == 4
        assert error.recommendations
        assert error.original_error is operation.error
        assert error.__cause__ is operation.error
        assert error.deadline_exceeded is False

    @pytest.mark.asyncio
    async def test_configuration_error_not_retried(self, resilience: ResilienceContext, fake_sleep) -> None:
        operation = FailingOperation(ConfigurationError("invalid address 0x0"), failures=100)

        with pytest.raises(RetryExhaustedError) as exc_info:
            await resilience.wrapper.call(operation, {"operation": "setup"})

        assert operation.calls == 1
        assert fake_sleep.delays == []
        assert exc_info.value.category is ErrorCategory.CONFIGURATION
        assert exc_info.value.severity == 5
        assert exc_info.value.retry_count == 0

    @pytest.mark.asyncio
    async def test_zero_retries(self, fake_sleep) -> None:
        wrapper = ResilienceWrapper(RetryPolicy(max_retries=0), sleep=fake_sleep)
        operation = FailingOperation(network_error(), failures=1)

        with pytest.raises(RetryExhaustedError):
            await wrapper.call(operation)

        assert operation.calls == 1
        assert fake_sleep.delays == []

    @pytest.mark.asyncio
    async def test_constant_backoff(self, fake_sleep) -> None:
        policy = RetryPolicy(max_retries=2, base_delay_ms=250, exponential_backoff=False)
        wrapper = ResilienceWrapper(policy, sleep=fake_sleep)

        with pytest.raises(RetryExhaustedError):
            await wrapper.call(FailingOperation(network_error(), failures=10))

        assert fake_sleep.delays == [0.25, 0.25]

    @pytest.mark.asyncio
    async def test_deadline_stops_retries(self) -> None:
        """No retry is scheduled when its backoff would overrun the deadline."""
        clock = FakeClock(start=100.0)
        wrapper = ResilienceWrapper(RetryPolicy(), sleep=clock.sleep, clock=clock.now)
        operation = FailingOperation(network_error(), failures=100)

        with pytest.raises(RetryExhaustedError) as exc_info:
            await wrapper.call(operation, deadline=102.5)

        # 1s fits, 1s + 2s would not
        assert operation.calls == 2
        assert clock.delays == [1.0]
        assert exc_info.value.deadline_exceeded is True

    @pytest.mark.asyncio
    async def test_no_deadline_runs_full_schedule(self) -> None:
        clock = FakeClock(start=100.0)
        wrapper = ResilienceWrapper(RetryPolicy(), sleep=clock.sleep, clock=clock.now)

        with pytest.raises(RetryExhaustedError) as exc_info:
            await wrapper.call(FailingOperation(network_error(), failures=100))

        assert clock.delays == [1.0, 2.0, 4.0]
        assert exc_info.value.deadline_exceeded is False

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self, resilience: ResilienceContext) -> None:
        async def cancelled() -> None:
            raise asyncio.CancelledError

        with pytest.raises(asyncio.CancelledError):
            await resilience.wrapper.call(cancelled)

    @pytest.mark.asyncio
    async def test_concurrent_calls_keep_separate_state(self, resilience: ResilienceContext) -> None:
        flaky = FailingOperation(network_error(), failures=1, result="flaky")
        steady = FailingOperation(network_error(), failures=0, result="steady")

        results = await asyncio.gather(
            resilience.wrapper.call(flaky, {"source_id": "A"}),
            resilience.wrapper.call(steady, {"source_id": "B"}),
        )

        assert results == ["flaky", "steady"]
        assert flaky.calls == 2
        assert steady.calls == 1

    @pytest.mark.asyncio
    async def test_wrap_decorator(self, resilience: ResilienceContext) -> None:
        calls: list[int] = []

        async def get_gas_price(multiplier: int) -> int:
            calls.append(multiplier)
            if len(calls) == 1:
                raise network_error()
            return 10 * multiplier

        wrapped = resilience.wrapper.wrap(get_gas_price)

        assert await wrapped(3) == 30
        assert calls == [3, 3]
        assert wrapped.__name__ == "get_gas_price"


class TestWrapperEvents:
    """Tests for events published by the wrapper."""

    @pytest.mark.asyncio
    async def test_events_published(self, fake_sleep) -> None:
        bus = EventBus()
        seen: list[Event] = []
        for event_type in (EventType.ERROR_DIAGNOSED, EventType.RETRY_SCHEDULED, EventType.OPERATION_SUCCEEDED):
            bus.subscribe_sync(event_type, seen.append)
        wrapper = ResilienceWrapper(RetryPolicy(), event_bus=bus, sleep=fake_sleep)

        await wrapper.call(FailingOperation(network_error(), failures=1), {"source_id": "A"})

        assert [e.type for e in seen] == [
            EventType.ERROR_DIAGNOSED,
            EventType.RETRY_SCHEDULED,
            EventType.OPERATION_SUCCEEDED,
        ]
        assert seen[1].payload["delay_ms"] == 1000.0
        assert seen[2].payload["attempts"] == 2
        assert all(e.source == "A" for e in seen)

    @pytest.mark.asyncio
    async def test_diagnostics_fed_through_context(self, resilience: ResilienceContext) -> None:
        await resilience.wrapper.call(FailingOperation(network_error(), failures=2), {"source_id": "A"})

        history = resilience.diagnostics.history()
        assert len(history) == 2
        assert resilience.diagnostics.total_analyses == 3
