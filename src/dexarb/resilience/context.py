"""Explicitly constructed bundle of the resilience collaborators."""

import asyncio
from dataclasses import dataclass

from dexarb.config.constants import DEFAULT_DIAGNOSTICS_HISTORY_LIMIT
from dexarb.core.event_bus import EventBus
from dexarb.resilience.diagnostics import DiagnosticsAggregator
from dexarb.resilience.wrapper import ResilienceWrapper, RetryPolicy, SleepFunc


@dataclass(slots=True)
class ResilienceContext:
    """
    Policy, wrapper, event bus and diagnostics wired together.

    Built by the caller and handed to the engine; there is no
    process-wide instance.
    """

    policy: RetryPolicy
    wrapper: ResilienceWrapper
    event_bus: EventBus
    diagnostics: DiagnosticsAggregator

    @classmethod
    def create(
        cls,
        policy: RetryPolicy | None = None,
        history_limit: int = DEFAULT_DIAGNOSTICS_HISTORY_LIMIT,
        event_bus: EventBus | None = None,
        sleep: SleepFunc = asyncio.sleep,
    ) -> "ResilienceContext":
        """
        Build a context with diagnostics subscribed to the bus.

        Args:
            policy: Retry policy (defaults apply when omitted).
            history_limit: Diagnostics history cap.
            event_bus: Existing bus to share, or None for a fresh one.
            sleep: Backoff sleep function.
        """
        policy = policy or RetryPolicy()
        bus = event_bus or EventBus()
        diagnostics = DiagnosticsAggregator(history_limit)
        diagnostics.attach(bus)
        wrapper = ResilienceWrapper(policy, event_bus=bus, sleep=sleep)
        return cls(policy=policy, wrapper=wrapper, event_bus=bus, diagnostics=diagnostics)
