"""Service for executing paid calls with automatic retries.

Implements bounded retries with a per-call-site backoff for transient
failures (gateway timeouts, 5xx, rate limits during payment signing), and
ordered fallback to alternate endpoints when a primary endpoint keeps
timing out. Non-transient failures are never retried: the outcome would not
change and the caller's mistake should surface immediately.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional

from metquery.domain.errors import PaidRequestError, excerpt
from metquery.domain.events.api_events import (
    FallbackTriggered, PaidCallFailed, PaidCallInitiated, PaidCallSucceeded,
    RetryScheduled, dispatch_event,
)
from metquery.domain.interfaces.paid_client import PaidRequestClient
from metquery.domain.models.payment import (
    NO_RETRY, CallResult, Endpoint, FallbackPlan, RetryPolicy,
)
from metquery.infrastructure.resilience.accounting import RunAccounting
from metquery.infrastructure.resilience.rate_limiter import ThrottledSequencer

logger = logging.getLogger(__name__)


class RetryOrchestrator:
    """Runs paid calls with retries, optional pacing and cost accounting."""

    def __init__(
        self,
        client: PaidRequestClient,
        accounting: Optional[RunAccounting] = None,
        sequencer: Optional[ThrottledSequencer] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initializes the RetryOrchestrator.

        Args:
            client: The paid request client performing single attempts.
            accounting: Optional run totals; settled calls are recorded here.
            sequencer: Optional pacer applied once per call, before its first attempt.
            sleep: Async sleep used for backoff, injectable for tests.
        """
        self.client = client
        self.accounting = accounting
        self.sequencer = sequencer
        self._sleep = sleep

    async def execute(self, endpoint: Endpoint, label: str, policy: RetryPolicy = NO_RETRY) -> CallResult:
        """Executes one paid call, retrying transient failures per `policy`.

        Returns:
            The settled CallResult, labelled with `label`.

        Raises:
            PaidRequestError: The first non-transient failure, or the last
                transient failure once `policy.max_retries` retries are spent.
        """
        if self.sequencer is not None:
            await self.sequencer.wait_for_permission()

        attempt = 0
        while True:
            dispatch_event(PaidCallInitiated(label=label, endpoint=str(endpoint), attempt_number=attempt + 1))
            start_time = time.perf_counter()
            try:
                result = await self.client.send(endpoint)
            except PaidRequestError as e:
                if not policy.is_transient(e.kind):
                    logger.error(f"Non-retryable error calling {label} ({endpoint}) on attempt {attempt + 1}: {e.describe()}")
                    self._dispatch_failure(label, endpoint, e)
                    raise
                if attempt >= policy.max_retries:
                    logger.error(f"{label} failed after {attempt + 1} attempt(s): {e.describe()}")
                    self._dispatch_failure(label, endpoint, e)
                    raise
                delay = policy.backoff(attempt)
                logger.warning(
                    f"[retry {attempt + 1}/{policy.max_retries}] {endpoint.path} -- "
                    f"waiting {delay:g}s ({excerpt(str(e), 80)})"
                )
                dispatch_event(RetryScheduled(
                    label=label, endpoint=str(endpoint), attempt_number=attempt + 1,
                    delay_seconds=delay, error_kind=e.kind.value,
                ))
                await self._sleep(delay)
                attempt += 1
                continue

            latency_ms = (time.perf_counter() - start_time) * 1000
            if self.accounting is not None:
                self.accounting.record(result.price)
            logger.info(f"{label}: paid ${result.price:.4f} USDC | latency {latency_ms / 1000:.1f}s")
            dispatch_event(PaidCallSucceeded(
                label=label, endpoint=str(endpoint), latency_ms=latency_ms,
                price=result.price, settlement_tx=result.settlement_tx,
            ))
            return result.tagged(label, used_fallback=False)

    async def execute_or_none(self, endpoint: Endpoint, label: str, policy: RetryPolicy = NO_RETRY) -> Optional[CallResult]:
        """Like `execute`, but returns None once a transient failure exhausts its retries.

        Non-transient failures still propagate.
        """
        try:
            return await self.execute(endpoint, label, policy)
        except PaidRequestError as e:
            if policy.is_transient(e.kind):
                return None
            raise

    def _dispatch_failure(self, label: str, endpoint: Endpoint, error: PaidRequestError) -> None:
        dispatch_event(PaidCallFailed(
            label=label, endpoint=str(endpoint), error_kind=error.kind.value,
            error_message=excerpt(str(error), 200), status_code=error.status_code,
        ))


class FallbackRouter:
    """Tries the entries of a FallbackPlan in order until one settles."""

    def __init__(self, orchestrator: RetryOrchestrator):
        self.orchestrator = orchestrator

    async def execute_with_fallback(self, plan: FallbackPlan, policy: RetryPolicy = NO_RETRY) -> Optional[CallResult]:
        """Executes the plan.

        Moves to the next entry only when the current one exhausted its
        retries on a transient failure. A non-transient failure from any
        entry propagates immediately.

        Returns:
            The first settled result, tagged with its entry's label and
            `used_fallback=True` if it did not come from the first entry; or
            None if every entry was exhausted.
        """
        entries = list(plan)
        for index, entry in enumerate(entries):
            result = await self.orchestrator.execute_or_none(entry.endpoint, entry.label, policy)
            if result is not None:
                return result.tagged(entry.label, used_fallback=index > 0)
            if index + 1 < len(entries):
                next_entry = entries[index + 1]
                logger.warning(f"{entry.label} exhausted its retries, falling back to {next_entry.label}")
                dispatch_event(FallbackTriggered(
                    failed_label=entry.label, next_label=next_entry.label, reason="retries_exhausted",
                ))

        logger.error(f"All {len(entries)} fallback entries exhausted.")
        return None
