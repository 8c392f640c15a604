import asyncio
import pytest
from decimal import Decimal

from metquery.domain.errors import FailureKind, PaidRequestError
from metquery.domain.models.payment import CallResult
from metquery.infrastructure.resilience.fan_out import MAX_FAN_OUT, join_isolated


async def _succeed(data, delay=0.0):
    await asyncio.sleep(delay)
    return CallResult(data=data, price=Decimal("0.02"))


async def _fail(kind=FailureKind.TIMEOUT):
    raise PaidRequestError(kind, "Expected 402, got 504")


@pytest.mark.asyncio
async def test_failed_branch_yields_none_other_branch_completes():
    pairs, summary = await join_isolated(
        ("pressure/pairs", _fail()),
        ("pressure/summary", _succeed({"coins": []}, delay=0.01)),
    )

    assert pairs is None
    assert summary.data == {"coins": []}


@pytest.mark.asyncio
async def test_results_keep_branch_order():
    results = await join_isolated(
        ("slow", _succeed("slow", delay=0.02)),
        ("fast", _succeed("fast")),
    )

    assert [r.data for r in results] == ["slow", "fast"]


@pytest.mark.asyncio
async def test_non_transient_failures_are_also_isolated():
    results = await join_isolated(
        ("a", _fail(FailureKind.PAYMENT_REJECTED)),
        ("b", _succeed(1)),
    )

    assert results[0] is None
    assert results[1].data == 1


@pytest.mark.asyncio
async def test_other_exceptions_propagate():
    async def broken():
        raise RuntimeError("bug")

    with pytest.raises(RuntimeError):
        await join_isolated(("broken", broken()))


@pytest.mark.asyncio
async def test_too_many_branches_rejected():
    branches = [(str(i), _succeed(i)) for i in range(MAX_FAN_OUT + 1)]
    try:
        with pytest.raises(ValueError):
            await join_isolated(*branches)
    finally:
        for _, coro in branches:
            coro.close()
