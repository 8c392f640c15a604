import pytest

from metquery.core.services.meteora_service import (
    METEORA_POLICY, MeteoraService, fee_volume_ratio, is_anomalous_fee_ratio, token_pair,
)
from metquery.domain.errors import PaidRequestError
from metquery.infrastructure.resilience.accounting import RunAccounting
from metquery.infrastructure.resilience.api_retry import FallbackRouter, RetryOrchestrator

POOLS = "/api/v1/meteora/pools/top"
FEES = "/api/v1/meteora/pools/fee-analysis"
TOP_LPS = "/api/v1/meteora/lps/top"
PROFILE = "/api/v1/meteora/lps/profile"

POOL_ROWS = [
    {"pool_address": "pool1", "pool_type": "damm_v2", "token_a": "SOL", "token_b": "BONK", "volume_usd": 1000},
    {"pool_address": "pool2", "pool_type": "dlmm", "token_x": "SOL", "token_y": "USDC", "volume_usd": 5000},
]
LP_ROWS = [{"owner": "lp1", "total_volume_usd": 10}, {"owner": "lp2", "total_volume_usd": 5}]


@pytest.fixture
def accounting():
    return RunAccounting()


@pytest.fixture
def service(paid_client, accounting, sleeper, mock_ui):
    orchestrator = RetryOrchestrator(paid_client, accounting=accounting, sleep=sleeper)
    return MeteoraService(orchestrator, FallbackRouter(orchestrator), mock_ui, policy=METEORA_POLICY)


def _printed(mock_ui):
    return "\n".join(str(c.args[0]) for c in mock_ui.display_output.call_args_list)


def test_token_pair_handles_both_naming_schemes():
    assert token_pair(POOL_ROWS[0]) == "SOL / BONK"
    assert token_pair(POOL_ROWS[1], sep="/") == "SOL/USDC"
    assert token_pair({}) == "unknown pair"


def test_fee_volume_ratio():
    assert fee_volume_ratio({"volume_usd": 1000}, {"total_fees_claimed": 250}) == 0.25
    assert fee_volume_ratio({"volume_usd": 0}, {"total_fees_claimed": 250}) is None
    assert is_anomalous_fee_ratio(0.25)
    assert not is_anomalous_fee_ratio(0.2)
    assert not is_anomalous_fee_ratio(None)


@pytest.mark.asyncio
async def test_full_run_falls_back_to_volume_and_isolates_failures(
    service, paid_client, accounting, sleeper, mock_ui, timeout_error, rejected_error,
):
    paid_client.script(POOLS, *[timeout_error(POOLS) for _ in range(4)], POOL_ROWS)
    paid_client.script(FEES, {"total_fees_claimed": 400, "unique_claimers": 3}, rejected_error(FEES))
    paid_client.script(TOP_LPS, LP_ROWS)
    paid_client.script(PROFILE, rejected_error(PROFILE), {"summary": {"pool_count": 2}, "recent_events": []})

    ok = await service.run()

    assert ok is True
    # fees ordering: 4 attempts with linear backoff, then the volume ordering
    assert sleeper.delays == [5.0, 10.0, 15.0]
    top_pool_calls = [e.params["sort_by"] for e in paid_client.calls if e.path == POOLS]
    assert top_pool_calls == ["fees"] * 4 + ["volume"]
    printed = _printed(mock_ui)
    assert "fell back to sort_by=volume" in printed
    assert "Failed for pool2" in printed
    assert "Failed for lp1" in printed
    assert "Owner: lp2" in printed
    mock_ui.display_warning.assert_called_once()
    assert "anti-sniper" in mock_ui.display_warning.call_args.args[0]
    # volume pools, one fee analysis, top LPs, one profile
    assert accounting.summary().call_count == 4


@pytest.mark.asyncio
async def test_run_fails_when_no_pool_ordering_answers(service, paid_client, mock_ui, timeout_error):
    paid_client.script(POOLS, *[timeout_error(POOLS) for _ in range(8)])

    ok = await service.run()

    assert ok is False
    mock_ui.display_error.assert_called_once()
    assert paid_client.calls_to(TOP_LPS) == 0


@pytest.mark.asyncio
async def test_from_step_three_skips_pool_steps(service, paid_client, mock_ui):
    paid_client.script(TOP_LPS, LP_ROWS[:1])
    paid_client.script(PROFILE, {"summary": {}, "pool_breakdown": [{"pool_address": "p", "token_x": "A", "token_y": "B"}]})

    ok = await service.run(from_step=3)

    assert ok is True
    assert paid_client.calls_to(POOLS) == 0
    assert paid_client.calls_to(FEES) == 0
    assert "A/B" in _printed(mock_ui)


@pytest.mark.asyncio
async def test_top_lps_failure_is_fatal(service, paid_client, rejected_error):
    paid_client.script(TOP_LPS, rejected_error(TOP_LPS))

    with pytest.raises(PaidRequestError):
        await service.run(from_step=3)


@pytest.mark.asyncio
async def test_invalid_from_step_rejected(service):
    with pytest.raises(ValueError):
        await service.run(from_step=2)


@pytest.mark.asyncio
async def test_lp_profile_is_a_post_with_owner(service, paid_client):
    paid_client.script(TOP_LPS, LP_ROWS[:1])
    paid_client.script(PROFILE, {})

    await service.run(from_step=3)

    profile_call = paid_client.calls[-1]
    assert profile_call.method == "POST"
    assert profile_call.body["owner"] == "lp1"
