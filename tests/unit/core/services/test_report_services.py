import pytest

from metquery.core.services.opportunities_service import OPPORTUNITIES_POLICY, OpportunitiesService
from metquery.core.services.query_service import QueryService
from metquery.domain.errors import FailureKind, PaidRequestError
from metquery.domain.models.payment import Endpoint
from metquery.infrastructure.resilience.accounting import RunAccounting
from metquery.infrastructure.resilience.api_retry import FallbackRouter, RetryOrchestrator

OPPORTUNITIES = "/api/v1/markets/opportunities"
HIGH_CONVICTION = "/api/v1/markets/high-conviction"


@pytest.fixture
def accounting():
    return RunAccounting()


@pytest.fixture
def orchestrator(paid_client, accounting, sleeper):
    return RetryOrchestrator(paid_client, accounting=accounting, sleep=sleeper)


# --- OpportunitiesService ---

@pytest.fixture
def opportunities(orchestrator, mock_ui):
    return OpportunitiesService(FallbackRouter(orchestrator), mock_ui)


@pytest.mark.asyncio
async def test_opportunities_falls_back_to_high_conviction(opportunities, paid_client, sleeper, mock_ui, timeout_error):
    paid_client.script(OPPORTUNITIES, timeout_error(), timeout_error())
    paid_client.script(HIGH_CONVICTION, [{"market": "m1"}])

    ok = await opportunities.run()

    assert ok is True
    assert sleeper.delays == [3.0]
    result = mock_ui.display_payment.call_args.args[0]
    assert result.used_fallback is True
    assert result.label == "high-conviction"
    mock_ui.display_json.assert_called_once_with([{"market": "m1"}], title="Full Response Data")


@pytest.mark.asyncio
async def test_opportunities_reports_when_both_time_out(opportunities, paid_client, mock_ui, timeout_error):
    paid_client.script(OPPORTUNITIES, timeout_error(), timeout_error())
    paid_client.script(HIGH_CONVICTION, timeout_error(), timeout_error())

    ok = await opportunities.run()

    assert ok is False
    assert "Both endpoints timed out" in mock_ui.display_error.call_args.args[0]


@pytest.mark.asyncio
async def test_opportunities_server_error_is_not_a_fallback_trigger(opportunities, paid_client):
    paid_client.script(OPPORTUNITIES, PaidRequestError(FailureKind.SERVER_ERROR, "Expected 402, got 500"))

    with pytest.raises(PaidRequestError):
        await opportunities.run()

    assert paid_client.calls_to(HIGH_CONVICTION) == 0


def test_opportunities_policy_only_waits_out_timeouts():
    assert OPPORTUNITIES_POLICY.max_retries == 1
    assert OPPORTUNITIES_POLICY.transient_kinds == {FailureKind.TIMEOUT, FailureKind.UNAVAILABLE}
    assert OPPORTUNITIES_POLICY.backoff(0) == 3.0


# --- QueryService ---

@pytest.fixture
def query_service(orchestrator, mock_ui):
    return QueryService(orchestrator, mock_ui)


@pytest.mark.asyncio
async def test_run_query_prints_payment_and_data(query_service, paid_client, mock_ui):
    paid_client.script("/api/v1/platform/stats", {"volume": 1})

    data = await query_service.run_query(Endpoint("/api/v1/platform/stats"))

    assert data == {"volume": 1}
    mock_ui.display_payment.assert_called_once()
    mock_ui.display_json.assert_called_once_with({"volume": 1}, title="Data")


@pytest.mark.asyncio
async def test_run_insiders_uses_fixed_query(query_service, paid_client):
    paid_client.script("/api/v1/wallets/insiders", [])

    await query_service.run_insiders()

    assert paid_client.calls[0].params["max_wallet_age_days"] == 60


@pytest.mark.asyncio
async def test_early_wallets_runs_steps_in_order(query_service, paid_client, accounting):
    paid_client.script("/api/v1/wallets/top-performers", ["roi"])
    paid_client.script("/api/v1/wallets/niche-experts", ["crypto"], ["tech"])

    results = await query_service.run_early_wallets()

    assert results == {"roi": ["roi"], "crypto": ["crypto"], "tech": ["tech"]}
    assert [c.params.get("category") for c in paid_client.calls] == [None, "Crypto", "Tech"]
    assert accounting.summary().call_count == 3


@pytest.mark.asyncio
async def test_early_wallets_stops_at_first_failure(query_service, paid_client, rejected_error):
    paid_client.script("/api/v1/wallets/top-performers", rejected_error())

    with pytest.raises(PaidRequestError):
        await query_service.run_early_wallets()

    assert len(paid_client.calls) == 1
