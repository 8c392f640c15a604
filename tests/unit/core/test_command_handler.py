import pytest
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

from metquery.core.command_handler import CommandHandler
from metquery.core.services.hyperliquid_service import HyperliquidService
from metquery.core.services.meteora_service import MeteoraService
from metquery.core.services.opportunities_service import OpportunitiesService
from metquery.core.services.query_service import QueryService
from metquery.domain.errors import FailureKind, PaidRequestError
from metquery.domain.models.payment import NO_RETRY, Endpoint, RunSummary
from metquery.infrastructure.resilience.accounting import RunAccounting


@pytest.fixture
def mock_query_service():
    return MagicMock(spec=QueryService)


@pytest.fixture
def mock_opportunities_service():
    return MagicMock(spec=OpportunitiesService)


@pytest.fixture
def mock_hyperliquid_service():
    return MagicMock(spec=HyperliquidService)


@pytest.fixture
def mock_meteora_service():
    return MagicMock(spec=MeteoraService)


@pytest.fixture
def accounting():
    accounting = RunAccounting()
    accounting.record(Decimal("0.02"))
    return accounting


@pytest.fixture
def command_handler(
    mock_query_service,
    mock_opportunities_service,
    mock_hyperliquid_service,
    mock_meteora_service,
    accounting,
    mock_ui,
):
    """Fixture to create CommandHandler with mocked services."""
    return CommandHandler(
        query_service=mock_query_service,
        opportunities_service=mock_opportunities_service,
        hyperliquid_service=mock_hyperliquid_service,
        meteora_service=mock_meteora_service,
        accounting=accounting,
        ui=mock_ui,
    )


@pytest.mark.asyncio
async def test_handle_query_success(command_handler, mock_query_service, mock_ui):
    mock_query_service.run_query = AsyncMock(return_value={"ok": True})
    endpoint = Endpoint("/api/v1/platform/stats")

    outcome = await command_handler.handle_query(endpoint)

    mock_query_service.run_query.assert_awaited_once_with(endpoint, NO_RETRY)
    assert outcome.ok is True
    assert outcome.exit_code == 0
    assert outcome.summary == RunSummary(total_cost=Decimal("0.02"), call_count=1)
    mock_ui.display_summary.assert_called_once_with(outcome.summary, title="COST SUMMARY")
    mock_ui.display_error.assert_not_called()


@pytest.mark.asyncio
async def test_paid_request_error_becomes_failed_outcome(command_handler, mock_query_service, mock_ui):
    error = PaidRequestError(FailureKind.PAYMENT_REJECTED, "Payment failed (400)", endpoint="GET /x", status_code=400)
    mock_query_service.run_insiders = AsyncMock(side_effect=error)

    outcome = await command_handler.handle_insiders()

    assert outcome.ok is False
    assert outcome.exit_code == 1
    assert outcome.error == error.describe()
    mock_ui.display_error.assert_called_once_with(f"insiders failed: {error.describe()}")
    # The summary is shown even for failed runs
    mock_ui.display_summary.assert_called_once()


@pytest.mark.asyncio
async def test_report_returning_false_fails_without_extra_error(command_handler, mock_opportunities_service, mock_ui):
    mock_opportunities_service.run = AsyncMock(return_value=False)

    outcome = await command_handler.handle_opportunities()

    assert outcome.exit_code == 1
    assert outcome.error is None
    mock_ui.display_error.assert_not_called()


@pytest.mark.asyncio
async def test_reports_returning_none_succeed(command_handler, mock_hyperliquid_service):
    mock_hyperliquid_service.run_pressure = AsyncMock(return_value=None)
    mock_hyperliquid_service.run_directional_bias = AsyncMock(return_value=None)

    assert (await command_handler.handle_hl_pressure()).ok
    assert (await command_handler.handle_hl_bias()).ok


@pytest.mark.asyncio
async def test_handle_meteora_yield_passes_start_step(command_handler, mock_meteora_service):
    mock_meteora_service.run = AsyncMock(return_value=True)

    outcome = await command_handler.handle_meteora_yield(from_step=3)

    mock_meteora_service.run.assert_awaited_once_with(3)
    assert outcome.ok


@pytest.mark.asyncio
async def test_early_wallets_summary_title(command_handler, mock_query_service, mock_ui):
    mock_query_service.run_early_wallets = AsyncMock(return_value={})

    await command_handler.handle_early_wallets()

    assert mock_ui.display_summary.call_args.kwargs["title"] == "COMBINED COST"


@pytest.mark.asyncio
async def test_unexpected_exceptions_propagate(command_handler, mock_query_service):
    mock_query_service.run_insiders = AsyncMock(side_effect=RuntimeError("bug"))

    with pytest.raises(RuntimeError):
        await command_handler.handle_insiders()
