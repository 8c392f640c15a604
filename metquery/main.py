"""Main entry point for the metquery application.

Sets up the Typer CLI application, performs dependency injection (Composition Root),
defines CLI commands, and delegates execution to the CommandHandler.
"""

import asyncio
import json
import logging
from dataclasses import replace
from typing import Any, Awaitable, Callable, Dict, Optional

import typer
from typing_extensions import Annotated

# --- Core Layer ---
from metquery.core.command_handler import CommandHandler
from metquery.core.services.hyperliquid_service import HyperliquidService
from metquery.core.services.meteora_service import MeteoraService
from metquery.core.services.opportunities_service import OPPORTUNITIES_POLICY, OpportunitiesService
from metquery.core.services.query_service import QueryService

# --- Domain Layer ---
from metquery.domain import catalog
from metquery.domain.models.payment import Endpoint, RetryPolicy, RunOutcome, fixed_backoff, linear_backoff

# --- Infrastructure Layer ---
# Config
from metquery.infrastructure.config.settings import (
    get_base_url, get_config, get_http_timeout, get_retry_setting, get_svm_private_key,
    get_throttle_interval, load_configuration, load_keypair_bytes,
)
# UI
from metquery.infrastructure.cli.display import ConsoleDisplay
# Payment
from metquery.infrastructure.payment.signer import build_payment_client
from metquery.infrastructure.payment.x402_client import X402PaidClient
# Resilience
from metquery.infrastructure.resilience.accounting import RunAccounting
from metquery.infrastructure.resilience.api_retry import FallbackRouter, RetryOrchestrator
from metquery.infrastructure.resilience.rate_limiter import ThrottledSequencer
# Monitoring
from metquery.infrastructure.monitoring.logger_setup import setup_logging

logger = logging.getLogger(__name__)

def _configure_logging() -> None:
    log_level_name = str(get_config('logging.level', 'INFO')).upper()
    log_level = getattr(logging, log_level_name, logging.INFO)
    log_file = get_config('logging.file')
    log_format = get_config('logging.format', '%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    setup_logging(log_level=log_level, log_file=log_file, log_format=log_format)


def _build_paid_client() -> X402PaidClient:
    """Signs with METQUERY_SVM_PRIVATE_KEY if set, else with the Solana CLI keyfile."""
    private_key = get_svm_private_key()
    if private_key:
        payment_client = build_payment_client(private_key_base58=private_key)
    else:
        payment_client = build_payment_client(keypair_bytes=load_keypair_bytes())
    return X402PaidClient(payment_client, base_url=get_base_url(), timeout=get_http_timeout())


def create_dependencies(throttle_interval: Optional[float] = None) -> Dict[str, Any]:
    """Creates and wires up all dependencies for the application.

    This acts as the Composition Root.

    Args:
        throttle_interval: Seconds between paced calls; overrides `throttle.interval_seconds`.
    """
    load_configuration()
    _configure_logging()
    logger.info("Initializing application dependencies...")

    dependencies: Dict[str, Any] = {}
    dependencies['ui'] = ConsoleDisplay()
    try:
        dependencies['paid_client'] = _build_paid_client()
    except (OSError, ValueError) as e:
        logger.error(f"Fatal Error during application initialization: {e}", exc_info=True)
        dependencies['ui'].display_error(
            f"Application Initialization Failed: {e}\n"
            "Set METQUERY_SVM_PRIVATE_KEY or point METQUERY_KEYPAIR_PATH at a Solana keypair file."
        )
        raise typer.Exit(code=1)

    dependencies['accounting'] = RunAccounting()
    interval = throttle_interval if throttle_interval is not None else get_throttle_interval()
    dependencies['sequencer'] = ThrottledSequencer(interval=interval)

    # Unpaced orchestrator for single calls and parallel joins, paced one for sequential scans
    dependencies['orchestrator'] = RetryOrchestrator(
        dependencies['paid_client'], accounting=dependencies['accounting'],
    )
    dependencies['paced_orchestrator'] = RetryOrchestrator(
        dependencies['paid_client'], accounting=dependencies['accounting'], sequencer=dependencies['sequencer'],
    )

    dependencies['opportunities_policy'] = RetryPolicy(
        max_retries=OPPORTUNITIES_POLICY.max_retries,
        backoff=fixed_backoff(float(get_retry_setting('fixed_delay_seconds', 3.0))),
        transient_kinds=OPPORTUNITIES_POLICY.transient_kinds,
    )
    dependencies['meteora_policy'] = RetryPolicy(
        max_retries=int(get_retry_setting('max_retries', 3)),
        backoff=linear_backoff(float(get_retry_setting('linear_step_seconds', 5.0))),
    )

    ui = dependencies['ui']
    dependencies['query_service'] = QueryService(dependencies['orchestrator'], ui)
    dependencies['opportunities_service'] = OpportunitiesService(
        FallbackRouter(dependencies['orchestrator']), ui, policy=dependencies['opportunities_policy'],
    )
    dependencies['hyperliquid_service'] = HyperliquidService(dependencies['orchestrator'], ui)
    dependencies['meteora_service'] = MeteoraService(
        dependencies['paced_orchestrator'],
        FallbackRouter(dependencies['paced_orchestrator']),
        ui,
        policy=dependencies['meteora_policy'],
    )

    dependencies['command_handler'] = CommandHandler(
        query_service=dependencies['query_service'],
        opportunities_service=dependencies['opportunities_service'],
        hyperliquid_service=dependencies['hyperliquid_service'],
        meteora_service=dependencies['meteora_service'],
        accounting=dependencies['accounting'],
        ui=ui,
    )
    logger.info("All dependencies initialized successfully.")
    return dependencies


# --- Typer App Definition ---
app = typer.Typer(
    name="metquery",
    help="metquery: pay-per-request smart money analytics over x402 (Polymarket, Hyperliquid, Meteora).",
    add_completion=False,
)


# --- Helper for Running Async Commands ---
def run_async(command: Callable[[CommandHandler], Awaitable[RunOutcome]], **options: Any) -> None:
    """Wires dependencies, runs one handler coroutine and exits with its outcome's code."""
    dependencies = create_dependencies(**options)

    async def _run() -> RunOutcome:
        try:
            return await command(dependencies['command_handler'])
        finally:
            await dependencies['paid_client'].aclose()

    outcome = asyncio.run(_run())
    if outcome.exit_code != 0:
        raise typer.Exit(code=outcome.exit_code)


# --- CLI Commands ---

@app.command()
def query(
    endpoint: Annotated[Optional[str], typer.Argument(help="API path, including any query string. Defaults to 24h platform stats.")] = None,
    method: Annotated[str, typer.Option("--method", "-X", help="HTTP method.")] = "GET",
    body: Annotated[Optional[str], typer.Option("--body", "-d", help="JSON request body (POST).")] = None,
    retries: Annotated[int, typer.Option("--retries", min=0, help="Retries on transient failures.")] = 0,
):
    """Query any paid endpoint and print the payment and response."""
    try:
        payload = json.loads(body) if body is not None else None
    except json.JSONDecodeError as e:
        raise typer.BadParameter(f"--body is not valid JSON: {e}")
    load_configuration()
    if endpoint is None:
        target = replace(catalog.PLATFORM_STATS, method=method.upper(), body=payload)
    else:
        target = Endpoint(path=endpoint, method=method.upper(), body=payload)
    policy = RetryPolicy(max_retries=retries, backoff=fixed_backoff(float(get_retry_setting('fixed_delay_seconds', 3.0))))
    run_async(lambda handler: handler.handle_query(target, policy))


@app.command()
def insiders():
    """List Polymarket global insider candidates."""
    run_async(lambda handler: handler.handle_insiders())


@app.command(name="early-wallets")
def early_wallets():
    """Find Polymarket wallets with early entries: ROI top performers and niche experts."""
    run_async(lambda handler: handler.handle_early_wallets())


@app.command()
def opportunities():
    """Smart money market opportunities, falling back to high-conviction markets."""
    run_async(lambda handler: handler.handle_opportunities())


@app.command(name="hl-pressure")
def hl_pressure():
    """Hyperliquid long/short pressure by coin."""
    run_async(lambda handler: handler.handle_hl_pressure())


@app.command(name="hl-bias")
def hl_bias():
    """Hyperliquid directional bias from whale trades and smart wallet signals."""
    run_async(lambda handler: handler.handle_hl_bias())


@app.command(name="meteora-yield")
def meteora_yield(
    from_step: Annotated[int, typer.Option("--from-step", help="Start at step 1 (pools) or 3 (LPs).")] = 1,
    throttle: Annotated[
        Optional[float],
        typer.Option("--throttle", min=0.0, help="Seconds between paid calls (default from config, else 5)."),
    ] = None,
):
    """Meteora yield analysis: top pools, fee analysis, top LPs and LP profiles."""
    if from_step not in (1, 3):
        raise typer.BadParameter("--from-step must be 1 or 3")
    run_async(lambda handler: handler.handle_meteora_yield(from_step), throttle_interval=throttle)


# --- Main Execution Guard ---

def cli_entry_point():
    """Function to be called by the script entry point in pyproject.toml."""
    app()


if __name__ == "__main__":
    cli_entry_point()
