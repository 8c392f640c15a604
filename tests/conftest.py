import pytest
from collections import defaultdict, deque
from decimal import Decimal
from typer.testing import CliRunner
from unittest.mock import MagicMock

from metquery.domain.errors import FailureKind, PaidRequestError
from metquery.domain.interfaces.paid_client import PaidRequestClient
from metquery.domain.interfaces.user_interface import UserInterface
from metquery.domain.models.payment import CallResult, Endpoint
from metquery.infrastructure.config.settings import clear_test_config


class ScriptedPaidClient(PaidRequestClient):
    """PaidRequestClient whose outcomes are scripted per endpoint path.

    Each outcome is either an exception to raise or a payload to return as a
    settled CallResult priced at `price`.
    """

    def __init__(self, price: Decimal = Decimal("0.01")):
        self.price = price
        self.outcomes = defaultdict(deque)
        self.calls = []
        self.closed = False

    def script(self, path: str, *outcomes):
        self.outcomes[path].extend(outcomes)
        return self

    def calls_to(self, path: str) -> int:
        return sum(1 for endpoint in self.calls if endpoint.path == path)

    async def send(self, endpoint: Endpoint) -> CallResult:
        self.calls.append(endpoint)
        queue = self.outcomes[endpoint.path]
        if not queue:
            raise AssertionError(f"Unscripted call to {endpoint}")
        outcome = queue.popleft()
        if isinstance(outcome, BaseException):
            raise outcome
        return CallResult(
            data=outcome,
            price=self.price,
            settlement={"transaction": f"tx-{len(self.calls)}"},
            endpoint=endpoint,
        )

    async def aclose(self) -> None:
        self.closed = True


class SleepRecorder:
    """Async stand-in for asyncio.sleep that records requested delays."""

    def __init__(self):
        self.delays = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture(scope="session")
def runner():
    """Provides a Typer CliRunner instance."""
    return CliRunner()


@pytest.fixture
def paid_client():
    return ScriptedPaidClient()


@pytest.fixture
def sleeper():
    return SleepRecorder()


@pytest.fixture
def mock_ui():
    return MagicMock(spec=UserInterface)


@pytest.fixture
def timeout_error():
    """Factory for gateway-timeout failures."""
    def make(endpoint: str = "/x") -> PaidRequestError:
        return PaidRequestError(FailureKind.TIMEOUT, "Expected 402, got 504", endpoint=endpoint, status_code=504)
    return make


@pytest.fixture
def rejected_error():
    """Factory for non-transient payment failures."""
    def make(endpoint: str = "/x") -> PaidRequestError:
        return PaidRequestError(FailureKind.PAYMENT_REJECTED, "Payment failed (400)", endpoint=endpoint, status_code=400)
    return make


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch):
    """Keeps tests independent of the developer's environment and config overrides."""
    for key in ("METQUERY_SVM_PRIVATE_KEY", "METQUERY_KEYPAIR_PATH", "METQUERY_BASE_URL", "THROTTLE_INTERVAL_SECONDS"):
        monkeypatch.delenv(key, raising=False)
    clear_test_config()
    yield
    clear_test_config()
