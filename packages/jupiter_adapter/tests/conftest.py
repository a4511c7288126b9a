"""Test fixtures for jupiter_adapter tests."""

import httpx
import pytest

SOL_MINT = "So11111111111111111111111111111111111111112"
USDC_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def mock_http():
    """Factory for httpx.AsyncClient backed by a request handler.

    Every request seen is appended to ``client.requests``.
    """
    def _make(handler):
        requests = []

        def _record(request: httpx.Request):
            requests.append(request)
            return handler(request)

        client = httpx.AsyncClient(transport=httpx.MockTransport(_record))
        client.requests = requests
        return client
    return _make


@pytest.fixture
def sample_price_response():
    """Sample Jupiter price v2 response for SOL and USDC."""
    return {
        "data": {
            SOL_MINT: {"id": SOL_MINT, "type": "derivedPrice", "price": "146.25"},
            USDC_MINT: {"id": USDC_MINT, "type": "derivedPrice", "price": "1.0001"},
        },
        "timeTaken": 0.004,
    }


@pytest.fixture
def sample_quote_response():
    """Sample Jupiter quote response: 25 USDC -> SOL."""
    return {
        "inputMint": USDC_MINT,
        "inAmount": "25000000",
        "outputMint": SOL_MINT,
        "outAmount": "170940170",
        "otherAmountThreshold": "169230768",
        "swapMode": "ExactIn",
        "slippageBps": 100,
        "priceImpactPct": "0",
        "routePlan": [],
    }
