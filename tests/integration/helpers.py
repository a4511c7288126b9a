"""Shared helpers for integration tests."""

from swapcore.errors import PriceUnavailable

SOL = "So11111111111111111111111111111111111111112"
USDC = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"


class ScriptedPrices:
    """Price source that replays a fixed series of SOL/USD prices.

    Each call consumes one entry; the last entry repeats once the series is
    exhausted. A None entry makes the whole batch fail.
    """

    def __init__(self, *sol_prices, usdc_price=1.0):
        self._sol_prices = list(sol_prices)
        self._usdc_price = usdc_price
        self.calls = 0

    async def get_prices(self, token_ids):
        self.calls += 1
        price = self._sol_prices.pop(0) if len(self._sol_prices) > 1 else self._sol_prices[0]
        if price is None:
            raise PriceUnavailable("price API returned HTTP 503")
        prices = {SOL: price, USDC: self._usdc_price}
        return {token: prices.get(token) for token in token_ids}

    def push(self, *sol_prices):
        """Replace the remaining series."""
        self._sol_prices = list(sol_prices)
