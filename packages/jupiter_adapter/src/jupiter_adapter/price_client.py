"""Jupiter price API client.

Fetches USD prices for a batch of token mints in one request.

Reference:
- Price API v2: https://dev.jup.ag/docs/price-api/v2
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Iterable, Optional

import httpx

from swapcore.errors import PriceUnavailable

from jupiter_adapter.rate_limiter import RateLimiter, RateLimitConfig


logger = logging.getLogger(__name__)

DEFAULT_PRICE_URL = "https://api.jup.ag/price/v2"


@dataclass
class JupiterPriceClient:
    """Batch price client for the Jupiter price API.

    The whole batch either succeeds or raises ``PriceUnavailable``. Inside a
    successful batch, a token without a usable price maps to ``None``; it is
    never defaulted to zero or to a previous value.

    Example:
        async with httpx.AsyncClient() as http:
            client = JupiterPriceClient(http=http)
            prices = await client.get_prices({SOL_MINT, USDC_MINT})
    """

    http: Optional[httpx.AsyncClient] = None
    price_url: str = DEFAULT_PRICE_URL
    api_key: Optional[str] = None
    timeout: float = 10.0
    rate_limit_config: RateLimitConfig = field(default_factory=RateLimitConfig)

    _rate_limiter: RateLimiter = field(default=None, init=False, repr=False)
    _owns_http: bool = field(default=False, init=False, repr=False)

    def __post_init__(self):
        """Create the HTTP client when none was injected."""
        if self.http is None:
            self.http = httpx.AsyncClient(timeout=self.timeout)
            self._owns_http = True
        self._rate_limiter = RateLimiter(config=self.rate_limit_config)

    async def aclose(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_http:
            await self.http.aclose()

    async def get_prices(self, token_ids: Iterable[str]) -> dict[str, Optional[float]]:
        """Fetch USD prices for a set of token mints.

        Args:
            token_ids: Token mint addresses

        Returns:
            Mapping of every requested mint to its price, or None if the API
            had no usable price for it

        Raises:
            PriceUnavailable: If the request as a whole failed
        """
        ids = sorted(set(token_ids))
        if not ids:
            return {}

        await self._rate_limiter.acquire()
        headers = {"x-api-key": self.api_key} if self.api_key else None

        try:
            response = await self.http.get(
                self.price_url, params={"ids": ",".join(ids)}, headers=headers,
            )
        except httpx.HTTPError as e:
            raise PriceUnavailable(f"Price request failed: {e}", token_ids=set(ids)) from e

        if response.status_code == 429:
            self._rate_limiter.record_rate_limit_hit()
            raise PriceUnavailable("Price API rate limited (429)", token_ids=set(ids))
        self._rate_limiter.record_success()

        if response.status_code >= 400:
            raise PriceUnavailable(
                f"Price API returned {response.status_code}", token_ids=set(ids),
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise PriceUnavailable("Price API returned invalid JSON", token_ids=set(ids)) from e

        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, dict):
            raise PriceUnavailable("Price API response has no data", token_ids=set(ids))

        prices = {token_id: self._parse_price(data.get(token_id)) for token_id in ids}

        missing = [token_id for token_id, price in prices.items() if price is None]
        if missing:
            logger.warning(f"No price for {len(missing)} token(s): {', '.join(t[:8] for t in missing)}")
        logger.debug(f"Fetched prices for {len(ids) - len(missing)}/{len(ids)} tokens")
        return prices

    @staticmethod
    def _parse_price(entry) -> Optional[float]:
        """Extract a positive finite price from one data entry."""
        if not isinstance(entry, dict):
            return None
        try:
            price = float(entry.get("price"))
        except (TypeError, ValueError):
            return None
        if not math.isfinite(price) or price <= 0:
            return None
        return price
