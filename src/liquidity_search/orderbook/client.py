"""Orderbook (CoW Protocol) client used to size two-sided pair liquidity."""

from __future__ import annotations

import asyncio
import time
from typing import Any, Dict, Iterable, List, Optional, Union

import requests
from tenacity import RetryError, Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..config.settings import OrderbookConfig, get_app_config
from ..datalake.schemas import LiquidityData, PairLiquidity
from ..monitoring.logger import get_logger
from ..monitoring.metrics import METRICS

DEFAULT_HEADERS = {"User-Agent": "liquidity-search/0.1", "Accept": "application/json"}


def calculate_liquidity(orders: Iterable[Dict[str, Any]]) -> LiquidityData:
    """Sum ``sellAmount`` over open orders with arbitrary precision."""

    total = 0
    count = 0
    for order in orders:
        total += int(order.get("sellAmount") or "0")
        count += 1
    return LiquidityData(total_liquidity=total, order_count=count, direction="sell")


def format_liquidity(amount: Union[int, str], decimals: int = 6) -> str:
    """Render a raw integer amount with thousands separators.

    Trailing zeros of the fractional part are trimmed and a zero fraction is
    omitted entirely: ``format_liquidity(1234500000) == "1,234.5"``.
    """

    value = int(amount)
    sign = "-" if value < 0 else ""
    whole, fraction = divmod(abs(value), 10**decimals)
    rendered = f"{sign}{whole:,}"
    if fraction == 0:
        return rendered
    digits = str(fraction).rjust(decimals, "0").rstrip("0")
    return f"{rendered}.{digits}"


class OrderbookClient:
    """Fetches open sell orders for a token pair.

    Connection errors and timeouts are retried a bounded number of times;
    every other failure yields an empty order list.
    """

    def __init__(
        self,
        config: Optional[OrderbookConfig] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._config = config or get_app_config().orderbook
        self._session = session or requests.Session()
        self._logger = get_logger(__name__)

    def _retrying(self) -> Retrying:
        return Retrying(
            wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
            stop=stop_after_attempt(self._config.retry_attempts),
            retry=retry_if_exception_type((requests.ConnectionError, requests.Timeout)),
        )

    def _get(self, path: str, params: Dict[str, str]) -> Any:
        url = f"{str(self._config.base_url).rstrip('/')}{path}"
        response = self._session.get(
            url,
            params=params,
            headers=DEFAULT_HEADERS,
            timeout=self._config.http_timeout,
        )
        response.raise_for_status()
        return response.json()

    def fetch_orders(self, sell_token: str, buy_token: str) -> List[Dict[str, Any]]:
        params = {"sellToken": sell_token, "buyToken": buy_token}
        METRICS.increment("orderbook.requests")
        try:
            payload = self._retrying()(self._get, "/orders", params)
        except (RetryError, requests.RequestException, ValueError) as exc:
            METRICS.increment("orderbook.errors")
            self._logger.warning(
                "Failed to fetch orders", extra={"sell_token": sell_token, "buy_token": buy_token, "error": str(exc)}
            )
            return []
        if not isinstance(payload, list):
            return []
        return [order for order in payload if isinstance(order, dict)]

    async def fetch_pair_liquidity(self, token_a: str, token_b: str) -> Optional[PairLiquidity]:
        """Both directions of the pair, fetched concurrently. ``None`` on failure."""

        try:
            orders_a_to_b, orders_b_to_a = await asyncio.gather(
                asyncio.to_thread(self.fetch_orders, token_a, token_b),
                asyncio.to_thread(self.fetch_orders, token_b, token_a),
            )
            return PairLiquidity(
                token_a=token_a,
                token_b=token_b,
                liquidity_a_to_b=calculate_liquidity(orders_a_to_b),
                liquidity_b_to_a=calculate_liquidity(orders_b_to_a),
                timestamp=int(time.time() * 1000),
            )
        except (ValueError, TypeError) as exc:
            self._logger.warning("Failed to size pair liquidity for %s/%s: %s", token_a, token_b, exc)
            return None


__all__ = ["OrderbookClient", "calculate_liquidity", "format_liquidity"]
