"""Periodic two-sided liquidity polling for one selected token pair."""

from __future__ import annotations

import asyncio
from typing import Callable, Optional, Tuple

from ..config.settings import OrderbookConfig, get_app_config
from ..datalake.schemas import PairLiquidity
from ..ingestion.subgraphs import MAINNET_CHAIN_ID
from ..monitoring.logger import get_logger
from ..monitoring.metrics import METRICS
from .client import OrderbookClient

NO_DATA_MESSAGE = "No liquidity data available"
FETCH_FAILED_MESSAGE = "Failed to fetch liquidity data"


class OrderbookLiquidityMonitor:
    """Keeps ``liquidity`` fresh for the selected pair while on the orderbook's chain.

    One polling task at most. Any change to the pair, the chain, the refresh
    interval or the enabled flag cancels the current task before a new one is
    scheduled, so a retired pair never produces another fetch. Methods that
    reschedule must be called from the event loop thread.
    """

    def __init__(
        self,
        client: Optional[OrderbookClient] = None,
        chain_id: int = MAINNET_CHAIN_ID,
        *,
        config: Optional[OrderbookConfig] = None,
        refresh_interval: Optional[float] = None,
        enabled: bool = True,
        on_change: Optional[Callable[["OrderbookLiquidityMonitor"], None]] = None,
    ) -> None:
        self._config = config or get_app_config().orderbook
        self._client = client or OrderbookClient(self._config)
        self._chain_id = chain_id
        self._refresh_interval = (
            self._config.refresh_interval_seconds if refresh_interval is None else refresh_interval
        )
        self._enabled = enabled
        self._on_change = on_change
        self._token_a: Optional[str] = None
        self._token_b: Optional[str] = None
        self._task: Optional[asyncio.Task] = None
        self._logger = get_logger(__name__)
        self.liquidity: Optional[PairLiquidity] = None
        self.loading = False
        self.error: Optional[str] = None

    @property
    def is_mainnet(self) -> bool:
        return self._chain_id == self._config.chain_id

    @property
    def pair(self) -> Tuple[Optional[str], Optional[str]]:
        return self._token_a, self._token_b

    @property
    def refresh_interval(self) -> float:
        return self._refresh_interval

    @property
    def is_polling(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def active(self) -> bool:
        a, b = self._token_a, self._token_b
        if not (self._enabled and self.is_mainnet and a and b):
            return False
        return a.lower() != b.lower()

    def set_pair(self, token_a: Optional[str], token_b: Optional[str]) -> None:
        self._token_a = token_a or None
        self._token_b = token_b or None
        self._reschedule()

    def set_chain(self, chain_id: int) -> None:
        self._chain_id = chain_id
        self._reschedule()

    def set_refresh_interval(self, seconds: float) -> None:
        if seconds <= 0:
            raise ValueError("refresh interval must be positive")
        self._refresh_interval = seconds
        self._reschedule()

    def set_enabled(self, enabled: bool) -> None:
        self._enabled = enabled
        self._reschedule()

    async def refresh(self) -> Optional[PairLiquidity]:
        """Fetch once for the current pair and publish the outcome."""

        if not self.active:
            self._publish(None, None)
            return None
        key = (self._chain_id, self._token_a, self._token_b)
        self.loading = True
        self.error = None
        METRICS.increment("orderbook.polls")
        try:
            data = await self._client.fetch_pair_liquidity(self._token_a, self._token_b)
        except Exception:  # noqa: BLE001 - reported through ``error``
            self._logger.exception("Orderbook liquidity refresh failed")
            if key == (self._chain_id, self._token_a, self._token_b):
                self._publish(None, FETCH_FAILED_MESSAGE)
            return None
        finally:
            self.loading = False
        if key != (self._chain_id, self._token_a, self._token_b):
            # The pair changed while the fetch was in flight.
            return None
        self._publish(data, None if data is not None else NO_DATA_MESSAGE)
        return data

    async def aclose(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    def _reschedule(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
        if not self.active:
            self._publish(None, None)
            return
        self._task = asyncio.get_running_loop().create_task(self._poll())

    async def _poll(self) -> None:
        while True:
            await self.refresh()
            await asyncio.sleep(self._refresh_interval)

    def _publish(self, liquidity: Optional[PairLiquidity], error: Optional[str]) -> None:
        self.liquidity = liquidity
        self.error = error
        if self._on_change is not None:
            self._on_change(self)


__all__ = ["FETCH_FAILED_MESSAGE", "NO_DATA_MESSAGE", "OrderbookLiquidityMonitor"]
