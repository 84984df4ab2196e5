from __future__ import annotations

import asyncio
import enum
import logging
from typing import Awaitable, Callable, Sequence

from liquiditydesk.providers.selector import FallbackAggregator
from liquiditydesk.schemas.stream import snapshot_message, trade_message
from liquiditydesk.simulation.trades import TradeSource
from liquiditydesk.store import SymbolStore
from liquiditydesk.streaming.hub import SubscriberHub

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class BroadcasterState(str, enum.Enum):
    IDLE = "idle"
    CYCLE_RUNNING = "cycle-running"


class PollingBroadcaster:
    """Fetch every symbol, update the store, tell the subscribers; repeat.

    The loop re-arms after ``interval_seconds`` whatever the outcome of a
    cycle, until ``stop`` cancels it.
    """

    def __init__(
        self,
        symbols: Sequence[str],
        aggregator: FallbackAggregator,
        store: SymbolStore,
        trades: TradeSource,
        hub: SubscriberHub,
        interval_seconds: float = 5.0,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._symbols = list(symbols)
        self._aggregator = aggregator
        self._store = store
        self._trades = trades
        self._hub = hub
        self.interval_seconds = interval_seconds
        self._sleep = sleep
        self._task: asyncio.Task[None] | None = None
        self.state = BroadcasterState.IDLE
        self.cycles = 0

    async def process_symbol(self, symbol: str) -> None:
        snapshot = await self._aggregator.fetch_all_data_for_symbol(symbol)
        self._store.save_snapshot(snapshot)

        if snapshot.bid_price > 0:
            trade = self._trades.simulate(symbol, snapshot.bid_price)
            self._store.save_trade(trade)
            self._hub.publish(trade_message(trade))

        self._hub.publish(snapshot_message(snapshot))

    async def _process_isolated(self, symbol: str) -> None:
        try:
            await self.process_symbol(symbol)
        except Exception:
            logger.exception("Error processing %s", symbol)

    async def run_cycle(self) -> None:
        self.state = BroadcasterState.CYCLE_RUNNING
        try:
            await asyncio.gather(*(self._process_isolated(symbol) for symbol in self._symbols))
        finally:
            self.state = BroadcasterState.IDLE
            self.cycles += 1

    async def run_forever(self) -> None:
        while True:
            try:
                await self.run_cycle()
            except Exception:
                logger.exception("Polling cycle failed")
            await self._sleep(self.interval_seconds)

    def start(self) -> asyncio.Task[None]:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run_forever(), name="polling-broadcaster")
        return self._task

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
