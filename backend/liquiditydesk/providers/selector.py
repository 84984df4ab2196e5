from __future__ import annotations

import asyncio
import logging
import random
from typing import Sequence

from liquiditydesk.cache import RequestCache
from liquiditydesk.config.settings import Settings
from liquiditydesk.errors import AllProvidersFailed, ProviderError
from liquiditydesk.orderbook.synthesizer import OrderBookSynthesizer
from liquiditydesk.providers.alphavantage import (
    AlphaVantageDailyAdapter,
    AlphaVantageIntradayAdapter,
)
from liquiditydesk.providers.base import ProviderAdapter
from liquiditydesk.providers.yahoo import YahooFinanceAdapter
from liquiditydesk.schemas.snapshot import (
    NormalizedSnapshot,
    SnapshotFragment,
    is_error_source,
    zeroed_snapshot,
)
from liquiditydesk.scoring import liquidity

logger = logging.getLogger(__name__)


def build_adapters(
    settings: Settings, cache: RequestCache, rng: random.Random | None = None
) -> list[ProviderAdapter]:
    """Instantiate ``settings.provider_chain`` in priority order."""
    providers = settings.providers
    ttls = settings.cache_ttls
    factories = {
        YahooFinanceAdapter.source: lambda: YahooFinanceAdapter(
            cache, ttls.yahoo_ms, rng=rng, base_url=providers.yahoo_base_url
        ),
        AlphaVantageIntradayAdapter.source: lambda: AlphaVantageIntradayAdapter(
            cache,
            ttls.alphavantage_intraday_ms,
            api_key=providers.alphavantage_api_key,
            rng=rng,
            base_url=providers.alphavantage_base_url,
        ),
        AlphaVantageDailyAdapter.source: lambda: AlphaVantageDailyAdapter(
            cache,
            ttls.alphavantage_daily_ms,
            api_key=providers.alphavantage_api_key,
            rng=rng,
            base_url=providers.alphavantage_base_url,
        ),
    }
    adapters: list[ProviderAdapter] = []
    for name in settings.provider_chain:
        factory = factories.get(name)
        if factory is None:
            raise ValueError(f"unknown provider {name!r}; expected one of {sorted(factories)}")
        adapters.append(factory())
    return adapters


class FallbackAggregator:
    """Turns an ordered provider chain into one enriched snapshot per symbol."""

    def __init__(
        self,
        adapters: Sequence[ProviderAdapter],
        synthesizer: OrderBookSynthesizer | None = None,
    ) -> None:
        self._adapters = list(adapters)
        self._synthesizer = synthesizer or OrderBookSynthesizer()
        self._in_flight: dict[str, asyncio.Future[NormalizedSnapshot]] = {}

    async def fetch_all_data_for_symbol(self, symbol: str) -> NormalizedSnapshot:
        """Never raises for provider trouble; failures come back as an ``error`` snapshot.

        Concurrent callers for the same symbol share one upstream round.
        """
        task = self._in_flight.get(symbol)
        if task is None:
            task = asyncio.ensure_future(self._aggregate(symbol))
            self._in_flight[symbol] = task
            task.add_done_callback(lambda done: self._forget(symbol, done))
        return await asyncio.shield(task)

    def _forget(self, symbol: str, task: asyncio.Future[NormalizedSnapshot]) -> None:
        if self._in_flight.get(symbol) is task:
            del self._in_flight[symbol]

    async def _aggregate(self, symbol: str) -> NormalizedSnapshot:
        try:
            fragment = await self._first_success(symbol)
        except AllProvidersFailed as exc:
            logger.error("%s", exc)
            return zeroed_snapshot(symbol)
        return self.enrich(fragment)

    async def _first_success(self, symbol: str) -> SnapshotFragment:
        errors: list[ProviderError] = []
        for adapter in self._adapters:
            try:
                return await adapter.fetch(symbol)
            except ProviderError as exc:
                logger.warning("%s; trying next provider", exc)
                errors.append(exc)
        raise AllProvidersFailed(symbol, errors)

    def enrich(self, fragment: SnapshotFragment) -> NormalizedSnapshot:
        if is_error_source(fragment.source):
            # Placeholder quotes carry no book worth synthesizing.
            return zeroed_snapshot(fragment.symbol, source=fragment.source)

        depth_levels = self._synthesizer.generate(
            fragment.bid_price, fragment.ask_price, fragment.bid_size, fragment.ask_size
        )
        price = (fragment.bid_price + fragment.ask_price) / 2
        metrics = liquidity.compute(
            price,
            fragment.bid_price,
            fragment.ask_price,
            fragment.bid_size,
            fragment.ask_size,
            fragment.volume24h,
            market_cap=fragment.market_cap,
            depth_levels=depth_levels,
        )
        return NormalizedSnapshot(
            symbol=fragment.symbol,
            bid_price=fragment.bid_price,
            ask_price=fragment.ask_price,
            bid_size=fragment.bid_size,
            ask_size=fragment.ask_size,
            volume24h=fragment.volume24h,
            source=fragment.source,
            depth_levels=depth_levels,
            **metrics.model_dump(),
        )
