from __future__ import annotations

import logging
import random
from typing import Any, Optional

from pydantic import ValidationError

from liquiditydesk.cache import RequestCache
from liquiditydesk.errors import ProviderError
from liquiditydesk.providers.base import ProviderAdapter, pick_number, split_symbol
from liquiditydesk.providers.http import build_url
from liquiditydesk.schemas.provider import (
    AlphaVantageDailyPayload,
    AlphaVantageIntradayPayload,
    AlphaVantagePayload,
)
from liquiditydesk.schemas.snapshot import SnapshotFragment

logger = logging.getLogger(__name__)

_QUERY_PATH = "/query"
_MINUTES_PER_DAY = 1440


def _latest_row(time_series: dict[str, dict[str, Any]]) -> dict[str, Any]:
    # Keys are "YYYY-MM-DD[ HH:MM:SS]" so the lexical maximum is the newest bar.
    return time_series[max(time_series)]


class _AlphaVantageAdapter(ProviderAdapter):
    function = ""
    payload_model: type[AlphaVantagePayload] = AlphaVantagePayload

    def __init__(
        self,
        cache: RequestCache,
        ttl_ms: int,
        api_key: str | None,
        rng: random.Random | None = None,
        base_url: str = "https://www.alphavantage.co",
    ) -> None:
        super().__init__(cache, ttl_ms, rng)
        self._api_key = api_key
        self._base_url = base_url

    def query_params(self, symbol: str) -> dict[str, str]:
        base, quote = split_symbol(symbol)
        return {"function": self.function, "symbol": base, "market": quote}

    async def _load(self, symbol: str) -> Any:
        if not self._api_key:
            raise ProviderError(self.source, symbol, "missing_key")

        url = build_url(
            self._base_url, _QUERY_PATH, {**self.query_params(symbol), "apikey": self._api_key}
        )
        raw = await self._get_payload(url, symbol)
        try:
            payload = self.payload_model.model_validate(raw)
        except ValidationError as exc:
            raise self._reject(symbol, f"unexpected payload: {exc.error_count()} errors") from exc
        return payload


class AlphaVantageIntradayAdapter(_AlphaVantageAdapter):
    source = "alphavantage"
    function = "CRYPTO_INTRADAY"
    payload_model = AlphaVantageIntradayPayload
    spread_factor = 0.0005
    size_factor = 0.01

    def query_params(self, symbol: str) -> dict[str, str]:
        return {**super().query_params(symbol), "interval": "1min"}

    async def _fetch(self, symbol: str) -> SnapshotFragment:
        payload = await self._load(symbol)
        if not payload.time_series:
            raise self._reject(symbol, payload.upstream_error or "no time series data")

        row = _latest_row(payload.time_series)
        price = pick_number(row, "4. close", lambda key: "close" in key)
        if price is None or price <= 0:
            raise self._reject(symbol, "invalid close price")
        volume = pick_number(row, "5. volume", lambda key: "volume" in key)
        if volume is None or volume < 0:
            raise self._reject(symbol, "invalid volume")

        # Only one-minute volume is available; scale it to a rough daily figure.
        return self._build_fragment(
            symbol, price, size_volume=volume, volume24h=volume * _MINUTES_PER_DAY
        )


class AlphaVantageDailyAdapter(_AlphaVantageAdapter):
    """Daily digital-currency series.

    Unlike every other adapter, a response without a time series yields a
    zeroed placeholder tagged ``alphavantage-daily-error`` instead of failing,
    which ends the fallback chain at this provider.
    """

    source = "alphavantage-daily"
    error_source = "alphavantage-daily-error"
    function = "DIGITAL_CURRENCY_DAILY"
    payload_model = AlphaVantageDailyPayload
    spread_factor = 0.001
    size_factor = 0.0001

    def placeholder(self, symbol: str) -> SnapshotFragment:
        return SnapshotFragment(
            symbol=symbol,
            bid_price=0.0,
            ask_price=0.0,
            bid_size=0.0,
            ask_size=0.0,
            volume24h=0.0,
            source=self.error_source,
        )

    async def _fetch(self, symbol: str) -> SnapshotFragment:
        _, quote = split_symbol(symbol)
        payload = await self._load(symbol)
        if not payload.time_series:
            logger.warning(
                "Alpha Vantage returned no daily series for %s: %s",
                symbol,
                payload.upstream_error or "empty response",
            )
            self._cache.invalidate(self.cache_key(symbol))
            return self.placeholder(symbol)

        row = _latest_row(payload.time_series)
        price = pick_number(
            row, f"4a. close ({quote})", lambda key: "close" in key and quote in key
        )
        if price is None:
            # Newer responses drop the currency suffix from the field names.
            price = pick_number(row, "4. close", lambda key: False)
        if price is None or price <= 0:
            raise self._reject(symbol, "invalid close price")

        volume = pick_number(row, "5. volume", lambda key: "volume" in key)
        if volume is None or volume < 0:
            raise self._reject(symbol, "invalid volume")

        market_cap: Optional[float] = pick_number(
            row, "6. market cap (USD)", lambda key: "market cap" in key
        )
        return self._build_fragment(
            symbol, price, size_volume=volume, volume24h=volume, market_cap=market_cap
        )
