from __future__ import annotations

import random
from typing import Optional
from urllib.parse import quote

from pydantic import ValidationError

from liquiditydesk.cache import RequestCache
from liquiditydesk.providers.base import ProviderAdapter, split_symbol
from liquiditydesk.providers.http import build_url
from liquiditydesk.schemas.provider import YahooChartPayload, YahooChartResult
from liquiditydesk.schemas.snapshot import SnapshotFragment


_CHART_PATH = "/v8/finance/chart/{symbol}"


def to_yahoo_symbol(symbol: str) -> str:
    base, quote_currency = split_symbol(symbol)
    return f"{base}-{quote_currency}"


def _last_bar_volume(result: YahooChartResult) -> Optional[float]:
    for indicator in result.indicators.quote:
        for volume in reversed(indicator.volume):
            if volume is not None:
                return volume
    return None


class YahooFinanceAdapter(ProviderAdapter):
    source = "yahoo-finance"
    spread_factor = 0.0005
    size_factor = 0.000001

    def __init__(
        self,
        cache: RequestCache,
        ttl_ms: int,
        rng: random.Random | None = None,
        base_url: str = "https://query1.finance.yahoo.com",
    ) -> None:
        super().__init__(cache, ttl_ms, rng)
        self._base_url = base_url

    def chart_url(self, symbol: str) -> str:
        path = _CHART_PATH.format(symbol=quote(to_yahoo_symbol(symbol)))
        return build_url(self._base_url, path, {"interval": "1d", "range": "1d"})

    async def _fetch(self, symbol: str) -> SnapshotFragment:
        raw = await self._get_payload(self.chart_url(symbol), symbol)
        try:
            payload = YahooChartPayload.model_validate(raw)
        except ValidationError as exc:
            raise self._reject(symbol, f"unexpected chart payload: {exc.error_count()} errors") from exc

        chart = payload.chart
        if chart.error or not chart.result:
            detail = (chart.error or {}).get("description", "empty chart result")
            raise self._reject(symbol, str(detail))

        result = chart.result[0]
        meta = result.meta
        price = meta.regular_market_price
        if price is None:
            price = meta.chart_previous_close
        if price is None or price <= 0:
            raise self._reject(symbol, "no usable market price")

        volume = meta.regular_market_volume
        if volume is None:
            volume = _last_bar_volume(result)
        if volume is None or volume < 0:
            raise self._reject(symbol, "no usable market volume")

        return self._build_fragment(symbol, price, size_volume=volume, volume24h=volume)
