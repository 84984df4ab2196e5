"""Raw response shapes of the upstream market-data providers.

Each provider gets its own model; mapping one of these into a
``SnapshotFragment`` is the job of the matching adapter in
``liquiditydesk.providers``.
"""

from __future__ import annotations

import math
from typing import Annotated, Any, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field


def parse_number(value: Any) -> Optional[float]:
    """Return ``value`` as a finite float, or None when it is not one."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


LenientFloat = Annotated[Optional[float], BeforeValidator(parse_number)]


class YahooChartMeta(BaseModel):
    model_config = ConfigDict(extra="ignore")

    symbol: Optional[str] = None
    currency: Optional[str] = None
    regular_market_price: LenientFloat = Field(default=None, alias="regularMarketPrice")
    regular_market_volume: LenientFloat = Field(default=None, alias="regularMarketVolume")
    chart_previous_close: LenientFloat = Field(default=None, alias="chartPreviousClose")


class YahooQuoteIndicator(BaseModel):
    model_config = ConfigDict(extra="ignore")

    volume: list[LenientFloat] = Field(default_factory=list)


class YahooIndicators(BaseModel):
    model_config = ConfigDict(extra="ignore")

    quote: list[YahooQuoteIndicator] = Field(default_factory=list)


class YahooChartResult(BaseModel):
    model_config = ConfigDict(extra="ignore")

    meta: YahooChartMeta
    indicators: YahooIndicators = Field(default_factory=YahooIndicators)


class YahooChart(BaseModel):
    model_config = ConfigDict(extra="ignore")

    result: Optional[list[YahooChartResult]] = None
    error: Optional[dict[str, Any]] = None


class YahooChartPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    chart: YahooChart


class AlphaVantagePayload(BaseModel):
    """Fields every Alpha Vantage response may carry instead of data."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    note: Optional[str] = Field(default=None, alias="Note")
    information: Optional[str] = Field(default=None, alias="Information")
    error_message: Optional[str] = Field(default=None, alias="Error Message")

    @property
    def upstream_error(self) -> Optional[str]:
        return self.error_message or self.note or self.information


class AlphaVantageIntradayPayload(AlphaVantagePayload):
    time_series: Optional[dict[str, dict[str, Any]]] = Field(
        default=None, alias="Time Series Crypto (1min)"
    )


class AlphaVantageDailyPayload(AlphaVantagePayload):
    time_series: Optional[dict[str, dict[str, Any]]] = Field(
        default=None, alias="Time Series (Digital Currency Daily)"
    )
