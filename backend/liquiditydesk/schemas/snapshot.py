from __future__ import annotations

import time
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

ERROR_SOURCE = "error"


def now_ms() -> int:
    return int(time.time() * 1000)


def is_error_source(source: str) -> bool:
    """Error snapshots and provider placeholders carry no usable quote."""
    return source == ERROR_SOURCE or source.endswith("-error")


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )


class DepthLevel(CamelModel):
    price: float
    size: float
    total: Optional[float] = None


class DepthLevels(CamelModel):
    bids: list[DepthLevel] = Field(default_factory=list)
    asks: list[DepthLevel] = Field(default_factory=list)


class SlippageImpact(CamelModel):
    small: float = 0.0
    medium: float = 0.0
    large: float = 0.0


class LiquidityMetrics(CamelModel):
    liquidity_score: int
    market_depth_ratio: float
    spread_percentage: float
    slippage_impact: SlippageImpact
    volume_to_mcap_ratio: Optional[float] = None


class SnapshotFragment(CamelModel):
    """What a single provider adapter knows about a symbol."""

    symbol: str
    bid_price: float
    ask_price: float
    bid_size: float
    ask_size: float
    volume24h: float
    source: str
    market_cap: Optional[float] = None


class NormalizedSnapshot(CamelModel):
    symbol: str
    timestamp: int = Field(default_factory=now_ms)
    bid_price: float
    ask_price: float
    bid_size: float
    ask_size: float
    volume24h: float
    source: str
    depth_levels: Optional[DepthLevels] = None
    liquidity_score: Optional[int] = None
    market_depth_ratio: Optional[float] = None
    volume_to_mcap_ratio: Optional[float] = None
    spread_percentage: Optional[float] = None
    slippage_impact: Optional[SlippageImpact] = None

    @property
    def is_error(self) -> bool:
        return is_error_source(self.source)

    @property
    def mid_price(self) -> float:
        return (self.bid_price + self.ask_price) / 2


def zeroed_snapshot(symbol: str, source: str = ERROR_SOURCE) -> NormalizedSnapshot:
    return NormalizedSnapshot(
        symbol=symbol,
        bid_price=0.0,
        ask_price=0.0,
        bid_size=0.0,
        ask_size=0.0,
        volume24h=0.0,
        source=source,
        liquidity_score=0,
        market_depth_ratio=1.0,
        spread_percentage=0.0,
        slippage_impact=SlippageImpact(),
    )
