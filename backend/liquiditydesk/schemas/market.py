from __future__ import annotations

from typing import Optional

from pydantic import Field

from liquiditydesk.schemas.snapshot import CamelModel


class ComparisonEntry(CamelModel):
    symbol: str
    source: str
    timestamp: int
    bid_price: float
    ask_price: float
    volume24h: float
    liquidity_score: int = 0
    spread_percentage: float = 0.0
    market_depth_ratio: float = 1.0
    volume_to_mcap_ratio: Optional[float] = None


class DepthViewLevel(CamelModel):
    price: float
    size: float
    total: float
    value: float


class DepthSummary(CamelModel):
    bid_sum: float
    ask_sum: float
    total_depth: float
    bid_ask_ratio: float
    bid_value: float
    ask_value: float
    value_imbalance: float


class MarketDepthResponse(CamelModel):
    symbol: str
    timestamp: int
    source: str
    bids: list[DepthViewLevel] = Field(default_factory=list)
    asks: list[DepthViewLevel] = Field(default_factory=list)
    summary: DepthSummary
