from __future__ import annotations

import math
from typing import Optional, Sequence

from liquiditydesk.schemas.snapshot import (
    DepthLevel,
    DepthLevels,
    LiquidityMetrics,
    SlippageImpact,
)

# Order sizes probed for slippage, as fractions of 24h volume.
SLIPPAGE_TIERS = {"small": 0.001, "medium": 0.005, "large": 0.01}
# Multiples of the spread used when there is no book to walk.
SPREAD_SLIPPAGE_MULTIPLIERS = {"small": 0.5, "medium": 1.5, "large": 3.0}

SPREAD_WEIGHT = 40.0
VOLUME_WEIGHT = 40.0
DEPTH_WEIGHT = 20.0


def clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def _finite(value: Optional[float]) -> float:
    if value is None or not math.isfinite(value):
        return 0.0
    return value


def spread_percentage(price: float, bid_price: float, ask_price: float) -> float:
    if price <= 0:
        return 0.0
    return (ask_price - bid_price) / price * 100


def market_depth_ratio(bid_size: float, ask_size: float) -> float:
    if ask_size > 0:
        return bid_size / ask_size
    return 1.0


def volume_to_mcap_ratio(volume24h: float, market_cap: Optional[float]) -> Optional[float]:
    if market_cap is None or not market_cap > 0:
        return None
    return volume24h / market_cap * 100


def _walk_asks(asks: Sequence[DepthLevel], order_size: float) -> float:
    """Average fill price for buying ``order_size`` against ``asks``."""
    remaining = order_size
    cost = 0.0
    for level in sorted(asks, key=lambda level: level.price):
        if remaining <= 0:
            break
        take = min(remaining, max(0.0, level.size))
        cost += take * level.price
        remaining -= take
    if remaining > 0:
        # Book exhausted: the rest fills at the worst level seen.
        cost += remaining * max(level.price for level in asks)
    return cost / order_size


def slippage_impact(
    ask_price: float,
    volume24h: float,
    spread_pct: float,
    asks: Optional[Sequence[DepthLevel]] = None,
) -> SlippageImpact:
    if not asks:
        return SlippageImpact(
            **{
                tier: spread_pct * multiplier
                for tier, multiplier in SPREAD_SLIPPAGE_MULTIPLIERS.items()
            }
        )

    impact: dict[str, float] = {}
    for tier, fraction in SLIPPAGE_TIERS.items():
        order_size = volume24h * fraction
        if order_size <= 0 or ask_price <= 0:
            impact[tier] = 0.0
            continue
        average_price = _walk_asks(asks, order_size)
        impact[tier] = (average_price / ask_price - 1) * 100
    return SlippageImpact(**impact)


def liquidity_score(
    spread_pct: float,
    volume24h: float,
    depth_ratio: float,
    market_cap: Optional[float] = None,
) -> int:
    spread_component = max(0.0, SPREAD_WEIGHT - spread_pct * 100)

    if market_cap is not None and market_cap > 0:
        volume_component = min(VOLUME_WEIGHT, volume24h / market_cap * 40000)
    elif volume24h > 0:
        volume_component = min(VOLUME_WEIGHT, math.log10(volume24h) * 4)
    else:
        volume_component = 0.0

    depth_component = DEPTH_WEIGHT - abs(1 - depth_ratio) * 10

    total = spread_component + volume_component + depth_component
    if not math.isfinite(total):
        return 0
    return int(clamp(round(total)))


def compute(
    price: float,
    bid_price: float,
    ask_price: float,
    bid_size: float,
    ask_size: float,
    volume24h: float,
    market_cap: Optional[float] = None,
    depth_levels: Optional[DepthLevels] = None,
) -> LiquidityMetrics:
    price = _finite(price)
    bid_price = _finite(bid_price)
    ask_price = _finite(ask_price)
    bid_size = _finite(bid_size)
    ask_size = _finite(ask_size)
    volume24h = _finite(volume24h)

    spread_pct = spread_percentage(price, bid_price, ask_price)
    depth_ratio = market_depth_ratio(bid_size, ask_size)
    return LiquidityMetrics(
        liquidity_score=liquidity_score(spread_pct, volume24h, depth_ratio, market_cap),
        market_depth_ratio=depth_ratio,
        spread_percentage=spread_pct,
        slippage_impact=slippage_impact(
            ask_price, volume24h, spread_pct, depth_levels.asks if depth_levels else None
        ),
        volume_to_mcap_ratio=volume_to_mcap_ratio(volume24h, market_cap),
    )
