from __future__ import annotations

from typing import Sequence

from fastapi import APIRouter, Depends, HTTPException, Query, status

from liquiditydesk.errors import TransportError
from liquiditydesk.schemas.market import (
    ComparisonEntry,
    DepthSummary,
    DepthViewLevel,
    MarketDepthResponse,
)
from liquiditydesk.schemas.snapshot import DepthLevel, NormalizedSnapshot
from liquiditydesk.schemas.trade import Trade
from liquiditydesk.services import Services, get_services

router = APIRouter()


def _require_symbol(services: Services, symbol: str) -> None:
    if not services.store.has_symbol(symbol):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"message": f"Unknown symbol {symbol}."},
        )


def _build_comparison(snapshots: Sequence[NormalizedSnapshot]) -> list[ComparisonEntry]:
    entries = [
        ComparisonEntry(
            symbol=snapshot.symbol,
            source=snapshot.source,
            timestamp=snapshot.timestamp,
            bid_price=snapshot.bid_price,
            ask_price=snapshot.ask_price,
            volume24h=snapshot.volume24h,
            liquidity_score=snapshot.liquidity_score or 0,
            spread_percentage=snapshot.spread_percentage or 0.0,
            market_depth_ratio=(
                snapshot.market_depth_ratio if snapshot.market_depth_ratio is not None else 1.0
            ),
            volume_to_mcap_ratio=snapshot.volume_to_mcap_ratio,
        )
        for snapshot in snapshots
        if not snapshot.is_error
    ]
    entries.sort(key=lambda entry: entry.liquidity_score, reverse=True)
    return entries


def _accumulate(levels: Sequence[DepthLevel]) -> tuple[list[DepthViewLevel], float, float]:
    running_size = 0.0
    running_value = 0.0
    view: list[DepthViewLevel] = []
    for level in levels:
        value = level.price * level.size
        running_size += level.size
        running_value += value
        view.append(
            DepthViewLevel(price=level.price, size=level.size, total=running_size, value=value)
        )
    return view, running_size, running_value


def _build_depth_view(snapshot: NormalizedSnapshot) -> MarketDepthResponse | None:
    depth = snapshot.depth_levels
    if depth is None or (not depth.bids and not depth.asks):
        return None

    bids, bid_sum, bid_value = _accumulate(depth.bids)
    asks, ask_sum, ask_value = _accumulate(depth.asks)
    value_total = bid_value + ask_value
    summary = DepthSummary(
        bid_sum=bid_sum,
        ask_sum=ask_sum,
        total_depth=bid_sum + ask_sum,
        bid_ask_ratio=bid_sum / ask_sum if ask_sum > 0 else 1.0,
        bid_value=bid_value,
        ask_value=ask_value,
        value_imbalance=(bid_value - ask_value) / value_total if value_total > 0 else 0.0,
    )
    return MarketDepthResponse(
        symbol=snapshot.symbol,
        timestamp=snapshot.timestamp,
        source=snapshot.source,
        bids=bids,
        asks=asks,
        summary=summary,
    )


@router.get("/health")
def health() -> dict:
    return {"status": "ok"}


@router.get("/symbols", response_model=list[str])
def list_symbols(services: Services = Depends(get_services)) -> list[str]:
    return services.store.get_symbols()


@router.get(
    "/liquidity/{symbol:path}",
    response_model=NormalizedSnapshot,
    response_model_exclude_none=True,
)
async def get_liquidity(
    symbol: str, services: Services = Depends(get_services)
) -> NormalizedSnapshot:
    _require_symbol(services, symbol)
    snapshot = services.store.get_snapshot(symbol)
    if snapshot is not None:
        return snapshot

    # Nothing polled yet: fetch once on demand and keep the result.
    try:
        snapshot = await services.aggregator.fetch_all_data_for_symbol(symbol)
    except Exception as exc:
        raise TransportError("Error fetching liquidity data") from exc
    services.store.save_snapshot(snapshot)
    return snapshot


@router.get("/trades/{symbol:path}", response_model=list[Trade])
def get_trades(
    symbol: str,
    limit: int | None = Query(default=None, ge=0),
    services: Services = Depends(get_services),
) -> list[Trade]:
    _require_symbol(services, symbol)
    return services.store.get_recent_trades(symbol, limit)


@router.get(
    "/market/comparison",
    response_model=list[ComparisonEntry],
    response_model_exclude_none=True,
)
def market_comparison(services: Services = Depends(get_services)) -> list[ComparisonEntry]:
    return _build_comparison(services.store.latest_snapshots())


@router.get("/market/depth/{symbol:path}", response_model=MarketDepthResponse)
def market_depth(
    symbol: str, services: Services = Depends(get_services)
) -> MarketDepthResponse:
    _require_symbol(services, symbol)
    snapshot = services.store.get_snapshot(symbol)
    view = _build_depth_view(snapshot) if snapshot is not None else None
    if view is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"message": f"No depth data available for {symbol}."},
        )
    return view
