from __future__ import annotations

import random
from dataclasses import dataclass
from functools import partial

from fastapi import Request, WebSocket

from liquiditydesk.cache import MemoryCacheBackend, RedisCacheBackend, RequestCache
from liquiditydesk.config.settings import Settings
from liquiditydesk.orderbook.synthesizer import OrderBookSynthesizer
from liquiditydesk.providers.http import fetch_json
from liquiditydesk.providers.selector import FallbackAggregator, build_adapters
from liquiditydesk.simulation.trades import TradeSimulator
from liquiditydesk.store import SymbolStore
from liquiditydesk.streaming.broadcaster import PollingBroadcaster
from liquiditydesk.streaming.hub import SubscriberHub


@dataclass
class Services:
    """Every piece of mutable state the application owns."""

    settings: Settings
    cache: RequestCache
    store: SymbolStore
    hub: SubscriberHub
    aggregator: FallbackAggregator
    broadcaster: PollingBroadcaster


def build_services(settings: Settings) -> Services:
    rng = random.Random(settings.random_seed)
    if settings.redis_url:
        backend = RedisCacheBackend.from_url(settings.redis_url)
    else:
        backend = MemoryCacheBackend()
    cache = RequestCache(
        partial(fetch_json, timeout=settings.providers.fetch_timeout_seconds), backend
    )
    store = SymbolStore(
        settings.symbols,
        trade_history_limit=settings.trade_history_limit,
        default_trade_limit=settings.default_trade_limit,
    )
    hub = SubscriberHub(max_pending=settings.subscriber_queue_size)
    aggregator = FallbackAggregator(
        build_adapters(settings, cache, rng=rng),
        OrderBookSynthesizer(levels=settings.order_book_levels, rng=rng),
    )
    broadcaster = PollingBroadcaster(
        settings.symbols,
        aggregator,
        store,
        TradeSimulator(rng=rng),
        hub,
        interval_seconds=settings.poll_interval_seconds,
    )
    return Services(
        settings=settings,
        cache=cache,
        store=store,
        hub=hub,
        aggregator=aggregator,
        broadcaster=broadcaster,
    )


def get_services(request: Request) -> Services:
    """FastAPI dependency returning the services attached to the app."""
    return request.app.state.services


def get_ws_services(websocket: WebSocket) -> Services:
    return websocket.app.state.services
