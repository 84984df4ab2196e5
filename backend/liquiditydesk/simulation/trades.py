from __future__ import annotations

import random
import time
from typing import Callable, Protocol

from liquiditydesk.schemas.trade import Trade

MIN_TRADE_SIZE = 0.01
# Trades print within +/- this fraction of the reference price.
PRICE_JITTER = 0.001


class TradeSource(Protocol):
    def simulate(self, symbol: str, current_price: float) -> Trade: ...


class TradeSimulator:
    """Stand-in for a real trade feed: invents one plausible print per call."""

    def __init__(
        self,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._rng = rng or random.Random()
        self._clock = clock

    def simulate(self, symbol: str, current_price: float) -> Trade:
        is_buy = self._rng.random() > 0.5
        size_variation = self._rng.random() * 2 - 1
        price_variation = (self._rng.random() * 2 * PRICE_JITTER - PRICE_JITTER) * current_price
        return Trade(
            symbol=symbol,
            timestamp=int(self._clock() * 1000),
            price=current_price + price_variation,
            size=max(MIN_TRADE_SIZE, self._rng.random() * 2 + size_variation),
            is_buyer_maker=not is_buy,
        )
