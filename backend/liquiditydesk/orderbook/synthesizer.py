from __future__ import annotations

import random

from liquiditydesk.schemas.snapshot import DepthLevel, DepthLevels

# Price step between consecutive synthetic levels, as a fraction of the touch price.
BID_DECAY = 0.0005
ASK_DECAY = 0.0005
# Upper bound of the random extra offset added to every level.
PRICE_JITTER = 0.0001
# Each level further from the touch shows this much less size.
SIZE_DECAY = 0.08


class OrderBookSynthesizer:
    """Builds a synthetic order book around a two-sided quote.

    None of this is exchange data: providers only supply a reference price,
    so the levels exist to give the depth chart and the slippage estimate
    something plausible to work with.
    """

    def __init__(self, levels: int = 10, rng: random.Random | None = None) -> None:
        self.levels = levels
        self._rng = rng or random.Random()

    def _jitter(self) -> float:
        # (0, PRICE_JITTER] keeps the first level strictly off the touch.
        return PRICE_JITTER * (1.0 - self._rng.random())

    def _size(self, touch_size: float, index: int) -> float:
        decay = max(0.0, 1.0 - index * SIZE_DECAY)
        dampening = 0.8 + self._rng.random() * 0.4
        return max(0.0, touch_size * decay * dampening)

    def generate(
        self, bid_price: float, ask_price: float, bid_size: float, ask_size: float
    ) -> DepthLevels:
        bids = [
            DepthLevel(
                price=bid_price - (index * BID_DECAY + self._jitter()) * bid_price,
                size=self._size(bid_size, index),
            )
            for index in range(self.levels)
        ]
        asks = [
            DepthLevel(
                price=ask_price + (index * ASK_DECAY + self._jitter()) * ask_price,
                size=self._size(ask_size, index),
            )
            for index in range(self.levels)
        ]
        return DepthLevels(bids=bids, asks=asks)
