from __future__ import annotations

from pydantic import Field

from liquiditydesk.schemas.snapshot import CamelModel


class Trade(CamelModel):
    symbol: str
    timestamp: int
    price: float
    size: float = Field(gt=0)
    # True when the resting order was the bid, i.e. the aggressor sold.
    is_buyer_maker: bool
