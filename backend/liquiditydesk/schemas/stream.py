from __future__ import annotations

from typing import Literal, Union

from liquiditydesk.schemas.snapshot import CamelModel, NormalizedSnapshot
from liquiditydesk.schemas.trade import Trade


class StreamError(CamelModel):
    message: str


class StreamMessage(CamelModel):
    type: Literal["snapshot", "trade", "error"]
    data: Union[NormalizedSnapshot, Trade, StreamError]

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)


def snapshot_message(snapshot: NormalizedSnapshot) -> StreamMessage:
    return StreamMessage(type="snapshot", data=snapshot)


def trade_message(trade: Trade) -> StreamMessage:
    return StreamMessage(type="trade", data=trade)
