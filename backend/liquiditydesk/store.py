from __future__ import annotations

from collections import deque
from itertools import islice
from typing import Iterable

from liquiditydesk.schemas.snapshot import NormalizedSnapshot
from liquiditydesk.schemas.trade import Trade


class SymbolStore:
    """Latest snapshot and recent trades per symbol, held in process memory.

    Snapshots and trades are frozen models and every write is a single
    assignment, so readers always see either the old or the new value.
    """

    def __init__(
        self,
        symbols: Iterable[str],
        trade_history_limit: int = 100,
        default_trade_limit: int = 50,
    ) -> None:
        self._symbols = list(dict.fromkeys(symbols))
        self.trade_history_limit = trade_history_limit
        self.default_trade_limit = default_trade_limit
        self._snapshots: dict[str, NormalizedSnapshot] = {}
        self._trades: dict[str, deque[Trade]] = {}

    def get_symbols(self) -> list[str]:
        return list(self._symbols)

    def has_symbol(self, symbol: str) -> bool:
        return symbol in self._symbols

    def get_snapshot(self, symbol: str) -> NormalizedSnapshot | None:
        return self._snapshots.get(symbol)

    def save_snapshot(self, snapshot: NormalizedSnapshot) -> None:
        self._snapshots[snapshot.symbol] = snapshot

    def latest_snapshots(self) -> list[NormalizedSnapshot]:
        """Known snapshots in configured symbol order."""
        return [
            self._snapshots[symbol] for symbol in self._symbols if symbol in self._snapshots
        ]

    def get_recent_trades(self, symbol: str, limit: int | None = None) -> list[Trade]:
        if limit is None:
            limit = self.default_trade_limit
        limit = max(0, min(limit, self.trade_history_limit))
        return list(islice(self._trades.get(symbol, ()), limit))

    def save_trade(self, trade: Trade) -> None:
        history = self._trades.get(trade.symbol)
        if history is None:
            history = deque(maxlen=self.trade_history_limit)
            self._trades[trade.symbol] = history
        history.appendleft(trade)
