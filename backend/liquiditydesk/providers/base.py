from __future__ import annotations

import random
from typing import Any, Callable, Optional

from pydantic import ValidationError

from liquiditydesk.cache import RequestCache
from liquiditydesk.errors import ProviderError
from liquiditydesk.providers.http import FetchError
from liquiditydesk.schemas.provider import parse_number
from liquiditydesk.schemas.snapshot import SnapshotFragment, is_error_source


def split_symbol(symbol: str) -> tuple[str, str]:
    base, sep, quote = symbol.strip().upper().partition("/")
    if not sep or not base or not quote:
        raise ValueError(f"symbol must look like BASE/QUOTE, got {symbol!r}")
    return base, quote


def pick_number(
    row: dict[str, Any], field: str, alternative: Callable[[str], bool]
) -> Optional[float]:
    """Read ``field`` from ``row``; on a miss, try the first key matching ``alternative``."""
    value = parse_number(row.get(field))
    if value is not None:
        return value
    for key in row:
        if key != field and alternative(key):
            return parse_number(row[key])
    return None


class ProviderAdapter:
    """Fetches one symbol from one upstream source.

    Subclasses implement ``_fetch``; anything that goes wrong in there
    leaves ``fetch`` as a ``ProviderError``.
    """

    source = "provider"
    # Half-spread applied around the reference price.
    spread_factor = 0.0005
    # Fraction of volume used as the synthetic top-of-book size.
    size_factor = 0.01

    def __init__(self, cache: RequestCache, ttl_ms: int, rng: random.Random | None = None) -> None:
        self._cache = cache
        self._ttl_ms = ttl_ms
        self._rng = rng or random.Random()

    def cache_key(self, symbol: str) -> str:
        return f"{self.source}-{symbol}"

    async def fetch(self, symbol: str) -> SnapshotFragment:
        try:
            fragment = await self._fetch(symbol)
        except ProviderError:
            raise
        except FetchError as exc:
            raise ProviderError(self.source, symbol, exc.reason) from exc
        except (ValidationError, KeyError, TypeError, ValueError) as exc:
            raise ProviderError(self.source, symbol, f"unusable payload: {exc}") from exc
        except Exception as exc:
            raise ProviderError(self.source, symbol, f"unexpected failure: {exc!r}") from exc

        if not is_error_source(fragment.source) and (
            fragment.bid_price <= 0 or fragment.ask_price <= 0
        ):
            raise ProviderError(self.source, symbol, "non-positive quote")
        return fragment

    async def _fetch(self, symbol: str) -> SnapshotFragment:
        raise NotImplementedError

    async def _get_payload(self, url: str, symbol: str) -> Any:
        return await self._cache.get_or_fetch(url, self.cache_key(symbol), self._ttl_ms)

    def _reject(self, symbol: str, reason: str) -> ProviderError:
        # The payload was cached on the way in; an unusable one must not stick.
        self._cache.invalidate(self.cache_key(symbol))
        return ProviderError(self.source, symbol, reason)

    def _synthetic_size(self, volume: float) -> float:
        return volume * self.size_factor * (0.5 + self._rng.random() * 0.5)

    def _build_fragment(
        self,
        symbol: str,
        price: float,
        size_volume: float,
        volume24h: float,
        market_cap: Optional[float] = None,
    ) -> SnapshotFragment:
        return SnapshotFragment(
            symbol=symbol,
            bid_price=price * (1 - self.spread_factor),
            ask_price=price * (1 + self.spread_factor),
            bid_size=self._synthetic_size(size_volume),
            ask_size=self._synthetic_size(size_volume),
            volume24h=volume24h,
            source=self.source,
            market_cap=market_cap,
        )
