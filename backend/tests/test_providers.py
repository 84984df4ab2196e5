import asyncio
import random

import pytest

from liquiditydesk.cache import RequestCache
from liquiditydesk.config.settings import Settings
from liquiditydesk.errors import ProviderError
from liquiditydesk.providers.alphavantage import (
    AlphaVantageDailyAdapter,
    AlphaVantageIntradayAdapter,
)
from liquiditydesk.providers.http import FetchError, build_url
from liquiditydesk.providers.selector import build_adapters
from liquiditydesk.providers.yahoo import YahooFinanceAdapter, to_yahoo_symbol


def yahoo_chart(meta: dict, volumes: list | None = None) -> dict:
    return {
        "chart": {
            "result": [{"meta": meta, "indicators": {"quote": [{"volume": volumes or []}]}}],
            "error": None,
        }
    }


class StubFetcher:
    def __init__(self, payload=None, error: Exception | None = None) -> None:
        self.payload = payload
        self.error = error
        self.urls: list[str] = []

    async def __call__(self, url: str):
        self.urls.append(url)
        if self.error is not None:
            raise self.error
        return self.payload


def yahoo_adapter(fetcher: StubFetcher) -> YahooFinanceAdapter:
    return YahooFinanceAdapter(RequestCache(fetcher), 30_000, rng=random.Random(7))


def daily_adapter(fetcher: StubFetcher, api_key: str | None = "demo") -> AlphaVantageDailyAdapter:
    return AlphaVantageDailyAdapter(
        RequestCache(fetcher), 300_000, api_key=api_key, rng=random.Random(7)
    )


def intraday_adapter(
    fetcher: StubFetcher, api_key: str | None = "demo"
) -> AlphaVantageIntradayAdapter:
    return AlphaVantageIntradayAdapter(
        RequestCache(fetcher), 60_000, api_key=api_key, rng=random.Random(7)
    )


def test_symbol_mapping() -> None:
    assert to_yahoo_symbol("BTC/USD") == "BTC-USD"
    assert to_yahoo_symbol(" eth/usd ") == "ETH-USD"
    with pytest.raises(ValueError):
        to_yahoo_symbol("BTCUSD")


def test_build_url_encodes_params() -> None:
    url = build_url("https://www.alphavantage.co/", "/query", {"symbol": "BTC", "market": "USD"})
    assert url == "https://www.alphavantage.co/query?symbol=BTC&market=USD"


def test_yahoo_maps_chart_into_fragment() -> None:
    fetcher = StubFetcher(
        yahoo_chart({"regularMarketPrice": 50_000.0, "regularMarketVolume": 2_000_000_000})
    )
    adapter = yahoo_adapter(fetcher)

    fragment = asyncio.run(adapter.fetch("BTC/USD"))

    assert "/v8/finance/chart/BTC-USD" in fetcher.urls[0]
    assert fragment.source == "yahoo-finance"
    assert fragment.bid_price == pytest.approx(50_000 * 0.9995)
    assert fragment.ask_price == pytest.approx(50_000 * 1.0005)
    assert fragment.volume24h == 2_000_000_000
    # Sizes are synthetic: volume * 1e-6 * U(0.5, 1).
    for size in (fragment.bid_size, fragment.ask_size):
        assert 1_000 <= size <= 2_000


def test_yahoo_falls_back_to_alternative_fields() -> None:
    fetcher = StubFetcher(
        yahoo_chart({"regularMarketPrice": "n/a", "chartPreviousClose": 2_000.0}, [10.0, 25.0, None])
    )

    fragment = asyncio.run(yahoo_adapter(fetcher).fetch("ETH/USD"))

    assert fragment.bid_price < 2_000.0 < fragment.ask_price
    assert fragment.volume24h == 25.0


def test_yahoo_missing_price_is_provider_error_and_not_cached() -> None:
    fetcher = StubFetcher(yahoo_chart({"regularMarketVolume": 10}))
    adapter = yahoo_adapter(fetcher)

    for _ in range(2):
        with pytest.raises(ProviderError) as excinfo:
            asyncio.run(adapter.fetch("BTC/USD"))
        assert excinfo.value.provider == "yahoo-finance"

    assert len(fetcher.urls) == 2


def test_yahoo_chart_error_is_provider_error() -> None:
    payload = {"chart": {"result": None, "error": {"code": "Not Found", "description": "No data"}}}

    with pytest.raises(ProviderError, match="No data"):
        asyncio.run(yahoo_adapter(StubFetcher(payload)).fetch("BTC/USD"))


def test_transport_failure_becomes_provider_error() -> None:
    fetcher = StubFetcher(error=FetchError("https://example.test", "rate_limited", status=429))

    with pytest.raises(ProviderError) as excinfo:
        asyncio.run(yahoo_adapter(fetcher).fetch("BTC/USD"))

    assert excinfo.value.reason == "rate_limited"


def test_non_dict_payload_becomes_provider_error() -> None:
    with pytest.raises(ProviderError):
        asyncio.run(yahoo_adapter(StubFetcher(["unexpected"])).fetch("BTC/USD"))


def test_intraday_uses_latest_bar_and_scales_volume() -> None:
    fetcher = StubFetcher(
        {
            "Time Series Crypto (1min)": {
                "2024-01-01 00:00:00": {"4. close": "1999.0", "5. volume": "3"},
                "2024-01-01 00:01:00": {"4. close": "2000.5", "5. volume": "10"},
            }
        }
    )

    fragment = asyncio.run(intraday_adapter(fetcher).fetch("ETH/USD"))

    assert "function=CRYPTO_INTRADAY" in fetcher.urls[0]
    assert "symbol=ETH" in fetcher.urls[0]
    assert "market=USD" in fetcher.urls[0]
    assert fragment.source == "alphavantage"
    assert fragment.bid_price == pytest.approx(2000.5 * 0.9995)
    assert fragment.volume24h == pytest.approx(14_400)
    for size in (fragment.bid_size, fragment.ask_size):
        assert 0.05 <= size <= 0.1


def test_intraday_rate_limit_note_is_provider_error() -> None:
    fetcher = StubFetcher({"Note": "Thank you for using Alpha Vantage! Please slow down."})

    with pytest.raises(ProviderError, match="slow down"):
        asyncio.run(intraday_adapter(fetcher).fetch("BTC/USD"))


def test_missing_api_key_fails_without_network() -> None:
    fetcher = StubFetcher({})

    with pytest.raises(ProviderError) as excinfo:
        asyncio.run(intraday_adapter(fetcher, api_key=None).fetch("BTC/USD"))

    assert excinfo.value.reason == "missing_key"
    assert fetcher.urls == []


def test_daily_maps_close_volume_and_market_cap() -> None:
    fetcher = StubFetcher(
        {
            "Time Series (Digital Currency Daily)": {
                "2024-01-02": {
                    "4a. close (USD)": "50000",
                    "5. volume": "1000",
                    "6. market cap (USD)": "1000000",
                },
                "2024-01-01": {"4a. close (USD)": "1", "5. volume": "1"},
            }
        }
    )

    fragment = asyncio.run(daily_adapter(fetcher).fetch("BTC/USD"))

    assert fragment.source == "alphavantage-daily"
    assert fragment.bid_price == pytest.approx(49_950)
    assert fragment.ask_price == pytest.approx(50_050)
    assert fragment.volume24h == 1000
    assert fragment.market_cap == 1_000_000
    for size in (fragment.bid_size, fragment.ask_size):
        assert 0.05 <= size <= 0.1


def test_daily_tries_one_alternative_close_field() -> None:
    fetcher = StubFetcher(
        {
            "Time Series (Digital Currency Daily)": {
                "2024-01-02": {"4b. close (USD)": "42000", "5. volume": "10"},
            }
        }
    )

    fragment = asyncio.run(daily_adapter(fetcher).fetch("BTC/USD"))

    assert fragment.bid_price == pytest.approx(42_000 * 0.999)


def test_daily_unparseable_close_fails_instead_of_inventing_a_price() -> None:
    fetcher = StubFetcher(
        {
            "Time Series (Digital Currency Daily)": {
                "2024-01-02": {"4a. close (USD)": "abc", "5. volume": "10"},
            }
        }
    )

    with pytest.raises(ProviderError, match="invalid close price"):
        asyncio.run(daily_adapter(fetcher).fetch("BTC/USD"))


def test_daily_without_series_returns_zeroed_placeholder() -> None:
    fetcher = StubFetcher({"Information": "rate limit reached"})
    adapter = daily_adapter(fetcher)

    first = asyncio.run(adapter.fetch("BTC/USD"))
    asyncio.run(adapter.fetch("BTC/USD"))

    assert first.source == "alphavantage-daily-error"
    assert first.bid_price == first.ask_price == 0
    assert first.bid_size == first.ask_size == first.volume24h == 0
    # The placeholder is never served from cache.
    assert len(fetcher.urls) == 2


def test_cache_key_is_per_provider_and_symbol() -> None:
    adapter = yahoo_adapter(StubFetcher())
    assert adapter.cache_key("BTC/USD") == "yahoo-finance-BTC/USD"
    assert daily_adapter(StubFetcher()).cache_key("BTC/USD") == "alphavantage-daily-BTC/USD"


def test_build_adapters_follows_configured_chain() -> None:
    settings = Settings(provider_chain=["alphavantage", "yahoo-finance", "alphavantage-daily"])

    adapters = build_adapters(settings, RequestCache(StubFetcher()))

    assert [adapter.source for adapter in adapters] == [
        "alphavantage",
        "yahoo-finance",
        "alphavantage-daily",
    ]


def test_build_adapters_rejects_unknown_provider() -> None:
    settings = Settings(provider_chain=["yahoo-finance", "bloomberg"])

    with pytest.raises(ValueError, match="bloomberg"):
        build_adapters(settings, RequestCache(StubFetcher()))
