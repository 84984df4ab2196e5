import asyncio
import json
import random

import pytest

from liquiditydesk.schemas.snapshot import NormalizedSnapshot, zeroed_snapshot
from liquiditydesk.schemas.stream import StreamMessage, snapshot_message, trade_message
from liquiditydesk.simulation.trades import TradeSimulator
from liquiditydesk.store import SymbolStore
from liquiditydesk.streaming.broadcaster import BroadcasterState, PollingBroadcaster
from liquiditydesk.streaming.hub import SubscriberHub


def make_snapshot(symbol: str, bid: float) -> NormalizedSnapshot:
    return NormalizedSnapshot(
        symbol=symbol,
        bid_price=bid,
        ask_price=bid * 1.001,
        bid_size=1,
        ask_size=1,
        volume24h=1_000,
        source="yahoo-finance",
        liquidity_score=70,
    )


class FakeAggregator:
    def __init__(self, failing: set[str] | None = None, errored: set[str] | None = None) -> None:
        self.failing = failing or set()
        self.errored = errored or set()
        self.calls: list[str] = []

    async def fetch_all_data_for_symbol(self, symbol: str) -> NormalizedSnapshot:
        self.calls.append(symbol)
        if symbol in self.failing:
            raise RuntimeError(f"cannot process {symbol}")
        if symbol in self.errored:
            return zeroed_snapshot(symbol)
        return make_snapshot(symbol, 100.0)


class RecordingHub:
    def __init__(self) -> None:
        self.messages: list[StreamMessage] = []

    def publish(self, message: StreamMessage) -> None:
        self.messages.append(message)


class StopPolling(Exception):
    pass


def make_broadcaster(symbols, aggregator, hub=None, sleep=None, store=None):
    store = store or SymbolStore(symbols)
    hub = hub or RecordingHub()
    kwargs = {"sleep": sleep} if sleep is not None else {}
    broadcaster = PollingBroadcaster(
        symbols,
        aggregator,
        store,
        TradeSimulator(rng=random.Random(2)),
        hub,
        interval_seconds=5.0,
        **kwargs,
    )
    return broadcaster, store, hub


def test_cycle_updates_store_and_publishes() -> None:
    broadcaster, store, hub = make_broadcaster(["BTC/USD", "ETH/USD"], FakeAggregator())

    asyncio.run(broadcaster.run_cycle())

    assert store.get_snapshot("BTC/USD").bid_price == 100.0
    assert len(store.get_recent_trades("ETH/USD")) == 1
    by_symbol: dict[str, list[str]] = {}
    for message in hub.messages:
        by_symbol.setdefault(message.data.symbol, []).append(message.type)
    assert by_symbol == {"BTC/USD": ["trade", "snapshot"], "ETH/USD": ["trade", "snapshot"]}
    assert broadcaster.state is BroadcasterState.IDLE
    assert broadcaster.cycles == 1


def test_error_snapshot_is_published_without_a_trade() -> None:
    aggregator = FakeAggregator(errored={"BTC/USD"})
    broadcaster, store, hub = make_broadcaster(["BTC/USD"], aggregator)

    asyncio.run(broadcaster.run_cycle())

    assert [message.type for message in hub.messages] == ["snapshot"]
    assert store.get_snapshot("BTC/USD").source == "error"
    assert store.get_recent_trades("BTC/USD") == []


def test_failing_symbol_does_not_abort_the_cycle() -> None:
    aggregator = FakeAggregator(failing={"BAD/USD"})
    broadcaster, store, hub = make_broadcaster(["BTC/USD", "BAD/USD", "ETH/USD"], aggregator)

    asyncio.run(broadcaster.run_cycle())

    assert sorted(aggregator.calls) == ["BAD/USD", "BTC/USD", "ETH/USD"]
    assert store.get_snapshot("BAD/USD") is None
    assert store.get_snapshot("BTC/USD") is not None
    assert store.get_snapshot("ETH/USD") is not None
    assert broadcaster.state is BroadcasterState.IDLE


def test_state_is_cycle_running_while_fetching() -> None:
    observed: list[BroadcasterState] = []

    class ObservingAggregator(FakeAggregator):
        async def fetch_all_data_for_symbol(self, symbol: str) -> NormalizedSnapshot:
            observed.append(broadcaster.state)
            return await super().fetch_all_data_for_symbol(symbol)

    broadcaster, _, _ = make_broadcaster(["BTC/USD"], ObservingAggregator())

    asyncio.run(broadcaster.run_cycle())

    assert observed == [BroadcasterState.CYCLE_RUNNING]
    assert broadcaster.state is BroadcasterState.IDLE


def test_loop_rearms_after_every_cycle_even_when_all_symbols_fail() -> None:
    delays: list[float] = []

    async def fake_sleep(delay: float) -> None:
        delays.append(delay)
        if len(delays) == 3:
            raise StopPolling()

    aggregator = FakeAggregator(failing={"BTC/USD"})
    broadcaster, _, _ = make_broadcaster(["BTC/USD"], aggregator, sleep=fake_sleep)

    with pytest.raises(StopPolling):
        asyncio.run(broadcaster.run_forever())

    assert delays == [5.0, 5.0, 5.0]
    assert broadcaster.cycles == 3
    assert aggregator.calls == ["BTC/USD"] * 3


def test_start_and_stop_cancel_the_loop() -> None:
    async def scenario():
        never = asyncio.Event()

        async def blocking_sleep(delay: float) -> None:
            await never.wait()

        broadcaster, store, _ = make_broadcaster(["BTC/USD"], FakeAggregator(), sleep=blocking_sleep)
        task = broadcaster.start()
        assert broadcaster.start() is task
        while broadcaster.cycles == 0:
            await asyncio.sleep(0)
        await broadcaster.stop()
        return task, store

    task, store = asyncio.run(scenario())

    assert task.cancelled()
    assert store.get_snapshot("BTC/USD") is not None


def test_hub_sends_catch_up_before_live_messages() -> None:
    sent: list[dict] = []

    async def send(message: str) -> None:
        sent.append(json.loads(message))

    async def scenario():
        hub = SubscriberHub()
        subscriber = hub.subscribe(send, catch_up=[snapshot_message(make_snapshot("BTC/USD", 50_000))])
        trade = TradeSimulator(rng=random.Random(1)).simulate("BTC/USD", 50_000)
        hub.publish(trade_message(trade))
        runner = asyncio.create_task(subscriber.run())
        while subscriber.pending:
            await asyncio.sleep(0)
        await asyncio.sleep(0)
        runner.cancel()

    asyncio.run(scenario())

    assert [message["type"] for message in sent] == ["snapshot", "trade"]
    assert sent[0]["data"]["bidPrice"] == 50_000
    assert sent[0]["data"]["liquidityScore"] == 70
    assert "depthLevels" not in sent[0]["data"]
    assert "isBuyerMaker" in sent[1]["data"]


def test_slow_subscriber_never_blocks_publishing() -> None:
    delivered: list[str] = []

    async def stuck_send(message: str) -> None:
        await asyncio.Event().wait()

    async def fast_send(message: str) -> None:
        delivered.append(message)

    async def scenario():
        hub = SubscriberHub(max_pending=3)
        slow = hub.subscribe(stuck_send)
        fast = hub.subscribe(fast_send)
        slow_runner = asyncio.create_task(slow.run())
        fast_runner = asyncio.create_task(fast.run())
        for bid in range(1, 11):
            hub.publish(snapshot_message(make_snapshot("BTC/USD", float(bid))))
            await asyncio.sleep(0)
        await asyncio.sleep(0)
        slow_runner.cancel()
        fast_runner.cancel()
        return slow

    slow = asyncio.run(scenario())

    assert len(delivered) == 10
    assert slow.pending == 3
    assert slow.dropped > 0


def test_unsubscribed_viewer_receives_nothing() -> None:
    async def scenario():
        hub = SubscriberHub()

        async def send(message: str) -> None:
            pass

        subscriber = hub.subscribe(send)
        hub.unsubscribe(subscriber)
        hub.publish(snapshot_message(make_snapshot("BTC/USD", 1.0)))
        return hub, subscriber

    hub, subscriber = asyncio.run(scenario())

    assert len(hub) == 0
    assert subscriber.pending == 0


def test_subscriber_stops_when_transport_fails() -> None:
    async def broken_send(message: str) -> None:
        raise ConnectionError("socket closed")

    async def scenario():
        hub = SubscriberHub()
        subscriber = hub.subscribe(broken_send, catch_up=[snapshot_message(make_snapshot("BTC/USD", 1.0))])
        await asyncio.wait_for(subscriber.run(), timeout=1)

    asyncio.run(scenario())
