import asyncio
import logging

import pytest

from eventx.core.bus import EventBus


def test_sync_effects_are_visible_without_awaiting():
    bus = EventBus(sync=True)
    seen = []
    bus.on("k", seen.append)
    em = bus.emit("k", 1)
    assert seen == [1]
    assert em.done()


@pytest.mark.asyncio
async def test_deferred_effects_need_a_loop_turn():
    bus = EventBus()
    seen = []
    bus.on("k", seen.append)

    em = bus.emit("k", 1)
    assert seen == []
    assert not em.done()

    await em
    assert seen == [1]
    assert em.done()


@pytest.mark.asyncio
async def test_sync_mode_awaits_coroutine_results_on_await():
    bus = EventBus(sync=True)
    seen = []

    async def h(x):
        seen.append(x)

    em = bus.emit("k", 0)
    assert em.done()

    bus.on("k", h)
    em = bus.emit("k", 1)
    assert not em.done()
    await em
    assert seen == [1]


def test_sync_mode_coroutine_without_loop_is_dropped(caplog):
    bus = EventBus(sync=True)
    seen = []

    async def h(x):
        seen.append(x)

    bus.on("k", h)
    with caplog.at_level(logging.ERROR, logger="eventx.bus"):
        em = bus.emit("k", 1)

    assert em.done()
    assert seen == []
    assert any("no running event loop" in r.getMessage() for r in caplog.records)


@pytest.mark.asyncio
async def test_back_to_back_emits_interleave_per_handler():
    bus = EventBus()
    order = []
    bus.on("k", lambda x: order.append(("h1", x)))
    bus.on("k", lambda x: order.append(("h2", x)))

    e1 = bus.emit("k", 1)
    e2 = bus.emit("k", 2)
    assert bus.pending == 2
    await e1
    await e2

    assert order == [("h1", 1), ("h1", 2), ("h2", 1), ("h2", 2)]
    assert bus.pending == 0


@pytest.mark.asyncio
async def test_off_during_emit_does_not_skip_the_running_emit():
    bus = EventBus()
    calls = []

    def b(x):
        calls.append(("b", x))

    def a(x):
        calls.append(("a", x))
        bus.off("k", b)

    bus.on("k", a)
    bus.on("k", b)

    await bus.emit("k", 1)
    await bus.emit("k", 2)
    assert calls == [("a", 1), ("b", 1), ("a", 2)]


@pytest.mark.asyncio
async def test_on_during_emit_waits_for_next_emit():
    bus = EventBus()
    calls = []

    def late(x):
        calls.append(("late", x))

    def first(x):
        calls.append(("first", x))
        bus.on("k", late, "late")

    bus.on("k", first)
    await bus.emit("k", 1)
    await bus.emit("k", 2)
    assert calls == [("first", 1), ("first", 2), ("late", 2)]


@pytest.mark.asyncio
async def test_once_fires_exactly_once_even_with_overlapping_emits():
    bus = EventBus()
    calls = []
    bus.once("k", calls.append)

    emissions = [bus.emit("k", i) for i in range(3)]
    for em in emissions:
        await em

    assert calls == [0]
    assert bus.bus["k"] == ()


def test_once_sequential_emits():
    bus = EventBus(sync=True)
    calls = []
    bus.once("k", calls.append)
    for i in range(3):
        bus.emit("k", i)
    assert calls == [0]


def test_once_unregisters_even_when_handler_raises():
    bus = EventBus(sync=True)

    def bad(x):
        raise RuntimeError("fail")

    bus.once("k", bad)
    bus.emit("k", 1)
    assert bus.bus["k"] == ()


def test_once_handle_cancels_wrapper_before_it_fires():
    bus = EventBus(sync=True)
    calls = []
    ctl = bus.once("k", calls.append)
    ctl.cancel()
    bus.emit("k", 1)
    assert calls == []


@pytest.mark.asyncio
async def test_drain_waits_for_fire_and_forget_emits():
    bus = EventBus()
    seen = []

    async def slow(x):
        await asyncio.sleep(0.01)
        seen.append(x)

    bus.on("k", slow)
    bus.emit("k", 1)
    bus.emit("k", 2)
    await bus.drain()
    assert sorted(seen) == [1, 2]


@pytest.mark.asyncio
async def test_sync_mode_async_default_finishes_before_later_records():
    bus = EventBus(sync=True)
    order = []

    def early(x):
        order.append("early")

    async def slow(x):
        order.append("slow-start")
        await asyncio.sleep(0.01)
        order.append("slow-end")

    bus.on("k", early)
    bus.on("k", slow)
    bus.on("k", lambda x: order.append("fast"))
    bus.on_stack("k", lambda x: order.append("stack"))

    em = bus.emit("k", 1)
    # records before the first async handler run in the calling frame
    assert order == ["early"]
    assert bus.pending == 1

    await em
    assert order == ["early", "slow-start", "slow-end", "fast", "stack"]
    assert bus.pending == 0


@pytest.mark.asyncio
async def test_sync_mode_unique_after_async_handler_still_waits():
    bus = EventBus(sync=True)
    order = []

    async def first(x):
        await asyncio.sleep(0)
        order.append("a")

    bus.on("k", first)
    bus.on_unique("k", lambda x: order.append("u"))
    bus.on("k", lambda x: order.append("never"))

    await bus.emit("k", 1)
    assert order == ["a", "u"]


@pytest.mark.asyncio
async def test_sync_mode_async_failure_does_not_stop_the_rest(caplog):
    bus = EventBus(sync=True)
    order = []

    async def bad(x):
        raise RuntimeError("async fault")

    bus.on("k", bad)
    bus.on("k", lambda x: order.append("after"))

    with caplog.at_level(logging.ERROR, logger="eventx.bus"):
        await bus.emit("k", 1)

    assert order == ["after"]
    assert any("deliver error" in r.getMessage() for r in caplog.records)


def test_sync_mode_without_loop_keeps_delivering_plain_handlers(caplog):
    bus = EventBus(sync=True)
    order = []

    async def h(x):
        order.append("async")

    bus.on("k", h)
    bus.on("k", lambda x: order.append("plain"))
    with caplog.at_level(logging.ERROR, logger="eventx.bus"):
        em = bus.emit("k", 1)

    assert em.done()
    assert order == ["plain"]
