# src/eventx/core/bus.py
from __future__ import annotations

import asyncio
import functools
import inspect
import time
from dataclasses import replace
from typing import Any, Awaitable, Callable, Dict, Iterator, List, Optional, Sequence, Set, Tuple

from eventx.core.contracts import (
    ANONYMOUS,
    Callback,
    EventController,
    EventGroup,
    Key,
    Listener,
    Mode,
    callback_name,
)
from eventx.core.log import ensure_stdout, get as get_logger
from eventx.core.metrics import Timer, gauge_drop, gauge_set, inc
from eventx.core.options import EventBusOptions, LogSink


def _same_handler(stored: Callback, handler: Callback) -> bool:
    # bound methods are rebuilt on every attribute access, so compare those by value
    return stored is handler or (
        (inspect.ismethod(handler) or inspect.isbuiltin(handler)) and stored == handler
    )


class Emission:
    """Awaitable returned by EventBus.emit().

    Settles once every applicable handler has run. Handler failures never
    surface here.
    """
    __slots__ = ("key", "_fut")

    def __init__(self, key: Key, fut: Optional[asyncio.Future] = None):
        self.key = key
        self._fut = fut

    def done(self) -> bool:
        return self._fut is None or self._fut.done()

    def __await__(self):
        if self._fut is not None:
            yield from self._fut.__await__()

    def __repr__(self) -> str:
        state = "done" if self.done() else "pending"
        return f"Emission(key={self.key!r}, {state})"


class EventBus:
    """In-process registry of listeners keyed by event key.

    Two timing modes:
    - sync=True : handlers run inline inside emit()
    - sync=False: every handler call is deferred to the next loop iteration
      (needs a running asyncio loop)
    Ordering rules are the same in both modes.
    """

    def __init__(
        self,
        options: Optional[EventBusOptions] = None,
        *,
        sync: Optional[bool] = None,
        log: Optional[bool] = None,
        logger: Optional[LogSink] = None,
        name: str = "eventx.bus",
    ):
        opts = (options or EventBusOptions()).merged(sync=sync, log=log, logger=logger)
        self.name = name
        self.sync = opts.sync
        self.show_log = opts.log
        self.l = get_logger(self.name)
        self._sink: LogSink = opts.logger or self._default_sink
        if self.show_log and opts.logger is None:
            ensure_stdout(self.l)
        self._bus: Dict[Key, List[Listener]] = {}
        self._inflight: Set[asyncio.Future] = set()
        self.created_at = time.time()

    # -------------------- registry --------------------
    @property
    def bus(self) -> Dict[Key, Tuple[Listener, ...]]:
        """Snapshot of the registry: key -> listeners in delivery order."""
        return {k: tuple(v) for k, v in self._bus.items()}

    def on(self, key: Key, handler: Callback, name: Optional[str] = None, mode: Mode = Mode.DEFAULT) -> EventController:
        mode = Mode(mode)
        self._log({"action": "on", "key": key, "mode": mode.value})

        listeners = self._bus.setdefault(key, [])
        existing = None
        if name is not None and name != ANONYMOUS:
            existing = next((item for item in listeners if item.alias == name), None)

        if existing is not None:
            existing.func = handler
            existing.mode = mode
        else:
            listeners.append(Listener(alias=name or ANONYMOUS, func=handler, mode=mode))
        gauge_set("bus_listeners", float(len(listeners)), bus=self.name, key=str(key))

        return EventController(key, handler, lambda: self.off(key, handler))

    def on_unique(self, key: Key, handler: Callback, name: Optional[str] = None) -> EventController:
        return self.on(key, handler, name, Mode.UNIQUE)

    def on_stack(self, key: Key, handler: Callback, name: Optional[str] = None) -> EventController:
        return self.on(key, handler, name, Mode.STACK)

    def once(self, key: Key, handler: Callback) -> EventController:
        fired = False

        @functools.wraps(handler)
        def handle_once(*payload):
            nonlocal fired
            if fired:
                return None
            fired = True
            try:
                return handler(*payload)
            finally:
                controller.cancel()

        controller = self.on(key, handle_once)
        return controller

    def off(self, key: Key, handler: Callback) -> None:
        listeners = self._bus.get(key)
        if not listeners:
            return
        for i, item in enumerate(listeners):
            if _same_handler(item.func, handler):
                del listeners[i]
                self._log({"action": "off", "key": key})
                if listeners:
                    gauge_set("bus_listeners", float(len(listeners)), bus=self.name, key=str(key))
                else:
                    gauge_drop("bus_listeners", bus=self.name, key=str(key))
                return

    @staticmethod
    def create_group(*controllers: EventController) -> EventGroup:
        return EventGroup(*controllers)

    # -------------------- delivery --------------------
    def emit(self, key: Key, *payload: Any) -> Emission:
        self._log({"action": "emit", "key": key}, *payload)
        inc("bus_emit_total", 1, bus=self.name)

        listeners = self._bus.get(key)
        if not listeners:
            return Emission(key)

        # later on/off calls must not disturb this emit
        order = self._delivery_order([replace(item) for item in listeners])
        if self.sync:
            return self._emit_inline(key, order, payload)

        loop = asyncio.get_running_loop()
        return Emission(key, self._track(loop.create_task(self._deliver(key, order, payload, self._run))))

    async def drain(self) -> None:
        """Wait until every emission started so far has settled."""
        while self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    @property
    def pending(self) -> int:
        return len(self._inflight)

    @staticmethod
    def _delivery_order(snapshot: Sequence[Listener]) -> Iterator[Listener]:
        stacked: Optional[Listener] = None
        for item in snapshot:
            if item.mode is Mode.STACK:
                stacked = item
                continue
            yield item
            if item.mode is Mode.UNIQUE:
                return
        if stacked is not None:
            yield stacked

    def _emit_inline(self, key: Key, order: Iterator[Listener], payload: Tuple[Any, ...]) -> Emission:
        for item in order:
            try:
                with Timer("bus_delivery_latency_ms", bus=self.name):
                    result = item.func(*payload)
            except Exception as e:
                self._on_error(key, item, e)
                continue
            if not inspect.isawaitable(result):
                self._delivered(item)
                continue
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                close = getattr(result, "close", None)
                if close is not None:
                    close()
                self.l.error(
                    "emit key=%s fn=%s dropped an awaitable result: no running event loop",
                    key, callback_name(item.func),
                )
                continue
            # everything after an async handler waits for it, same as deferred mode
            return Emission(key, self._track(loop.create_task(self._resume(key, item, result, order, payload))))
        return Emission(key)

    async def _resume(
        self,
        key: Key,
        item: Listener,
        result: Awaitable[Any],
        order: Iterator[Listener],
        payload: Tuple[Any, ...],
    ) -> None:
        try:
            try:
                await result
            except Exception as e:
                self._on_error(key, item, e)
            else:
                self._delivered(item)
            await self._deliver(key, order, payload, self._call)
        finally:
            self._inflight.discard(asyncio.current_task())

    async def _deliver(
        self,
        key: Key,
        order: Iterator[Listener],
        payload: Tuple[Any, ...],
        invoke: Callable[[Callback, Tuple[Any, ...]], Awaitable[None]],
    ) -> None:
        try:
            for item in order:
                try:
                    with Timer("bus_delivery_latency_ms", bus=self.name):
                        await invoke(item.func, payload)
                except Exception as e:
                    self._on_error(key, item, e)
                else:
                    self._delivered(item)
        finally:
            # awaiting callers must see pending drop as soon as they resume
            self._inflight.discard(asyncio.current_task())

    async def _call(self, func: Callback, payload: Tuple[Any, ...]) -> None:
        result = func(*payload)
        if inspect.isawaitable(result):
            await result

    async def _run(self, func: Callback, payload: Tuple[Any, ...]) -> None:
        loop = asyncio.get_running_loop()
        fut = loop.create_future()

        def call() -> None:
            if fut.cancelled():
                return
            try:
                fut.set_result(func(*payload))
            except Exception as e:
                fut.set_exception(e)

        loop.call_soon(call)
        result = await fut
        if inspect.isawaitable(result):
            await result

    def _track(self, task: asyncio.Future) -> asyncio.Future:
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return task

    def _delivered(self, item: Listener) -> None:
        inc("bus_deliver_total", 1, bus=self.name, mode=item.mode.value)

    def _on_error(self, key: Key, item: Listener, err: Exception) -> None:
        inc("bus_deliver_error_total", 1, bus=self.name)
        self.l.error(
            "deliver error key=%s fn=%s mode=%s err=%s",
            key, callback_name(item.func), item.mode.value, err, exc_info=err,
        )

    # -------------------- logging --------------------
    def _log(self, data: Dict[str, Any], *payload: Any) -> None:
        if not self.show_log:
            return
        try:
            self._sink(data, *payload)
        except Exception as e:
            self.l.error("log sink failed action=%s err=%s", data.get("action"), e, exc_info=True)

    def _default_sink(self, data: Dict[str, Any], *payload: Any) -> None:
        tail = "".join(f" {p!r}" for p in payload)
        self.l.info("[EventBus] %s %s%s", data["action"], data["key"], tail)

    def __repr__(self) -> str:
        return f"EventBus(name={self.name!r}, sync={self.sync}, keys={len(self._bus)})"
