from __future__ import annotations

from typing import Callable, Generic, Optional, TypeVar

from eventx.channels.base import BaseEvent, random_suffix
from eventx.core.bus import Emission, EventBus
from eventx.core.contracts import EventController
from eventx.core.options import EventBusOptions

T = TypeVar("T")


class StaticEvent(BaseEvent, Generic[T]):
    """A single event channel bound to one key.

        added = StaticEvent[int]("counter.add", options=EventBusOptions(sync=True))
        added.on(lambda delta: print(delta))
        added.emit(3)

    isolate=True appends a random suffix to the key so several channels
    built from the same key can share one bus without hearing each other.
    """

    def __init__(
        self,
        key: str,
        *,
        label: Optional[str] = None,
        options: Optional[EventBusOptions] = None,
        bus: Optional[EventBus] = None,
        isolate: bool = False,
    ):
        super().__init__(options, bus=bus)
        self.key = f"{key}#{random_suffix()}" if isolate else f"{key}"
        self._label = label or key

    def on(self, callback: Callable[[T], object], name: Optional[str] = None) -> EventController:
        return self.bus.on(self.key, callback, name)

    def once(self, callback: Callable[[T], object]) -> EventController:
        return self.bus.once(self.key, callback)

    def unique(self, callback: Callable[[T], object], name: Optional[str] = None) -> EventController:
        return self.bus.on_unique(self.key, callback, name)

    def stack(self, callback: Callable[[T], object], name: Optional[str] = None) -> EventController:
        return self.bus.on_stack(self.key, callback, name)

    def off(self, callback: Callable[[T], object]) -> None:
        self.bus.off(self.key, callback)

    def emit(self, data: T) -> Emission:
        return self.bus.emit(self.key, data)

    @property
    def label(self) -> str:
        return self._label

    def __str__(self) -> str:
        return f'StaticEvent("{self._label}")[{self.key}]'

    __repr__ = __str__
