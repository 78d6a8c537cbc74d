from __future__ import annotations

from typing import Callable, Generic, Hashable, Optional, TypeVar

from eventx.channels.base import BaseEvent, random_suffix
from eventx.core.bus import Emission, EventBus
from eventx.core.contracts import EventController, Key
from eventx.core.options import EventBusOptions

K = TypeVar("K", bound=Hashable)
T = TypeVar("T")


class DynamicEvent(BaseEvent, Generic[K, T]):
    """A family of keys sharing one payload type, e.g. "plus" / "minus"."""

    def __init__(
        self,
        label: str,
        *,
        options: Optional[EventBusOptions] = None,
        bus: Optional[EventBus] = None,
        isolate: bool = False,
    ):
        super().__init__(options, bus=bus)
        self._label = label
        self._suffix = random_suffix() if isolate else None

    def resolve(self, key: K) -> Key:
        """Bus key actually used for `key`."""
        if self._suffix is None:
            return key
        return f"{key}#{self._suffix}"

    def on(self, key: K, callback: Callable[[T], object], name: Optional[str] = None) -> EventController:
        return self.bus.on(self.resolve(key), callback, name)

    def once(self, key: K, callback: Callable[[T], object]) -> EventController:
        return self.bus.once(self.resolve(key), callback)

    def unique(self, key: K, callback: Callable[[T], object], name: Optional[str] = None) -> EventController:
        return self.bus.on_unique(self.resolve(key), callback, name)

    def stack(self, key: K, callback: Callable[[T], object], name: Optional[str] = None) -> EventController:
        return self.bus.on_stack(self.resolve(key), callback, name)

    def off(self, key: K, callback: Callable[[T], object]) -> None:
        self.bus.off(self.resolve(key), callback)

    def emit(self, key: K, data: T) -> Emission:
        return self.bus.emit(self.resolve(key), data)

    @property
    def label(self) -> str:
        return self._label

    def __str__(self) -> str:
        return f'DynamicEvent("{self._label}")'

    __repr__ = __str__
