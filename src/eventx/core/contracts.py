from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Hashable, List, Optional

__all__ = [
    "ANONYMOUS",
    "Key",
    "Callback",
    "CancelFunc",
    "Mode",
    "Listener",
    "EventController",
    "EventGroup",
    "callback_name",
]


# --------- Primitive / aliases ---------
Key = Hashable
Callback = Callable[..., Any]
CancelFunc = Callable[[], None]

ANONYMOUS = "@anonymous"


class Mode(str, Enum):
    """How a listener takes part in an emit."""
    DEFAULT = "DEFAULT"   # run in order, every time
    UNIQUE = "UNIQUE"     # run, then stop the emit
    STACK = "STACK"       # only the last one runs, after the others


@dataclass(slots=True)
class Listener:
    """One registration under a key."""
    alias: str
    func: Callback
    mode: Mode = Mode.DEFAULT

    @property
    def anonymous(self) -> bool:
        return self.alias == ANONYMOUS


@dataclass(slots=True)
class EventController:
    """Cancellation handle returned by every on-family call.

    Calling cancel() more than once is harmless.
    """
    key: Key
    func: Callback
    _cancel: CancelFunc

    def cancel(self) -> None:
        self._cancel()

    def __call__(self) -> None:
        self.cancel()


class EventGroup:
    """Batch of controllers cancelled together by destroy()."""

    def __init__(self, *items: EventController):
        self._items: List[EventController] = list(items)

    def push(self, *items: EventController) -> int:
        self._items.extend(items)
        return len(self._items)

    def destroy(self) -> None:
        # detach first so cancel callbacks that push into the group land in a fresh list
        items, self._items = self._items, []
        for item in items:
            item.cancel()

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self):
        return iter(list(self._items))

    def __repr__(self) -> str:
        return f"EventGroup(size={len(self._items)})"


def callback_name(fn: Optional[Callback]) -> str:
    return getattr(fn, "__qualname__", None) or getattr(fn, "__name__", None) or repr(fn)
