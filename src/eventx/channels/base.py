from __future__ import annotations

import uuid
from typing import Optional

from eventx.core.bus import EventBus
from eventx.core.options import EventBusOptions


def random_suffix() -> str:
    return uuid.uuid4().hex[:8]


class BaseEvent:
    """Common base for channels: owns a private EventBus unless one is shared in."""

    def __init__(self, options: Optional[EventBusOptions] = None, *, bus: Optional[EventBus] = None):
        self.bus = bus if bus is not None else EventBus(options)
