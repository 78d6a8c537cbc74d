from eventx.channels.base import BaseEvent
from eventx.channels.dynamic import DynamicEvent
from eventx.channels.static import StaticEvent

__all__ = ["BaseEvent", "StaticEvent", "DynamicEvent"]
