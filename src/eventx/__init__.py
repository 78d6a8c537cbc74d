from eventx.channels import BaseEvent, DynamicEvent, StaticEvent
from eventx.core.bus import Emission, EventBus
from eventx.core.contracts import ANONYMOUS, EventController, EventGroup, Listener, Mode
from eventx.core.options import EventBusOptions

__all__ = [
    "ANONYMOUS",
    "BaseEvent",
    "DynamicEvent",
    "Emission",
    "EventBus",
    "EventBusOptions",
    "EventController",
    "EventGroup",
    "Listener",
    "Mode",
    "StaticEvent",
]

__version__ = "0.1.0"
