from __future__ import annotations

import os
from dataclasses import dataclass, fields
from typing import Any, Callable, Dict, Mapping, Optional

LogSink = Callable[..., None]

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


def parse_bool(value: Any, *, field_name: str = "value") -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        s = value.strip().lower()
        if s in _TRUE:
            return True
        if s in _FALSE:
            return False
    raise ValueError(f"{field_name}: cannot read {value!r} as a boolean")


@dataclass(slots=True)
class EventBusOptions:
    """Construction options for EventBus.

    sync   : call handlers inline instead of on the next loop iteration
    log    : emit a structured record on on/off/emit; the default sink logs at
             INFO on the bus logger, and prints to stdout by itself when
             logging was never configured (see eventx.core.log.setup)
    logger : sink called as logger(record, *payload); None keeps the default
    """
    sync: bool = False
    log: bool = False
    logger: Optional[LogSink] = None

    @classmethod
    def from_mapping(cls, d: Optional[Mapping[str, Any]]) -> "EventBusOptions":
        if d is None:
            return cls()
        if not isinstance(d, Mapping):
            raise ValueError(f"bus options must be a mapping, got {type(d).__name__}")
        known = {f.name for f in fields(cls)}
        kw: Dict[str, Any] = {}
        for k, v in d.items():
            if k not in known:
                continue
            if k == "logger":
                if v is not None and not callable(v):
                    raise ValueError("logger must be callable")
                kw[k] = v
            else:
                kw[k] = parse_bool(v, field_name=k)
        return cls(**kw)

    @classmethod
    def from_env(cls, prefix: str = "EVENTX_", environ: Optional[Mapping[str, str]] = None) -> "EventBusOptions":
        env = os.environ if environ is None else environ
        d: Dict[str, Any] = {}
        for name in ("sync", "log"):
            raw = env.get(f"{prefix}{name.upper()}")
            if raw is not None:
                d[name] = raw
        return cls.from_mapping(d)

    def merged(self, **overrides: Any) -> "EventBusOptions":
        """Copy with every non-None override applied."""
        kw = {f.name: getattr(self, f.name) for f in fields(self)}
        kw.update({k: v for k, v in overrides.items() if v is not None})
        return EventBusOptions(**kw)
