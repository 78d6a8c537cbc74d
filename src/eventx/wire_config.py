# src/eventx/wire_config.py
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml  # PyYAML

from eventx.core.bus import EventBus
from eventx.core.options import EventBusOptions

PathLike = Union[str, Path]


def _read_yaml(yaml_path: PathLike) -> Dict[str, Any]:
    data = yaml.safe_load(Path(yaml_path).read_text(encoding="utf-8"))
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{yaml_path}: top level must be a mapping")
    return data


def load_options(yaml_path: PathLike) -> EventBusOptions:
    """Read bus options from YAML.

    Either a top-level `bus:` section or the options at the top level:

        bus:
          sync: true
          log: false
    """
    data = _read_yaml(yaml_path)
    section = data.get("bus", data)
    if section is None:
        section = {}
    return EventBusOptions.from_mapping(section)


def build_from_yaml(yaml_path: PathLike, *, name: Optional[str] = None) -> EventBus:
    """Build an EventBus from a YAML file; `bus.name` is used when name is None."""
    data = _read_yaml(yaml_path)
    section = data.get("bus") or {}
    bus_name = name or (section.get("name") if isinstance(section, dict) else None) or "eventx.bus"
    return EventBus(load_options(yaml_path), name=str(bus_name))
