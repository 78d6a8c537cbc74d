from __future__ import annotations

import logging
import threading
import time
from collections import deque
from statistics import mean
from typing import Any, Deque, Dict, Iterable, Optional, Tuple

from eventx.core.log import get as get_logger

LabelKey = Tuple[Tuple[str, str], ...]


def _labels_key(labels: Dict[str, Any] | None) -> LabelKey:
    if not labels:
        return tuple()
    return tuple(sorted((str(k), str(v)) for k, v in labels.items()))


def _pct(sorted_vals: Iterable[float], q: float) -> float:
    vals = list(sorted_vals)
    if not vals:
        return 0.0
    idx = max(0, min(len(vals) - 1, int(round((len(vals) - 1) * q))))
    return vals[idx]


class _Metric:
    def __init__(self, name: str, labels: LabelKey):
        self.name = name
        self.labels = labels
        self._lock = threading.Lock()


class Counter(_Metric):
    def __init__(self, name: str, labels: LabelKey):
        super().__init__(name, labels)
        self._value = 0.0

    def inc(self, n: float = 1.0) -> None:
        with self._lock:
            self._value += n

    def value(self) -> float:
        with self._lock:
            return self._value


class Gauge(_Metric):
    def __init__(self, name: str, labels: LabelKey):
        super().__init__(name, labels)
        self._value = 0.0

    def set(self, v: float) -> None:
        with self._lock:
            self._value = float(v)

    def value(self) -> float:
        with self._lock:
            return self._value


class Histogram(_Metric):
    def __init__(self, name: str, labels: LabelKey, maxlen: int = 1024):
        super().__init__(name, labels)
        self._values: Deque[float] = deque(maxlen=maxlen)

    def observe(self, v: float) -> None:
        with self._lock:
            self._values.append(float(v))

    def snapshot(self) -> Dict[str, float]:
        with self._lock:
            vals = sorted(self._values)
        if not vals:
            return {"count": 0, "min": 0.0, "max": 0.0, "mean": 0.0, "p50": 0.0, "p99": 0.0}
        return {
            "count": float(len(vals)),
            "min": vals[0],
            "max": vals[-1],
            "mean": mean(vals),
            "p50": _pct(vals, 0.50),
            "p99": _pct(vals, 0.99),
        }


class _Registry:
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._metrics: Dict[str, Dict[Tuple[str, LabelKey], _Metric]] = {
            "counters": {},
            "gauges": {},
            "hists": {},
        }

    def _get(self, kind: str, factory, name: str, labels: Dict[str, Any] | None):
        key = (name, _labels_key(labels))
        with self._lock:
            table = self._metrics[kind]
            m = table.get(key)
            if m is None:
                m = factory(name, key[1])
                table[key] = m
            return m

    def counter(self, name: str, labels: Dict[str, Any] | None) -> Counter:
        return self._get("counters", Counter, name, labels)

    def gauge(self, name: str, labels: Dict[str, Any] | None) -> Gauge:
        return self._get("gauges", Gauge, name, labels)

    def hist(self, name: str, labels: Dict[str, Any] | None) -> Histogram:
        return self._get("hists", Histogram, name, labels)

    def drop(self, kind: str, name: str, labels: Dict[str, Any] | None) -> None:
        with self._lock:
            self._metrics[kind].pop((name, _labels_key(labels)), None)

    def items(self, kind: str):
        with self._lock:
            return list(self._metrics[kind].values())

    def clear(self) -> None:
        with self._lock:
            for table in self._metrics.values():
                table.clear()


_REG = _Registry()


def inc(name: str, n: float = 1.0, **labels: Any) -> None:
    _REG.counter(name, labels).inc(n)


def gauge_set(name: str, v: float, **labels: Any) -> None:
    _REG.gauge(name, labels).set(v)


def gauge_drop(name: str, **labels: Any) -> None:
    """Forget one labelled gauge series."""
    _REG.drop("gauges", name, labels)


def observe_hist(name: str, v: float, **labels: Any) -> None:
    _REG.hist(name, labels).observe(v)


def counter_value(name: str, **labels: Any) -> float:
    return _REG.counter(name, labels).value()


def gauge_value(name: str, **labels: Any) -> float:
    return _REG.gauge(name, labels).value()


def reset() -> None:
    """Drop every recorded metric."""
    _REG.clear()


def snapshot_all() -> dict:
    out: Dict[str, list] = {"counters": [], "gauges": [], "hists": []}
    for m in _REG.items("counters"):
        out["counters"].append({"name": m.name, "labels": dict(m.labels), "value": m.value()})
    for m in _REG.items("gauges"):
        out["gauges"].append({"name": m.name, "labels": dict(m.labels), "value": m.value()})
    for m in _REG.items("hists"):
        out["hists"].append({"name": m.name, "labels": dict(m.labels), **m.snapshot()})
    return out


def dump(logger: Optional[logging.Logger] = None) -> None:
    """Write the current snapshot to a logger, one line per metric."""
    lg = logger or get_logger("metrics")
    snap = snapshot_all()
    for c in snap["counters"]:
        lg.info("[ctr] %s %s value=%.0f", c["name"], c["labels"], c["value"])
    for g in snap["gauges"]:
        lg.info("[gauge] %s %s value=%.3f", g["name"], g["labels"], g["value"])
    for h in snap["hists"]:
        lg.info(
            "[hist] %s %s n=%d min=%.3f p50=%.3f p99=%.3f max=%.3f",
            h["name"], h["labels"], int(h["count"]), h["min"], h["p50"], h["p99"], h["max"],
        )


class Timer:
    """Context manager that records elapsed milliseconds into a histogram."""
    def __init__(self, hist_name: str, **labels: Any) -> None:
        self.hist_name = hist_name
        self.labels = labels
        self._t0 = 0.0

    def __enter__(self):
        self._t0 = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb):
        dt_ms = (time.perf_counter() - self._t0) * 1000.0
        observe_hist(self.hist_name, dt_ms, **self.labels)
        return False
