from __future__ import annotations

import json
import logging
import os
import sys
from typing import Optional

ROOT = "eventx"

_configured = False

_PLAIN_FMT = "[%(asctime)s] %(levelname)s %(name)s | %(message)s"


def _maybe_load_dotenv() -> None:
    try:
        from dotenv import load_dotenv  # type: ignore
        load_dotenv()
    except Exception:
        pass


class JsonHandler(logging.StreamHandler):
    """One JSON object per line on stdout."""
    def __init__(self):
        super().__init__(stream=sys.stdout)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            obj = {
                "ts": record.created,
                "lvl": record.levelname,
                "name": record.name,
                "msg": record.getMessage(),
            }
            if record.exc_info:
                obj["exc"] = logging.Formatter().formatException(record.exc_info)
            self.stream.write(json.dumps(obj, ensure_ascii=False, default=repr) + "\n")
            self.flush()
        except Exception:  # pragma: no cover
            self.handleError(record)


def _resolve_level(level: Optional[str]) -> int:
    lvl = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    py_level = getattr(logging, lvl, None)
    return py_level if isinstance(py_level, int) else logging.INFO


def setup(level: Optional[str] = None, json_mode: Optional[bool] = None, *, force: bool = False) -> None:
    """Configure the root logger.

    - LOG_LEVEL and LOG_JSON are read from the environment (and .env) when
      the matching argument is None
    - a second call is a no-op unless force=True
    """
    global _configured
    if _configured and not force:
        return

    _maybe_load_dotenv()

    json_flag = json_mode if json_mode is not None else (os.getenv("LOG_JSON", "0") == "1")

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(_resolve_level(level))

    if json_flag:
        root.addHandler(JsonHandler())
    else:
        handler = logging.StreamHandler(stream=sys.stdout)
        handler.setFormatter(logging.Formatter(fmt=_PLAIN_FMT))
        root.addHandler(handler)

    _configured = True


def get(name: str) -> logging.Logger:
    """Namespaced logger: bare names land under `eventx.`."""
    if name != ROOT and not name.startswith(ROOT + "."):
        name = f"{ROOT}.{name}"
    return logging.getLogger(name)


def ensure_stdout(logger: logging.Logger) -> None:
    """Make INFO lines from `logger` reach stdout when logging was never set up.

    No-op as soon as any handler is reachable (setup() or the host app's own config).
    """
    if logger.hasHandlers():
        return
    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(logging.Formatter(fmt=_PLAIN_FMT))
    logger.addHandler(handler)
    if logger.getEffectiveLevel() > logging.INFO:
        logger.setLevel(logging.INFO)


def set_level(level: str) -> None:
    """Adjust the root level at runtime (handy in tests)."""
    logging.getLogger().setLevel(_resolve_level(level))
