from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from tempfile import gettempdir
from typing import Any

from pythonjsonlogger import jsonlogger

from .settings import settings

LOGGER_NAME = "freight_pricing"
LOG_FILE_NAME = "pricing.log.jsonl"


def _parse_level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).strip().upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def _writable_log_dir(out_dir: str) -> Path | None:
    """First of ``<out_dir>/logs`` and a temp-dir fallback that accepts writes."""
    for log_dir in (Path(out_dir) / "logs", Path(gettempdir()) / "freight-pricing" / "logs"):
        try:
            log_dir.mkdir(parents=True, exist_ok=True)
            marker = log_dir / ".writable"
            marker.touch(exist_ok=True)
            marker.unlink(missing_ok=True)
        except OSError:
            continue
        return log_dir
    return None


@lru_cache(maxsize=1)
def get_logger() -> logging.Logger:
    """JSON logger writing to stderr and, when possible, a JSONL file under OUT_DIR."""
    logger = logging.getLogger(LOGGER_NAME)
    if logger.handlers:
        return logger

    logger.setLevel(_parse_level(settings.log_level))
    logger.propagate = False
    formatter = jsonlogger.JsonFormatter("%(levelname)s %(name)s %(message)s", timestamp=True)

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    log_dir = _writable_log_dir(settings.out_dir)
    if log_dir is not None:
        try:
            handlers.append(logging.FileHandler(log_dir / LOG_FILE_NAME, encoding="utf-8"))
        except OSError:
            pass  # stderr only
    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    return logger


def log_event(event: str, *, level: int | str = logging.INFO, **fields: Any) -> None:
    # event doubles as the message and a top-level key
    get_logger().log(_parse_level(level), event, extra={"event": event, **fields})
