from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Optional

from config import CFG

LOGGER_NAME = "estimator.attempt_log"


def _log_file_path() -> Path:
    configured = os.environ.get("ATTEMPT_LOG_FILE") or CFG.ATTEMPT_LOG
    path = Path(configured)
    if path.is_absolute():
        return path
    return Path(__file__).resolve().parent / path


def _init_logger() -> logging.Logger:
    logger = logging.getLogger(LOGGER_NAME)
    if logger.handlers:
        return logger

    log_path = _log_file_path()
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_path, encoding="utf-8")
        formatter = logging.Formatter(
            "%(asctime)s [%(levelname)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
        logger.propagate = False
    except OSError:
        # Read-only checkouts still get records through the root logger.
        logger.handlers.clear()
        logger.propagate = True
    return logger


ATTEMPT_LOGGER = _init_logger()


def fmt_seconds(seconds: Optional[float]) -> Optional[str]:
    if seconds is None:
        return None
    try:
        return f"{float(seconds):.2f}s"
    except (TypeError, ValueError):
        return None


def fmt_ms(seconds: Optional[float]) -> Optional[str]:
    if seconds is None:
        return None
    try:
        return f"{float(seconds) * 1000.0:.2f}ms"
    except (TypeError, ValueError):
        return None


def _emit_log(level: int, event: str, **fields: Any) -> None:
    extras = [
        f"{key}={value}"
        for key, value in fields.items()
        if value is not None and value != ""
    ]
    try:
        if extras:
            ATTEMPT_LOGGER.log(level, "%s | %s", event, " ".join(extras))
        else:
            ATTEMPT_LOGGER.log(level, "%s", event)
    except Exception:
        # Logging failures must never bubble back into the engine.
        pass


def log_attempt_detail(event: str, **fields: Any) -> None:
    _emit_log(logging.INFO, event, **fields)


def log_attempt_warning(event: str, **fields: Any) -> None:
    _emit_log(logging.WARNING, event, **fields)


def log_attempt_error(event: str, **fields: Any) -> None:
    _emit_log(logging.ERROR, event, **fields)


__all__ = [
    "ATTEMPT_LOGGER",
    "fmt_ms",
    "fmt_seconds",
    "log_attempt_detail",
    "log_attempt_error",
    "log_attempt_warning",
]
