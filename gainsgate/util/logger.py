"""Process logger: stderr always, a rotating file only when settings ask for it."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from gainsgate.config.settings import settings


LOGGER_NAME = "gainsgate"
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _resolve_level(raw: str) -> int:
    level = logging.getLevelName(str(raw or "INFO").strip().upper())
    return level if isinstance(level, int) else logging.INFO


def _file_handler(formatter: logging.Formatter) -> logging.Handler | None:
    if not settings.log_to_file:
        return None
    log_dir = Path(settings.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        log_dir / settings.log_file_name,
        maxBytes=settings.log_max_bytes,
        backupCount=settings.log_backup_count,
        encoding="utf-8",
    )
    handler.setFormatter(formatter)
    return handler


def _build_logger(name: str = LOGGER_NAME) -> logging.Logger:
    configured = logging.getLogger(name)
    if configured.handlers:
        return configured

    configured.setLevel(_resolve_level(settings.log_level))
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    configured.addHandler(stream_handler)

    try:
        file_handler = _file_handler(formatter)
    except OSError as exc:
        configured.warning("file logging disabled dir=%s error=%s", settings.log_dir, exc)
    else:
        if file_handler is not None:
            configured.addHandler(file_handler)

    configured.propagate = False
    return configured


logger = _build_logger()


def get_logger(name: str) -> logging.Logger:
    return logger.getChild(name)
