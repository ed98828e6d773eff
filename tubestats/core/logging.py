"""Loguru setup for the API and the refresh job.

Everything goes through Loguru: stdout, an optional rotating file under
``LOG_DIR`` and, for errors, an optional Slack webhook. Records from stdlib
loggers (uvicorn, SQLAlchemy) are routed into the same sinks. The YouTube API
key is masked in every message because it travels as a query parameter.
"""

import logging
import sys
from pathlib import Path
from typing import Any, Dict

import httpx
from loguru import logger

from tubestats.core.config import settings

LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level} | {extra[name]}:{function}:{line} | {message}"
MASK = "***"

# httpx logs every request URL at INFO, key included
QUIET_LOGGERS = {"httpx": logging.WARNING, "httpcore": logging.WARNING}
UVICORN_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")

_configured = False


class InterceptHandler(logging.Handler):
    """Hand stdlib records to Loguru, keeping the caller's frame."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_name == "emit":
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def mask_api_key(record: Dict[str, Any]) -> None:
    """Loguru patcher: replace the API key in the message before any sink sees it."""
    key = settings.YOUTUBE_API_KEY
    if key and key in record["message"]:
        record["message"] = record["message"].replace(key, MASK)


def _notify_slack(message: Any) -> None:
    record = message.record
    text = f":rotating_light: tubestats {record['level'].name} in {record['extra'].get('name')}\n{record['message']}"
    try:
        httpx.post(settings.SLACK_WEBHOOK_URL, json={"text": text}, timeout=5.0)
    except httpx.HTTPError:
        # Logging from inside a sink would recurse
        pass


def configure_logging() -> None:
    global _configured
    if _configured:
        return
    _configured = True

    level = settings.effective_log_level
    common = {"format": LOG_FORMAT, "backtrace": False, "diagnose": False}

    logger.remove()
    logger.configure(extra={"name": "tubestats"}, patcher=mask_api_key)
    logger.add(sys.stdout, level=level, **common)

    if settings.LOG_DIR:
        log_dir = Path(settings.LOG_DIR)
        log_dir.mkdir(parents=True, exist_ok=True)
        logger.add(log_dir / "tubestats.log", level=level, rotation="10 MB", retention="14 days", enqueue=True, **common)

    if settings.SLACK_WEBHOOK_URL:
        logger.add(_notify_slack, level="ERROR", enqueue=True)

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in UVICORN_LOGGERS:
        logging.getLogger(name).handlers = [InterceptHandler()]
        logging.getLogger(name).propagate = False
    for name, quiet_level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)


def get_logger(name: str) -> logger.__class__:
    return logger.bind(name=name)


configure_logging()
