"""Loguru setup shared by every regfeed component, with optional Slack alerts."""

import logging
import re
import sys
from pathlib import Path
from typing import Any, Dict

import httpx
from loguru import logger

from regfeed.core.config import settings

LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level} | {extra[name]}:{function}:{line} | {message}"

# Query parameters that carry credentials and must never reach a log sink
_SECRET_PARAM_RE = re.compile(r"(api_key|apikey|token|key)=[^&\s]+", re.IGNORECASE)

_logging_configured = False


class InterceptHandler(logging.Handler):
    """Redirect stdlib logs (httpx, uvicorn) to Loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_name == "emit":
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, sanitize_url(record.getMessage()))


def sanitize_url(text: str) -> str:
    """Mask credential query parameters in a URL or log message."""
    return _SECRET_PARAM_RE.sub(r"\1=***", text)


def format_slack_text(record: Dict[str, Any]) -> str:
    """Alert text for one loguru record, with credentials masked."""
    name = record["extra"].get("name") or record.get("name", "regfeed")
    text = f"[{record['level'].name}] {name}:{record['function']}:{record['line']}\n{sanitize_url(record['message'])}"
    exception = record.get("exception")
    if exception is not None and exception.type is not None:
        text += f"\n{exception.type.__name__}: {sanitize_url(str(exception.value))}"
    return text


def _slack_sink(message: Any) -> None:
    if not settings.SLACK_WEBHOOK_URL:
        return

    try:
        httpx.post(
            settings.SLACK_WEBHOOK_URL,
            json={"text": format_slack_text(message.record)},
            timeout=5.0,
        )
    except httpx.HTTPError:
        # Avoid recursive logging on Slack failures
        pass


def _resolve_level() -> str:
    level = (settings.effective_log_level or "INFO").strip().upper()
    level = {
        "WARN": "WARNING",
        "FATAL": "CRITICAL",
    }.get(level, level)
    if level not in {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}:
        level = "INFO"
    return level


def configure_logging() -> None:
    global _logging_configured

    if _logging_configured:
        return
    _logging_configured = True

    log_dir = Path("logs")
    log_dir.mkdir(exist_ok=True)
    level = _resolve_level()

    logger.remove()
    logger.configure(extra={"name": "regfeed"})
    logger.add(
        sys.stdout,
        level=level,
        format=LOG_FORMAT,
        backtrace=False,
        diagnose=False,
    )
    logger.add(
        log_dir / "regfeed.log",
        level=level,
        format=LOG_FORMAT,
        rotation="10 MB",
        retention="14 days",
        enqueue=True,
        backtrace=False,
        diagnose=False,
    )

    if settings.SLACK_WEBHOOK_URL:
        logger.add(_slack_sink, level="ERROR", enqueue=True)

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    for logger_name in ["uvicorn", "uvicorn.error", "uvicorn.access"]:
        logging.getLogger(logger_name).handlers = [InterceptHandler()]
        logging.getLogger(logger_name).propagate = False


def get_logger(name: str) -> logger.__class__:
    return logger.bind(name=name)


configure_logging()
