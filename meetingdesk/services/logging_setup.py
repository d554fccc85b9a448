"""Process-wide logging: a per-boot server log, stderr, and a crash log."""

import faulthandler
import logging
import os
from datetime import datetime
from logging.handlers import RotatingFileHandler
from typing import IO, Optional

LOG_FORMAT = "[%(asctime)s] [%(name)s] %(message)s"
HANDLER_PREFIX = "meetingdesk_"

# Client libraries that log every request at INFO.
QUIET_LOGGERS = ("httpx", "httpcore", "urllib3", "multipart")

_crash_file: Optional[IO[str]] = None


def _handler(handler: logging.Handler, level: int, name: str) -> logging.Handler:
    handler.setFormatter(logging.Formatter(LOG_FORMAT, "%H:%M:%S"))
    handler.setLevel(level)
    handler.name = f"{HANDLER_PREFIX}{name}"
    return handler


def _install(logger: logging.Logger, handlers: list[logging.Handler]) -> None:
    for existing in logger.handlers:
        if existing.name and existing.name.startswith(HANDLER_PREFIX):
            existing.close()
    logger.handlers = list(handlers)
    logger.propagate = False


def configure_logging(logs_dir: str) -> str:
    """Route the root and uvicorn loggers to ``server_<timestamp>.log`` and stderr."""
    os.makedirs(logs_dir, exist_ok=True)
    log_path = os.path.join(
        logs_dir, f"server_{datetime.now().strftime('%Y-%m-%d_%H-%M-%S')}.log"
    )

    handlers = [
        _handler(
            RotatingFileHandler(log_path, maxBytes=5_000_000, backupCount=3, encoding="utf-8"),
            logging.DEBUG,
            "file",
        ),
        _handler(logging.StreamHandler(), logging.INFO, "stream"),
    ]

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    _install(root_logger, handlers)

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uv_logger = logging.getLogger(name)
        uv_logger.setLevel(logging.INFO)
        _install(uv_logger, handlers)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    root_logger.info("Logging initialized: %s", log_path)
    return log_path


def enable_crash_logging(logs_dir: str) -> str:
    """Dump all thread stacks to ``crash.log`` on fatal signals.  Idempotent."""
    global _crash_file
    os.makedirs(logs_dir, exist_ok=True)
    crash_log_path = os.path.join(logs_dir, "crash.log")
    if _crash_file is None:
        _crash_file = open(crash_log_path, "a", encoding="utf-8")
        faulthandler.enable(file=_crash_file, all_threads=True)
    return crash_log_path
