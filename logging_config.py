import asyncio
import logging
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_configured = False


def setup_logging(log_level: str = "INFO", log_file: Optional[str] = None):
    """Configure the root logger once for the whole process.

    Logs always go to stderr; when ``log_file`` is set they are also appended to that file.
    Calling this again only adjusts the level.
    """
    global _configured
    root = logging.getLogger()
    level = getattr(logging, str(log_level).upper(), logging.INFO)
    root.setLevel(level)

    if _configured:
        return

    formatter = logging.Formatter(LOG_FORMAT)

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(formatter)
    root.addHandler(stream_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    # uvicorn access lines are noisy at DEBUG
    logging.getLogger("uvicorn.access").setLevel(max(level, logging.INFO))

    sys.excepthook = _log_uncaught_exception
    _configured = True


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def _log_uncaught_exception(exc_type, exc_value, exc_traceback):
    if issubclass(exc_type, KeyboardInterrupt):
        sys.__excepthook__(exc_type, exc_value, exc_traceback)
        return
    logging.getLogger("uncaught").critical(
        "Uncaught exception", exc_info=(exc_type, exc_value, exc_traceback)
    )


def log_loop_exception(loop: asyncio.AbstractEventLoop, context: dict):
    """asyncio loop exception handler: log faults from tasks nobody awaited."""
    exception = context.get("exception")
    message = context.get("message", "Unhandled error in event loop")
    logging.getLogger("uncaught").error(
        f"Unhandled asyncio error: {message}",
        exc_info=(type(exception), exception, exception.__traceback__) if exception else None,
    )
