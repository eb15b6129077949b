import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from clarity.config import Settings

FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
CONSOLE_FORMAT = "%(levelname)s: %(name)s: %(message)s"

# Third-party loggers that are too chatty at INFO
QUIET_LOGGERS = ("httpx", "httpcore", "google_genai", "sqlalchemy.engine")


def _handler(handler: logging.Handler, fmt: str, level: int) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt))
    handler._clarity = True
    return handler


def setup_logging(settings: Settings):
    """Attach Clarity's file and console handlers to the root logger once."""
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    root = logging.getLogger()
    root.setLevel(level)
    if any(getattr(h, "_clarity", False) for h in root.handlers):
        return

    log_dir = Path(settings.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    root.addHandler(_handler(
        RotatingFileHandler(log_dir / "clarity.log", maxBytes=5_000_000, backupCount=3),
        FILE_FORMAT,
        level,
    ))
    root.addHandler(_handler(logging.StreamHandler(sys.stdout), CONSOLE_FORMAT, level))

    # uvicorn propagates to the root handlers instead of its own
    logging.getLogger("uvicorn.access").handlers = []
    logging.getLogger("uvicorn.error").handlers = []
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
