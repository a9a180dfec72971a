import logging
import sys
from typing import Optional

from src.config import settings

_NOISY_LOGGERS = ("uvicorn.access", "httpx")


def configure_logging(level: Optional[str] = None):
    """Configure root logging for the API and the CLI scripts.

    Safe to call more than once: an existing stdout handler installed here is reused.
    """
    root = logging.getLogger()
    level_name = (level or settings.LOG_LEVEL).upper()
    if not any(getattr(h, "_signal_desk", False) for h in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s"))
        handler._signal_desk = True
        root.addHandler(handler)
    root.setLevel(getattr(logging, level_name, logging.INFO))
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


__all__ = ['configure_logging']
