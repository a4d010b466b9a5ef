"""
Logging helpers.

Configures the root logger once from Config and hands out module loggers.
"""

import logging
import sys
from typing import Optional

from app.config import Config

_configured = False


def setup_logging(config: Optional[Config] = None) -> None:
    """Configure root logging from config (LOG_LEVEL / LOG_FORMAT). Safe to call twice."""
    global _configured
    if _configured:
        return

    level = config.LOG_LEVEL if config else "INFO"
    fmt = config.LOG_FORMAT if config else "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(fmt))

    root = logging.getLogger()
    root.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    root.addHandler(handler)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    _configured = True


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
