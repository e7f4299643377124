"""
Logging setup.

Modules log through ``logging.getLogger(__name__)``; this only configures
the root handler once at application or worker start.
"""

import logging
import sys

from pythonjsonlogger import jsonlogger

from .config import settings


TEXT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
JSON_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"


def build_formatter(fmt: str) -> logging.Formatter:
    """Formatter for ``fmt``: "json" for log shippers, anything else is text."""
    if fmt == "json":
        return jsonlogger.JsonFormatter(JSON_FORMAT)
    return logging.Formatter(TEXT_FORMAT)


def configure_logging(level: str = None, fmt: str = None) -> None:
    level = level or settings.log_level
    fmt = fmt or settings.log_format

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(build_formatter(fmt))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)
    # SQL echo is controlled by settings.debug, keep the engine logger quiet otherwise
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
