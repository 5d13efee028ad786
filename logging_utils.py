"""Logger setup: one stdout handler per service logger, format from config."""

import logging
import sys

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _level(name: str) -> int:
    level = getattr(logging, name.upper(), None)
    if not isinstance(level, int):
        raise ValueError(f"unknown log level {name!r}")
    return level


def setup_logging(service_name: str, log_level: str = "INFO", log_format: str = DEFAULT_FORMAT) -> logging.Logger:
    """Return the *service_name* logger, writing to stdout.

    Repeated calls reuse the same handler and apply the latest level and
    format, so a second app built with different settings is honoured.
    Raises ValueError for an unknown level name.
    """
    logger = logging.getLogger(service_name)
    logger.setLevel(_level(log_level))

    handler_name = f"{service_name}.stdout"
    handler = next((h for h in logger.handlers if h.get_name() == handler_name), None)
    if handler is None:
        handler = logging.StreamHandler(sys.stdout)
        handler.set_name(handler_name)
        logger.addHandler(handler)
    else:
        handler.setStream(sys.stdout)
    handler.setFormatter(logging.Formatter(log_format))

    return logger
