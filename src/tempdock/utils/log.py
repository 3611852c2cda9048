import logging
import os

from rich.logging import RichHandler

_DEFAULT_LOGLEVEL = os.getenv("TEMPDOCK_LOG_LEVEL", "INFO").upper()


def get_logger(name: str, *, emoji: str = "") -> logging.Logger:
    """Returns a logger printing through rich. The handler is only attached once per name."""
    logger = logging.getLogger(name)
    if any(isinstance(h, RichHandler) for h in logger.handlers):
        return logger
    handler = RichHandler(
        show_time=os.getenv("TEMPDOCK_LOG_TIME", "").lower() in ("1", "true"),
        show_path=False,
    )
    handler.setFormatter(logging.Formatter(f"{emoji} {name}: %(message)s".strip()))
    logger.addHandler(handler)
    logger.setLevel(_DEFAULT_LOGLEVEL)
    logger.propagate = False
    return logger


def null_logger(name: str = "tempdock") -> logging.Logger:
    """A fresh logger that swallows everything.

    It is not registered with the logging manager, so each call returns an
    independent instance.
    """
    logger = logging.Logger(name)
    logger.addHandler(logging.NullHandler())
    return logger
