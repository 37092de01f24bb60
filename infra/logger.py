import logging
from typing import Optional


_loggers: dict[str, logging.Logger] = {}


def get_logger(name: str = "conciliacion", level: Optional[str] = None) -> logging.Logger:
    """Logger del proyecto con un único handler de consola por nombre."""
    if name in _loggers:
        logger = _loggers[name]
        if level:
            logger.setLevel(level.upper())
        return logger

    logger = logging.getLogger(name)
    logger.setLevel((level or "INFO").upper())

    if not logger.handlers:
        ch = logging.StreamHandler()
        fmt = logging.Formatter("%(asctime)s | %(levelname)s | %(message)s")
        ch.setFormatter(fmt)
        logger.addHandler(ch)

    _loggers[name] = logger
    return logger
