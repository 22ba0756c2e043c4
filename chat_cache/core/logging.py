"""
Logging setup for the offline cache.
"""
import logging

from chat_cache.config import Settings, settings as default_settings

TEXT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
JSON_FORMAT = '{"time": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s"}'


def configure_logging(settings: Settings = default_settings) -> logging.Logger:
    """
    Configure the ``chat_cache`` logger hierarchy from settings.

    Args:
        settings: Settings providing ``log_level`` and ``log_format``

    Returns:
        The package root logger
    """
    logger = logging.getLogger("chat_cache")
    logger.setLevel(settings.log_level)

    if not logger.handlers:
        handler = logging.StreamHandler()
        fmt = JSON_FORMAT if settings.log_format == "json" else TEXT_FORMAT
        handler.setFormatter(logging.Formatter(fmt))
        logger.addHandler(handler)

    return logger
