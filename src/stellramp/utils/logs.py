"""Logging setup shared by the API, bot and combined entry points."""

import logging

# Libraries that are chatty at INFO/DEBUG
NOISY_LOGGERS = {
    "sqlalchemy.engine": logging.WARNING,
    "aiosqlite": logging.WARNING,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "aiogram": logging.INFO,
    "stellar_sdk": logging.WARNING,
}


def configure_logging(debug: bool = False) -> None:
    """Configure root logging and turn down library loggers."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    for name, level in NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(level)
