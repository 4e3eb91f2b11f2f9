"""
Logging setup for the bot process
"""
import logging
import sys
from taskbot.config import get_settings

settings = get_settings()

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# chatty third-party loggers kept at WARNING unless DEBUG is on
NOISY_LOGGERS = ("httpx", "httpcore", "anthropic", "sqlalchemy.engine")


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the stdout handler attached once"""
    logger = logging.getLogger(name)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)

    logger.setLevel(logging.DEBUG if settings.DEBUG else logging.INFO)
    return logger


def configure_root_logging() -> None:
    """Route every taskbot.* logger through stdout and quiet the HTTP clients"""
    get_logger("taskbot")
    if not settings.DEBUG:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)


def mask_phone(phone: str) -> str:
    """628123456789@s.whatsapp.net -> 6281******89"""
    number = (phone or "").split("@", 1)[0]
    if len(number) <= 6:
        return number
    return number[:4] + "*" * (len(number) - 6) + number[-2:]
