# core/logging_config.py
import logging
import re

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOGGER_NAME = "ollie"

_PHONE_MASK = re.compile(r"(\+\d{1,3})(\d{3})(\d{3})(\d{4})")


def setup_logger() -> logging.Logger:
    logger = logging.getLogger(LOGGER_NAME)

    # Avoid duplicate handlers in dev reload
    if logger.handlers:
        return logger

    logger.setLevel(logging.INFO)

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(stream_handler)

    return logger


def mask_phone(phone: str) -> str:
    """+15551234567 → +1***555****"""
    if not phone:
        return ""
    return _PHONE_MASK.sub(r"\1***\2****", phone)


logger = setup_logger()
