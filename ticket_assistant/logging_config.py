"""
Logging Configuration Module

Centralized logging configuration with PII redaction. Ticket records carry
customer e-mail addresses and message bodies, so every handler installed
here filters records through PIIRedactionFilter by default.
"""

import logging
import sys
from typing import Optional
from ticket_assistant.security.pii_redactor import PIIRedactionFilter

APP_LOGGER_NAME = "ticket_assistant"


def setup_logging(
    log_level: str = "INFO",
    log_format: Optional[str] = None,
    enable_pii_redaction: bool = True
) -> logging.Logger:
    """
    Configure application logging with PII redaction.

    Call once at startup (the API module does this on import). Sets up a
    stdout handler with a structured format and, unless disabled, the
    PII redaction filter.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Custom format string. If None, uses default structured format.
        enable_pii_redaction: Whether to enable automatic PII redaction (default: True)

    Returns:
        Configured root logger instance
    """
    if log_format is None:
        log_format = (
            '%(asctime)s - %(name)s - %(levelname)s - '
            '%(filename)s:%(lineno)d - %(message)s'
        )

    level = getattr(logging, log_level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove existing handlers to avoid duplicates
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(log_format, datefmt='%Y-%m-%d %H:%M:%S'))

    if enable_pii_redaction:
        console_handler.addFilter(PIIRedactionFilter())

    root_logger.addHandler(console_handler)

    if enable_pii_redaction:
        root_logger.info("PII redaction filter enabled for all logs")

    logging.getLogger(APP_LOGGER_NAME).setLevel(level)

    return root_logger


def get_logger(name: str = APP_LOGGER_NAME) -> logging.Logger:
    """
    Get a logger instance with the specified name.

    Loggers inherit the redacting handler from the root logger once
    setup_logging() has run.
    """
    return logging.getLogger(name)
