"""
Centralized Logging Configuration

Provides secure, production-ready logging with:
- Configurable log levels
- Automatic log rotation
- Secret masking to prevent credential leaks
- Structured output for forensic analysis
"""

import logging
import logging.handlers
import re
from pathlib import Path
from typing import Pattern

import config


class SecretMaskingFilter(logging.Filter):
    """
    Logging filter that masks sensitive data in log records.

    Prevents credential leaks by replacing sensitive values with [REDACTED].

    Masks:
    - API keys and secrets
    - Tokens and passwords
    - Card numbers and CVCs
    - Payment method tokens
    - User personal information (emails, phones)
    """

    # Patterns for secret masking
    PATTERNS: list[tuple[Pattern, str]] = [
        # API Keys (various formats)
        (re.compile(r'(api[_-]?key["\']?\s*[:=]\s*["\']?)([A-Za-z0-9_\-]{20,})(["\']?)', re.IGNORECASE), r'\1[REDACTED_API_KEY]\3'),
        (re.compile(r'(api[_-]?secret["\']?\s*[:=]\s*["\']?)([A-Za-z0-9_\-]{20,})(["\']?)', re.IGNORECASE), r'\1[REDACTED_API_SECRET]\3'),

        # Tokens
        (re.compile(r'(token["\']?\s*[:=]\s*["\']?)([A-Za-z0-9_\-:]{20,})(["\']?)', re.IGNORECASE), r'\1[REDACTED_TOKEN]\3'),
        (re.compile(r'(Bearer\s+)([A-Za-z0-9_\-\.]+)', re.IGNORECASE), r'\1[REDACTED_BEARER_TOKEN]'),

        # Passwords
        (re.compile(r'(password["\']?\s*[:=]\s*["\']?)([^\s"\']+)(["\']?)', re.IGNORECASE), r'\1[REDACTED_PASSWORD]\3'),
        (re.compile(r'(pass["\']?\s*[:=]\s*["\']?)([^\s"\']{6,})(["\']?)', re.IGNORECASE), r'\1[REDACTED_PASS]\3'),

        # Card numbers (13-19 digits, optional spaces or dashes)
        (re.compile(r'\b(?:\d[ -]?){12,18}\d\b'), '[REDACTED_CARD_NUMBER]'),
        (re.compile(r'(cvc|cvv)(["\']?\s*[:=]\s*["\']?)(\d{3,4})', re.IGNORECASE), r'\1\2[REDACTED_CVC]'),

        # Gateway payment method handles (pm_..., pi_..., tok_...)
        (re.compile(r'\b((?:pm|pi|tok|seti)_)[A-Za-z0-9]{8,}'), r'\1[REDACTED]'),

        # Email addresses (PII)
        (re.compile(r'\b([a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,})\b'), '[REDACTED_EMAIL]'),

        # Phone numbers (various formats)
        (re.compile(r'\b(\+?\d{1,3}[-.\s]?)?\(?\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}\b'), '[REDACTED_PHONE]'),

        # Shipping addresses (street + number patterns)
        (re.compile(r'(address["\']?\s*[:=]\s*["\']?)([^"\']{10,})(["\']?)', re.IGNORECASE), r'\1[REDACTED_ADDRESS]\3'),
    ]

    def filter(self, record: logging.LogRecord) -> bool:
        """
        Filter log record to mask sensitive data.

        Args:
            record: LogRecord to filter

        Returns:
            True (always - we modify but don't block records)
        """
        # Mask secrets in the message
        if record.msg:
            for pattern, replacement in self.PATTERNS:
                record.msg = pattern.sub(replacement, str(record.msg))

        # Mask secrets in arguments
        if record.args:
            masked_args = []
            for arg in record.args:
                if isinstance(arg, str):
                    for pattern, replacement in self.PATTERNS:
                        arg = pattern.sub(replacement, arg)
                masked_args.append(arg)
            record.args = tuple(masked_args)

        return True


def setup_logging(log_dir: Path = Path("logs")):
    """
    Configure the root logger for the storefront process.

    Records go to the console and to <log_dir>/shop.log, rotated at midnight
    and kept for config.LOG_RETENTION_DAYS days. With config.LOG_MASK_SECRETS
    both handlers pass records through SecretMaskingFilter.

    Call once at startup (run.py).
    """
    log_dir.mkdir(exist_ok=True)
    log_level = getattr(logging, config.LOG_LEVEL.upper(), logging.INFO)
    formatter = logging.Formatter(
        fmt='%(asctime)s | %(name)-25s | %(levelname)-8s | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    handlers = [
        logging.handlers.TimedRotatingFileHandler(
            filename=log_dir / "shop.log",
            when="midnight",
            backupCount=config.LOG_RETENTION_DAYS,
            encoding="utf-8"
        ),
        logging.StreamHandler(),
    ]

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.setLevel(log_level)
        if config.LOG_MASK_SECRETS:
            handler.addFilter(SecretMaskingFilter())
        root_logger.addHandler(handler)

    # SQL statements and driver chatter stay out of the application log
    for noisy_logger in ("sqlalchemy.engine", "sqlalchemy.pool", "aiosqlite", "aiohttp.access"):
        logging.getLogger(noisy_logger).setLevel(logging.WARNING)

    logging.info(f"📝 Logging initialized: level={config.LOG_LEVEL}, retention={config.LOG_RETENTION_DAYS} days, "
                 f"masking={'on' if config.LOG_MASK_SECRETS else 'off'}")
