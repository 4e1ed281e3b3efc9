"""
Logging helpers shared by routers and services.
"""

import logging
from typing import Any, Dict


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Usage:
        from utils.logger import get_logger
        logger = get_logger(__name__)
    """
    return logging.getLogger(name)


SENSITIVE_FIELDS = {
    'password', 'token', 'secret', 'api_key', 'signature',
    'card', 'cvc', 'cvv', 'iban'
}


def sanitize_log_data(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Remove sensitive information from data about to be logged.

    Keys are matched case-insensitively on substrings, so `client_secret`,
    `clientSecret` and `stripe_signature` are all caught. Token-like values
    keep their first 8 characters to help correlate log lines; everything
    else sensitive is fully redacted. Nested dicts are sanitized too.

    Args:
        data: Dictionary that may contain sensitive fields

    Returns:
        A sanitized copy; the input is left untouched.
    """
    sanitized = data.copy()

    for key, value in sanitized.items():
        lowered = key.lower()
        if any(sensitive in lowered for sensitive in SENSITIVE_FIELDS):
            if isinstance(value, str):
                if 'token' in lowered and len(value) > 8:
                    sanitized[key] = f"{value[:8]}..."
                else:
                    sanitized[key] = "***REDACTED***"
            elif isinstance(value, dict):
                sanitized[key] = "***REDACTED***"

        elif isinstance(value, dict):
            sanitized[key] = sanitize_log_data(value)

    return sanitized
