"""Masking of personal data in log output.

Registration rows carry parent emails and mobile numbers, and account
creation handles the shared default password. None of those should land
in a log file verbatim.
"""

from __future__ import annotations

import re
from typing import Any

MASK = "***MASKED***"

_PASSWORD = re.compile(r'(["\']?password["\']?\s*[:=]\s*)["\']?[^"\'\s,}\]]+["\']?', re.IGNORECASE)
_SECRET = re.compile(
    r'(["\']?(?:api[_-]?key|token|secret|private[_-]?key)["\']?\s*[:=]\s*)["\']?[A-Za-z0-9_\-./+=]+["\']?',
    re.IGNORECASE,
)
_URL_CREDENTIALS = re.compile(r"(https?://)[^:/\s]+:[^@\s]+(@)", re.IGNORECASE)
_EMAIL = re.compile(r"([A-Za-z0-9._%+-]+)@([A-Za-z0-9.-]+\.[A-Za-z]{2,})")
# US-style numbers as they appear after normalize_phone, with or without +1
_PHONE = re.compile(r"(?<![\w@.])\+?\d{10,11}(?!\w)")

SENSITIVE_KEYWORDS: frozenset[str] = frozenset(
    {
        "password",
        "passwd",
        "secret",
        "token",
        "api_key",
        "apikey",
        "credential",
        "private_key",
        "privatekey",
        "authorization",
    }
)


def _mask_email(match: re.Match[str]) -> str:
    local, domain = match.group(1), match.group(2)
    return f"{local[:2]}***@{domain}"


def _mask_phone(match: re.Match[str]) -> str:
    digits = match.group(0)
    return "*" * (len(digits) - 4) + digits[-4:]


def mask_sensitive_string(text: str) -> str:
    """Mask sensitive patterns in a string.

    Emails keep their first two characters and domain, phone numbers keep
    their last four digits, and password or secret values are replaced
    entirely.
    """
    if not text:
        return text

    result = _URL_CREDENTIALS.sub(r"\1" + MASK + r"\2", text)
    result = _PASSWORD.sub(r"\g<1>" + MASK, result)
    result = _SECRET.sub(r"\g<1>" + MASK, result)
    result = _EMAIL.sub(_mask_email, result)
    result = _PHONE.sub(_mask_phone, result)
    return result


def is_sensitive_key(key: str) -> bool:
    """Check if a key name indicates sensitive data."""
    lower_key = key.lower()
    return any(keyword in lower_key for keyword in SENSITIVE_KEYWORDS)


def mask_dict(data: dict[str, Any], depth: int = 0, max_depth: int = 10) -> dict[str, Any]:
    """Recursively mask sensitive values in a dictionary."""
    if depth >= max_depth:
        return data

    result: dict[str, Any] = {}
    for key, value in data.items():
        if is_sensitive_key(key):
            result[key] = MASK
        elif isinstance(value, dict):
            result[key] = mask_dict(value, depth + 1, max_depth)
        elif isinstance(value, list):
            result[key] = [
                mask_dict(item, depth + 1, max_depth) if isinstance(item, dict) else item
                for item in value
            ]
        elif isinstance(value, str):
            result[key] = mask_sensitive_string(value)
        else:
            result[key] = value

    return result


class SensitiveValue:
    """Wrapper that prints as MASK.

    Usage:
        password = SensitiveValue(config.default_password)
        logger.debug("Creating account with password %s", password)
    """

    def __init__(self, value: Any) -> None:
        self._value = value

    def get(self) -> Any:
        """Get the wrapped value."""
        return self._value

    def __str__(self) -> str:
        return MASK

    def __repr__(self) -> str:
        return f"SensitiveValue({MASK})"

    def __bool__(self) -> bool:
        return bool(self._value)
