"""
Input validation utilities for client identity and free text.
"""

import re
from typing import Optional


def normalize_phone(phone: str) -> str:
    """
    Reduce a phone number to its digits.

    Clients are looked up by phone within a barbershop, so every write and
    lookup goes through this normalization.

    Args:
        phone: Phone number as typed by the client

    Returns:
        Digits only (may be empty)
    """
    if not phone:
        return ""
    return re.sub(r"\D", "", str(phone))


def sanitize_text(text: str, max_length: Optional[int] = None) -> str:
    """
    Sanitize user input text.

    Args:
        text: Input text
        max_length: Optional maximum length

    Returns:
        Sanitized text
    """
    if not text:
        return ""

    # Remove control characters except newlines and tabs
    sanitized = re.sub(r"[\x00-\x08\x0B-\x0C\x0E-\x1F\x7F]", "", str(text))
    sanitized = sanitized.strip()

    if max_length and len(sanitized) > max_length:
        sanitized = sanitized[:max_length]

    return sanitized
