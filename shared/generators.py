"""
Random code and key generators.

Both generators draw from the ``secrets`` module.
"""

from __future__ import annotations

import secrets
import string

# 62-character alphanumeric alphabet used for issued API keys
API_KEY_ALPHABET = string.ascii_uppercase + string.ascii_lowercase + string.digits


def generate_otp_code(length: int = 6) -> str:
    """Generate a cryptographically secure numeric verification code.

    Args:
        length: Number of digits (default 6).

    Returns:
        String of random decimal digits.
    """
    return "".join(secrets.choice(string.digits) for _ in range(length))


def generate_api_key(length: int = 30) -> str:
    """Generate an opaque API key drawn uniformly from ``API_KEY_ALPHABET``.

    Args:
        length: Number of characters (default 30).
    """
    return "".join(secrets.choice(API_KEY_ALPHABET) for _ in range(length))
