"""
PIN helpers: format validation, stored hash, and per-user salt generation.
"""

from __future__ import annotations

import hashlib
import hmac
from uuid import uuid4

from .errors import InvalidPinError

PIN_LENGTH: int = 6


def validate_pin(pin: str) -> str:
    """
    Check that pin is exactly six ASCII digits.

    Raises:
        InvalidPinError: If the format is wrong
    """
    if not isinstance(pin, str) or len(pin) != PIN_LENGTH or not (pin.isascii() and pin.isdigit()):
        raise InvalidPinError(f"PIN must be {PIN_LENGTH} digits")
    return pin


def hash_pin(pin: str) -> str:
    """Hex SHA-256 of the PIN, stored as the user's pin_hash."""
    return hashlib.sha256(pin.encode("utf-8")).hexdigest()


def verify_pin(pin: str, pin_hash: str) -> bool:
    """Constant-time comparison of a PIN against its stored hash."""
    return hmac.compare_digest(hash_pin(pin), pin_hash)


def generate_user_salt() -> str:
    """New random per-user salt (generated once, never rotated)."""
    return str(uuid4())
