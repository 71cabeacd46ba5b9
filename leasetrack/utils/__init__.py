"""Utility modules for Lease Tracker."""

from .config import Settings, get_settings
from .ordering import (
    KeyGenerationExhausted,
    first_key,
    key_between,
    keys_between,
    key_before_all,
    key_after_all,
    sort_by_order_key,
    validate_order_key,
)

__all__ = [
    "Settings",
    "get_settings",
    # Fractional order keys
    "KeyGenerationExhausted",
    "first_key",
    "key_between",
    "keys_between",
    "key_before_all",
    "key_after_all",
    "sort_by_order_key",
    "validate_order_key",
]
