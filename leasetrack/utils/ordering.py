"""
Fractional order keys for drag & drop reordering.

An order key is a base-62 string whose plain string comparison reproduces
the display order of a list. A new key can always be generated between
any two existing keys, so moving one item only rewrites that item's key.

Key layout:
    "a0"     integer part only ("a" head = 1 digit follows)
    "a0V"    integer part "a0" + fraction "V"
    "b00"    integer part with 2 digits (head "b")

Example:
    Initial:                 "a0", "a1", "a2"
    Move first to the end:   "a1", "a2", "a3"
    Insert between a1, a2:   "a1", "a1V", "a2", "a3"

Fractions never end in "0", which guarantees there is always room for
another key between two distinct keys.
"""

from collections.abc import Mapping
from typing import Any, Iterable, List, Optional

# Digits sorted by ASCII byte value: 0-9 < A-Z < a-z
BASE_62_DIGITS = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz"
ZERO = BASE_62_DIGITS[0]
LAST_DIGIT = BASE_62_DIGITS[-1]
INTEGER_ZERO = "a" + ZERO
SMALLEST_INTEGER = "A" + ZERO * 26


class KeyGenerationExhausted(ValueError):
    """No key can be produced between two bounds."""


# =============================================================================
# KEY STRUCTURE
# =============================================================================

def _integer_length(head: str) -> int:
    if "a" <= head <= "z":
        return ord(head) - ord("a") + 2
    if "A" <= head <= "Z":
        return ord("Z") - ord(head) + 2
    raise ValueError(f"Invalid order key head: {head!r}")


def _integer_part(key: str) -> str:
    length = _integer_length(key[0])
    if length > len(key):
        raise ValueError(f"Invalid order key: {key!r}")
    return key[:length]


def _validate_key(key: str) -> None:
    if not key:
        raise ValueError("Order key must be a non-empty string")
    if key == SMALLEST_INTEGER:
        raise ValueError(f"Invalid order key: {key!r}")
    for char in key:
        if char not in BASE_62_DIGITS:
            raise ValueError(f"Invalid character {char!r} in order key {key!r}")
    integer = _integer_part(key)
    if key[len(integer):].endswith(ZERO):
        raise ValueError(f"Invalid order key (trailing zero): {key!r}")


def _increment_integer(integer: str) -> Optional[str]:
    head, digits = integer[0], list(integer[1:])
    carry = True
    for i in range(len(digits) - 1, -1, -1):
        value = BASE_62_DIGITS.index(digits[i]) + 1
        if value == len(BASE_62_DIGITS):
            digits[i] = ZERO
        else:
            digits[i] = BASE_62_DIGITS[value]
            carry = False
            break

    if not carry:
        return head + "".join(digits)

    if head == "Z":
        return "a" + ZERO
    if head == "z":
        return None
    new_head = chr(ord(head) + 1)
    if new_head > "a":
        digits.append(ZERO)
    else:
        digits.pop()
    return new_head + "".join(digits)


def _decrement_integer(integer: str) -> Optional[str]:
    head, digits = integer[0], list(integer[1:])
    borrow = True
    for i in range(len(digits) - 1, -1, -1):
        value = BASE_62_DIGITS.index(digits[i]) - 1
        if value == -1:
            digits[i] = LAST_DIGIT
        else:
            digits[i] = BASE_62_DIGITS[value]
            borrow = False
            break

    if not borrow:
        return head + "".join(digits)

    if head == "a":
        return "Z" + LAST_DIGIT
    if head == "A":
        return None
    new_head = chr(ord(head) - 1)
    if new_head < "Z":
        digits.append(LAST_DIGIT)
    else:
        digits.pop()
    return new_head + "".join(digits)


def _midpoint(low: str, high: Optional[str]) -> str:
    """
    Fraction strictly between two fractions ("" is the lowest, None the highest).
    """
    if high is not None and low >= high:
        raise ValueError(f"Invalid fraction bounds: {low!r} >= {high!r}")
    if low.endswith(ZERO) or (high and high.endswith(ZERO)):
        raise ValueError("Fraction must not end in a zero digit")

    if high:
        # Shared prefix (low padded with zeros) carries over unchanged
        n = 0
        while n < len(high) and (low[n] if n < len(low) else ZERO) == high[n]:
            n += 1
        if n > 0:
            return high[:n] + _midpoint(low[n:], high[n:])

    digit_low = BASE_62_DIGITS.index(low[0]) if low else 0
    digit_high = BASE_62_DIGITS.index(high[0]) if high is not None else len(BASE_62_DIGITS)

    if digit_high - digit_low > 1:
        return BASE_62_DIGITS[(digit_low + digit_high + 1) // 2]

    # Adjacent digits
    if high and len(high) > 1:
        return high[0]
    return BASE_62_DIGITS[digit_low] + _midpoint(low[1:], None)


# =============================================================================
# PUBLIC API
# =============================================================================

def key_between(prev_key: Optional[str], next_key: Optional[str]) -> str:
    """
    Generate a key that sorts strictly between prev_key and next_key.

    Args:
        prev_key: Key of the item before the slot (None = start of list)
        next_key: Key of the item after the slot (None = end of list)

    Returns:
        A key with prev_key < key < next_key

    Raises:
        ValueError: If a key is malformed or prev_key >= next_key
        KeyGenerationExhausted: If the key space has no room left
    """
    if prev_key is not None:
        _validate_key(prev_key)
    if next_key is not None:
        _validate_key(next_key)
    if prev_key is not None and next_key is not None and prev_key >= next_key:
        raise ValueError(f"Invalid ordering: {prev_key!r} >= {next_key!r}")

    if prev_key is None:
        if next_key is None:
            return INTEGER_ZERO

        integer = _integer_part(next_key)
        fraction = next_key[len(integer):]
        if integer == SMALLEST_INTEGER:
            return integer + _midpoint("", fraction)
        if integer < next_key:
            return integer
        decremented = _decrement_integer(integer)
        if decremented is None:
            raise KeyGenerationExhausted(f"Cannot generate a key before {next_key!r}")
        return decremented

    if next_key is None:
        integer = _integer_part(prev_key)
        fraction = prev_key[len(integer):]
        incremented = _increment_integer(integer)
        if incremented is None:
            return integer + _midpoint(fraction, None)
        return incremented

    prev_integer = _integer_part(prev_key)
    prev_fraction = prev_key[len(prev_integer):]
    next_integer = _integer_part(next_key)
    next_fraction = next_key[len(next_integer):]

    if prev_integer == next_integer:
        return prev_integer + _midpoint(prev_fraction, next_fraction)

    incremented = _increment_integer(prev_integer)
    if incremented is None:
        raise KeyGenerationExhausted(f"Cannot generate a key after {prev_key!r}")
    if incremented < next_key:
        return incremented
    return prev_integer + _midpoint(prev_fraction, None)


def keys_between(
    prev_key: Optional[str],
    next_key: Optional[str],
    count: int,
) -> List[str]:
    """
    Generate count evenly spread keys between prev_key and next_key.

    Used for bulk inserts and for rebuilding a whole collection.
    Keys are returned in ascending order.
    """
    if count < 0:
        raise ValueError(f"count must be >= 0, got {count}")
    if count == 0:
        return []
    if count == 1:
        return [key_between(prev_key, next_key)]

    if next_key is None:
        key = key_between(prev_key, next_key)
        result = [key]
        for _ in range(count - 1):
            key = key_between(key, next_key)
            result.append(key)
        return result

    if prev_key is None:
        key = key_between(prev_key, next_key)
        result = [key]
        for _ in range(count - 1):
            key = key_between(prev_key, key)
            result.append(key)
        result.reverse()
        return result

    mid = count // 2
    key = key_between(prev_key, next_key)
    return [
        *keys_between(prev_key, key, mid),
        key,
        *keys_between(key, next_key, count - mid - 1),
    ]


def first_key() -> str:
    """Generate the key for the first item of an empty list."""
    return key_between(None, None)


def key_before_all(keys: Iterable[Optional[str]]) -> str:
    """Generate a key that sorts before every key in the list (missing keys are skipped)."""
    present = [key for key in keys if key]
    if not present:
        return first_key()
    return key_between(None, min(present))


def key_after_all(keys: Iterable[Optional[str]]) -> str:
    """Generate a key that sorts after every key in the list (missing keys are skipped)."""
    present = [key for key in keys if key]
    if not present:
        return first_key()
    return key_between(max(present), None)


def _order_key_of(item: Any) -> str:
    if isinstance(item, Mapping):
        return item["order_key"]
    return item.order_key


def sort_by_order_key(items: Iterable[Any]) -> List[Any]:
    """
    Sort items (objects or mappings with an order_key) by plain string comparison.

    Returns a new list; the input is not modified.
    """
    return sorted(items, key=_order_key_of)


def validate_order_key(key: Any) -> bool:
    """
    Validate that a value is a well-formed order key.

    Returns:
        True if valid, False otherwise
    """
    if not isinstance(key, str):
        return False
    try:
        _validate_key(key)
    except ValueError:
        return False
    return True
