"""
Safe coercion of untyped JSON values.

Every helper returns a ``(value, ok)`` pair and never raises: a failed
coercion yields the type's zero value with ``ok=False``. Request records
arrive schema-loose, so callers treat ``ok=False`` as "field absent".
"""
from __future__ import annotations
from typing import Any, Tuple
import math

__all__ = ["to_string", "to_bool", "to_int"]

# Signed 64-bit range of the backend's integer options
_INT_MIN = -(2**63)
_INT_MAX = 2**63 - 1
# Largest magnitude at which every integer is exactly representable as a float
_FLOAT_EXACT_MAX = 2**53

def to_string(value: Any) -> Tuple[str, bool]:
    """Only real strings qualify; numbers are not stringified."""
    if isinstance(value, str):
        return value, True
    return "", False

def to_bool(value: Any) -> Tuple[bool, bool]:
    if isinstance(value, bool):
        return value, True
    return False, False

def to_int(value: Any) -> Tuple[int, bool]:
    """
    Integers pass through when they fit in 64 signed bits (bool is rejected
    even though it is an ``int`` subclass). Floats are accepted only when
    integral and no larger than 2**53, so ``4096.0`` works while ``1.5`` and
    precision-lost values such as ``1.2e29`` do not.
    """
    if isinstance(value, bool):
        return 0, False
    if isinstance(value, int):
        if _INT_MIN <= value <= _INT_MAX:
            return value, True
        return 0, False
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer() and abs(value) <= _FLOAT_EXACT_MAX:
            return int(value), True
        return 0, False
    return 0, False
