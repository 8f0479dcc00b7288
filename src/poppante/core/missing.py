"""Missing value handling.

Every value matrix stores missing entries as NaN. Text inputs spell a
missing value with one of MISSING_TOKENS. Older exports sometimes carry the
largest double as a sentinel; values within a relative tolerance of it are
treated as missing too. All missingness checks go through is_missing().
"""

from __future__ import annotations

import sys

import numpy as np

MISSING_TOKENS = frozenset({"X", "x", "NA", "na", "NaN", "NAN", "nan"})

LEGACY_SENTINEL = sys.float_info.max
_SENTINEL_RTOL = 1e-9


def is_missing_token(token: str) -> bool:
    """Return True if a text field spells a missing value."""
    return token in MISSING_TOKENS


def parse_value(token: str) -> float:
    """Parse a numeric field, mapping missing tokens to NaN.

    Raises:
        ValueError: If the token is neither numeric nor a missing token.
    """
    if token in MISSING_TOKENS:
        return np.nan
    return float(token)


def is_missing(values: np.ndarray | float) -> np.ndarray | bool:
    """Element-wise missingness test.

    Args:
        values: Scalar or array of float values.

    Returns:
        Boolean array (or bool for scalars), True where the value is NaN
        or the legacy sentinel.
    """
    arr = np.asarray(values, dtype=np.float64)
    with np.errstate(invalid="ignore", over="ignore"):
        sentinel = np.abs(arr - LEGACY_SENTINEL) <= _SENTINEL_RTOL * LEGACY_SENTINEL
    result = np.isnan(arr) | sentinel
    if result.ndim == 0:
        return bool(result)
    return result


def missing_indices(values: np.ndarray) -> np.ndarray:
    """Sorted row indices of missing entries in a 1-D array."""
    return np.flatnonzero(is_missing(values))
