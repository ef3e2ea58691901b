"""Zip code normalization.

Input is coerced to a string, trimmed, left-padded with zeros to five
characters and then cut to the first five. Long inputs are therefore
truncated rather than rejected: ``"1234567"`` becomes ``"12345"``.
"""

from __future__ import annotations

import re
from typing import Any

ZIP_LENGTH = 5

_ZIP_RE = re.compile(r"[0-9]{5}")


def normalize_zip(value: Any) -> str | None:
    """Return the canonical 5-digit code, or None when the input is invalid."""
    if value is None:
        return None
    code = str(value).strip().rjust(ZIP_LENGTH, "0")[:ZIP_LENGTH]
    if not _ZIP_RE.fullmatch(code):
        return None
    return code


def is_valid_zip(value: Any) -> bool:
    """True when ``value`` is already a canonical 5-digit key."""
    return isinstance(value, str) and _ZIP_RE.fullmatch(value) is not None
