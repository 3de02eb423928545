"""Utility helpers."""

import math
import re
from typing import Any

from config import GPA_DECIMALS


def sanitize_filename(name: str) -> str:
    """Remove unsafe characters from a filename."""
    return re.sub(r'[^\w\-.]', '_', name)


def normalize_code(value: Any) -> str:
    """Comparison form of a subject / department code."""
    return " ".join(str(value or "").split()).upper()


def cell_to_str(value: Any) -> str:
    """Stringify a spreadsheet cell; whole floats lose their '.0'."""
    if value is None:
        return ""
    if isinstance(value, float):
        if math.isnan(value):
            return ""
        if value.is_integer():
            return str(int(value))
    return str(value).strip()


def round_gpa(value: float) -> float:
    """Round a grade point average for display (2 decimals)."""
    return round(float(value), GPA_DECIMALS)
