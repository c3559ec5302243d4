from __future__ import annotations

import math
import re
from typing import Any

_KEY_STRIP_RE = re.compile(r"[^a-z0-9]")
_NUMBER_STRIP_RE = re.compile(r"[^0-9.\-]")


def fold_key(raw_key: Any) -> str:
    """Lowercase a column name and drop everything that is not [a-z0-9].

    ``"PID_Tagging_A"``, ``"pid-tagging-a"`` and ``"Pid Tagging A"`` all fold
    to ``"pidtagginga"``.
    """
    if raw_key is None:
        return ""
    return _KEY_STRIP_RE.sub("", str(raw_key).strip().lower())


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    return str(value).strip() == ""


def coerce_text(value: Any) -> str | None:
    if is_blank(value):
        return None
    return str(value).strip()


def coerce_number(value: Any) -> float | None:
    """Parse a loosely formatted amount such as ``"₹1,80,000.50 INR"``.

    Everything except digits, ``.`` and ``-`` is dropped before parsing. Returns
    ``None`` instead of NaN/inf for anything that does not parse to a finite
    number.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        cleaned = _NUMBER_STRIP_RE.sub("", str(value))
        if not cleaned:
            return None
        try:
            number = float(cleaned)
        except ValueError:
            return None
    if not math.isfinite(number):
        return None
    return number
