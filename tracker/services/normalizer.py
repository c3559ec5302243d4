"""Row normalization.

Spreadsheet exports and ATS dumps arrive with whatever column names the
exporter felt like using. Every incoming key is folded (lowercase, alphanumeric
only) and each canonical field is resolved from an ordered synonym list: the
first synonym holding a non-blank value wins and later ones are never looked at.
More specific columns must therefore come before generic fallbacks.

The normalizer never raises. Missing or garbled values degrade to defaults.
"""

from __future__ import annotations

from collections.abc import Mapping
import time
from typing import Any
from uuid import uuid4

from tracker.core.fields import coerce_number, coerce_text, fold_key, is_blank
from tracker.schemas.positions import (
    DEFAULT_DEPARTMENT,
    DEFAULT_LOCATION,
    DEFAULT_STATUS,
    DEFAULT_TITLE,
    Position,
)

# Synonyms are folded with fold_key() before lookup, so "position_id" and
# "positionid" address the same column. Order is precedence.
FIELD_SYNONYMS: dict[str, tuple[str, ...]] = {
    "id": ("positionid", "position_id", "id", "pid", "pid_tag", "pidtagginga", "pidtaggingb"),
    "code": ("pidtagginga", "pidtaggingb", "pid_tagging_a", "pid_tagging_b", "pid_tagging", "code", "rolecode"),
    "title": ("designation", "title", "role", "positiontitle", "jobtitle"),
    "department": (
        "function",
        "subfunction",
        "sub_function",
        "businessunit_old",
        "function_old",
        "business_unit_old",
        "businessunit",
        "dept",
        "department",
    ),
    "location": ("pid_location", "location", "locationtagging", "pid_state", "state", "city", "location_tagging"),
    "status": ("status", "current_status", "status_old"),
    "budget": ("pid_budget", "pidbudget", "budget", "budget_inr", "pid_budget_inr"),
    "req": ("req", "requisition", "requisitionid", "requisition_id", "leader", "owner", "leadername"),
}


def fold_row(row: Mapping[Any, Any] | None) -> dict[str, Any]:
    # Later columns win when two headers fold to the same key.
    return {fold_key(key): value for key, value in (row or {}).items()}


def pick(folded_row: Mapping[str, Any], candidates: tuple[str, ...]) -> Any:
    for candidate in candidates:
        value = folded_row.get(fold_key(candidate))
        if not is_blank(value):
            return value
    return None


def random_suffix() -> str:
    return uuid4().hex[:4]


def derive_id(code: str | None) -> str:
    if code:
        return f"{code}-{random_suffix()}"
    return f"{int(time.time() * 1000)}{random_suffix()}"


def normalize_row(row: Mapping[Any, Any] | None) -> Position:
    """Map one external row of arbitrary shape onto a canonical Position."""
    folded = fold_row(row)

    resolved_id = coerce_text(pick(folded, FIELD_SYNONYMS["id"]))
    code = coerce_text(pick(folded, FIELD_SYNONYMS["code"]))
    raw_status = pick(folded, FIELD_SYNONYMS["status"])
    final_id = resolved_id or derive_id(code)

    return Position(
        id=final_id,
        code=code or final_id,
        title=coerce_text(pick(folded, FIELD_SYNONYMS["title"])) or code or DEFAULT_TITLE,
        department=coerce_text(pick(folded, FIELD_SYNONYMS["department"])) or DEFAULT_DEPARTMENT,
        location=coerce_text(pick(folded, FIELD_SYNONYMS["location"])) or DEFAULT_LOCATION,
        status=raw_status if isinstance(raw_status, str) else DEFAULT_STATUS,
        budget=coerce_number(pick(folded, FIELD_SYNONYMS["budget"])),
        req=coerce_text(pick(folded, FIELD_SYNONYMS["req"])),
        raw=dict(row or {}),
    )


def apply_defaults(fields: Mapping[str, Any], *, new_id: str) -> dict[str, Any]:
    """Fill a partially specified position with the same defaults normalize_row uses."""
    position_id = coerce_text(fields.get("id")) or new_id
    code = coerce_text(fields.get("code"))
    status = fields.get("status")
    return {
        "id": position_id,
        "code": code or position_id,
        "title": coerce_text(fields.get("title")) or code or DEFAULT_TITLE,
        "department": coerce_text(fields.get("department")) or DEFAULT_DEPARTMENT,
        "location": coerce_text(fields.get("location")) or DEFAULT_LOCATION,
        "status": status if isinstance(status, str) and status.strip() else DEFAULT_STATUS,
        "budget": coerce_number(fields.get("budget")),
        "req": coerce_text(fields.get("req")),
    }
