from __future__ import annotations

from dataclasses import dataclass
from typing import Any

ALL_DEPARTMENTS = "All"
CODE_PREFIX = "MB"
CLOSED_STATUSES = {"Filled", "Retired"}


@dataclass(slots=True)
class DashboardCounts:
    total: int
    filled: int
    vacant: int
    open: int


def summarize(positions: list[dict[str, Any]]) -> DashboardCounts:
    statuses = [position.get("status") for position in positions]
    return DashboardCounts(
        total=len(positions),
        filled=sum(1 for status in statuses if status == "Filled"),
        vacant=sum(1 for status in statuses if status == "Vacant"),
        open=sum(1 for status in statuses if status not in CLOSED_STATUSES),
    )


def filter_positions(
    positions: list[dict[str, Any]],
    *,
    department: str = ALL_DEPARTMENTS,
    search: str | None = None,
) -> list[dict[str, Any]]:
    needle = (search or "").strip().lower()
    matches: list[dict[str, Any]] = []
    for position in positions:
        if department != ALL_DEPARTMENTS and position.get("department") != department:
            continue
        if needle:
            title = str(position.get("title") or "").lower()
            code = str(position.get("code") or "").lower()
            if needle not in title and needle not in code:
                continue
        matches.append(position)
    return matches


def next_position_code(positions: list[dict[str, Any]], department: str) -> str:
    """``MB-ENG-003`` for the third Engineering position."""
    index = sum(1 for position in positions if position.get("department") == department) + 1
    return f"{CODE_PREFIX}-{department[:3].upper()}-{index:03d}"


def build_create_payload(
    positions: list[dict[str, Any]],
    *,
    title: str,
    department: str,
    location: str = "Remote",
) -> dict[str, Any] | None:
    if not title.strip():
        return None
    return {
        "code": next_position_code(positions, department),
        "title": title,
        "department": department,
        "location": location,
        "status": "Proposed",
        "budget": None,
        "req": None,
    }
