#!/usr/bin/env python3
"""Emit canonical positions for a JSON file of spreadsheet rows."""

from __future__ import annotations

import argparse
import json
from pathlib import Path

from tracker.services.normalizer import normalize_row
from tracker.services.store import load_seed_rows


def render_positions(rows: list[object], *, include_raw: bool) -> str:
    exclude = None if include_raw else {"raw"}
    positions = [
        normalize_row(row).model_dump(mode="json", exclude=exclude)
        for row in rows
        if isinstance(row, dict)
    ]
    return json.dumps(positions, indent=2, ensure_ascii=False)


def main() -> None:
    parser = argparse.ArgumentParser(description="Normalize exported position rows into canonical records.")
    parser.add_argument("input", type=Path, help="JSON file holding an array of row objects")
    parser.add_argument(
        "--include-raw",
        action="store_true",
        help="Keep the original row under 'raw' for each position",
    )
    args = parser.parse_args()

    print(render_positions(load_seed_rows(args.input), include_raw=args.include_raw))


if __name__ == "__main__":
    main()
