from __future__ import annotations

from collections.abc import Iterable, Mapping
from functools import lru_cache
import json
import logging
from pathlib import Path
from threading import RLock
from typing import Any
from uuid import uuid4

from pydantic import ValidationError

from tracker.core.config import get_settings
from tracker.core.fields import is_blank
from tracker.core.telemetry import position_span
from tracker.schemas.positions import Position
from tracker.services.normalizer import apply_defaults, derive_id, normalize_row

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Base store error."""


class StoreNotFoundError(StoreError):
    """Raised when the requested position does not exist."""


class StoreConflictError(StoreError):
    """Raised when a position id is already taken."""


class StoreValidationError(StoreError):
    """Raised when a create or update would produce an invalid position."""


class PositionStore:
    """In-memory owner of the canonical position collection.

    Newest positions sit at the head of the list. Every mutation swaps in a
    new frozen Position under the lock, so readers never see a half-applied
    merge.
    """

    def __init__(self, *, strict_validation: bool = False, seed_rows: Iterable[Any] | None = None) -> None:
        self.strict_validation = strict_validation
        self._positions: list[Position] = []
        self._lock = RLock()
        if seed_rows is not None:
            self.ingest_rows(seed_rows)

    def list(self) -> list[Position]:
        with self._lock:
            return list(self._positions)

    def get(self, position_id: str) -> Position:
        with self._lock:
            index = self._index_of(position_id)
            if index is None:
                raise StoreNotFoundError("position not found")
            return self._positions[index]

    def create(self, fields: Mapping[str, Any]) -> Position:
        if self.strict_validation and is_blank(fields.get("title")):
            raise StoreValidationError("title must not be empty")
        position = self._build(apply_defaults(fields, new_id=str(uuid4())))
        with position_span("store.create", id=position.id), self._lock:
            if self._index_of(position.id) is not None:
                raise StoreConflictError(f"position {position.id} already exists")
            self._positions.insert(0, position)
            logger.info("position created code=%s", position.code)
        return position

    def ingest_rows(self, rows: Iterable[Any]) -> tuple[list[Position], int]:
        """Normalize external rows and insert each one at the head of the list.

        Rows that are not mappings are skipped. A row whose id is already taken
        gets a fresh id derived from its code. Returns the created positions in
        input order and the number of skipped rows.
        """
        normalized: list[Position] = []
        skipped = 0
        for row in rows:
            if not isinstance(row, Mapping):
                skipped += 1
                continue
            normalized.append(normalize_row(row))

        created: list[Position] = []
        with position_span("store.ingest_rows", rows=len(normalized)), self._lock:
            taken = {position.id for position in self._positions}
            for position in normalized:
                if position.id in taken:
                    original_id = position.id
                    while position.id in taken:
                        position = position.model_copy(update={"id": derive_id(position.code)})
                    logger.info("imported id %s already taken; stored as %s", original_id, position.id)
                taken.add(position.id)
                self._positions.insert(0, position)
                created.append(position)
            logger.info("ingested rows imported=%s skipped=%s", len(created), skipped)
        return created, skipped

    def update(self, position_id: str, fields: Mapping[str, Any]) -> Position:
        """Shallow merge: keys present in ``fields`` overwrite, the rest are kept."""
        changes = {key: value for key, value in fields.items() if key != "id"}
        with position_span("store.update", id=position_id), self._lock:
            index = self._index_of(position_id)
            if index is None:
                raise StoreNotFoundError("position not found")
            current = self._positions[index]
            merged = self._build({**current.model_dump(), **changes})
            self._positions[index] = merged
            logger.info("position updated fields=%s", sorted(changes))
        return merged

    def apply_external_status(self, requisition_id: str, status: str) -> int:
        """Overwrite ``status`` on every position whose ``req`` matches.

        No match is not an error. Returns the number of positions touched.
        """
        matched = 0
        with position_span("store.apply_external_status", req=requisition_id) as span, self._lock:
            for index, position in enumerate(self._positions):
                if position.req != requisition_id:
                    continue
                self._positions[index] = position.model_copy(update={"status": status})
                matched += 1
            span.set_attribute("position.matched", matched)
            logger.info("external status applied status=%s matched=%s", status, matched)
        return matched

    def _index_of(self, position_id: str) -> int | None:
        for index, position in enumerate(self._positions):
            if position.id == str(position_id):
                return index
        return None

    def _build(self, data: Mapping[str, Any]) -> Position:
        try:
            position = Position.model_validate(dict(data))
        except ValidationError as exc:
            raise StoreValidationError(_summarize_validation_error(exc)) from exc

        if self.strict_validation:
            if not position.title.strip():
                raise StoreValidationError("title must not be empty")
            if position.budget is not None and position.budget < 0:
                raise StoreValidationError("budget must not be negative")
        return position


def _summarize_validation_error(exc: ValidationError) -> str:
    fields = sorted({".".join(str(part) for part in error["loc"]) for error in exc.errors()})
    return f"invalid position fields: {', '.join(fields)}"


def load_seed_rows(path: str | Path) -> list[Any]:
    seed_path = Path(path)
    if not seed_path.exists():
        raise FileNotFoundError(f"Seed rows file not found: {seed_path}")

    with open(seed_path, encoding="utf-8") as f:
        data = json.load(f)

    if not isinstance(data, list):
        raise ValueError(f"Seed rows file must hold a JSON array: {seed_path}")
    return data


@lru_cache
def get_store() -> PositionStore:
    settings = get_settings()
    seed_rows = load_seed_rows(settings.seed_rows_path) if settings.seed_rows_path else None
    return PositionStore(strict_validation=settings.strict_validation, seed_rows=seed_rows)
