"""Client-side mirror of the server's position list.

The server is the only source of truth. Mutations are applied to the mirror
right away and then reconciled with whatever the server answers:

* create: ``absent -> optimistic(temp id) -> confirmed(server id) | rolled back``
* update: ``confirmed -> optimistic -> confirmed(server fields) | resynced``

A failed create removes the speculative entry. A failed update does not undo
the single field; it refetches the whole list and replaces the mirror.
"""

from __future__ import annotations

from copy import deepcopy
from dataclasses import dataclass
from enum import Enum
import logging
from typing import Any
from uuid import uuid4

from tracker.client.api_client import PositionsClient, PositionsClientError

logger = logging.getLogger(__name__)

TEMP_ID_PREFIX = "temp-"
LOAD_FAILED_NOTICE = "Could not load positions. Showing cached data."
CREATE_FAILED_NOTICE = "Could not create position."
UPDATE_FAILED_NOTICE = "Update failed; reloaded positions from the server."


class EntryState(str, Enum):
    OPTIMISTIC = "optimistic"
    CONFIRMED = "confirmed"
    ROLLED_BACK = "rolled_back"
    RESYNCED = "resynced"


@dataclass(slots=True)
class MirrorEntry:
    position: dict[str, Any]
    state: EntryState


@dataclass(slots=True)
class MutationResult:
    state: EntryState
    position: dict[str, Any] | None
    error: str | None = None


class PositionMirror:
    def __init__(self, client: PositionsClient) -> None:
        self.client = client
        self.error: str | None = None
        self.loading = False
        self._entries: list[MirrorEntry] = []

    @property
    def positions(self) -> list[dict[str, Any]]:
        return [deepcopy(entry.position) for entry in self._entries]

    def state_of(self, position_id: str) -> EntryState | None:
        entry = self._find(position_id)
        return entry.state if entry is not None else None

    async def load(self) -> bool:
        """Fetch the authoritative list. On failure the current mirror is kept."""
        self.loading = True
        self.error = None
        try:
            return await self._replace_from_server(EntryState.CONFIRMED)
        except PositionsClientError as exc:
            logger.warning("could not load positions, keeping %s cached: %s", len(self._entries), exc)
            self.error = LOAD_FAILED_NOTICE
            return False
        finally:
            self.loading = False

    async def create(self, fields: dict[str, Any]) -> MutationResult:
        temp_id = f"{TEMP_ID_PREFIX}{uuid4().hex}"
        self._entries.insert(0, MirrorEntry(position={**fields, "id": temp_id}, state=EntryState.OPTIMISTIC))

        try:
            created = await self.client.create_position(fields)
        except PositionsClientError as exc:
            logger.warning("create failed, rolling back %s: %s", temp_id, exc)
            self._entries = [entry for entry in self._entries if entry.position.get("id") != temp_id]
            self.error = CREATE_FAILED_NOTICE
            return MutationResult(state=EntryState.ROLLED_BACK, position=None, error=str(exc))

        entry = self._find(temp_id)
        if entry is not None:
            entry.position = created
            entry.state = EntryState.CONFIRMED
        return MutationResult(state=EntryState.CONFIRMED, position=deepcopy(created))

    async def update(self, position_id: str, fields: dict[str, Any]) -> MutationResult:
        entry = self._find(position_id)
        previous = deepcopy(entry.position) if entry is not None else None
        if entry is not None:
            entry.position = {**entry.position, **fields, "id": entry.position.get("id")}
            entry.state = EntryState.OPTIMISTIC

        try:
            updated = await self.client.update_position(position_id, fields)
        except PositionsClientError as exc:
            logger.warning("update of %s failed, resyncing from server: %s", position_id, exc)
            self.error = UPDATE_FAILED_NOTICE
            try:
                await self._replace_from_server(EntryState.RESYNCED)
            except PositionsClientError as resync_exc:
                # Both calls failed; fall back to the last known server copy.
                logger.warning("resync after failed update also failed: %s", resync_exc)
                self._restore(position_id, previous)
                return MutationResult(state=EntryState.ROLLED_BACK, position=previous, error=str(exc))
            resynced = self._find(position_id)
            return MutationResult(
                state=EntryState.RESYNCED,
                position=deepcopy(resynced.position) if resynced is not None else None,
                error=str(exc),
            )

        entry = self._find(position_id)
        if entry is not None:
            entry.position = updated
            entry.state = EntryState.CONFIRMED
        return MutationResult(state=EntryState.CONFIRMED, position=deepcopy(updated))

    async def update_status(self, position_id: str, status: str) -> MutationResult:
        return await self.update(position_id, {"status": status})

    async def mark_filled(self, position_id: str) -> MutationResult:
        return await self.update_status(position_id, "Filled")

    async def _replace_from_server(self, state: EntryState) -> bool:
        rows = await self.client.list_positions()
        self._entries = [MirrorEntry(position=row, state=state) for row in rows if isinstance(row, dict)]
        return True

    def _restore(self, position_id: str, previous: dict[str, Any] | None) -> None:
        entry = self._find(position_id)
        if entry is None or previous is None:
            return
        entry.position = previous
        entry.state = EntryState.CONFIRMED

    def _find(self, position_id: str) -> MirrorEntry | None:
        for entry in self._entries:
            if entry.position.get("id") == position_id:
                return entry
        return None
