from __future__ import annotations

import asyncio
from copy import deepcopy
import json
from typing import Any

import httpx
import pytest

from tracker.client.api_client import PositionsClient, PositionsClientError
from tracker.client.reconciler import (
    CREATE_FAILED_NOTICE,
    LOAD_FAILED_NOTICE,
    TEMP_ID_PREFIX,
    UPDATE_FAILED_NOTICE,
    EntryState,
    PositionMirror,
)

BASE_URL = "http://positions.test"


class FakePositionsServer:
    def __init__(self, positions: list[dict[str, Any]] | None = None) -> None:
        self.positions = positions or []
        self.failing: set[str] = set()
        self.gate: asyncio.Event | None = None
        self._next_id = 100

    async def handler(self, request: httpx.Request) -> httpx.Response:
        if self.gate is not None:
            await self.gate.wait()
        if request.method in self.failing:
            return httpx.Response(status_code=503, json={"detail": "unavailable"}, request=request)

        if request.method == "GET":
            return httpx.Response(status_code=200, json=self.positions, request=request)

        if request.method == "POST":
            self._next_id += 1
            created = {**json.loads(request.content), "id": f"srv-{self._next_id}"}
            self.positions.insert(0, created)
            return httpx.Response(status_code=200, json=created, request=request)

        if request.method == "PUT":
            position_id = request.url.path.rsplit("/", 1)[-1]
            for index, position in enumerate(self.positions):
                if position["id"] == position_id:
                    merged = {**position, **json.loads(request.content), "location": "Server-side"}
                    self.positions[index] = merged
                    return httpx.Response(status_code=200, json=merged, request=request)
            return httpx.Response(status_code=404, json={"detail": "position not found"}, request=request)

        return httpx.Response(status_code=405, request=request)


def _seed() -> list[dict[str, Any]]:
    return [
        {"id": "p1", "code": "MB-CLI-001", "title": "Nurse", "department": "Clinical", "status": "Vacant"},
        {"id": "p2", "code": "MB-HR-001", "title": "Recruiter", "department": "HR", "status": "Approved"},
    ]


def _run(server: FakePositionsServer, scenario) -> Any:
    async def run() -> Any:
        transport = httpx.MockTransport(server.handler)
        async with httpx.AsyncClient(transport=transport) as http_client:
            mirror = PositionMirror(PositionsClient(BASE_URL, client=http_client))
            return await scenario(mirror)

    return asyncio.run(run())


def test_load_replaces_mirror_with_server_list() -> None:
    server = FakePositionsServer(_seed())

    async def scenario(mirror: PositionMirror) -> PositionMirror:
        assert await mirror.load() is True
        return mirror

    mirror = _run(server, scenario)
    assert mirror.positions == server.positions
    assert mirror.state_of("p1") is EntryState.CONFIRMED
    assert mirror.error is None
    assert mirror.loading is False


def test_failed_load_keeps_existing_positions() -> None:
    server = FakePositionsServer(_seed())

    async def scenario(mirror: PositionMirror) -> tuple[list[dict[str, Any]], PositionMirror]:
        await mirror.load()
        loaded = mirror.positions
        server.failing.add("GET")
        assert await mirror.load() is False
        return loaded, mirror

    loaded, mirror = _run(server, scenario)
    assert mirror.positions == loaded
    assert mirror.error == LOAD_FAILED_NOTICE


def test_create_replaces_optimistic_entry_with_server_record() -> None:
    server = FakePositionsServer(_seed())

    async def scenario(mirror: PositionMirror) -> Any:
        await mirror.load()
        server.gate = asyncio.Event()
        task = asyncio.create_task(mirror.create({"title": "Pharmacist", "department": "Clinical"}))
        await asyncio.sleep(0)
        during = mirror.positions
        server.gate.set()
        result = await task
        return during, result, mirror

    during, result, mirror = _run(server, scenario)
    assert during[0]["id"].startswith(TEMP_ID_PREFIX)
    assert during[0]["title"] == "Pharmacist"
    assert mirror.state_of(during[0]["id"]) is None

    assert result.state is EntryState.CONFIRMED
    assert result.position["id"] == "srv-101"
    assert mirror.positions[0] == result.position
    assert mirror.state_of("srv-101") is EntryState.CONFIRMED
    assert len(mirror.positions) == 3


def test_failed_create_rolls_back_optimistic_entry() -> None:
    server = FakePositionsServer(_seed())

    async def scenario(mirror: PositionMirror) -> Any:
        await mirror.load()
        before = mirror.positions
        server.failing.add("POST")
        server.gate = asyncio.Event()
        task = asyncio.create_task(mirror.create({"title": "Pharmacist"}))
        await asyncio.sleep(0)
        during = mirror.positions
        server.gate.set()
        result = await task
        return before, during, result, mirror

    before, during, result, mirror = _run(server, scenario)
    assert len(during) == len(before) + 1
    assert during[0]["id"].startswith(TEMP_ID_PREFIX)

    assert result.state is EntryState.ROLLED_BACK
    assert result.position is None
    assert mirror.positions == before
    assert mirror.error == CREATE_FAILED_NOTICE


def test_mark_filled_takes_server_record_on_success() -> None:
    server = FakePositionsServer(_seed())

    async def scenario(mirror: PositionMirror) -> Any:
        await mirror.load()
        server.gate = asyncio.Event()
        task = asyncio.create_task(mirror.mark_filled("p1"))
        await asyncio.sleep(0)
        during_status = mirror.positions[0]["status"]
        during_state = mirror.state_of("p1")
        server.gate.set()
        result = await task
        return during_status, during_state, result, mirror

    during_status, during_state, result, mirror = _run(server, scenario)
    assert during_status == "Filled"
    assert during_state is EntryState.OPTIMISTIC
    assert result.state is EntryState.CONFIRMED
    assert mirror.positions[0]["status"] == "Filled"
    assert mirror.positions[0]["location"] == "Server-side"
    assert mirror.state_of("p1") is EntryState.CONFIRMED


def test_failed_update_resyncs_whole_list_from_server() -> None:
    server = FakePositionsServer(_seed())

    async def scenario(mirror: PositionMirror) -> Any:
        await mirror.load()
        server.positions[1] = {**server.positions[1], "title": "Senior Recruiter"}
        server.failing.add("PUT")
        result = await mirror.mark_filled("p1")
        return result, mirror

    result, mirror = _run(server, scenario)
    assert result.state is EntryState.RESYNCED
    assert mirror.positions == server.positions
    assert mirror.positions[0]["status"] == "Vacant"
    assert mirror.positions[1]["title"] == "Senior Recruiter"
    assert mirror.state_of("p1") is EntryState.RESYNCED
    assert mirror.error == UPDATE_FAILED_NOTICE


def test_failed_update_and_failed_resync_restore_previous_record() -> None:
    server = FakePositionsServer(_seed())

    async def scenario(mirror: PositionMirror) -> Any:
        await mirror.load()
        before = deepcopy(mirror.positions)
        server.failing.update({"PUT", "GET"})
        result = await mirror.update_status("p2", "Retired")
        return before, result, mirror

    before, result, mirror = _run(server, scenario)
    assert result.state is EntryState.ROLLED_BACK
    assert mirror.positions == before
    assert mirror.state_of("p2") is EntryState.CONFIRMED


def test_client_wraps_transport_errors() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async def run() -> None:
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
            await PositionsClient(BASE_URL, client=http_client).list_positions()

    with pytest.raises(PositionsClientError, match="GET /api/positions failed"):
        asyncio.run(run())


def test_client_rejects_non_json_body() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code=200, text="<html>", request=request)

    async def run() -> None:
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
            await PositionsClient(BASE_URL, client=http_client).create_position({"title": "A"})

    with pytest.raises(PositionsClientError, match="invalid JSON"):
        asyncio.run(run())


def test_client_quotes_position_id_in_path() -> None:
    seen: list[str] = []

    async def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.raw_path.decode())
        return httpx.Response(status_code=200, json={"id": "a/b"}, request=request)

    async def run() -> dict[str, Any]:
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
            return await PositionsClient(f"{BASE_URL}/", client=http_client).update_position("a/b", {"status": "Filled"})

    assert asyncio.run(run()) == {"id": "a/b"}
    assert seen == ["/api/positions/a%2Fb"]
