from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, status

from tracker.schemas.positions import ImportResult, Position, PositionCreate, PositionPatch
from tracker.services.store import (
    PositionStore,
    StoreConflictError,
    StoreNotFoundError,
    StoreValidationError,
    get_store,
)

router = APIRouter()


@router.get("", response_model=list[Position])
async def list_positions(store: PositionStore = Depends(get_store)) -> list[Position]:
    return store.list()


@router.post("", response_model=Position)
async def create_position(payload: PositionCreate, store: PositionStore = Depends(get_store)) -> Position:
    try:
        return store.create(payload.model_dump(exclude_unset=True))
    except StoreConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except StoreValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_CONTENT, detail=str(exc)) from exc


@router.post("/import", response_model=ImportResult)
async def import_positions(
    rows: list[Any] = Body(...),
    store: PositionStore = Depends(get_store),
) -> ImportResult:
    created, skipped = store.ingest_rows(rows)
    return ImportResult(imported=len(created), skipped=skipped, positions=created)


@router.put("/{position_id:path}", response_model=Position)
async def update_position(
    position_id: str,
    payload: PositionPatch,
    store: PositionStore = Depends(get_store),
) -> Position:
    try:
        return store.update(position_id, payload.model_dump(exclude_unset=True))
    except StoreNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except StoreValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_CONTENT, detail=str(exc)) from exc
