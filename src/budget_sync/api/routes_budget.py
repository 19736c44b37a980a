from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from budget_sync.api.deps import current_user_id, get_entry_store, get_sync_engine
from budget_sync.api.schemas import SyncOperation
from budget_sync.entries.store import EntryStore
from budget_sync.sync.engine import SyncEngine
from budget_sync.sync.snapshot import snapshot_json

router = APIRouter(prefix="/api/budget", tags=["budget"])


@router.post("/sync")
def sync(
    op: SyncOperation,
    user_id: str = Depends(current_user_id),
    engine: SyncEngine = Depends(get_sync_engine),
) -> dict[str, Any]:
    engine.apply(user_id=user_id, op=op)
    return {"success": True}


@router.get("/entries")
def entries(
    user_id: str = Depends(current_user_id),
    store: EntryStore = Depends(get_entry_store),
) -> dict[str, Any]:
    return snapshot_json(store, user_id=user_id)
