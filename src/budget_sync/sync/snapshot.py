from __future__ import annotations

from decimal import Decimal
from typing import Any

from budget_sync.entries.models import BudgetEntry, ms_to_iso
from budget_sync.entries.store import EntryStore


def json_amount(amount: Decimal) -> int | float:
    # Amounts are capped at 12 integer digits + 2 decimals (<= 14 significant digits),
    # which a float renders back to the exact same decimal literal.
    if amount == amount.to_integral_value():
        return int(amount)
    return float(amount)


def entry_to_json(e: BudgetEntry) -> dict[str, Any]:
    return {
        "id": e.id,
        "amount": json_amount(e.amount),
        "description": e.description,
        "type": e.entry_type.value,
        "createdAt": ms_to_iso(e.created_at_ms),
    }


def list_entries(store: EntryStore, *, user_id: str) -> list[BudgetEntry]:
    """
    Authoritative snapshot: the caller's live entries, oldest first.
    """
    return store.list_live_entries(user_id=user_id)


def snapshot_json(store: EntryStore, *, user_id: str) -> dict[str, Any]:
    return {"entries": [entry_to_json(e) for e in list_entries(store, user_id=user_id)]}
