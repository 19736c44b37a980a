from __future__ import annotations

from dataclasses import dataclass

from budget_sync.api.schemas import OperationType, SyncOperation, SyncPayload
from budget_sync.entries.models import datetime_to_ms, to_cents
from budget_sync.entries.store import EntryStore
from budget_sync.errors import ValidationError
from budget_sync.ops import metrics
from budget_sync.storage import now_ms
from budget_sync.utils.log import logger


@dataclass(frozen=True, slots=True)
class SyncResult:
    kind: OperationType
    entry_id: str
    rows_affected: int


class SyncEngine:
    """
    Folds replayed client operations into entry state.

    Each call is independently idempotent and maps to exactly one storage
    statement, so at-least-once delivery from the client queue is safe:
      - add     upsert; resurrects a tombstoned entry
      - update  partial update; missing target is a silent no-op
      - delete  soft delete; missing or already-deleted target is a silent no-op
    All three are scoped by (user, entry id); another user's entry looks missing.
    """

    def __init__(self, store: EntryStore) -> None:
        self.store = store

    def apply(self, *, user_id: str, op: SyncOperation, now: int | None = None) -> SyncResult:
        ts = int(now if now is not None else now_ms())
        p = op.payload
        if op.type == OperationType.add:
            n = self._add(user_id, p, ts)
        elif op.type == OperationType.update:
            n = self._update(user_id, p, ts)
        else:
            n = self.store.soft_delete_entry(user_id=user_id, entry_id=p.entry_id, now_ms=ts)
        metrics.sync_operations.labels(kind=op.type.value).inc()
        logger.debug(
            "sync_applied",
            kind=op.type.value,
            entry_id=p.entry_id,
            rows=n,
        )
        return SyncResult(kind=op.type, entry_id=p.entry_id, rows_affected=n)

    def _add(self, user_id: str, p: SyncPayload, ts: int) -> int:
        if p.amount is None or p.entry_type is None:
            raise ValidationError("amount and entryType are required for add operations")
        created = datetime_to_ms(p.created_at) if p.created_at is not None else ts
        self.store.upsert_entry(
            user_id=user_id,
            entry_id=p.entry_id,
            amount_cents=to_cents(p.amount),
            description=p.description if p.description is not None else "",
            entry_type=p.entry_type,
            created_at_ms=created,
            now_ms=ts,
        )
        return 1

    def _update(self, user_id: str, p: SyncPayload, ts: int) -> int:
        fields: dict[str, object] = {}
        if p.amount is not None:
            fields["amount_cents"] = to_cents(p.amount)
        if p.description is not None:
            fields["description"] = p.description
        if p.entry_type is not None:
            fields["entry_type"] = p.entry_type.value
        return self.store.update_entry(
            user_id=user_id, entry_id=p.entry_id, fields=fields, now_ms=ts
        )
