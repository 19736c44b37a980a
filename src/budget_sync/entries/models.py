from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

CENT = Decimal("0.01")
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class EntryType(str, Enum):
    income = "income"
    expense = "expense"
    savings_deposit = "savings_deposit"
    savings_withdrawal = "savings_withdrawal"


def to_cents(amount: Decimal) -> int:
    """
    Fixed-point storage: round half-up to cents, keep as an integer.
    """
    q = Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)
    return int(q.scaleb(2))


def from_cents(cents: int) -> Decimal:
    return (Decimal(int(cents)) / 100).quantize(CENT)


def ms_to_iso(ms: int) -> str:
    dt = datetime.fromtimestamp(int(ms) // 1000, tz=timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{int(ms) % 1000:03d}Z"


def datetime_to_ms(dt: datetime) -> int:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return (dt - _EPOCH) // timedelta(milliseconds=1)


@dataclass(frozen=True, slots=True)
class BudgetEntry:
    id: str
    user_id: str
    amount_cents: int
    description: str
    entry_type: EntryType
    created_at_ms: int
    updated_at_ms: int
    deleted_at_ms: int | None = None

    @property
    def amount(self) -> Decimal:
        return from_cents(self.amount_cents)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at_ms is not None
