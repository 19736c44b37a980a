from __future__ import annotations

from decimal import Decimal
from enum import Enum

from pydantic import AwareDatetime, BaseModel, ConfigDict, EmailStr, Field, StrictBool, field_validator

from budget_sync.entries.models import EntryType

MAX_AMOUNT = Decimal("999999999999")
MAX_EMAIL_LENGTH = 255


class _Body(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class _Credentials(_Body):
    email: EmailStr

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v: object) -> object:
        # lookups and the unique index are case-insensitive by storing lower-case
        if not isinstance(v, str):
            return v
        v = v.strip().lower()
        if len(v) > MAX_EMAIL_LENGTH:
            raise ValueError(f"email must be at most {MAX_EMAIL_LENGTH} characters")
        return v


class RegisterRequest(_Credentials):
    password: str = Field(min_length=8, max_length=128)


class LoginRequest(_Credentials):
    password: str = Field(min_length=1, max_length=128)
    remember_me: StrictBool = Field(default=False, alias="rememberMe")


class OperationType(str, Enum):
    add = "add"
    update = "update"
    delete = "delete"


class SyncPayload(_Body):
    entry_id: str = Field(alias="entryId", min_length=1, max_length=100)
    amount: Decimal | None = Field(default=None, gt=0, le=MAX_AMOUNT)
    description: str | None = Field(default=None, max_length=500)
    entry_type: EntryType | None = Field(default=None, alias="entryType")
    created_at: AwareDatetime | None = Field(default=None, alias="createdAt")

    @field_validator("created_at", mode="before")
    @classmethod
    def created_at_is_utc_string(cls, v: object) -> object:
        # ISO-8601 text in UTC only ("...Z"); epoch numbers and offsets are rejected
        if v is None:
            return v
        if not isinstance(v, str) or not v.strip().upper().endswith("Z"):
            raise ValueError("createdAt must be an ISO-8601 UTC timestamp ending in Z")
        return v.strip()


class SyncOperation(_Body):
    """
    One replayed client operation. `timestamp` orders the client queue only; the
    server never uses it for conflict resolution.
    """

    type: OperationType
    payload: SyncPayload
    timestamp: float
