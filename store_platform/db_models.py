"""SQLModel table for store records.

The row is both the ORM model and the object the orchestrator hands back
to callers. Release and namespace names are derived from ``store_id``.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlmodel import Field, SQLModel

from .models import StoreStatus


def utcnow() -> datetime:
    """Return current UTC time (timezone-aware)."""
    return datetime.now(timezone.utc)


class Store(SQLModel, table=True):
    """Provisioned store. Soft-deleted, never removed."""

    __tablename__ = "stores"

    store_id: str = Field(primary_key=True, max_length=32)
    store_name: str = Field(max_length=120)
    namespace: str = Field(unique=True, index=True, max_length=63)
    status: str = Field(default=StoreStatus.PROVISIONING.value, index=True)
    url: str | None = None
    message: str | None = None
    created_at: datetime = Field(default_factory=utcnow, index=True)
    updated_at: datetime = Field(default_factory=utcnow)
    deleted_at: datetime | None = None

    @property
    def release(self) -> str:
        # Release name and namespace share the store-<id> derivation
        return self.namespace
