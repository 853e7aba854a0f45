"""
Lifecycle enums and Pydantic models for API request/response validation.
"""
from pydantic import BaseModel, Field
from typing import Optional, List
from enum import Enum
from datetime import datetime


class StoreStatus(str, Enum):
    PROVISIONING = "provisioning"
    READY = "ready"
    FAILED = "failed"
    DELETED = "deleted"


# Allowed source states for each target state. Nothing leaves DELETED and
# nothing re-enters PROVISIONING.
TRANSITIONS: dict[StoreStatus, frozenset] = {
    StoreStatus.READY: frozenset({StoreStatus.PROVISIONING}),
    StoreStatus.FAILED: frozenset({StoreStatus.PROVISIONING}),
    StoreStatus.DELETED: frozenset({StoreStatus.PROVISIONING, StoreStatus.READY, StoreStatus.FAILED}),
}


class ReleaseStatus(str, Enum):
    """Last reported outcome of a Helm release, as seen by `helm status`."""
    DEPLOYED = "deployed"
    FAILED = "failed"
    PENDING_INSTALL = "pending-install"
    PENDING_UPGRADE = "pending-upgrade"
    NOT_FOUND = "not-found"

    @classmethod
    def parse(cls, value: Optional[str]) -> "ReleaseStatus":
        """Unrecognised or missing values are unresolved, i.e. NOT_FOUND."""
        try:
            return cls(value)
        except ValueError:
            return cls.NOT_FOUND


class StoreCreateRequest(BaseModel):
    """Request to create a new store."""
    name: str = Field(
        ...,
        min_length=1,
        max_length=120,
        description="Store display name (free text)",
        examples=["Acme Shop"],
    )


class StoreResponse(BaseModel):
    """Store details returned to the dashboard."""
    storeId: str
    storeName: str
    namespace: str
    status: StoreStatus
    url: Optional[str] = None
    message: Optional[str] = None
    createdAt: datetime
    deletedAt: Optional[datetime] = None


class StoreListResponse(BaseModel):
    stores: List[StoreResponse]
    total: int


class StoreDeletedResponse(BaseModel):
    storeId: str
    status: StoreStatus
    deletedAt: Optional[datetime] = None


class ReconcileResponse(BaseModel):
    transitions: dict[str, StoreStatus]
    count: int


class StoreEvent(BaseModel):
    timestamp: str
    event: str
    message: str
    status: str = ""


class ErrorResponse(BaseModel):
    detail: str
    code: str = "UNKNOWN_ERROR"
