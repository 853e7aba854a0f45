"""
Store API routes — thin HTTP surface over the StoreOrchestrator.

Features:
  - Rate limiting per-IP via slowapi
  - Domain errors mapped to 400 / 404 / 409
  - Lifecycle events from the Redis stream (empty when Redis is disabled)
  - Manual reconciliation trigger (shares the reconciler's non-reentrant lock)
"""

import asyncio
import logging

from fastapi import APIRouter, HTTPException, Query, Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from ..config import settings
from ..db_models import Store
from ..exceptions import InvalidStoreState, StoreNotFoundError, StoreValidationError
from ..models import (
    ErrorResponse,
    ReconcileResponse,
    StoreCreateRequest,
    StoreDeletedResponse,
    StoreEvent,
    StoreListResponse,
    StoreResponse,
    StoreStatus,
)
from ..services.events import read_events
from ..services.orchestrator import StoreOrchestrator

logger = logging.getLogger("stores")

router = APIRouter(prefix="/stores", tags=["stores"])
limiter = Limiter(key_func=get_remote_address)


def _orchestrator(request: Request) -> StoreOrchestrator:
    return request.app.state.orchestrator


def _to_response(store: Store) -> StoreResponse:
    return StoreResponse(
        storeId=store.store_id,
        storeName=store.store_name,
        namespace=store.namespace,
        status=StoreStatus(store.status),
        url=store.url,
        message=store.message,
        createdAt=store.created_at,
        deletedAt=store.deleted_at,
    )


# =========================================================================
# REST Endpoints
# =========================================================================

@router.post("", response_model=StoreResponse, status_code=201,
             responses={400: {"model": ErrorResponse}, 429: {"model": ErrorResponse}})
@limiter.limit(settings.RATE_LIMIT)
async def create_store_endpoint(req: StoreCreateRequest, request: Request):
    """Create a store. Returns immediately with status 'provisioning'."""
    try:
        store = await _orchestrator(request).create(req.name)
    except StoreValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _to_response(store)


@router.get("", response_model=StoreListResponse)
@limiter.limit(settings.RATE_LIMIT)
async def list_stores_endpoint(
    request: Request,
    include_deleted: bool = Query(False, description="Include soft-deleted stores"),
):
    """List stores, newest first."""
    records = await asyncio.to_thread(_orchestrator(request).list, include_deleted)
    stores = [_to_response(s) for s in records]
    return StoreListResponse(stores=stores, total=len(stores))


@router.post("/reconcile", response_model=ReconcileResponse)
@limiter.limit(settings.RATE_LIMIT)
async def reconcile_endpoint(request: Request):
    """Run one reconciliation pass now."""
    transitions = await _orchestrator(request).reconcile()
    return ReconcileResponse(transitions=transitions, count=len(transitions))


@router.get("/{store_id}", response_model=StoreResponse,
            responses={404: {"model": ErrorResponse}})
@limiter.limit(settings.RATE_LIMIT)
async def get_store_endpoint(store_id: str, request: Request):
    """Get a single store by id."""
    try:
        return _to_response(await asyncio.to_thread(_orchestrator(request).get, store_id))
    except StoreNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.delete("/{store_id}", response_model=StoreDeletedResponse,
               responses={404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}})
@limiter.limit(settings.RATE_LIMIT)
async def delete_store_endpoint(store_id: str, request: Request):
    """Tear down a store. Waits for uninstall and namespace deletion."""
    try:
        store = await _orchestrator(request).delete(store_id)
    except StoreNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to delete store {store_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to delete store: {str(e)}")
    return StoreDeletedResponse(
        storeId=store.store_id,
        status=StoreStatus(store.status),
        deletedAt=store.deleted_at,
    )


@router.post("/{store_id}/reprovision", response_model=StoreResponse, status_code=202,
             responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}})
@limiter.limit(settings.RATE_LIMIT)
async def reprovision_store_endpoint(store_id: str, request: Request):
    """Re-create a ready store's namespace and release in the background."""
    try:
        store = await _orchestrator(request).reprovision(store_id)
    except StoreNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidStoreState as e:
        raise HTTPException(status_code=409, detail=str(e))
    return _to_response(store)


@router.get("/{store_id}/events")
@limiter.limit(settings.RATE_LIMIT)
async def get_store_events(store_id: str, request: Request):
    """Lifecycle events for a store from its Redis stream."""
    try:
        await asyncio.to_thread(_orchestrator(request).get, store_id)
    except StoreNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    events = [StoreEvent(**e) for e in read_events(store_id)]
    return {"store": store_id, "events": events, "count": len(events)}
