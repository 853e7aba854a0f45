"""
Store provisioning orchestrator — owns the Store lifecycle.

    provisioning ──> ready ──┐
         │                   ├──> deleted   (terminal)
         └────> failed ──────┘

  create     persist a `provisioning` record, return at once, and spawn a
             background task: ensure namespace → build values → helm install.
             The task never writes status; its errors are logged and noted.
  reconcile  recurring, non-overlapping pass over every `provisioning`
             record: release `deployed` → ready, `failed` → failed, anything
             else is still converging. One store's error never stops the pass.
  delete     synchronous teardown: uninstall (best effort) → delete
             namespace → mark `deleted`.

All status writes are conditional on the current status, so a stale
reconciliation result can never overwrite a deleted record. Blocking helm,
Kubernetes and database calls run in worker threads so the event loop is never
stalled.
"""

import asyncio
import logging
import uuid
from typing import Optional

from ..config import settings
from ..db_models import Store, utcnow
from ..exceptions import (
    InstallFailed,
    InvalidStoreState,
    ReconcileStepError,
    StoreNotFoundError,
    StorePlatformError,
    StoreValidationError,
)
from ..metrics import (
    PROVISION_FAILURES,
    RECONCILE_ERRORS,
    RECONCILE_PASSES,
    STORES_CREATED,
    STORES_DELETED,
    update_gauges,
)
from ..models import TRANSITIONS, ReleaseStatus, StoreStatus
from .events import publish_event
from .helm_service import HelmInstaller
from .kubernetes_service import NamespaceManager
from .store_repository import StoreRepository
from .values_generator import build_values, namespace_for, url_for

logger = logging.getLogger("orchestrator")

MAX_NAME_LENGTH = 120
STORE_ID_LENGTH = 8
ID_ATTEMPTS = 5

# Release status → record status. Everything else leaves the record untouched.
RESOLUTIONS = {
    ReleaseStatus.DEPLOYED: (StoreStatus.READY, "Store is ready"),
    ReleaseStatus.FAILED: (StoreStatus.FAILED, "Release reported failed"),
}


def generate_store_id() -> str:
    return uuid.uuid4().hex[:STORE_ID_LENGTH]


class StoreOrchestrator:
    def __init__(
        self,
        repository: Optional[StoreRepository] = None,
        namespaces: Optional[NamespaceManager] = None,
        installer: Optional[HelmInstaller] = None,
        reconcile_interval: float = settings.RECONCILE_INTERVAL,
    ):
        self.repository = repository or StoreRepository()
        self.namespaces = namespaces or NamespaceManager()
        self.installer = installer or HelmInstaller()
        self.reconcile_interval = reconcile_interval
        self._reconcile_lock = asyncio.Lock()
        self._reconcile_task: Optional[asyncio.Task] = None
        self._provision_tasks: dict[str, asyncio.Task] = {}

    # ------------------------------------------------------------------
    # Lifecycle of the orchestrator itself
    # ------------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._reconcile_task is not None and not self._reconcile_task.done()

    async def start(self):
        """Register the chart repository and start the reconciliation loop."""
        if self.running:
            return
        await asyncio.to_thread(self.installer.add_repo)
        self._reconcile_task = asyncio.create_task(self._reconcile_loop(), name="store-reconciler")
        logger.info(f"Reconciler started (interval={self.reconcile_interval}s)")

    async def stop(self):
        """Stop the reconciler and abandon in-flight provisioning tasks."""
        if self._reconcile_task is not None:
            self._reconcile_task.cancel()
            await asyncio.gather(self._reconcile_task, return_exceptions=True)
            self._reconcile_task = None
        tasks = list(self._provision_tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            # helm subprocesses keep running; reconciliation picks up the outcome later
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info(f"Abandoned {len(tasks)} in-flight provisioning task(s)")
        logger.info("Reconciler stopped")

    async def drain(self):
        """Wait for every in-flight provisioning task to finish."""
        while self._provision_tasks:
            await asyncio.gather(*list(self._provision_tasks.values()), return_exceptions=True)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, store_id: str) -> Store:
        store = self.repository.get(store_id)
        if store is None:
            raise StoreNotFoundError(store_id)
        return store

    def list(self, include_deleted: bool = False) -> list[Store]:
        return self.repository.list(include_deleted=include_deleted)

    # ------------------------------------------------------------------
    # Create + background provisioning
    # ------------------------------------------------------------------

    async def create(self, store_name: str) -> Store:
        """Persist a provisioning record and kick off provisioning in the background."""
        name = (store_name or "").strip()
        if not name:
            raise StoreValidationError("Store name is required")
        if len(name) > MAX_NAME_LENGTH:
            raise StoreValidationError(f"Store name must be at most {MAX_NAME_LENGTH} characters")

        for _ in range(ID_ATTEMPTS):
            store_id = generate_store_id()
            store = Store(
                store_id=store_id,
                store_name=name,
                namespace=namespace_for(store_id),
                status=StoreStatus.PROVISIONING.value,
                url=url_for(store_id),
                message="Provisioning started",
            )
            if await asyncio.to_thread(self.repository.insert, store):
                break
        else:
            raise StorePlatformError("Could not allocate a unique store id")

        logger.info(f"Store {store.store_id} ({name!r}) created, provisioning in background")
        STORES_CREATED.inc()
        publish_event(store.store_id, "CREATED", f"Store '{name}' created", StoreStatus.PROVISIONING.value)
        self._spawn(store)
        return store

    def _spawn(self, store: Store):
        task = asyncio.create_task(self._run_provisioning(store), name=f"provision-{store.store_id}")
        self._provision_tasks[store.store_id] = task
        task.add_done_callback(lambda _t, sid=store.store_id: self._provision_tasks.pop(sid, None))

    async def _run_provisioning(self, store: Store):
        """Task boundary: log and note errors, never write status."""
        try:
            await self.provision(store)
        except InstallFailed as e:
            PROVISION_FAILURES.labels(stage="install").inc()
            logger.error(f"Store {store.store_id}: install failed, awaiting reconciliation: {e}")
            await self._note(store.store_id, f"Install failed: {e.diagnostics[:500]}")
            publish_event(store.store_id, "INSTALL_FAILED", e.diagnostics[:200], store.status)
        except Exception as e:
            PROVISION_FAILURES.labels(stage="install").inc()
            logger.error(f"Store {store.store_id}: provisioning error: {e}", exc_info=True)
            await self._note(store.store_id, f"Provisioning error: {str(e)[:500]}")
            publish_event(store.store_id, "PROVISIONING_ERROR", str(e)[:200], store.status)

    async def _note(self, store_id: str, message: str):
        try:
            await asyncio.to_thread(self.repository.update_message, store_id, message)
        except Exception as e:
            logger.warning(f"Store {store_id}: could not record message: {e}")

    async def _is_deleted(self, store_id: str) -> bool:
        current = await asyncio.to_thread(self.repository.get, store_id)
        return current is None or current.status == StoreStatus.DELETED.value

    async def provision(self, store: Store):
        """
        Ensure namespace, generate values, install the release. Does not decide
        status: a successful install is not yet a healthy release.

        Stops early once the record is deleted. A release that is already
        deployed is left alone so its generated credentials are never rotated.
        """
        sid = store.store_id
        labels = {
            "store-id": sid,
            "managed-by": settings.MANAGED_BY,
            "app.kubernetes.io/managed-by": settings.MANAGED_BY,
        }

        if await self._is_deleted(sid):
            logger.info(f"[{sid}] Store deleted, skipping provisioning")
            return
        logger.info(f"[{sid}] Step 1/3: Ensuring namespace {store.namespace}")
        await asyncio.to_thread(self.namespaces.ensure_namespace, store.namespace, labels)
        publish_event(sid, "NAMESPACE_READY", f"Namespace {store.namespace} ready", store.status)

        current = await asyncio.to_thread(self.installer.status, store.release, store.namespace)
        if current is ReleaseStatus.DEPLOYED:
            logger.info(f"[{sid}] Release {store.release} already deployed, keeping its values")
            return

        if await self._is_deleted(sid):
            logger.info(f"[{sid}] Store deleted, skipping release install")
            return
        logger.info(f"[{sid}] Step 2/3: Generating release values")
        values = build_values(sid, store.store_name)

        logger.info(f"[{sid}] Step 3/3: Installing release {store.release}")
        publish_event(sid, "RELEASE_INSTALL", f"Installing release {store.release}", store.status)
        await asyncio.to_thread(self.installer.install, store.release, store.namespace, values)
        publish_event(sid, "RELEASE_INSTALLED", f"Release {store.release} installed", store.status)

    async def reprovision(self, store_id: str) -> Store:
        """Re-run provisioning for a ready store whose resources were lost. Status is unchanged."""
        store = await asyncio.to_thread(self.get, store_id)
        if store.status != StoreStatus.READY.value:
            raise InvalidStoreState(store_id, store.status, "reprovision")
        if store_id in self._provision_tasks:
            raise InvalidStoreState(store_id, "provisioning in progress", "reprovision")
        logger.info(f"Store {store_id}: reprovisioning namespace and release")
        publish_event(store_id, "REPROVISION", "Re-running provisioning", store.status)
        self._spawn(store)
        return store

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    async def _reconcile_loop(self):
        """Sleep-after-completion loop: passes never overlap."""
        while True:
            try:
                transitions = await self.reconcile()
                if transitions:
                    logger.info(f"Reconciled {len(transitions)} store(s): {transitions}")
            except Exception as e:
                logger.error(f"Reconciliation pass failed: {e}", exc_info=True)
            await asyncio.sleep(self.reconcile_interval)

    async def reconcile(self) -> dict[str, StoreStatus]:
        """One pass over all provisioning records. Returns the transitions applied."""
        async with self._reconcile_lock:
            transitions: dict[str, StoreStatus] = {}
            pending = await asyncio.to_thread(self.repository.list_by_status, StoreStatus.PROVISIONING)
            for store in pending:
                try:
                    new_status = await self._reconcile_one(store)
                except Exception as e:
                    RECONCILE_ERRORS.inc()
                    logger.error(str(ReconcileStepError(store.store_id, e)))
                    continue
                if new_status is not None:
                    transitions[store.store_id] = new_status
            RECONCILE_PASSES.inc()
            try:
                update_gauges(await asyncio.to_thread(self.repository.count_by_status))
            except Exception as e:
                logger.warning(f"Could not refresh store gauges: {e}")
            return transitions

    async def _reconcile_one(self, store: Store) -> Optional[StoreStatus]:
        release_status = await asyncio.to_thread(self.installer.status, store.release, store.namespace)
        resolution = RESOLUTIONS.get(release_status)
        if resolution is None:
            logger.debug(f"Store {store.store_id}: release {release_status.value}, still converging")
            return None

        target, message = resolution
        moved = await asyncio.to_thread(
            self.repository.transition, store.store_id, target, TRANSITIONS[target], message=message,
        )
        if not moved:
            logger.info(f"Store {store.store_id} left provisioning concurrently, skipping")
            return None

        if target is StoreStatus.FAILED:
            PROVISION_FAILURES.labels(stage="reconcile").inc()
            logger.warning(f"Store {store.store_id}: release failed, marked failed")
        else:
            logger.info(f"Store {store.store_id}: ✓ ready at {store.url}")
        publish_event(store.store_id, target.value.upper(), message, target.value)
        return target

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    async def delete(self, store_id: str) -> Store:
        """
        Synchronous teardown. Uninstall never raises (namespace deletion is the
        backstop); a namespace deletion error propagates and leaves the record as is.

        An in-flight provisioning task is awaited first so it cannot recreate the
        namespace or release after teardown.
        """
        store = await asyncio.to_thread(self.get, store_id)
        if store.status == StoreStatus.DELETED.value:
            logger.info(f"Store {store_id} already deleted, nothing to do")
            return store

        logger.info(f"Deleting store {store_id}, cleaning up namespace {store.namespace}")
        publish_event(store_id, "DELETE_START", f"Deleting store {store_id}", store.status)

        in_flight = self._provision_tasks.get(store_id)
        if in_flight is not None:
            logger.info(f"Store {store_id}: waiting for in-flight provisioning before teardown")
            await asyncio.gather(in_flight, return_exceptions=True)

        await asyncio.to_thread(self.installer.uninstall, store.release, store.namespace)
        await asyncio.to_thread(self.namespaces.delete_namespace, store.namespace)

        moved = await asyncio.to_thread(
            self.repository.transition,
            store_id,
            StoreStatus.DELETED,
            TRANSITIONS[StoreStatus.DELETED],
            message="Store deleted",
            deleted_at=utcnow(),
        )
        if moved:
            STORES_DELETED.inc()
            publish_event(store_id, "DELETED", f"Store {store_id} cleanup complete", StoreStatus.DELETED.value)
            logger.info(f"Store {store_id} cleanup complete")
        else:
            logger.info(f"Store {store_id} was deleted concurrently")
        return await asyncio.to_thread(self.get, store_id)
