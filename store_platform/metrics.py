"""
Prometheus metrics for the provisioning lifecycle.
"""

from prometheus_client import Counter, Gauge

from .models import StoreStatus

STORES_CREATED = Counter(
    "store_platform_stores_created_total",
    "Total stores created",
)
STORES_DELETED = Counter(
    "store_platform_stores_deleted_total",
    "Total stores deleted",
)
PROVISION_FAILURES = Counter(
    "store_platform_provisioning_failures_total",
    "Provisioning failures",
    ["stage"],  # install | reconcile
)
RECONCILE_PASSES = Counter(
    "store_platform_reconcile_passes_total",
    "Completed reconciliation passes",
)
RECONCILE_ERRORS = Counter(
    "store_platform_reconcile_errors_total",
    "Per-store reconciliation errors",
)
STORES_TOTAL = Gauge(
    "store_platform_stores_total",
    "Current stores by status",
    ["status"],
)


def update_gauges(counts: dict[str, int]):
    for status in StoreStatus:
        STORES_TOTAL.labels(status=status.value).set(counts.get(status.value, 0))
