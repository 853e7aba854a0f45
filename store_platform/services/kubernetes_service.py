"""
Kubernetes service layer — namespace lifecycle for store isolation.

Design principles:
  - Idempotent: creating an existing namespace or deleting a missing one is success
  - Only the 409/404 reason codes are swallowed; every other API error propagates
  - Deletion is asynchronous in the cluster: returning does not mean reclaimed
"""

import logging
from typing import Optional

from kubernetes import client, config
from kubernetes.client import ApiException

from ..config import settings

logger = logging.getLogger("kubernetes_service")

_k8s_loaded = False


def _ensure_k8s():
    """Load Kubernetes config exactly once."""
    global _k8s_loaded
    if _k8s_loaded:
        return
    if settings.IN_CLUSTER:
        config.load_incluster_config()
    else:
        config.load_kube_config(config_file=settings.KUBECONFIG or None)
    _k8s_loaded = True


def core_api() -> client.CoreV1Api:
    _ensure_k8s()
    return client.CoreV1Api()


class NamespaceManager:
    """Creates and deletes per-store namespaces."""

    def __init__(self, api: Optional[client.CoreV1Api] = None):
        self._api = api

    @property
    def api(self) -> client.CoreV1Api:
        if self._api is None:
            self._api = core_api()
        return self._api

    def ensure_namespace(self, name: str, labels: dict[str, str]) -> bool:
        """Create namespace idempotently. Returns True if created, False if existed."""
        try:
            self.api.create_namespace(
                client.V1Namespace(
                    metadata=client.V1ObjectMeta(name=name, labels=labels)
                )
            )
            logger.info(f"Namespace {name} created")
            return True
        except ApiException as e:
            if e.status == 409:
                logger.info(f"Namespace {name} already exists")
                return False
            raise

    def delete_namespace(self, name: str) -> bool:
        """Delete namespace and everything in it. Returns False if already gone."""
        try:
            self.api.delete_namespace(name=name)
            logger.info(f"Namespace {name} deletion initiated")
            return True
        except ApiException as e:
            if e.status == 404:
                logger.info(f"Namespace {name} already gone")
                return False
            raise
