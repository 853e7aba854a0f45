"""Tests for namespace lifecycle against a mocked CoreV1Api."""

from unittest.mock import MagicMock

import pytest
from kubernetes.client import ApiException

from store_platform.services.kubernetes_service import NamespaceManager

LABELS = {"store-id": "abc123", "managed-by": "store-provisioning-platform"}


@pytest.fixture
def api():
    return MagicMock()


@pytest.fixture
def manager(api):
    return NamespaceManager(api=api)


class TestEnsureNamespace:
    def test_creates_with_labels(self, manager, api):
        assert manager.ensure_namespace("store-abc123", LABELS) is True
        body = api.create_namespace.call_args.args[0]
        assert body.metadata.name == "store-abc123"
        assert body.metadata.labels == LABELS

    def test_second_call_is_success(self, manager, api):
        api.create_namespace.side_effect = [None, ApiException(status=409, reason="AlreadyExists")]
        assert manager.ensure_namespace("store-abc123", LABELS) is True
        assert manager.ensure_namespace("store-abc123", LABELS) is False
        assert api.create_namespace.call_count == 2

    def test_other_errors_propagate(self, manager, api):
        api.create_namespace.side_effect = ApiException(status=403, reason="Forbidden")
        with pytest.raises(ApiException) as exc:
            manager.ensure_namespace("store-abc123", LABELS)
        assert exc.value.status == 403


class TestDeleteNamespace:
    def test_initiates_deletion(self, manager, api):
        assert manager.delete_namespace("store-abc123") is True
        api.delete_namespace.assert_called_once_with(name="store-abc123")

    def test_absent_namespace_is_success(self, manager, api):
        api.delete_namespace.side_effect = ApiException(status=404, reason="NotFound")
        assert manager.delete_namespace("store-abc123") is False

    def test_other_errors_propagate(self, manager, api):
        api.delete_namespace.side_effect = ApiException(status=500, reason="InternalError")
        with pytest.raises(ApiException):
            manager.delete_namespace("store-abc123")
