"""Tests for the HTTP surface."""

from fastapi.testclient import TestClient
from kubernetes.client import ApiException

from store_platform.models import ReleaseStatus


def _create(client: TestClient, name: str = "Acme Shop") -> dict:
    resp = client.post("/api/stores", json={"name": name})
    assert resp.status_code == 201
    return resp.json()


def test_health(client: TestClient):
    resp = client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert data["reconciler"] == "running"
    assert data["redis"] == "disabled"


def test_create_store(client: TestClient):
    data = _create(client)
    assert data["status"] == "provisioning"
    assert data["storeName"] == "Acme Shop"
    assert data["namespace"] == f"store-{data['storeId']}"
    assert data["url"] == f"http://store-{data['storeId']}.localhost:8080"
    assert data["deletedAt"] is None

    resp = client.get(f"/api/stores/{data['storeId']}")
    assert resp.status_code == 200
    assert resp.json()["status"] == "provisioning"


def test_create_empty_name_rejected(client: TestClient):
    assert client.post("/api/stores", json={"name": ""}).status_code == 422
    assert client.post("/api/stores", json={"name": "   "}).status_code == 400
    assert client.get("/api/stores").json()["total"] == 0


def test_list_stores(client: TestClient):
    first = _create(client, "First")
    second = _create(client, "Second")
    resp = client.get("/api/stores")
    assert resp.status_code == 200
    data = resp.json()
    assert data["total"] == 2
    assert [s["storeId"] for s in data["stores"]] == [second["storeId"], first["storeId"]]


def test_get_unknown_store(client: TestClient):
    assert client.get("/api/stores/abc123").status_code == 404


def test_reconcile_marks_ready(client: TestClient, installer):
    data = _create(client)
    installer.statuses[data["namespace"]] = ReleaseStatus.DEPLOYED

    resp = client.post("/api/stores/reconcile")
    assert resp.status_code == 200
    assert resp.json()["transitions"] == {data["storeId"]: "ready"}
    assert client.get(f"/api/stores/{data['storeId']}").json()["status"] == "ready"


def test_delete_store(client: TestClient, installer, namespaces):
    data = _create(client)
    resp = client.delete(f"/api/stores/{data['storeId']}")
    assert resp.status_code == 200
    body = resp.json()
    assert body["storeId"] == data["storeId"]
    assert body["status"] == "deleted"
    assert body["deletedAt"] is not None
    assert data["namespace"] in installer.uninstalled

    assert client.get("/api/stores").json()["total"] == 0
    listed = client.get("/api/stores", params={"include_deleted": "true"}).json()
    assert listed["total"] == 1


def test_delete_unknown_store(client: TestClient, installer, namespaces):
    assert client.delete("/api/stores/abc123").status_code == 404
    assert installer.uninstalled == []
    assert ("delete", "store-abc123") not in namespaces.calls


def test_delete_namespace_failure_is_500(client: TestClient, namespaces):
    data = _create(client)
    namespaces.error = ApiException(status=500, reason="InternalError")
    resp = client.delete(f"/api/stores/{data['storeId']}")
    assert resp.status_code == 500
    namespaces.error = None
    assert client.get(f"/api/stores/{data['storeId']}").json()["status"] == "provisioning"


def test_reprovision_requires_ready(client: TestClient):
    data = _create(client)
    resp = client.post(f"/api/stores/{data['storeId']}/reprovision")
    assert resp.status_code == 409
    assert client.post("/api/stores/abc123/reprovision").status_code == 404


def test_events_without_redis(client: TestClient):
    data = _create(client)
    resp = client.get(f"/api/stores/{data['storeId']}/events")
    assert resp.status_code == 200
    assert resp.json()["events"] == []
    assert client.get("/api/stores/abc123/events").status_code == 404


def test_metrics(client: TestClient):
    _create(client)
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert "store_platform_stores_created_total" in resp.text
    assert 'store_platform_stores_total{status="provisioning"}' in resp.text
