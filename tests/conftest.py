"""Pytest configuration and fixtures for store platform tests."""

import os
import tempfile

import pytest

# Point settings at throwaway resources before importing app modules
_temp_db = tempfile.NamedTemporaryFile(suffix=".db", delete=False)
_temp_db.close()
_values_dir = tempfile.mkdtemp(prefix="helm-values-")
os.environ["DATABASE_URL"] = f"sqlite:///{_temp_db.name}"
os.environ["VALUES_DIR"] = _values_dir
os.environ["REDIS_URL"] = ""
os.environ["RATE_LIMIT"] = "1000/minute"
os.environ["DOMAIN_SUFFIX"] = "localhost"
os.environ["STORE_URL_PORT"] = "8080"

from store_platform.models import ReleaseStatus  # noqa: E402


class FakeNamespaceManager:
    """In-memory stand-in for the Kubernetes namespace API."""

    def __init__(self):
        self.namespaces: dict[str, dict] = {}
        self.calls: list[tuple] = []
        self.error: Exception | None = None

    def ensure_namespace(self, name, labels):
        self.calls.append(("ensure", name))
        if self.error:
            raise self.error
        if name in self.namespaces:
            return False
        self.namespaces[name] = dict(labels)
        return True

    def delete_namespace(self, name):
        self.calls.append(("delete", name))
        if self.error:
            raise self.error
        return self.namespaces.pop(name, None) is not None


class FakeInstaller:
    """In-memory stand-in for the helm CLI."""

    def __init__(self):
        self.statuses: dict[str, ReleaseStatus] = {}
        self.status_errors: dict[str, Exception] = {}
        self.installed: dict[str, dict] = {}
        self.uninstalled: list[str] = []
        self.status_calls: list[str] = []
        self.install_error: Exception | None = None
        self.status_after_install = ReleaseStatus.DEPLOYED
        self.repo_added = False

    def add_repo(self):
        self.repo_added = True
        return True

    def install(self, release, namespace, values):
        if self.install_error:
            raise self.install_error
        self.installed[release] = values
        self.statuses[release] = self.status_after_install

    def uninstall(self, release, namespace):
        self.uninstalled.append(release)
        self.statuses.pop(release, None)
        return True

    def status(self, release, namespace):
        self.status_calls.append(release)
        if release in self.status_errors:
            raise self.status_errors[release]
        return self.statuses.get(release, ReleaseStatus.NOT_FOUND)


@pytest.fixture(scope="session", autouse=True)
def setup_test_database():
    """Initialize test database once per session."""
    from store_platform.database import init_db

    init_db()
    yield

    try:
        os.unlink(_temp_db.name)
    except OSError:
        pass
    for suffix in ["-wal", "-shm"]:
        try:
            os.unlink(_temp_db.name + suffix)
        except OSError:
            pass


def _truncate_stores():
    from sqlalchemy import delete

    from store_platform.database import get_db
    from store_platform.db_models import Store

    with get_db() as session:
        session.exec(delete(Store))


@pytest.fixture(autouse=True)
def clear_stores():
    """Clear store records before and after each test for isolation."""
    _truncate_stores()
    yield
    _truncate_stores()


@pytest.fixture
def repository():
    from store_platform.services.store_repository import StoreRepository

    return StoreRepository()


@pytest.fixture
def namespaces():
    return FakeNamespaceManager()


@pytest.fixture
def installer():
    return FakeInstaller()


@pytest.fixture
def orchestrator(repository, namespaces, installer):
    from store_platform.services.orchestrator import StoreOrchestrator

    return StoreOrchestrator(
        repository=repository,
        namespaces=namespaces,
        installer=installer,
        reconcile_interval=0.01,
    )


@pytest.fixture
def client(repository, namespaces, installer):
    """FastAPI test client wired to fake cluster collaborators.

    The reconciler only runs its startup pass; tests trigger passes explicitly.
    """
    from fastapi.testclient import TestClient

    from store_platform.main import app
    from store_platform.services.orchestrator import StoreOrchestrator

    app.state.orchestrator = StoreOrchestrator(
        repository=repository,
        namespaces=namespaces,
        installer=installer,
        reconcile_interval=3600,
    )
    with TestClient(app) as c:
        yield c
    del app.state.orchestrator
