"""
Domain errors raised by the provisioning services.

The router translates these into HTTP status codes; background tasks log them.
"""
from typing import Optional


class StorePlatformError(Exception):
    """Base class for all store platform errors."""


class StoreValidationError(StorePlatformError, ValueError):
    """Rejected input, e.g. an empty store name. Nothing was persisted."""


class StoreNotFoundError(StorePlatformError, LookupError):
    def __init__(self, store_id: str):
        super().__init__(f"Store '{store_id}' not found")
        self.store_id = store_id


class InvalidStoreState(StorePlatformError):
    def __init__(self, store_id: str, status: str, action: str):
        super().__init__(f"Cannot {action} store '{store_id}' in status '{status}'")
        self.store_id = store_id
        self.status = status
        self.action = action


class HelmCommandError(StorePlatformError, RuntimeError):
    def __init__(self, command: list[str], returncode: int, stderr: str):
        super().__init__(f"Helm command failed (rc={returncode}): {stderr[:500]}")
        self.command = command
        self.returncode = returncode
        self.stderr = stderr


class InstallFailed(StorePlatformError):
    """
    A helm install/upgrade exited non-zero, timed out client-side, or could not
    be started. The release may still be partially or fully installed.
    """

    def __init__(self, release: str, diagnostics: str, returncode: Optional[int] = None):
        rc = "timeout" if returncode is None else f"rc={returncode}"
        super().__init__(f"Install of {release} failed ({rc}): {diagnostics[:500]}")
        self.release = release
        self.diagnostics = diagnostics
        self.returncode = returncode


class ReconcileStepError(StorePlatformError):
    """Reconciliation of a single store failed; the pass carries on."""

    def __init__(self, store_id: str, cause: BaseException):
        super().__init__(f"Reconcile of store {store_id} failed: {cause}")
        self.store_id = store_id
        self.cause = cause
