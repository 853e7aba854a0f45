"""
Helm wrapper — installs, uninstalls and probes store releases via the helm CLI.

  install    blocks until helm reports completion or INSTALL_TIMEOUT elapses;
             raises InstallFailed with captured output. Not atomic: a failed
             or timed-out call may leave the release partly or fully applied.
  uninstall  best-effort, never raises (namespace deletion is the backstop).
  status     closed ReleaseStatus enum, never raises; anything it cannot
             resolve is NOT_FOUND.
"""

import json as _json
import logging
import os
import subprocess
from typing import Optional

import yaml

from ..config import settings
from ..exceptions import HelmCommandError, InstallFailed
from ..models import ReleaseStatus

logger = logging.getLogger("helm_service")

# Seconds allowed on top of helm's own --timeout before the client gives up
CLIENT_TIMEOUT_GRACE = 30
PROBE_TIMEOUT = 60

STUCK_STATES = {
    ReleaseStatus.FAILED,
    ReleaseStatus.PENDING_INSTALL,
    ReleaseStatus.PENDING_UPGRADE,
}


def helm_run(args: list[str], check: bool = True, timeout: Optional[float] = PROBE_TIMEOUT) -> subprocess.CompletedProcess:
    """Execute a Helm CLI command. Raises HelmCommandError on failure if check=True."""
    cmd = ["helm"] + args
    logger.info(f"helm> {' '.join(cmd)}")
    result = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
    if result.stdout:
        logger.debug(f"helm stdout: {result.stdout[:800]}")
    if result.stderr:
        logger.warning(f"helm stderr: {result.stderr[:800]}")
    if check and result.returncode != 0:
        raise HelmCommandError(cmd, result.returncode, result.stderr or "")
    return result


def _as_text(output) -> str:
    if output is None:
        return ""
    if isinstance(output, bytes):
        return output.decode("utf-8", errors="replace")
    return output


class HelmInstaller:
    """Release installer for the store chart."""

    def __init__(
        self,
        chart: str = settings.HELM_CHART,
        values_dir: str = settings.VALUES_DIR,
        install_timeout: int = settings.INSTALL_TIMEOUT,
    ):
        self.chart = chart
        self.values_dir = values_dir
        self.install_timeout = install_timeout

    # --- repository ---

    def add_repo(self, name: str = settings.HELM_REPO_NAME, url: str = settings.HELM_REPO_URL) -> bool:
        """Register and refresh the chart repository. Failures are logged only."""
        if not name or not url:
            return False
        try:
            helm_run(["repo", "add", name, url, "--force-update"])
            helm_run(["repo", "update", name], timeout=300)
            logger.info(f"Helm repo {name} registered ({url})")
            return True
        except (HelmCommandError, OSError, subprocess.TimeoutExpired) as e:
            logger.warning(f"Helm repo {name} could not be registered (non-fatal): {e}")
            return False

    # --- values file ---

    def write_values(self, release: str, values: dict) -> str:
        """Write values to a 0600 YAML file scoped to the release."""
        os.makedirs(self.values_dir, exist_ok=True)
        path = os.path.join(self.values_dir, f"{release}.yaml")
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w") as f:
            yaml.safe_dump(values, f, default_flow_style=False, sort_keys=False)
        return path

    # --- status ---

    def status(self, release: str, namespace: str) -> ReleaseStatus:
        """
        Get the last reported status of a release. NOT_FOUND covers a missing
        release, a failed query and any status outside the ReleaseStatus enum.
        """
        try:
            r = helm_run(["status", release, "-n", namespace, "-o", "json"], check=False)
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.warning(f"helm status {release} failed: {e}")
            return ReleaseStatus.NOT_FOUND
        if r.returncode != 0:
            return ReleaseStatus.NOT_FOUND
        try:
            data = _json.loads(r.stdout)
        except ValueError:
            logger.warning(f"helm status {release} returned non-JSON output")
            return ReleaseStatus.NOT_FOUND
        if not isinstance(data, dict):
            return ReleaseStatus.NOT_FOUND
        raw = (data.get("info") or {}).get("status")
        status = ReleaseStatus.parse(raw)
        if status is ReleaseStatus.NOT_FOUND and raw:
            logger.info(f"Release {release} reported unrecognised status '{raw}', treating as unresolved")
        return status

    # --- install ---

    def _cleanup_stuck(self, release: str, namespace: str):
        """Force-remove a stuck release so a fresh install can proceed."""
        logger.warning(f"Cleaning up stuck Helm release {release} in {namespace}")
        try:
            helm_run(["uninstall", release, "-n", namespace, "--no-hooks"], check=False, timeout=300)
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.warning(f"Stuck release cleanup for {release} failed: {e}")

    def install(self, release: str, namespace: str, values: dict):
        """
        Install the store chart as `release` into `namespace`, or upgrade it in
        place if it is already deployed. Raises InstallFailed.
        """
        current = self.status(release, namespace)
        if current in STUCK_STATES:
            logger.warning(f"Helm release {release} is stuck in '{current.value}', cleaning up")
            self._cleanup_stuck(release, namespace)
            current = ReleaseStatus.NOT_FOUND

        verb = "upgrade" if current is ReleaseStatus.DEPLOYED else "install"
        values_path = self.write_values(release, values)
        args = [
            verb, release, self.chart,
            "-n", namespace,
            "-f", values_path,
            "--wait",
            "--timeout", f"{self.install_timeout}s",
        ]
        logger.info(f"Helm {verb} of {release} into {namespace} (timeout {self.install_timeout}s)")
        try:
            result = helm_run(args, check=False, timeout=self.install_timeout + CLIENT_TIMEOUT_GRACE)
        except subprocess.TimeoutExpired as e:
            diagnostics = (_as_text(e.stderr) or _as_text(e.stdout) or f"timed out after {e.timeout}s")
            raise InstallFailed(release, diagnostics) from e
        except OSError as e:
            raise InstallFailed(release, f"could not run helm: {e}", returncode=-1) from e
        finally:
            try:
                os.remove(values_path)
            except OSError:
                logger.debug(f"Values file {values_path} already removed")

        if result.returncode != 0:
            raise InstallFailed(
                release,
                (result.stderr or result.stdout or "").strip(),
                returncode=result.returncode,
            )
        logger.info(f"Helm release {release} {'upgraded' if verb == 'upgrade' else 'installed'}")

    # --- uninstall ---

    def uninstall(self, release: str, namespace: str) -> bool:
        """Best-effort uninstall. Never raises."""
        try:
            r = helm_run(["uninstall", release, "-n", namespace], check=False, timeout=300)
        except Exception as e:
            logger.warning(f"Helm uninstall error for {release} (non-fatal): {e}")
            return False
        if r.returncode != 0:
            logger.warning(f"Helm uninstall of {release} failed (non-fatal): {(r.stderr or '')[:300]}")
            return False
        logger.info(f"Helm release {release} uninstalled")
        return True
