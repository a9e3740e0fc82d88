"""Vault gateway that drives the ``vault`` CLI inside the compose service.

Used when Vault is only reachable from inside the compose network. Payloads
are staged as local temporary files, copied into the container with
``docker compose cp`` and removed again through a ``TempArtifacts`` scope.
"""

import json
import subprocess
from typing import Any, Optional, Sequence

from thothixctl.artifacts import TempArtifacts
from thothixctl.compose import ComposeError, ComposeProject
from thothixctl.vault_client import AuthFailure, StoreOperationFailed, StoreUnavailable, VaultError

_AUTH_MARKERS = ("permission denied", "code: 403", "code: 401", "missing client token")
_UNAVAILABLE_MARKERS = (
    "connection refused",
    "vault is sealed",
    "no such service",
    "is not running",
    "code: 503",
)


def classify_cli_error(stderr: str, operation: str, path: Optional[str] = None) -> VaultError:
    """Map ``vault`` CLI stderr to the gateway error types."""
    message = stderr.strip() or "vault command failed"
    lowered = message.lower()
    if any(marker in lowered for marker in _AUTH_MARKERS):
        return AuthFailure(message, operation=operation, path=path)
    if any(marker in lowered for marker in _UNAVAILABLE_MARKERS):
        return StoreUnavailable(message, operation=operation, path=path)
    return StoreOperationFailed(message, operation=operation, path=path)


class ComposeVaultGateway:
    """Vault operations through ``docker compose exec <service> vault ...``."""

    def __init__(
        self,
        project: ComposeProject,
        addr: str,
        token: Optional[str],
        artifacts: TempArtifacts,
        service: str = "vault",
        timeout: float = 60.0,
    ):
        self.project = project
        self.addr = addr
        self.token = token
        self.artifacts = artifacts
        self.service = service
        self.timeout = timeout

    def _vault_env(self) -> dict[str, str]:
        env = {"VAULT_ADDR": self.addr}
        if self.token:
            env["VAULT_TOKEN"] = self.token
        return env

    def _run(self, args: Sequence[str], operation: str, path: Optional[str] = None) -> subprocess.CompletedProcess:
        try:
            return subprocess.run(
                self.project.exec_args(self.service, ["vault", *args], env=self._vault_env()),
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except (OSError, ComposeError) as e:
            raise StoreUnavailable(str(e), operation=operation, path=path) from e
        except subprocess.TimeoutExpired as e:
            raise StoreUnavailable(f"timed out after {self.timeout}s", operation=operation, path=path) from e

    def _vault(self, args: Sequence[str], operation: str, path: Optional[str] = None) -> str:
        result = self._run(args, operation, path)
        if result.returncode != 0:
            raise classify_cli_error(result.stderr or result.stdout or "", operation, path)
        return result.stdout

    def _vault_json(self, args: Sequence[str], operation: str, path: Optional[str] = None) -> Any:
        output = self._vault([*args, "-format=json"], operation, path)
        try:
            return json.loads(output)
        except ValueError as e:
            raise StoreOperationFailed(f"invalid JSON output: {e}", operation=operation, path=path) from e

    def _stage(self, local_name: str, remote_path: str, content: str, operation: str) -> None:
        """Write a local artifact, copy it into the container, drop the local copy."""
        try:
            local = self.artifacts.write(local_name, content)
        except OSError as e:
            raise StoreOperationFailed(
                f"cannot stage {local_name}: {e.strerror or e}", operation=operation, path=remote_path
            ) from e
        try:
            result = subprocess.run(
                self.project.args("cp", str(local), f"{self.service}:{remote_path}"),
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except (OSError, ComposeError, subprocess.TimeoutExpired) as e:
            raise StoreUnavailable(str(e), operation=operation, path=remote_path) from e
        finally:
            self.artifacts.release(local)
        if result.returncode != 0:
            raise classify_cli_error(result.stderr, operation, remote_path)

    def _remove_remote(self, remote_path: str) -> None:
        # Best effort; the container's /tmp is not ours to fail on.
        try:
            subprocess.run(
                self.project.exec_args(self.service, ["rm", "-f", remote_path]),
                capture_output=True,
                timeout=self.timeout,
            )
        except (OSError, ComposeError, subprocess.TimeoutExpired):
            pass

    def is_ready(self) -> bool:
        try:
            return self._run(["status"], "status").returncode == 0
        except VaultError:
            return False

    def mount_exists(self, mount: str) -> bool:
        try:
            mounts = self._vault_json(["secrets", "list"], "list mounts")
        except VaultError:
            return False
        return f"{mount.strip('/')}/" in mounts

    def enable_mount(self, mount: str, kind: str = "kv-v2") -> None:
        self._vault(["secrets", "enable", f"-path={mount}", kind], "enable mount", mount)

    def policy_write(self, name: str, policy: str) -> None:
        remote = f"/tmp/{name}-policy.hcl"
        self._stage(f"tmp-{name}-policy.hcl", remote, policy, "write policy")
        try:
            self._vault(["policy", "write", name, remote], "write policy", name)
        finally:
            self._remove_remote(remote)

    def issue_token(self, policy: str, ttl: str, renewable: bool, display_name: str) -> str:
        result = self._vault_json(
            [
                "token",
                "create",
                f"-policy={policy}",
                f"-ttl={ttl}",
                f"-renewable={'true' if renewable else 'false'}",
                f"-display-name={display_name}",
            ],
            "create token",
            policy,
        )
        token = (result.get("auth") or {}).get("client_token")
        if not token:
            raise StoreOperationFailed("no client_token in output", operation="create token", path=policy)
        return token

    def kv_put(self, mount: str, path: str, data: dict[str, Any]) -> None:
        remote = f"/tmp/{path}-secrets.json"
        vault_path = f"{mount}/{path}"
        self._stage(f"tmp-{path}-secrets.json", remote, json.dumps(data, indent=2), "write secret")
        try:
            self._vault(["kv", "put", vault_path, f"@{remote}"], "write secret", vault_path)
        finally:
            self._remove_remote(remote)

    def kv_get(self, mount: str, path: str) -> Optional[dict[str, Any]]:
        vault_path = f"{mount}/{path}"
        result = self._run(["kv", "get", "-format=json", vault_path], "read secret", vault_path)
        if result.returncode != 0:
            if "no value found" in (result.stderr or "").lower():
                return None
            raise classify_cli_error(result.stderr or "", "read secret", vault_path)
        try:
            payload = json.loads(result.stdout)
        except ValueError as e:
            raise StoreOperationFailed(f"invalid JSON output: {e}", operation="read secret", path=vault_path) from e
        return (payload.get("data") or {}).get("data") or {}
