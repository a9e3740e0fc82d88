import io
import subprocess
from typing import Any, Optional

import pytest
from rich.console import Console

from thothixctl.vault_client import StoreOperationFailed, StoreUnavailable


class FakeVault:
    """In-memory stand-in for a Vault gateway that records every call."""

    def __init__(
        self,
        ready: bool = True,
        ready_after: int = 0,
        mounts: tuple = (),
        fail_puts: tuple = (),
        fail_gets: tuple = (),
        fail_policies: tuple = (),
        fail_tokens: bool = False,
    ):
        self.ready = ready
        self.ready_after = ready_after
        self.mounts = set(mounts)
        self.fail_puts = set(fail_puts)
        self.fail_gets = set(fail_gets)
        self.fail_policies = set(fail_policies)
        self.fail_tokens = fail_tokens
        self.calls: list[tuple] = []
        self.policies: dict[str, str] = {}
        self.tokens: list[dict[str, Any]] = []
        self.versions: dict[tuple[str, str], list[dict[str, Any]]] = {}
        self.probes = 0

    def names(self) -> list[str]:
        return [call[0] for call in self.calls]

    def is_ready(self) -> bool:
        self.calls.append(("is_ready",))
        self.probes += 1
        return self.ready and self.probes > self.ready_after

    def mount_exists(self, mount: str) -> bool:
        self.calls.append(("mount_exists", mount))
        return mount in self.mounts

    def enable_mount(self, mount: str, kind: str = "kv-v2") -> None:
        self.calls.append(("enable_mount", mount, kind))
        if mount in self.mounts:
            raise StoreOperationFailed("path is already in use", 400, "enable mount", mount)
        self.mounts.add(mount)

    def policy_write(self, name: str, policy: str) -> None:
        self.calls.append(("policy_write", name))
        if name in self.fail_policies:
            raise StoreOperationFailed("permission denied", 400, "write policy", name)
        self.policies[name] = policy

    def issue_token(self, policy: str, ttl: str, renewable: bool, display_name: str) -> str:
        self.calls.append(("issue_token", policy))
        if self.fail_tokens:
            raise StoreUnavailable("connection refused", operation="create token", path=policy)
        token = f"hvs.token{len(self.tokens) + 1}"
        self.tokens.append(
            {"policy": policy, "ttl": ttl, "renewable": renewable, "display_name": display_name, "token": token}
        )
        return token

    def kv_put(self, mount: str, path: str, data: dict[str, Any]) -> None:
        self.calls.append(("kv_put", mount, path))
        if path in self.fail_puts:
            raise StoreUnavailable("connection reset", operation="write secret", path=f"{mount}/{path}")
        self.versions.setdefault((mount, path), []).append(dict(data))

    def kv_get(self, mount: str, path: str) -> Optional[dict[str, Any]]:
        self.calls.append(("kv_get", mount, path))
        if path in self.fail_gets:
            raise StoreUnavailable("connection reset", operation="read secret", path=f"{mount}/{path}")
        versions = self.versions.get((mount, path))
        return dict(versions[-1]) if versions else None


@pytest.fixture
def quiet_console() -> Console:
    return Console(file=io.StringIO(), width=120)


@pytest.fixture
def fake_vault_cls() -> type:
    return FakeVault


@pytest.fixture
def recorded_run(monkeypatch: pytest.MonkeyPatch) -> list[list[str]]:
    """Replace subprocess.run with a recorder that always succeeds."""
    calls: list[list[str]] = []

    def fake_run(args, **kwargs):
        calls.append(list(args))
        return subprocess.CompletedProcess(args, 0, "", "")

    monkeypatch.setattr(subprocess, "run", fake_run)
    return calls


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("ENVIRONMENT", "NODE_ENV", "THOTHIX_ENV_FILE", "THOTHIX_VAULT_MOUNT", "THOTHIX_ENVIRONMENT"):
        monkeypatch.delenv(name, raising=False)
