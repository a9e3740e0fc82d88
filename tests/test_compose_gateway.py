import json
import subprocess
from pathlib import Path

import pytest

from thothixctl.artifacts import TempArtifacts
from thothixctl.compose import ComposeProject
from thothixctl.compose_gateway import ComposeVaultGateway, classify_cli_error
from thothixctl.sync import SyncOrchestrator
from thothixctl.vault_client import AuthFailure, StoreOperationFailed, StoreUnavailable

COMPOSE = ["docker", "compose"]


class Recorder:
    """subprocess.run replacement with scripted results per vault sub-command."""

    def __init__(self):
        self.calls: list[list[str]] = []
        self.staged: dict[str, str] = {}
        self.results: dict[str, subprocess.CompletedProcess] = {}

    def __call__(self, args, **kwargs):
        args = list(args)
        self.calls.append(args)
        if "cp" in args:
            local = Path(args[args.index("cp") + 1])
            self.staged[local.name] = local.read_text()
        for marker, result in self.results.items():
            if marker in args:
                return result
        return subprocess.CompletedProcess(args, 0, "", "")

    def vault_calls(self) -> list[list[str]]:
        calls = []
        for c in self.calls:
            if "exec" in c and c[c.index("vault") + 1] == "vault":
                calls.append(c[c.index("vault") + 2 :])
        return calls


@pytest.fixture
def recorder(monkeypatch: pytest.MonkeyPatch) -> Recorder:
    recorder = Recorder()
    monkeypatch.setattr(subprocess, "run", recorder)
    return recorder


@pytest.fixture
def gateway(tmp_path: Path, quiet_console) -> ComposeVaultGateway:
    return ComposeVaultGateway(
        ComposeProject(command=COMPOSE),
        "http://127.0.0.1:8200",
        "root-token",
        TempArtifacts(tmp_path, quiet_console),
    )


def test_exec_passes_address_and_token(recorder: Recorder, gateway: ComposeVaultGateway) -> None:
    assert gateway.is_ready() is True

    assert recorder.calls[0] == [
        "docker",
        "compose",
        "exec",
        "-T",
        "-e",
        "VAULT_ADDR=http://127.0.0.1:8200",
        "-e",
        "VAULT_TOKEN=root-token",
        "vault",
        "vault",
        "status",
    ]


def test_kv_put_stages_copies_and_cleans(recorder: Recorder, gateway: ComposeVaultGateway, tmp_path: Path) -> None:
    gateway.kv_put("thothix", "database", {"db_host": "localhost"})

    assert json.loads(recorder.staged["tmp-database-secrets.json"]) == {"db_host": "localhost"}
    assert recorder.calls[0] == [
        "docker",
        "compose",
        "cp",
        str(tmp_path / "tmp-database-secrets.json"),
        "vault:/tmp/database-secrets.json",
    ]
    assert recorder.vault_calls() == [["kv", "put", "thothix/database", "@/tmp/database-secrets.json"]]
    assert recorder.calls[-1][-3:] == ["rm", "-f", "/tmp/database-secrets.json"]
    assert not (tmp_path / "tmp-database-secrets.json").exists()
    assert len(gateway.artifacts) == 0


def test_policy_write_removes_staged_files_on_failure(
    recorder: Recorder, gateway: ComposeVaultGateway, tmp_path: Path
) -> None:
    recorder.results["policy"] = subprocess.CompletedProcess([], 2, "", "Error: permission denied")

    with pytest.raises(AuthFailure):
        gateway.policy_write("thothix-app", 'path "thothix/data/*" {}')

    assert "tmp-thothix-app-policy.hcl" in recorder.staged
    assert not (tmp_path / "tmp-thothix-app-policy.hcl").exists()
    assert recorder.calls[-1][-3:] == ["rm", "-f", "/tmp/thothix-app-policy.hcl"]


def test_failed_copy_releases_local_file(recorder: Recorder, gateway: ComposeVaultGateway, tmp_path: Path) -> None:
    recorder.results["cp"] = subprocess.CompletedProcess([], 1, "", "no such service: vault")

    with pytest.raises(StoreUnavailable):
        gateway.kv_put("thothix", "app", {"a": "b"})

    assert recorder.vault_calls() == []
    assert list(tmp_path.iterdir()) == []


def test_mount_exists_reads_secrets_list(recorder: Recorder, gateway: ComposeVaultGateway) -> None:
    recorder.results["secrets"] = subprocess.CompletedProcess([], 0, json.dumps({"thothix/": {}, "sys/": {}}), "")

    assert gateway.mount_exists("thothix") is True
    assert gateway.mount_exists("other") is False
    assert recorder.vault_calls()[0] == ["secrets", "list", "-format=json"]


def test_issue_token_parses_json(recorder: Recorder, gateway: ComposeVaultGateway) -> None:
    recorder.results["token"] = subprocess.CompletedProcess(
        [], 0, json.dumps({"auth": {"client_token": "hvs.abc"}}), ""
    )

    token = gateway.issue_token("thothix-app", "8760h", True, "thothix-app-token-dev")

    assert token == "hvs.abc"
    assert recorder.vault_calls() == [
        [
            "token",
            "create",
            "-policy=thothix-app",
            "-ttl=8760h",
            "-renewable=true",
            "-display-name=thothix-app-token-dev",
            "-format=json",
        ]
    ]


def test_kv_get_missing_and_present(recorder: Recorder, gateway: ComposeVaultGateway) -> None:
    recorder.results["kv"] = subprocess.CompletedProcess([], 2, "", "No value found at thothix/data/app")
    assert gateway.kv_get("thothix", "app") is None

    recorder.results["kv"] = subprocess.CompletedProcess(
        [], 0, json.dumps({"data": {"data": {"a": "b"}, "metadata": {}}}), ""
    )
    assert gateway.kv_get("thothix", "app") == {"a": "b"}


def test_is_ready_false_when_compose_missing(monkeypatch: pytest.MonkeyPatch, gateway: ComposeVaultGateway) -> None:
    def missing(args, **kwargs):
        raise FileNotFoundError("docker")

    monkeypatch.setattr(subprocess, "run", missing)

    assert gateway.is_ready() is False


@pytest.mark.parametrize(
    "stderr, error_type",
    [
        ("Error: permission denied", AuthFailure),
        ("Code: 403. Errors:", AuthFailure),
        ("dial tcp: connection refused", StoreUnavailable),
        ("Vault is sealed", StoreUnavailable),
        ("path is already in use at thothix/", StoreOperationFailed),
        ("", StoreOperationFailed),
    ],
)
def test_classify_cli_error(stderr: str, error_type: type) -> None:
    error = classify_cli_error(stderr, "write secret", "thothix/app")

    assert type(error) is error_type
    assert error.operation == "write secret"
    assert error.path == "thothix/app"


def test_staging_failure_is_a_vault_error(recorder: Recorder, tmp_path: Path, quiet_console) -> None:
    gateway = ComposeVaultGateway(
        ComposeProject(command=COMPOSE),
        "http://127.0.0.1:8200",
        "root-token",
        TempArtifacts(tmp_path / "gone", quiet_console),
    )

    with pytest.raises(StoreOperationFailed) as excinfo:
        gateway.kv_put("thothix", "app", {"a": "b"})

    assert excinfo.value.operation == "write secret"
    assert recorder.calls == []


def test_permission_error_from_compose_is_unavailable(
    monkeypatch: pytest.MonkeyPatch, gateway: ComposeVaultGateway
) -> None:
    def denied(args, **kwargs):
        raise PermissionError(13, "Permission denied")

    monkeypatch.setattr(subprocess, "run", denied)

    with pytest.raises(StoreUnavailable):
        gateway.enable_mount("thothix")


def test_staging_failure_only_fails_its_section(
    recorder: Recorder, gateway: ComposeVaultGateway, monkeypatch: pytest.MonkeyPatch, quiet_console
) -> None:
    original_write = TempArtifacts.write

    def full_disk(self, name: str, content: str):
        if name == "tmp-b-secrets.json":
            raise OSError(28, "No space left on device")
        return original_write(self, name, content)

    monkeypatch.setattr(TempArtifacts, "write", full_disk)

    report = SyncOrchestrator(gateway, quiet_console, sleep=lambda _: None).sync(
        "# :a - A\nA=1\n# :b - B\nB=2\n# :c - C\nC=3\n", "thothix"
    )

    assert report.fatal is None
    assert [r.key for r in report.failed] == ["b"]
    assert "No space left on device" in report.failed[0].reason
    assert ["kv", "put", "thothix/c", "@/tmp/c-secrets.json"] in recorder.vault_calls()
