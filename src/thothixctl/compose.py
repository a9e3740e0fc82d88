"""Docker Compose helpers shared by deploy, db and the compose Vault gateway."""

import subprocess
from pathlib import Path
from typing import Optional, Sequence

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

COMPOSE_FILE_NAMES = ("docker-compose.yml", "docker-compose.yaml", "compose.yml", "compose.yaml")


class ComposeError(Exception):
    """Docker Compose missing or misconfigured."""


def detect_docker_compose() -> list[str]:
    """Return the compose command (``docker compose`` or ``docker-compose``)."""
    for cmd in (["docker", "compose"], ["docker-compose"]):
        try:
            result = subprocess.run(cmd + ["version"], capture_output=True, timeout=10)
            if result.returncode == 0:
                return cmd
        except (FileNotFoundError, subprocess.TimeoutExpired):
            pass
    raise ComposeError("Docker Compose not found.")


def find_compose_file(directory: Path = Path(".")) -> Optional[Path]:
    for name in COMPOSE_FILE_NAMES:
        path = directory / name
        if path.exists():
            return path
    return None


class ComposeProject:
    """A compose invocation: command, ``-f`` files and optional ``--env-file``."""

    def __init__(
        self,
        command: Optional[Sequence[str]] = None,
        files: Sequence[Path] = (),
        env_file: Optional[Path] = None,
    ):
        self._command = list(command) if command else None
        self.files = [Path(f) for f in files]
        self.env_file = env_file

    @property
    def command(self) -> list[str]:
        if self._command is None:
            self._command = detect_docker_compose()
        return self._command

    def args(self, *extra: str) -> list[str]:
        cmd = list(self.command)
        for compose_file in self.files:
            cmd += ["-f", str(compose_file)]
        if self.env_file is not None:
            cmd.append(f"--env-file={self.env_file}")
        return cmd + list(extra)

    def exec_args(
        self,
        service: str,
        command: Sequence[str],
        env: Optional[dict[str, str]] = None,
        interactive: bool = False,
    ) -> list[str]:
        """``exec`` arguments; non-interactive calls disable the TTY (``-T``)."""
        extra = ["exec"]
        if not interactive:
            extra.append("-T")
        for key, value in (env or {}).items():
            extra += ["-e", f"{key}={value}"]
        return self.args(*extra, service, *command)

    def run(
        self,
        *extra: str,
        capture: bool = False,
        input: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> subprocess.CompletedProcess:
        return subprocess.run(
            self.args(*extra),
            capture_output=capture,
            text=True,
            input=input,
            timeout=timeout,
        )

    def services(self) -> list[str]:
        """Service names declared across the compose files (unreadable files are skipped)."""
        yaml = YAML(typ="safe")
        names: list[str] = []
        for compose_file in self.files:
            try:
                with open(compose_file) as f:
                    data = yaml.load(f) or {}
            except (OSError, YAMLError):
                continue
            for name in (data.get("services") or {}):
                if name not in names:
                    names.append(name)
        return names
