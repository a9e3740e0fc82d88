"""Environment deployment commands.
환경별 배포 명령어.

Commands:
    thothixctl deploy <env> up               # Build and start services
    thothixctl deploy <env> down             # Stop services
    thothixctl deploy <env> logs [service]   # Follow logs
    thothixctl deploy <env> status           # Container status + resource usage
    thothixctl deploy <env> vault init|ui|status
"""

import subprocess
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from thothixctl.compose import ComposeError, ComposeProject
from thothixctl.envfile import load_env_values

app = typer.Typer(help="Docker Compose environments / Docker Compose 환경 관리", no_args_is_help=True)
console = Console()

DEFAULT_VAULT_ADDR = "http://localhost:8200"


class Environment(str, Enum):
    dev = "dev"
    staging = "staging"
    prod = "prod"


class VaultAction(str, Enum):
    init = "init"
    ui = "ui"
    status = "status"


@dataclass
class EnvironmentConfig:
    env_file: Path
    compose_files: list[Path]


ENVIRONMENTS = {
    Environment.dev: EnvironmentConfig(Path(".env"), [Path("docker-compose.yml")]),
    Environment.staging: EnvironmentConfig(
        Path(".env.staging"),
        [Path("docker-compose.yml"), Path("docker-compose.staging.yml")],
    ),
    Environment.prod: EnvironmentConfig(
        Path(".env.prod"),
        [Path("docker-compose.yml"), Path("docker-compose.prod.yml")],
    ),
}


def _project(env: Environment) -> ComposeProject:
    """Compose project for ``env``; exits when the env file is missing."""
    config = ENVIRONMENTS[env]
    if not config.env_file.exists():
        console.print(f"[red]✗[/red] Environment file {config.env_file} not found!")
        console.print(f"  Copy .env.example to {config.env_file} and configure it")
        raise typer.Exit(1)
    return ComposeProject(files=config.compose_files, env_file=config.env_file)


def _compose(project: ComposeProject, *args: str) -> int:
    try:
        command = project.args(*args)
    except ComposeError as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(1)
    console.print(f"[dim]$ {' '.join(command)}[/dim]")
    return subprocess.run(command).returncode


def _done(returncode: int, message: str) -> None:
    if returncode != 0:
        console.print(f"[red]✗[/red] Command failed (exit {returncode})")
        raise typer.Exit(returncode)
    console.print(f"[green]✓[/green] {message}")


def up_command(env: Environment):
    """Build and start services / 서비스 시작."""
    project = _project(env)
    console.print(f"[bold]Starting {env.value} environment...[/bold]")
    _done(_compose(project, "up", "-d", "--build"), f"{env.value} environment started")
    _compose(project, "ps")


def down_command(env: Environment):
    """Stop services / 서비스 중지."""
    project = _project(env)
    _done(_compose(project, "down"), f"{env.value} environment stopped")


def logs_command(env: Environment, service: Optional[str] = None):
    """Follow service logs / 로그 확인."""
    project = _project(env)
    if service:
        known = project.services()
        if known and service not in known:
            console.print(f"[red]✗[/red] Unknown service: {service}")
            console.print(f"  Available: {', '.join(known)}")
            raise typer.Exit(1)
    raise typer.Exit(_compose(project, "logs", "-f", *([service] if service else [])))


def status_command(env: Environment):
    """Container status and resource usage / 컨테이너 상태."""
    project = _project(env)
    console.print(f"[bold]Container status for {env.value}:[/bold]")
    _compose(project, "ps")
    console.print("\n[bold]Resource usage:[/bold]")
    try:
        subprocess.run(
            ["docker", "stats", "--no-stream", "--format", "table {{.Name}}\t{{.CPUPerc}}\t{{.MemUsage}}"]
        )
    except FileNotFoundError:
        console.print("[yellow]![/yellow] docker not found")


def vault_command(env: Environment, action: VaultAction):
    """Vault container helpers / Vault 컨테이너 관리."""
    project = _project(env)

    if action is VaultAction.ui:
        values = load_env_values(ENVIRONMENTS[env].env_file)
        vault_addr = values.get("VAULT_ADDR") or DEFAULT_VAULT_ADDR
        console.print(f"Vault UI available at: {vault_addr.rstrip('/')}/ui")
        return

    if action is VaultAction.init:
        returncode = _compose(project, "exec", "vault", "vault", "operator", "init")
    else:
        returncode = _compose(project, "exec", "vault", "vault", "status")
    raise typer.Exit(returncode)


def _environment_app(env: Environment) -> typer.Typer:
    """Sub-app exposing the deploy commands bound to ``env``."""
    env_app = typer.Typer(help=f"{env.value} environment ({ENVIRONMENTS[env].env_file})", no_args_is_help=True)

    @env_app.command("up")
    def up():
        """Build and start services / 서비스 시작."""
        up_command(env)

    @env_app.command("down")
    def down():
        """Stop services / 서비스 중지."""
        down_command(env)

    @env_app.command("logs")
    def logs(service: Optional[str] = typer.Argument(None, help="Service name (all when omitted)")):
        """Follow service logs / 로그 확인."""
        logs_command(env, service)

    @env_app.command("status")
    def status():
        """Container status and resource usage / 컨테이너 상태."""
        status_command(env)

    @env_app.command("vault")
    def vault(action: VaultAction = typer.Argument(..., help="init, ui or status")):
        """Vault container helpers / Vault 컨테이너 관리."""
        vault_command(env, action)

    return env_app


for _env in Environment:
    app.add_typer(_environment_app(_env), name=_env.value)
