"""Vault secrets sync commands.
Vault 시크릿 동기화 명령어.

Commands:
    thothixctl vault sync         # Sync .env sections to Vault
    thothixctl vault init         # Bootstrap Vault, then sync
    thothixctl vault cleanup      # Remove leftover temporary files
    thothixctl vault sections     # Show how .env is split into sections
"""

from contextlib import contextmanager
from enum import Enum
from pathlib import Path
from typing import Iterator, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from thothixctl.artifacts import TempArtifacts, find_stray_artifacts
from thothixctl.compose import ComposeProject
from thothixctl.compose_gateway import ComposeVaultGateway
from thothixctl.config import Settings, load_settings
from thothixctl.envfile import SKIP_COMMENT, SKIP_MALFORMED, SKIP_OUTSIDE_SECTION, SkippedLine, parse_sections
from thothixctl.sync import PHASE_BOOTSTRAP, Outcome, SyncOptions, SyncOrchestrator, SyncReport
from thothixctl.utils import create_kv_table
from thothixctl.vault_client import VaultClient

app = typer.Typer(help="Vault secrets sync / Vault 시크릿 동기화", no_args_is_help=True)
console = Console()


class Transport(str, Enum):
    http = "http"
    compose = "compose"


_OUTCOME_STYLE = {
    Outcome.WRITTEN: "[green]✓ written[/green]",
    Outcome.WRITE_FAILED: "[red]✗ write failed[/red]",
    Outcome.VERIFY_FAILED: "[yellow]! verify failed[/yellow]",
}

_SKIP_LABELS = {
    SKIP_OUTSIDE_SECTION: "outside Vault sections",
    SKIP_MALFORMED: "not a KEY=value line",
}


@contextmanager
def open_gateway(settings: Settings, transport: Transport, artifacts: TempArtifacts) -> Iterator[object]:
    """Yield the gateway for ``transport``; the HTTP client is closed on exit."""
    if transport is Transport.compose:
        yield ComposeVaultGateway(
            ComposeProject(),
            addr=settings.vault_addr,
            token=settings.vault_token,
            artifacts=artifacts,
            service=settings.vault_service,
        )
        return

    with VaultClient.from_settings(settings) as client:
        yield client


def _print_skipped(skipped: list[SkippedLine]) -> None:
    comments = sum(1 for s in skipped if s.reason == SKIP_COMMENT)
    if comments:
        console.print(f"[dim]Ignored {comments} non-Vault comment line(s)[/dim]")
    for notice in skipped:
        if notice.reason == SKIP_COMMENT:
            continue
        where = f" (in {notice.section})" if notice.section else ""
        label = _SKIP_LABELS.get(notice.reason, notice.reason)
        console.print(f"[yellow]![/yellow] Line {notice.line_no}: skipped {notice.text}{where} - {label}")


def render_report(report: SyncReport, reveal: bool = False) -> None:
    """Print the per-section summary of a sync run."""
    if report.bootstrap is not None:
        console.print(Panel.fit(
            f"[bold]App token:[/bold]      {report.bootstrap.app_token}\n"
            f"[bold]Readonly token:[/bold] {report.bootstrap.readonly_token}\n\n"
            "[yellow]Save these tokens securely![/yellow]\n"
            f"Add to your .env file: VAULT_APP_TOKEN={report.bootstrap.app_token}",
            title="🔑 Tokens created",
        ))

    if report.fatal is not None:
        console.print(f"\n[red]✗[/red] {report.fatal.phase.capitalize()} failed: {report.fatal.error}")
        if report.fatal.phase == PHASE_BOOTSTRAP:
            console.print("  Steps completed before the failure were kept.")
        else:
            console.print("  Make sure the containers are running: docker compose up -d")
        return

    _print_skipped(report.skipped)

    if not report.sections:
        console.print("[yellow]![/yellow] No Vault sections found (expected '# :name - Description' headers).")
        return

    for result in report.sections:
        if result.stored:
            console.print(create_kv_table(result.stored, title=f"{result.name}: {report.mount}/{result.key}", reveal=reveal))

    table = Table(title="Sync summary", show_header=True, header_style="bold cyan")
    table.add_column("Section", style="green")
    table.add_column("Path")
    table.add_column("Keys", justify="right")
    table.add_column("Outcome")
    table.add_column("Detail", style="dim")
    for result in report.sections:
        table.add_row(
            result.name,
            f"{report.mount}/{result.key}",
            str(len(result.document)),
            _OUTCOME_STYLE[result.outcome],
            result.reason or result.description,
        )
    console.print(table)

    written = len(report.sections) - len(report.failed)
    console.print(
        f"\nComplete: {written} written, {len(report.failed)} failed, "
        f"{len(report.unverified)} unverified"
    )


def run_sync(
    bootstrap: bool,
    env_file: Optional[Path],
    mount: Optional[str],
    environment: Optional[str],
    transport: Transport,
    retries: Optional[int],
    interval: Optional[float],
    reveal: bool,
) -> SyncReport:
    settings = load_settings(env_file=env_file, vault_mount=mount, environment=environment)

    try:
        text = settings.env_file.read_text(encoding="utf-8")
    except OSError as e:
        console.print(f"[red]✗[/red] Cannot read {settings.env_file}: {e.strerror or e}")
        raise typer.Exit(1)

    mode = "Init" if bootstrap else "Sync"
    console.print(Panel.fit(
        f"[bold blue]Thothix Vault {mode}[/bold blue]\n\n"
        f"Environment: {settings.environment}\n"
        f"Vault:       {settings.vault_addr} ({transport.value})\n"
        f"Mount:       {settings.vault_mount}",
        title="🔐 Vault",
    ))
    if not settings.vault_token:
        console.print("[yellow]![/yellow] No VAULT_ROOT_TOKEN or VAULT_APP_TOKEN configured.")

    default_retries, default_interval = settings.retry_budget(bootstrap)
    options = SyncOptions(
        bootstrap=bootstrap,
        environment=settings.environment,
        retries=retries if retries is not None else default_retries,
        interval=interval if interval is not None else default_interval,
    )

    with TempArtifacts(settings.env_file.parent, console) as artifacts:
        with open_gateway(settings, transport, artifacts) as gateway:
            report = SyncOrchestrator(gateway, console).sync(text, settings.vault_mount, options)

    render_report(report, reveal=reveal)
    return report


_ENV_FILE_OPTION = typer.Option(None, "--env-file", "-e", help="Project .env file (default: .env)")
_MOUNT_OPTION = typer.Option(None, "--mount", "-m", help="KV v2 mount path (default: thothix)")
_ENVIRONMENT_OPTION = typer.Option(None, "--environment", help="Environment label (default: $ENVIRONMENT)")
_TRANSPORT_OPTION = typer.Option(Transport.http, "--transport", "-t", help="Reach Vault over HTTP or via docker compose exec")
_RETRIES_OPTION = typer.Option(None, "--retries", min=1, help="Readiness probe attempts")
_INTERVAL_OPTION = typer.Option(None, "--interval", min=0.0, help="Seconds between readiness probes")
_REVEAL_OPTION = typer.Option(False, "--reveal", help="Show secret values unmasked")


@app.command("sync")
def sync_command(
    env_file: Optional[Path] = _ENV_FILE_OPTION,
    mount: Optional[str] = _MOUNT_OPTION,
    environment: Optional[str] = _ENVIRONMENT_OPTION,
    transport: Transport = _TRANSPORT_OPTION,
    retries: Optional[int] = _RETRIES_OPTION,
    interval: Optional[float] = _INTERVAL_OPTION,
    reveal: bool = _REVEAL_OPTION,
):
    """Sync .env sections to Vault / .env 섹션을 Vault에 동기화."""
    report = run_sync(False, env_file, mount, environment, transport, retries, interval, reveal)
    if report.ok:
        console.print("\n[green]✓[/green] Vault synchronization completed!")
    raise typer.Exit(0 if report.ok else 1)


@app.command("init")
def init_command(
    env_file: Optional[Path] = _ENV_FILE_OPTION,
    mount: Optional[str] = _MOUNT_OPTION,
    environment: Optional[str] = _ENVIRONMENT_OPTION,
    transport: Transport = _TRANSPORT_OPTION,
    retries: Optional[int] = _RETRIES_OPTION,
    interval: Optional[float] = _INTERVAL_OPTION,
    reveal: bool = _REVEAL_OPTION,
):
    """Bootstrap Vault (mount, policies, tokens) and sync / Vault 초기화 후 동기화.

    Every run mints a new pair of tokens; revoke old ones with
    ``vault token revoke`` when rotating.
    """
    report = run_sync(True, env_file, mount, environment, transport, retries, interval, reveal)
    if report.ok:
        console.print("\n[green]✓[/green] Vault initialization and sync completed!")
        console.print(f"[dim]Check: vault kv get {report.mount}/<section>[/dim]")
    raise typer.Exit(0 if report.ok else 1)


@app.command("cleanup")
def cleanup_command(
    directory: Path = typer.Option(Path("."), "--dir", "-d", help="Directory to clean"),
):
    """Remove leftover temporary files / 임시 파일 정리."""
    strays = find_stray_artifacts(directory)
    if not strays:
        console.print("[green]✓[/green] No temporary files found - workspace is clean!")
        return

    console.print(f"Found {len(strays)} temporary file(s):")
    failed = 0
    for path in strays:
        try:
            path.unlink()
            console.print(f"  [green]✓[/green] Removed: {path.name}")
        except OSError as e:
            console.print(f"  [red]✗[/red] Failed to remove {path.name}: {e.strerror or e}")
            failed += 1

    if failed:
        raise typer.Exit(1)


@app.command("sections")
def sections_command(
    env_file: Optional[Path] = _ENV_FILE_OPTION,
    reveal: bool = _REVEAL_OPTION,
):
    """Show the Vault sections found in .env / .env 섹션 미리보기."""
    settings = load_settings(env_file=env_file)
    try:
        text = settings.env_file.read_text(encoding="utf-8")
    except OSError as e:
        console.print(f"[red]✗[/red] Cannot read {settings.env_file}: {e.strerror or e}")
        raise typer.Exit(1)

    parsed = parse_sections(text)
    for section in parsed:
        title = f"{section.name} → {settings.vault_mount}/{section.key}"
        if section.description:
            title += f" ({section.description})"
        console.print(create_kv_table(section.document(), title=title, reveal=reveal))

    _print_skipped(parsed.skipped)
    console.print(f"\nTotal: {len(parsed)} section(s)")
