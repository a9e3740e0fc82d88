"""Go backend development commands.
Go 백엔드 개발 명령어.

Commands:
    thothixctl dev format         # gofmt -w .
    thothixctl dev lint           # golangci-lint run
    thothixctl dev test           # go test ./... (or gotestsum)
    thothixctl dev pre-commit     # format + git add + lint + test
    thothixctl dev all            # alias of pre-commit
"""

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from thothixctl.config import load_settings
from thothixctl.utils import command_exists, run_command

app = typer.Typer(help="Go backend format / lint / test / Go 백엔드 개발 도구", no_args_is_help=True)
console = Console()

LINT_TIMEOUT = "3m"

_BACKEND_OPTION = typer.Option(None, "--backend", "-b", help="Go module directory (default: backend)")


def _backend_dir(backend: Optional[Path]) -> Path:
    path = backend or load_settings().backend_dir
    if not path.is_dir():
        console.print(f"[red]✗[/red] Backend directory not found: {path}")
        raise typer.Exit(1)
    return path


def go_test_args(gotestsum: bool, short: bool, race: bool) -> list[str]:
    """Build the test command; gotestsum forwards go test flags after ``--``."""
    go_flags = (["-short"] if short else []) + (["-race"] if race else [])
    if gotestsum and command_exists("gotestsum"):
        return ["gotestsum", "--format", "testname", "--", *go_flags, "./..."]
    return ["go", "test", *go_flags, "./..."]


def run_format(backend: Path) -> int:
    console.print("[bold]Formatting Go code...[/bold]")
    returncode = run_command(["gofmt", "-w", "."], cwd=backend)
    if returncode == 0:
        console.print("[green]✓[/green] Formatting completed")
    return returncode


def run_lint(backend: Path) -> int:
    console.print("[bold]Running golangci-lint...[/bold]")
    returncode = run_command(["golangci-lint", "run", f"--timeout={LINT_TIMEOUT}"], cwd=backend)
    if returncode == 0:
        console.print("[green]✓[/green] Linting passed")
    else:
        console.print("[red]✗[/red] Linting failed")
    return returncode


def run_tests(backend: Path, gotestsum: bool = True, short: bool = False, race: bool = False) -> int:
    console.print("[bold]Running tests...[/bold]")
    returncode = run_command(go_test_args(gotestsum, short, race), cwd=backend)
    if returncode == 0:
        console.print("[green]✓[/green] Tests passed")
    else:
        console.print("[red]✗[/red] Tests failed")
    return returncode


@app.command("format")
def format_command(backend: Optional[Path] = _BACKEND_OPTION):
    """Format Go code with gofmt / 코드 포맷."""
    raise typer.Exit(run_format(_backend_dir(backend)))


@app.command("lint")
def lint_command(backend: Optional[Path] = _BACKEND_OPTION):
    """Run golangci-lint / 린트."""
    raise typer.Exit(run_lint(_backend_dir(backend)))


@app.command("test")
def go_test_command(
    backend: Optional[Path] = _BACKEND_OPTION,
    gotestsum: bool = typer.Option(True, "--gotestsum/--no-gotestsum", help="Use gotestsum when installed"),
    short: bool = typer.Option(False, "--short", help="Skip long-running tests (go test -short)"),
    race: bool = typer.Option(False, "--race", help="Enable the race detector"),
):
    """Run Go tests / 테스트 실행."""
    raise typer.Exit(run_tests(_backend_dir(backend), gotestsum, short, race))


@app.command("pre-commit")
def pre_commit_command(backend: Optional[Path] = _BACKEND_OPTION):
    """Format, stage, lint and test / 커밋 전 검사."""
    backend_dir = _backend_dir(backend)
    console.print("[bold]Running pre-commit checks...[/bold]")

    returncode = run_format(backend_dir)
    if returncode != 0:
        raise typer.Exit(returncode)

    console.print("[dim]Adding formatted files to git...[/dim]")
    returncode = run_command(["git", "add", f"{backend_dir.as_posix().rstrip('/')}/"])
    if returncode != 0:
        raise typer.Exit(returncode)

    for step in (run_lint, run_tests):
        returncode = step(backend_dir)
        if returncode != 0:
            raise typer.Exit(returncode)

    console.print("[green]✓[/green] Pre-commit checks completed")


app.command("all", help="Same as pre-commit / pre-commit 별칭.")(pre_commit_command)
