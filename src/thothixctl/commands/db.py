"""Database inspection commands.
데이터베이스 점검 명령어.

All commands run ``psql`` inside the Postgres compose service.
"""

import re
import subprocess
from typing import Sequence

import typer
from rich.console import Console

from thothixctl.compose import ComposeError, ComposeProject
from thothixctl.config import Settings, load_settings

app = typer.Typer(help="Database inspection / 데이터베이스 점검", no_args_is_help=True)
console = Console()

BASEMODEL_COLUMNS = ("id", "created_by", "created_at", "updated_by", "updated_at")
IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _identifier(value: str, kind: str) -> str:
    if not IDENTIFIER.match(value):
        console.print(f"[red]✗[/red] Invalid {kind} name: {value}")
        raise typer.Exit(1)
    return value


def _exec(settings: Settings, command: Sequence[str], interactive: bool = False) -> int:
    project = ComposeProject()
    try:
        args = project.exec_args(settings.db_container, command, interactive=interactive)
    except ComposeError as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(1)
    return subprocess.run(args).returncode


def _psql(*args: str, interactive: bool = False) -> int:
    settings = load_settings()
    return _exec(
        settings,
        ["psql", "-U", settings.db_user, "-d", settings.db_name, *args],
        interactive=interactive,
    )


def _finish(returncode: int) -> None:
    if returncode != 0:
        console.print(f"[red]✗[/red] Database command failed (exit {returncode})")
        raise typer.Exit(returncode)
    console.print("[green]✓[/green] Database operation completed")


def basemodel_query() -> str:
    columns = ", ".join(f"'{c}'" for c in BASEMODEL_COLUMNS)
    return (
        "SELECT table_name, COUNT(*) AS basemodel_columns "
        "FROM information_schema.columns "
        f"WHERE table_schema = 'public' AND column_name IN ({columns}) "
        "GROUP BY table_name ORDER BY table_name;"
    )


@app.command("check-basemodel")
def check_basemodel():
    """Verify BaseModel columns (should be 5 per table)."""
    console.print(f"Checking BaseModel columns ({', '.join(BASEMODEL_COLUMNS)}):")
    _finish(_psql("-c", basemodel_query()))


@app.command("list-tables")
def list_tables():
    """List all tables / 테이블 목록."""
    _finish(_psql("-c", "\\d"))


@app.command("check-table")
def check_table(table: str = typer.Argument(..., help="Table name")):
    """Show table structure / 테이블 구조."""
    table = _identifier(table, "table")
    console.print(f"Checking table structure for: {table}")
    _finish(_psql("-c", f"\\d {table}"))


@app.command("missing-field")
def missing_field(
    table: str = typer.Argument(..., help="Table name"),
    field: str = typer.Argument(..., help="Column name"),
):
    """Check whether a column exists (empty result = missing)."""
    table = _identifier(table, "table")
    field = _identifier(field, "field")
    console.print(f"Checking if field '{field}' exists in table '{table}':")
    _finish(_psql(
        "-c",
        "SELECT column_name FROM information_schema.columns "
        f"WHERE table_name = '{table}' AND column_name = '{field}';",
    ))


@app.command("has-field")
def has_field(
    table: str = typer.Argument(..., help="Table name"),
    field: str = typer.Argument(..., help="Column name"),
):
    """Show column details / 컬럼 상세."""
    table = _identifier(table, "table")
    field = _identifier(field, "field")
    console.print(f"Checking field '{field}' in table '{table}':")
    _finish(_psql(
        "-c",
        "SELECT column_name, data_type, is_nullable FROM information_schema.columns "
        f"WHERE table_name = '{table}' AND column_name = '{field}';",
    ))


@app.command("connect")
def connect():
    """Open an interactive psql session / psql 접속."""
    console.print("Connecting to PostgreSQL database...")
    raise typer.Exit(_psql(interactive=True))


@app.command("status")
def status():
    """Container status and connection test / 상태 확인."""
    settings = load_settings()
    try:
        ps_args = ComposeProject().args("ps", settings.db_container)
    except ComposeError as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(1)
    console.print("Database container status:")
    subprocess.run(ps_args)
    console.print("\nDatabase connection test:")
    _finish(_exec(settings, ["pg_isready", "-U", settings.db_user, "-d", settings.db_name]))
