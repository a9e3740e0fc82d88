"""유틸리티 함수."""

import shutil
import subprocess
from pathlib import Path
from typing import Optional, Sequence

from rich.console import Console
from rich.table import Table

console = Console()

SENSITIVE_MARKERS = ("password", "secret", "token", "key", "credential", "dsn")


def mask_value(key: str, value: object) -> str:
    """민감한 필드는 마스킹."""
    display_value = str(value)
    if not any(marker in key.lower() for marker in SENSITIVE_MARKERS):
        return display_value
    if len(display_value) > 4:
        return display_value[:2] + "*" * (len(display_value) - 4) + display_value[-2:]
    return "*" * len(display_value)


def create_kv_table(data: dict, title: str = "Secrets", reveal: bool = False) -> Table:
    """KV 데이터를 Rich 테이블로 변환."""
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Key", style="green")
    table.add_column("Value", style="white")

    for key, value in sorted(data.items()):
        table.add_row(key, str(value) if reveal else mask_value(key, value))

    return table


def command_exists(name: str) -> bool:
    return shutil.which(name) is not None


def run_command(
    cmd: Sequence[str],
    cwd: Optional[Path] = None,
    echo: bool = True,
) -> int:
    """Run a command attached to the terminal and return its exit code."""
    if echo:
        console.print(f"[dim]$ {' '.join(cmd)}[/dim]")
    try:
        return subprocess.run(list(cmd), cwd=cwd).returncode
    except FileNotFoundError:
        console.print(f"[red]✗[/red] Command not found: {cmd[0]}")
        return 127
