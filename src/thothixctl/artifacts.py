"""Scoped temporary files / 임시 파일 관리.

Payloads staged for ``docker compose cp`` are written as ``tmp-*-secrets.json``
and ``tmp-*-policy.hcl`` next to the project. A ``TempArtifacts`` scope owns
them and removes every registered file when the scope exits, whether it ends
normally, with an error or with Ctrl+C.
"""

import fnmatch
from pathlib import Path
from typing import Iterable, Optional, Union

from rich.console import Console

ARTIFACT_PATTERNS = ("tmp-*-secrets.json", "tmp-*-policy.hcl")


class TempArtifacts:
    """Registration list of temporary files owned by one operation."""

    def __init__(self, directory: Union[str, Path] = ".", console: Optional[Console] = None):
        self.directory = Path(directory)
        self.console = console or Console()
        self._paths: list[Path] = []

    def __enter__(self) -> "TempArtifacts":
        return self

    def __exit__(self, *exc_info) -> None:
        self.cleanup()

    def __iter__(self):
        return iter(list(self._paths))

    def __len__(self) -> int:
        return len(self._paths)

    def register(self, path: Union[str, Path]) -> Path:
        path = Path(path)
        if path not in self._paths:
            self._paths.append(path)
        return path

    def write(self, name: str, content: str) -> Path:
        """Write ``content`` to ``directory/name`` and register it."""
        path = self.register(self.directory / name)
        path.write_text(content, encoding="utf-8")
        try:
            path.chmod(0o600)
        except OSError:
            pass
        return path

    def release(self, path: Union[str, Path]) -> None:
        """Delete one artifact now and stop tracking it."""
        path = Path(path)
        path.unlink(missing_ok=True)
        if path in self._paths:
            self._paths.remove(path)

    def cleanup(self) -> None:
        for path in list(self._paths):
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                self.console.print(f"[yellow]![/yellow] Could not remove {path}: {e}")
                continue
            self._paths.remove(path)
            self.console.print(f"[dim]Removed temporary file: {path}[/dim]")


def find_stray_artifacts(
    directory: Union[str, Path] = ".",
    patterns: Iterable[str] = ARTIFACT_PATTERNS,
) -> list[Path]:
    """Leftover temporary files from interrupted runs, sorted by name."""
    directory = Path(directory)
    if not directory.is_dir():
        return []
    patterns = tuple(patterns)
    return sorted(
        path
        for path in directory.iterdir()
        if path.is_file() and any(fnmatch.fnmatch(path.name, pattern) for pattern in patterns)
    )
