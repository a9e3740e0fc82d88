"""Sync .env sections to Vault / .env 섹션을 Vault에 동기화.

Flow: readiness probe → optional bootstrap → parse → write every section →
read every section back. A failing section is recorded and the loop moves on;
only readiness and bootstrap failures stop the run.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

from rich.console import Console

from thothixctl.bootstrap import BootstrapCoordinator, BootstrapError, BootstrapResult
from thothixctl.envfile import ConfigSection, SkippedLine, parse_sections
from thothixctl.vault_client import StoreUnavailable, VaultError

PHASE_READINESS = "readiness"
PHASE_BOOTSTRAP = "bootstrap"

DEFAULT_SYNC_RETRIES = (3, 1.0)
DEFAULT_INIT_RETRIES = (30, 5.0)


class Outcome(str, Enum):
    WRITTEN = "written"
    WRITE_FAILED = "write_failed"
    VERIFY_FAILED = "verify_failed"


@dataclass
class SectionResult:
    key: str
    name: str
    description: str
    document: dict[str, str]
    outcome: Outcome = Outcome.WRITTEN
    reason: Optional[str] = None
    stored: Optional[dict[str, Any]] = None


@dataclass
class PhaseFailure:
    phase: str
    error: Exception

    def __str__(self) -> str:
        return f"{self.phase} failed: {self.error}"


@dataclass
class SyncOptions:
    bootstrap: bool = False
    environment: str = "development"
    retries: Optional[int] = None
    interval: Optional[float] = None

    def retry_budget(self) -> tuple[int, float]:
        retries, interval = DEFAULT_INIT_RETRIES if self.bootstrap else DEFAULT_SYNC_RETRIES
        if self.retries is not None:
            retries = self.retries
        if self.interval is not None:
            interval = self.interval
        return max(retries, 1), max(interval, 0.0)


@dataclass
class SyncReport:
    mount: str
    sections: list[SectionResult] = field(default_factory=list)
    skipped: list[SkippedLine] = field(default_factory=list)
    fatal: Optional[PhaseFailure] = None
    bootstrap: Optional[BootstrapResult] = None

    @property
    def ok(self) -> bool:
        """No fatal phase failure and every section was written."""
        return self.fatal is None and not self.failed

    @property
    def failed(self) -> list[SectionResult]:
        return [r for r in self.sections if r.outcome is Outcome.WRITE_FAILED]

    @property
    def unverified(self) -> list[SectionResult]:
        return [r for r in self.sections if r.outcome is Outcome.VERIFY_FAILED]

    def outcomes(self) -> list[tuple[str, Outcome]]:
        return [(r.key, r.outcome) for r in self.sections]


class SyncOrchestrator:
    """Publish parsed .env sections through a Vault gateway."""

    def __init__(
        self,
        gateway,
        console: Optional[Console] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.gateway = gateway
        self.console = console or Console()
        self.sleep = sleep

    def wait_for_ready(self, retries: int, interval: float) -> bool:
        """Poll ``is_ready`` up to ``retries`` times, sleeping ``interval`` in between."""
        for attempt in range(1, retries + 1):
            if self.gateway.is_ready():
                self.console.print("[green]✓[/green] Vault is accessible")
                return True
            if attempt < retries:
                self.console.print(f"[dim]Waiting for Vault... ({attempt}/{retries})[/dim]")
                self.sleep(interval)
        return False

    def write_section(self, mount: str, section: ConfigSection) -> SectionResult:
        result = SectionResult(
            key=section.key,
            name=section.name,
            description=section.description,
            document=section.document(),
        )
        try:
            self.gateway.kv_put(mount, section.key, result.document)
        except VaultError as e:
            result.outcome = Outcome.WRITE_FAILED
            result.reason = str(e)
            self.console.print(f"  [red]✗[/red] {section.name}: {e}")
        else:
            self.console.print(
                f"  [green]✓[/green] {section.name} → {mount}/{section.key} "
                f"({len(result.document)} keys)"
            )
        return result

    def verify_section(self, mount: str, result: SectionResult) -> None:
        """Read back a written section; mismatches downgrade it to VERIFY_FAILED."""
        try:
            stored = self.gateway.kv_get(mount, result.key)
        except VaultError as e:
            result.outcome = Outcome.VERIFY_FAILED
            result.reason = str(e)
            return

        if stored is None:
            result.outcome = Outcome.VERIFY_FAILED
            result.reason = f"{mount}/{result.key} not found after write"
            return

        result.stored = stored
        expected = result.document
        actual = {k: str(v) for k, v in stored.items()}
        if actual != expected:
            missing = sorted(set(expected) - set(actual))
            changed = sorted(k for k in expected if k in actual and actual[k] != expected[k])
            extra = sorted(set(actual) - set(expected))
            details = []
            if missing:
                details.append(f"missing {', '.join(missing)}")
            if changed:
                details.append(f"changed {', '.join(changed)}")
            if extra:
                details.append(f"unexpected {', '.join(extra)}")
            result.outcome = Outcome.VERIFY_FAILED
            result.reason = "; ".join(details)

    def sync(self, text: str, mount: str, options: Optional[SyncOptions] = None) -> SyncReport:
        options = options or SyncOptions()
        report = SyncReport(mount=mount)

        retries, interval = options.retry_budget()
        if not self.wait_for_ready(retries, interval):
            report.fatal = PhaseFailure(
                PHASE_READINESS,
                StoreUnavailable(f"Vault not ready after {retries} attempt(s)", operation="status"),
            )
            return report

        if options.bootstrap:
            self.console.print("\n[bold]Initializing Vault infrastructure...[/bold]")
            try:
                report.bootstrap = BootstrapCoordinator(self.gateway, self.console).bootstrap(
                    mount, options.environment
                )
            except BootstrapError as e:
                report.fatal = PhaseFailure(PHASE_BOOTSTRAP, e)
                return report

        parsed = parse_sections(text)
        report.skipped = parsed.skipped

        self.console.print(f"\n[bold]Writing {len(parsed)} section(s) to {mount}/[/bold]")
        for section in parsed:
            report.sections.append(self.write_section(mount, section))

        for result in report.sections:
            if result.outcome is Outcome.WRITTEN:
                self.verify_section(mount, result)

        return report
