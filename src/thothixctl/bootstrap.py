"""Vault bootstrap: mount, policies and tokens / Vault 초기 구성.

Steps run in order and stop at the first failure. Nothing is rolled back:
Vault itself is the record of what already happened, and every step is safe
to repeat except token issuance, which always mints new tokens.
"""

from dataclasses import dataclass, field
from typing import Optional

from rich.console import Console

from thothixctl.templates import render_template
from thothixctl.vault_client import VaultError

APP_POLICY = "thothix-app"
READONLY_POLICY = "thothix-readonly"

APP_TOKEN_TTL = "8760h"
READONLY_TOKEN_TTL = "168h"

STEP_MOUNT = "mount"
STEP_POLICIES = "policies"
STEP_TOKENS = "tokens"


@dataclass
class PolicyRule:
    path: str
    capabilities: list[str]
    comment: str = ""


@dataclass
class Policy:
    name: str
    rules: list[PolicyRule] = field(default_factory=list)

    def render(self) -> str:
        """HCL policy document."""
        return render_template("policy.hcl.j2", {"policy": self})


@dataclass
class TokenSpec:
    policy: str
    ttl: str
    display_name: str
    renewable: bool = True


@dataclass
class BootstrapResult:
    app_token: str
    readonly_token: str
    mount_created: bool = False


class BootstrapError(Exception):
    """A bootstrap step failed; earlier steps stay applied."""

    def __init__(self, step: str, cause: VaultError):
        self.step = step
        self.cause = cause
        super().__init__(f"{step}: {cause}")


def app_policy(mount: str) -> Policy:
    return Policy(
        name=APP_POLICY,
        rules=[
            PolicyRule(f"{mount}/data/*", ["read"], "Read-only access to application secrets"),
            PolicyRule("auth/token/renew-self", ["update"], "Allow token renewal"),
            PolicyRule("auth/token/lookup-self", ["read"], "Allow token lookup"),
        ],
    )


def readonly_policy(mount: str) -> Policy:
    return Policy(
        name=READONLY_POLICY,
        rules=[
            PolicyRule(f"{mount}/data/*", ["read"], "Read-only access for monitoring/debugging"),
        ],
    )


def token_specs(environment: str) -> tuple[TokenSpec, TokenSpec]:
    """(app, readonly) token definitions labelled with the environment."""
    return (
        TokenSpec(APP_POLICY, APP_TOKEN_TTL, f"{APP_POLICY}-token-{environment}"),
        TokenSpec(READONLY_POLICY, READONLY_TOKEN_TTL, f"{READONLY_POLICY}-token-{environment}"),
    )


class BootstrapCoordinator:
    """One-time Vault setup for a mount / 마운트 초기 설정."""

    def __init__(self, gateway, console: Optional[Console] = None):
        self.gateway = gateway
        self.console = console or Console()

    def ensure_mount(self, mount: str) -> bool:
        """Enable ``mount`` as kv-v2 unless present; True when it was created."""
        if self.gateway.mount_exists(mount):
            self.console.print(f"   [green]✓[/green] KV secrets engine already exists: {mount}/")
            return False
        self.gateway.enable_mount(mount, "kv-v2")
        self.console.print(f"   [green]✓[/green] KV secrets engine enabled: {mount}/")
        return True

    def write_policies(self, mount: str) -> None:
        for policy in (app_policy(mount), readonly_policy(mount)):
            self.gateway.policy_write(policy.name, policy.render())
            self.console.print(f"   [green]✓[/green] Policy written: {policy.name}")

    def issue_tokens(self, environment: str) -> tuple[str, str]:
        tokens = []
        for spec in token_specs(environment):
            tokens.append(
                self.gateway.issue_token(spec.policy, spec.ttl, spec.renewable, spec.display_name)
            )
            self.console.print(f"   [green]✓[/green] Token created: {spec.display_name} (ttl {spec.ttl})")
        return tokens[0], tokens[1]

    def bootstrap(self, mount: str, environment: str) -> BootstrapResult:
        """Run mount → policies → tokens, raising ``BootstrapError`` on the first failure."""
        self.console.print("\n[bold]1. KV Secrets Engine[/bold]")
        try:
            created = self.ensure_mount(mount)
        except VaultError as e:
            raise BootstrapError(STEP_MOUNT, e) from e

        self.console.print("\n[bold]2. Policies[/bold]")
        try:
            self.write_policies(mount)
        except VaultError as e:
            raise BootstrapError(STEP_POLICIES, e) from e

        self.console.print("\n[bold]3. Tokens[/bold]")
        try:
            app_token, readonly_token = self.issue_tokens(environment)
        except VaultError as e:
            raise BootstrapError(STEP_TOKENS, e) from e

        return BootstrapResult(app_token=app_token, readonly_token=readonly_token, mount_created=created)
