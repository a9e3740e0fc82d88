"""thothixctl - Thothix developer workflow CLI.
Thothix 개발 워크플로우 CLI.

Usage:
    thothixctl vault sync            # Sync .env sections to Vault
    thothixctl vault init            # Bootstrap Vault + sync
    thothixctl deploy dev up         # Start the dev environment
    thothixctl db status             # Database container status
    thothixctl dev pre-commit        # gofmt + lint + tests
    thothixctl ngrok                 # Webhook tunnel
"""

import typer
from rich.console import Console

from thothixctl import __version__
from thothixctl.commands import db, deploy, dev, ngrok, vault

app = typer.Typer(
    name="thothixctl",
    help="Thothix developer workflow CLI / Thothix 개발 워크플로우 CLI",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
console = Console()

app.add_typer(vault.app, name="vault", help="Vault secrets sync / Vault 시크릿 동기화")
app.add_typer(deploy.app, name="deploy", help="Docker Compose environments / 환경별 배포")
app.add_typer(db.app, name="db", help="Database inspection / 데이터베이스 점검")
app.add_typer(dev.app, name="dev", help="Go backend tooling / Go 백엔드 개발 도구")
app.command("ngrok")(ngrok.tunnel_command)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: bool = typer.Option(False, "--version", "-v", help="Show version"),
):
    """Thothix developer workflow CLI.

    \b
    Secrets:
        thothixctl vault init      # First run: mount, policies, tokens + sync
        thothixctl vault sync      # Push .env sections to Vault
        thothixctl vault sections  # Preview what would be synced

    \b
    Environments:
        thothixctl deploy dev up
        thothixctl deploy prod logs backend
    """
    if version:
        console.print(f"thothixctl {__version__}")
        raise typer.Exit(0)
