"""ngrok tunnel for local webhook testing.
웹훅 테스트용 ngrok 터널.

Reads NGROK_AUTHTOKEN (required) and NGROK_TUNNEL_URL (optional, static
domain on paid plans) from the project .env file.
"""

import subprocess
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel

from thothixctl.config import load_settings
from thothixctl.envfile import load_env_values

console = Console()

WEBHOOK_PATH = "/api/v1/auth/webhooks/clerk"


def tunnel_domain(url: str) -> str:
    """Strip the scheme and trailing slash from NGROK_TUNNEL_URL."""
    for scheme in ("https://", "http://"):
        if url.startswith(scheme):
            url = url[len(scheme):]
    return url.rstrip("/")


def ngrok_installed() -> bool:
    try:
        return subprocess.run(["ngrok", "--version"], capture_output=True, timeout=10).returncode == 0
    except (FileNotFoundError, subprocess.TimeoutExpired):
        return False


def tunnel_command(
    port: Optional[int] = typer.Argument(None, min=1, max=65535, help="Local port (default: 30000)"),
    env_file: Optional[Path] = typer.Option(None, "--env-file", "-e", help="Project .env file"),
):
    """Start an ngrok HTTP tunnel / ngrok HTTP 터널 시작.

    \b
    Configure the Clerk webhook with:
        URL:    https://<tunnel>/api/v1/auth/webhooks/clerk
        Events: user.created, user.updated, user.deleted
    """
    settings = load_settings(env_file=env_file)
    port = port or settings.ngrok_port

    if not settings.env_file.exists():
        console.print(f"[red]✗[/red] {settings.env_file} not found")
        console.print("  Run: cp .env.example .env, then set NGROK_AUTHTOKEN")
        raise typer.Exit(1)

    env = load_env_values(settings.env_file)
    authtoken = env.get("NGROK_AUTHTOKEN")
    if not authtoken:
        console.print("[red]✗[/red] NGROK_AUTHTOKEN not found in .env")
        console.print("  Get it from: https://dashboard.ngrok.com/get-started/your-authtoken")
        raise typer.Exit(1)

    if not ngrok_installed():
        console.print("[red]✗[/red] ngrok not found in PATH")
        console.print("  Download from: https://ngrok.com/download")
        raise typer.Exit(1)
    console.print("[green]✓[/green] ngrok found in PATH")

    result = subprocess.run(["ngrok", "config", "add-authtoken", authtoken], capture_output=True, text=True)
    if result.returncode != 0:
        console.print(f"[red]✗[/red] Failed to configure ngrok authtoken: {result.stderr.strip()}")
        raise typer.Exit(1)
    console.print("[green]✓[/green] ngrok authtoken configured")

    args = ["ngrok", "http", str(port)]
    tunnel_url = env.get("NGROK_TUNNEL_URL")
    if tunnel_url:
        domain = tunnel_domain(tunnel_url)
        args += ["--domain", domain]
        webhook = f"https://{domain}{WEBHOOK_PATH}"
    else:
        webhook = f"https://YOUR_TUNNEL_URL{WEBHOOK_PATH} (copy the HTTPS URL from ngrok output)"

    console.print(Panel.fit(
        f"Port:    {port}\n"
        f"Webhook: {webhook}\n\n"
        "Press Ctrl+C to stop the tunnel",
        title="🌐 ngrok",
    ))

    process = subprocess.Popen(args)
    try:
        returncode = process.wait()
    except KeyboardInterrupt:
        console.print("\n[dim]Stopping ngrok tunnel...[/dim]")
        process.terminate()
        process.wait()
        returncode = 0

    if returncode == 0:
        console.print("[green]✓[/green] ngrok tunnel stopped")
    else:
        console.print("[red]✗[/red] ngrok tunnel exited with error")
    raise typer.Exit(returncode)
