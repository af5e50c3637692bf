"""
CLI interface for Claude Quota.

Shows the Claude subscription quota for the stored OAuth login.
"""

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape

from claude_quota.core.formatters import format_time_remaining, progress_bar, status_level
from claude_quota.core.quota import QuotaSnapshot, QuotaWindow, UnavailableReason
from claude_quota.sdk.usage_client import DEFAULT_TIMEOUT, QuotaFetcher
from claude_quota.storage.credentials import default_candidate_paths

app = typer.Typer()
console = Console()
err_console = Console(stderr=True)

EXIT_CODE_OK = 0
EXIT_CODE_FAIL = 1

STATUS_STYLES = {
    "ok": "green",
    "warning": "yellow",
    "critical": "red",
}


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context):
    """Claude Quota CLI."""
    if ctx.invoked_subcommand is None:
        ctx.invoke(
            status,
            auth_file=None,
            timeout=DEFAULT_TIMEOUT,
            as_json=False,
            verbose=False,
        )


@app.command()
def status(
    auth_file: Optional[Path] = typer.Option(
        None,
        "--auth-file",
        "-a",
        help="Read credentials from this file instead of the default locations"
    ),
    timeout: float = typer.Option(
        DEFAULT_TIMEOUT,
        "--timeout",
        "-t",
        help="Timeout in seconds for each API call"
    ),
    as_json: bool = typer.Option(
        False,
        "--json",
        help="Print the normalized quota snapshot as JSON"
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable debug logging"
    )
):
    """Show session and weekly quota usage for the Claude subscription."""
    _configure_logging(verbose)

    fetcher = QuotaFetcher(timeout=timeout)
    auth_path = auth_file or fetcher.locate_credentials()

    if not as_json:
        _print_banner()

    result = asyncio.run(fetcher.fetch_quota(auth_path))

    if not isinstance(result, QuotaSnapshot):
        if result.reason == UnavailableReason.CREDENTIALS_MISSING:
            err_console.print(f"[red]❌ Auth file not found: {escape(str(auth_path))}[/]")
            err_console.print("[dim]   Run OpenCode and login with Claude OAuth first.[/]")
        elif result.reason == UnavailableReason.CREDENTIALS_INVALID:
            err_console.print("[red]❌ No OAuth credentials found for Anthropic[/]")
            err_console.print("[dim]   Login with Claude Pro/Max in OpenCode.[/]")
        else:
            err_console.print(f"[red]❌ {escape(result.detail)}[/]")
            if result.status_code == 401:
                err_console.print("[dim]   Token expired. Restart OpenCode to refresh.[/]")
        sys.exit(EXIT_CODE_FAIL)

    if as_json:
        typer.echo(json.dumps(result.to_dict(), indent=2))
    else:
        _display_snapshot(result)
    sys.exit(EXIT_CODE_OK)


@app.command()
def paths():
    """List the locations searched for the auth file, in order."""
    for candidate in default_candidate_paths():
        marker = "[green]✓[/]" if candidate.exists() else "[dim]-[/]"
        console.print(f"{marker} {escape(str(candidate))}")


def _print_banner():
    console.print("\n[bold]╔════════════════════════════════════════╗[/]")
    console.print("[bold]║      CLAUDE CODE QUOTA STATUS          ║[/]")
    console.print("[bold]╚════════════════════════════════════════╝[/]\n")


def _display_window(title: str, window: QuotaWindow):
    used = window.used_percent
    style = STATUS_STYLES[status_level(used)]
    console.print(f"[cyan]{title}[/]")
    console.print(f"   {escape(progress_bar(used))} [{style}]{used}%[/] used")
    console.print(
        f"   [dim]Remaining:[/] {window.remaining_percent}%  "
        f"[dim]Resets in:[/] {format_time_remaining(window.resets_at)}"
    )
    console.print()


def _display_snapshot(snapshot: QuotaSnapshot):
    """Display the quota snapshot in the fixed terminal layout."""
    _display_window("📊 SESSION (5-hour window)", snapshot.session_window)
    _display_window("📈 WEEKLY (7-day rolling)", snapshot.weekly_window)

    if snapshot.per_model_weekly:
        console.print("[cyan]🔤 PER-MODEL WEEKLY[/]")
        label_width = max(len(model) for model in snapshot.per_model_weekly) + 1
        for model, window in sorted(snapshot.per_model_weekly.items()):
            label = f"{model.capitalize()}:".ljust(label_width + 1)
            bar = escape(progress_bar(window.used_percent, 15))
            console.print(f"   {label}{bar} {window.used_percent}%")
        console.print()

    extra = snapshot.extra_usage
    if extra is not None and extra.is_enabled:
        monthly_limit = "N/A" if extra.monthly_limit is None else f"{extra.monthly_limit:g}"
        used_credits = 0 if extra.used_credits is None else extra.used_credits
        console.print("[cyan]💰 EXTRA USAGE[/]")
        console.print(f"   [dim]Monthly limit:[/] ${monthly_limit}")
        console.print(f"   [dim]Used credits:[/] ${used_credits:g}")
        console.print()

    console.print(f"[dim]{'─' * 42}[/]")
    fetched_at = snapshot.fetched_at.astimezone().strftime("%H:%M:%S")
    console.print(f"[dim]   Fetched at: {fetched_at}[/]")
    console.print()


if __name__ == "__main__":
    app()
