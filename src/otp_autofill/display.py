"""Rich-based display functions for OTP Autofill."""

from __future__ import annotations

import time

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

console = Console()


def time_ago(timestamp_ms: int | None, now: float | None = None) -> str:
    """Format a message timestamp relative to now ("just now", "42s ago", "3 min ago", "2h ago")."""
    if not timestamp_ms:
        return ""
    now = time.time() if now is None else now
    seconds = max(0, int(now - timestamp_ms / 1000))
    if seconds < 30:
        return "just now"
    if seconds < 60:
        return f"{seconds}s ago"
    minutes = seconds // 60
    if minutes < 60:
        return f"{minutes} min ago"
    return f"{minutes // 60}h ago"


def display_codes(codes: list[dict], show_account: bool = True) -> None:
    """Display candidate codes, newest first, as returned by GET_OTP."""
    if not codes:
        console.print("[dim]No codes in the last 10 minutes.[/dim]")
        return

    table = Table(title="Verification Codes")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Code", style="bold green")
    table.add_column("From")
    if show_account:
        table.add_column("Account", style="cyan")
    table.add_column("Received", justify="right", style="dim")

    for idx, item in enumerate(codes, start=1):
        row = [str(idx), item["code"], escape(item["senderName"] or item["senderEmail"])]
        if show_account:
            row.append(item["accountEmail"])
        row.append(time_ago(item["timestampMs"]))
        table.add_row(*row)

    console.print(table)


def display_accounts(accounts: list[dict]) -> None:
    """Display linked accounts."""
    if not accounts:
        display_first_run()
        return

    table = Table(title="Linked Accounts")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Email")
    table.add_column("Name")
    for idx, account in enumerate(accounts, start=1):
        table.add_row(str(idx), escape(account["email"]), escape(account["name"]))
    console.print(table)


def display_first_run() -> None:
    console.print(
        Panel(
            "No Gmail accounts linked yet.\n"
            "Run [bold]otp-autofill accounts add[/bold] to link one.",
            title="Welcome",
        )
    )


def display_fill_result(code: str, submitted: bool) -> None:
    message = f"[bold green]Filled {code}[/bold green]"
    if submitted:
        message += " and submitted"
    console.print(Panel(message, title="Done"))
