"""CLI entry point for OTP Autofill."""

from __future__ import annotations

import sys
import threading
from pathlib import Path

import click
from loguru import logger
from rich.markup import escape

from otp_autofill.auth import AuthBroker
from otp_autofill.constants import DEFAULT_CDP_URL, POLL_INTERVAL_SECONDS
from otp_autofill.display import (
    console,
    display_accounts,
    display_codes,
    display_fill_result,
    display_first_run,
)
from otp_autofill.dom import SoupDocument, describe, open_active_page
from otp_autofill.gmail_client import MailScanner
from otp_autofill.locator import find_otp_field, find_submit_button
from otp_autofill.messages import MessageRouter, MessageType
from otp_autofill.models import OTPCandidate
from otp_autofill.scanner import ScanOrchestrator, poll
from otp_autofill.store import AccountStore

_LOG_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan> - <level>{message}</level>"
)


def setup_logging(verbose: bool = False) -> None:
    """Send log records to stderr; debug output only with --verbose."""
    logger.remove()
    logger.add(sys.stderr, format=_LOG_FORMAT, level="DEBUG" if verbose else "WARNING", colorize=True)


def build_router(cdp_url: str | None = None) -> MessageRouter:
    store = AccountStore()
    broker = AuthBroker(store)
    orchestrator = ScanOrchestrator(store, broker, MailScanner())
    page_opener = (lambda: open_active_page(cdp_url)) if cdp_url else None
    return MessageRouter(broker, orchestrator, page_opener=page_opener)


def _check(response: dict) -> dict:
    if not response.get("ok"):
        raise click.ClickException(response.get("error") or "Unknown error")
    return response


@click.group()
@click.version_option(version="0.1.0", prog_name="otp-autofill")
@click.option("-v", "--verbose", is_flag=True, help="Show debug logging.")
def cli(verbose: bool) -> None:
    """OTP Autofill - find verification codes in Gmail and fill them in."""
    setup_logging(verbose)


@cli.group(name="accounts")
def accounts_group() -> None:
    """Manage linked Gmail accounts."""


@accounts_group.command(name="list")
def accounts_list() -> None:
    """Show linked accounts."""
    router = build_router()
    try:
        response = _check(router.dispatch({"type": MessageType.GET_ACCOUNTS.value}))
    finally:
        router.close()
    display_accounts(response["accounts"])


@accounts_group.command(name="add")
def accounts_add() -> None:
    """Link a Gmail account (opens the Google account chooser)."""
    router = build_router()
    try:
        response = _check(router.dispatch({"type": MessageType.ADD_ACCOUNT.value}))
    finally:
        router.close()
    account = response["account"]
    console.print(f"[green]Linked {escape(account['email'])} ({escape(account['name'])}).[/green]")


@accounts_group.command(name="remove")
@click.argument("email")
def accounts_remove(email: str) -> None:
    """Unlink an account."""
    router = build_router()
    try:
        _check(router.dispatch({"type": MessageType.REMOVE_ACCOUNT.value, "email": email}))
    finally:
        router.close()
    console.print(f"[green]Removed {email}.[/green]")


def _fetch_codes(router: MessageRouter, account: str | None) -> list[dict] | None:
    """Return codes from GET_OTP, or None when no account is linked."""
    response = router.request({"type": MessageType.GET_OTP.value, "filterEmail": account})
    if not response.get("ok") and response.get("error") == "no_accounts":
        display_first_run()
        return None
    return _check(response)["codes"]


@cli.command()
@click.option("-a", "--account", default=None, help="Only scan this account.")
def codes(account: str | None) -> None:
    """List verification codes received in the last 10 minutes."""
    router = build_router()
    try:
        found = _fetch_codes(router, account)
    finally:
        router.close()
    if found is not None:
        display_codes(found, show_account=account is None)


@cli.command()
@click.argument("code", required=False)
@click.option("-a", "--account", default=None, help="Only scan this account when picking a code.")
@click.option("--cdp-url", default=DEFAULT_CDP_URL, show_default=True, help="Browser DevTools endpoint.")
@click.option("--no-submit", is_flag=True, help="Fill the field but do not submit the form.")
def fill(code: str | None, account: str | None, cdp_url: str, no_submit: bool) -> None:
    """Fill CODE (default: the newest code found) into the active browser tab."""
    router = build_router(cdp_url)
    try:
        if code is None:
            found = _fetch_codes(router, account)
            if found is None:
                return
            if not found:
                raise click.ClickException("No codes in the last 10 minutes.")
            code = found[0]["code"]
            console.print(f"[dim]Using newest code from {found[0]['senderName']}[/dim]")

        response = _check(
            router.request(
                {"type": MessageType.FILL_CODE.value, "code": code, "autoSubmit": not no_submit}
            )
        )
    finally:
        router.close()
    display_fill_result(code, response.get("submitted", False))


@cli.command()
@click.argument("page", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def locate(page: Path) -> None:
    """Show which field and button a fill would use on a saved HTML PAGE."""
    document = SoupDocument(page.read_text(errors="replace"))
    field = find_otp_field(document)
    if field is None:
        raise click.ClickException("No OTP field found on this page.")
    console.print(f"[bold]Field:[/bold] {escape(describe(field))}")

    button = find_submit_button(field, document)
    console.print(f"[bold]Submit:[/bold] {escape(describe(button)) if button else '[dim]none[/dim]'}")


@cli.command()
@click.option(
    "--interval", default=POLL_INTERVAL_SECONDS, type=float, show_default=True,
    help="Seconds between scans.",
)
@click.option("--once", is_flag=True, help="Scan a single time and exit.")
def watch(interval: float, once: bool) -> None:
    """Scan all accounts periodically and report waiting codes."""
    router = build_router()
    stop = threading.Event()

    def on_codes(found: list[OTPCandidate]) -> None:
        console.print(f"[bold green]{len(found)}[/bold green] code(s) waiting")
        display_codes([c.to_dict() for c in found])

    try:
        poll(router.orchestrator, on_codes, stop, interval=interval, max_runs=1 if once else None)
    except KeyboardInterrupt:
        stop.set()
    finally:
        router.close()
