"""CLI entry point for twofa."""

from __future__ import annotations

import logging
import os
import sys

import click
from rich.console import Console
from rich.markup import escape

from twofa import __version__
from twofa.auth.totp import decode_secret, provisioning_uri, spaced_code, totp
from twofa.config import settings
from twofa.display import CountdownDisplay, KeyListener
from twofa.errors import DecodeError, TwofaError
from twofa.provisioning import parse_secret_url, resolve_account, validate_name
from twofa.registry import get_registry

console = Console()
err_console = Console(stderr=True)

logger = logging.getLogger(__name__)


class TwofaGroup(click.Group):
    """Maps TwofaError raised by any command to a message and exit code."""

    def invoke(self, ctx: click.Context) -> object:
        try:
            return super().invoke(ctx)
        except TwofaError as e:
            logger.debug("Command failed", exc_info=True)
            err_console.print(f"twofa: {e}", style="red", markup=False, highlight=False)
            ctx.exit(e.exit_code)


@click.group(cls=TwofaGroup, invoke_without_command=True)
@click.option("-v", "--verbose", is_flag=True, help="Log debug output to stderr.")
@click.pass_context
def main(ctx: click.Context, verbose: bool) -> None:
    """twofa: two-factor authentication codes.

    With no command, prints the current code of every account.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else settings.log_level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
    )
    if ctx.invoked_subcommand is None:
        registry = get_registry()
        for name in registry.list_account_names():
            account = resolve_account(registry, name)
            code = totp(account.secret, digits=account.digits, period=account.period)
            click.echo(f"{code}\t{account.label}")


@main.command()
@click.argument("name", required=False)
@click.option("-7", "digits", flag_value=7, help="Generate 7-digit codes.")
@click.option("-8", "digits", flag_value=8, help="Generate 8-digit codes.")
@click.option("--issuer", help="Issuer label shown next to the account.")
@click.option("--url", "from_url", is_flag=True, help="Read a full otpauth:// URL instead of a key.")
def add(name: str | None, digits: int | None, issuer: str | None, from_url: bool) -> None:
    """Add an account; the key is read from standard input.

    Keys are short case-insensitive strings of letters A-Z and digits 2-7.
    """
    if from_url:
        if digits or issuer:
            raise click.UsageError("-7, -8 and --issuer cannot be combined with --url; the URL carries its own")
        text = click.prompt("otpauth URL", err=True, prompt_suffix=": ")
        account = parse_secret_url(name or "", text)
        name = validate_name(account.name)
        url = text.strip()
    else:
        if not name:
            raise click.UsageError("missing account NAME")
        validate_name(name)
        text = click.prompt(f"2fa key for {name}", err=True, prompt_suffix=": ", default="", show_default=False)
        if not text.strip():
            raise DecodeError("empty key")
        decode_secret(text)
        secret = text.strip().upper().rstrip("=")
        url = provisioning_uri(secret, name, issuer=issuer, digits=digits or settings.default_digits)
        account = parse_secret_url(name, url)

    get_registry().add_secret(name, url)
    console.print(f"Account [bold]{escape(account.label)}[/bold] has been added.")


@main.command("list")
def list_() -> None:
    """List all the account names."""
    names = get_registry().list_account_names()
    if not names:
        console.print("Run `twofa add` to add an account.", highlight=False)
        return
    for name in names:
        click.echo(name)


@main.command()
@click.argument("name")
@click.option("--once", is_flag=True, help="Print the current code and exit.")
@click.option("--spaced", is_flag=True, help="Show codes as '6 8 125305'.")
@click.option("--duration", type=float, help="Stop after this many seconds.")
def show(name: str, once: bool, spaced: bool, duration: float | None) -> None:
    """Display the TOTP code for an account with a countdown.

    Press any key to exit.
    """
    account = resolve_account(get_registry(), name)
    if once:
        code = totp(account.secret, digits=account.digits, period=account.period)
        click.echo(spaced_code(code) if spaced else code)
        return

    display = CountdownDisplay(
        account.secret,
        digits=account.digits,
        period=account.period,
        console=console,
        spaced=spaced,
    )
    try:
        if os.name == "posix" and sys.stdin.isatty():
            with KeyListener(display.cancel):
                code = display.run(duration=duration)
        else:
            code = display.run(duration=duration)
    except KeyboardInterrupt:
        display.cancel()
        code = display.last_code
    logger.debug("Last code shown for %s: %s", account.label, code)


@main.command()
def version() -> None:
    """Print the version number of twofa."""
    click.echo(f"twofa {__version__}")


if __name__ == "__main__":
    main()
