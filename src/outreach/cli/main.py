"""Command line tool for managing encrypted account credentials."""

import base64
from typing import Annotated

import nacl.utils
import typer
from rich.console import Console

from outreach.credentials import envelope
from outreach.credentials.constants import ENV_IG_CREDENTIALS_KEY, KEY_SIZE
from outreach.credentials.exceptions import EnvelopeError

err_console = Console(stderr=True)
console = Console(stderr=False)
app = typer.Typer(help=__doc__)

KeyOption = Annotated[
    str,
    typer.Option(
        "--key",
        envvar=ENV_IG_CREDENTIALS_KEY,
        show_envvar=True,
        show_default=False,
        help="The credentials encryption secret. Defaults to the value the API server uses.",
    ),
]


def require_key(key: str):
    if not key:
        err_console.print(
            f"[bold red]Error:[/bold red] {ENV_IG_CREDENTIALS_KEY} is not set. Pass --key or set the environment variable."
        )
        raise typer.Exit(1)


@app.command()
def create_credentials_key():
    """Generate a random secret for encrypting account passwords.

    The secret is written to stdout and is suitable for use as the IG_CREDENTIALS_KEY environment variable. Rotating
    the secret makes existing encrypted passwords unreadable.
    """
    print(base64.standard_b64encode(nacl.utils.random(KEY_SIZE)).decode("utf-8"))


@app.command()
def encrypt_credential(
    plaintext: Annotated[str, typer.Option(prompt=True, hide_input=True, help="The credential to encrypt.")],
    key: KeyOption = "",
):
    """Encrypts a credential the same way the API server does before storing it."""
    require_key(key)
    print(envelope.encrypt(plaintext, key))


@app.command()
def check_credential(
    value: Annotated[str, typer.Argument(help="A stored credential, e.g. a platform_accounts.password value.")],
    key: KeyOption = "",
):
    """Reports whether a stored credential is encrypted and readable with the configured secret.

    The decrypted value is never printed.
    """
    if not envelope.is_envelope(value):
        console.print("Not encrypted: the value is stored as plaintext.")
        return
    require_key(key)
    try:
        decrypted = envelope.decrypt(value, key)
    except EnvelopeError as exc:
        err_console.print(f"[bold red]Unreadable:[/bold red] {type(exc).__name__}: {exc}")
        raise typer.Exit(1) from exc
    if decrypted == value:
        err_console.print("[bold red]Unreadable:[/bold red] the value is not a complete envelope.")
        raise typer.Exit(1)
    console.print(f"OK: the value decrypts to a {len(decrypted)} character credential.")


if __name__ == "__main__":
    app()
