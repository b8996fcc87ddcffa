"""
Command-line interface for dbx-transfer.

Wraps the library entry points: authorising and clearing the cached token,
checking token state, and moving CSV files in and out of Dropbox.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table
from typing_extensions import Annotated

from dbx_transfer.application.exceptions import DropboxClientError, HttpFailure, ParseFailure
from dbx_transfer.application.token_manager import TokenManager
from dbx_transfer.application.transfers import (
    WRITE_MODES,
    download_csv,
    get_current_account,
    upload_file,
)
from dbx_transfer.domain.token import TokenState
from dbx_transfer.infrastructure import log_utils

console = Console()

app = typer.Typer(
    name="dbx",
    help="Authorise against Dropbox and transfer CSV files.",
    add_completion=False,
)

CachePathOption = Annotated[
    Optional[Path],
    typer.Option("--cache-path", help="Token cache file (defaults to DBX_TOKEN_CACHE_PATH)."),
]

_STATE_LABELS = {
    TokenState.NO_CACHE: "no cached token",
    TokenState.CACHED_VALID: "valid",
    TokenState.CACHED_EXPIRED_REFRESHABLE: "expired (refreshable)",
    TokenState.CACHED_EXPIRED_NO_REFRESH: "expired (re-authorisation required)",
}


def _fail(exc: Exception) -> None:
    log_utils.error(f"{exc.__class__.__name__}: {exc}")
    typer.echo(f"Error: {exc}")
    raise typer.Exit(code=1)


def _format_expiry(expires_at: Optional[datetime]) -> str:
    if expires_at is None:
        return "never"
    remaining = expires_at - datetime.now(timezone.utc)
    stamp = expires_at.strftime("%Y-%m-%d %H:%M UTC")
    if remaining.total_seconds() <= 0:
        return f"{stamp} (passed)"
    return f"{stamp} (in {int(remaining.total_seconds() // 60)} min)"


@app.command()
def auth(
    app_key: Annotated[Optional[str], typer.Option("--app-key", help="Dropbox app key (defaults to DROPBOX_KEY).")] = None,
    app_secret: Annotated[Optional[str], typer.Option("--app-secret", help="Dropbox app secret (defaults to DROPBOX_SECRET).")] = None,
    cache_path: CachePathOption = None,
    force: Annotated[bool, typer.Option("--force", help="Ignore any cached token and authorise again.")] = False,
) -> None:
    """Authorise with Dropbox, reusing or refreshing the cached token when possible."""
    manager = TokenManager.for_path(cache_path)
    try:
        record = manager.authenticate(app_key, app_secret, force_refresh=force)
    except (DropboxClientError, HttpFailure) as exc:
        _fail(exc)

    typer.echo(f"Token ready (expires: {_format_expiry(record.expires_at_utc())}).")


@app.command(name="clear-token")
def clear_token(cache_path: CachePathOption = None) -> None:
    """Delete the cached token."""
    manager = TokenManager.for_path(cache_path)
    if manager.clear():
        typer.echo(f"Token cleared from {manager.storage.path}")
    else:
        typer.echo("No cached token found")


@app.command()
def status(
    cache_path: CachePathOption = None,
    check_account: Annotated[bool, typer.Option("--check-account", help="Call Dropbox to confirm the token works.")] = False,
) -> None:
    """Show the cached token's state and, optionally, the account it belongs to."""
    manager = TokenManager.for_path(cache_path)
    record = manager.storage.load()
    state = manager.classify(record)

    typer.echo(f"Cache:   {manager.storage.path}")
    typer.echo(f"State:   {_STATE_LABELS[state]}")
    if record is not None:
        typer.echo(f"Expires: {_format_expiry(record.expires_at_utc())}")
        typer.echo(f"Refresh: {'yes' if record.has_refresh_token else 'no'}")

    if not check_account:
        raise typer.Exit(code=0 if state is not TokenState.NO_CACHE else 1)

    try:
        account = get_current_account(manager=manager)
    except (DropboxClientError, HttpFailure) as exc:
        _fail(exc)

    name = (account.get("name") or {}).get("display_name") or account.get("email") or account.get("account_id")
    typer.echo(f"Account: {name}")


@app.command()
def download(
    dropbox_path: Annotated[str, typer.Argument(help="Path of the CSV file in Dropbox, e.g. /data/file.csv.")],
    output: Annotated[Optional[Path], typer.Option("--output", "-o", help="Write the CSV to this local file.")] = None,
    rows: Annotated[int, typer.Option("--rows", help="Rows to preview when not writing to a file.")] = 10,
    cache_path: CachePathOption = None,
) -> None:
    """Download a CSV file and preview it, or save it locally."""
    try:
        frame = download_csv(dropbox_path, cache_path=cache_path)
    except (DropboxClientError, HttpFailure, ParseFailure) as exc:
        _fail(exc)

    if output is not None:
        frame.to_csv(output, index=False)
        typer.echo(f"Saved {len(frame)} rows to {output}")
        return

    table = Table(title=f"{dropbox_path} ({len(frame)} rows)")
    for column in frame.columns:
        table.add_column(str(column))
    for values in frame.head(rows).itertuples(index=False):
        table.add_row(*("" if value is None else str(value) for value in values))
    console.print(table)


@app.command()
def upload(
    local_path: Annotated[Path, typer.Argument(help="Local file to upload.")],
    dropbox_path: Annotated[str, typer.Argument(help="Destination path in Dropbox.")],
    mode: Annotated[str, typer.Option("--mode", help=f"Write mode: {', '.join(WRITE_MODES)}.")] = "overwrite",
    cache_path: CachePathOption = None,
) -> None:
    """Upload a local file to Dropbox."""
    try:
        metadata = upload_file(local_path, dropbox_path, mode, cache_path=cache_path)
    except (DropboxClientError, HttpFailure, ValueError) as exc:
        _fail(exc)

    typer.echo(
        f"Uploaded {local_path} to {metadata.get('path_display', dropbox_path)} "
        f"({metadata.get('size', '?')} bytes)."
    )


def main() -> None:  # pragma: no cover - console script entry point
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
