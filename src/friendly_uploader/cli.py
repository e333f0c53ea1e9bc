"""Command line interface for managing files stored in OneDrive."""

from __future__ import annotations

import logging
import webbrowser
from pathlib import Path

import click

from friendly_uploader import __version__
from friendly_uploader.auth.flow import auth_flow_from_config, extract_code
from friendly_uploader.auth.redirect import capture_redirect
from friendly_uploader.config import AppConfig, load_config
from friendly_uploader.credentials import CredentialStore
from friendly_uploader.errors import FriendlyUploaderError, TokenRefreshError
from friendly_uploader.graph.onedrive import OneDrive, onedrive_from_config

logger = logging.getLogger(__name__)


def _settings(ctx: click.Context) -> AppConfig:
    return ctx.obj["config"]  # type: ignore[no-any-return]


def _session(ctx: click.Context) -> OneDrive:
    config = _settings(ctx)
    return onedrive_from_config(config, CredentialStore(config.credentials_path))


def _fail(exc: FriendlyUploaderError) -> click.ClickException:
    message = str(exc)
    if isinstance(exc, TokenRefreshError):
        message += "\nStored credentials are no longer valid; run init to sign in again."
    return click.ClickException(message)


@click.group()
@click.version_option(__version__, prog_name="friendly-uploader")
@click.option("-v", "--verbose", is_flag=True, help="Log HTTP and token activity to stderr.")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """App for managing files on a OneDrive service."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    try:
        config = load_config()
    except FriendlyUploaderError as exc:
        raise _fail(exc) from exc
    ctx.ensure_object(dict)
    ctx.obj["config"] = config


@cli.command()
@click.option(
    "-b",
    "--browser",
    is_flag=True,
    help="Open the browser and capture the authentication response automatically.",
)
@click.pass_context
def init(ctx: click.Context, browser: bool) -> None:
    """Initialize and authenticate the app."""
    config = _settings(ctx)
    flow = auth_flow_from_config(config)
    auth_url = flow.authorization_url()

    try:
        if browser:
            click.echo("Waiting for OneDrive authentication request in your browser...")
            click.echo(f"Reference URL: {auth_url}")
            click.echo(f"Listening for response on: {config.redirect_uri}")
            webbrowser.open(auth_url)
            response_url = capture_redirect(config.redirect_uri, timeout=config.login_timeout)
        else:
            click.echo(f"Open this URL in your browser: {auth_url}")
            response_url = click.prompt("Paste the response URL here")

        pair = flow.exchange_code(extract_code(response_url))
        CredentialStore(config.credentials_path).save(pair)
    except FriendlyUploaderError as exc:
        raise _fail(exc) from exc

    click.echo(f"Authentication succeeded; credentials saved to {config.credentials_path}")


@cli.command()
@click.pass_context
def me(ctx: click.Context) -> None:
    """Shows profile information for the currently logged in user."""
    try:
        user = _session(ctx).me()
    except FriendlyUploaderError as exc:
        raise _fail(exc) from exc

    click.echo(f"Display name: {user.display_name or ''}")
    click.echo(f"User principal name: {user.user_principal_name or ''}")
    click.echo(f"Mail: {user.mail or ''}")
    click.echo(f"ID: {user.id}")


@cli.command()
@click.pass_context
def ls(ctx: click.Context) -> None:
    """List contents of root OneDrive folder."""
    try:
        root = _session(ctx).me().root()
        for item in root.children():
            suffix = "/" if item.is_folder else ""
            click.echo(f"{item.name}{suffix}")
    except FriendlyUploaderError as exc:
        raise _fail(exc) from exc


@cli.command()
@click.option(
    "-s",
    "--sourcefile",
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Path to the file to upload.",
)
@click.pass_context
def upload(ctx: click.Context, sourcefile: Path) -> None:
    """Upload a new file to OneDrive root folder."""
    try:
        item = _session(ctx).me().root().upload(sourcefile)
    except FriendlyUploaderError as exc:
        raise _fail(exc) from exc
    click.echo(f"Successfully uploaded {item.name}")


@cli.command()
@click.option("-t", "--token", default=None, help="Delta token printed by a previous run.")
@click.pass_context
def changes(ctx: click.Context, token: str | None) -> None:
    """List items changed since TOKEN, or every item when no token is given."""
    try:
        changeset = _session(ctx).drive().delta(token)
        for item in changeset:
            status = "deleted" if item.is_deleted else "changed"
            click.echo(f"{status}\t{item.name or item.id}")
    except FriendlyUploaderError as exc:
        raise _fail(exc) from exc
    if changeset.delta_token:
        click.echo(f"Next token: {changeset.delta_token}")


def main() -> None:
    cli(obj={})
