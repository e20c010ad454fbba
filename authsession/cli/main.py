"""CLI entry point for AuthSession."""

from pathlib import Path

import click

from authsession import __version__
from authsession.cli import config as config_commands
from authsession.cli import serve as serve_commands
from authsession.cli.config import config_path_option, json_option, output_result


@click.group()
@click.version_option(version=__version__, prog_name="authsession")
@click.pass_context
def cli(ctx: click.Context) -> None:
    """AuthSession - OAuth2/OIDC Login Session Tool."""
    ctx.ensure_object(dict)


@cli.command("login-url")
@config_path_option
@click.option("--state", default=None, help="Use this state value instead of issuing one.")
@click.option("--connection", default=None, help="Provider connection to log in with.")
@click.option(
    "--param",
    "params",
    multiple=True,
    metavar="KEY=VALUE",
    help="Extra authorize parameter (repeatable).",
)
@json_option
def login_url(
    config_path: Path | None,
    state: str | None,
    connection: str | None,
    params: tuple[str, ...],
    output_json: bool,
) -> None:
    """Build an authorize URL and print it with its state and nonce.

    Examples:

        authsession login-url --param prompt=login

        authsession login-url --connection github --json
    """
    from authsession.core.config import load_config
    from authsession.core.errors import ConfigurationError
    from authsession.core.session import MAX_AGE_KEY, NONCE_KEY, AuthSession
    from authsession.core.state import STATE_KEY, SessionStateHandler
    from authsession.storage import MemoryStore

    extra: dict[str, str] = {}
    for item in params:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"Expected KEY=VALUE, got {item!r}", param_hint="--param")
        extra[key] = value

    try:
        session_config = load_config(config_path)
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from None

    state_store = MemoryStore()
    auth_store = MemoryStore()
    auth_session = AuthSession(
        session_config,
        store=MemoryStore(),
        auth_store=auth_store,
        state_handler=SessionStateHandler(state_store),
    )
    try:
        url = auth_session.get_login_url(extra, state=state, connection=connection)
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from None

    output_result(
        {
            "url": url,
            "state": state_store.get(STATE_KEY),
            "nonce": auth_store.get(NONCE_KEY),
            "max_age": auth_store.get(MAX_AGE_KEY),
        },
        as_json=output_json,
    )


# Register command groups
cli.add_command(config_commands.config)
cli.add_command(serve_commands.serve)


if __name__ == "__main__":
    cli()
