"""Server CLI commands."""

from pathlib import Path

import click

from authsession.cli.config import config_path_option
from authsession.core.errors import ConfigurationError


@click.command()
@click.option("--host", "-h", default="127.0.0.1", help="Host to bind to")
@click.option("--port", "-p", type=int, default=5000, help="Port to bind to")
@click.option("--debug", is_flag=True, help="Enable debug mode")
@click.option(
    "--log-level",
    type=click.Choice(["ERROR", "INFO", "DEBUG", "TRACE"], case_sensitive=False),
    default="INFO",
    help="Protocol log level",
)
@config_path_option
def serve(host: str, port: int, debug: bool, log_level: str, config_path: Path | None) -> None:
    """Start the demo login web server.

    Examples:

        authsession serve --port 8000 --log-level DEBUG
    """
    from authsession.app import run_server
    from authsession.core.logging import configure_logging

    configure_logging(log_level)
    try:
        run_server(host=host, port=port, debug=debug, config_path=config_path)
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from None
