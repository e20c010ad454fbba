"""Configuration management CLI commands."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import click

from authsession.core.config import DEFAULT_CONFIG_FILE, get_default_config_yaml, load_config
from authsession.core.errors import ConfigurationError

# Common option for JSON output
json_option = click.option(
    "--json",
    "output_json",
    is_flag=True,
    help="Output results as JSON for scripting",
)

config_path_option = click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),  # type: ignore[type-var]
    default=None,
    help=f"Config file (default: {DEFAULT_CONFIG_FILE})",
)


def output_result(data: dict[str, Any], as_json: bool = False) -> None:
    """Output result as JSON or formatted text."""
    if as_json:
        click.echo(json.dumps(data, indent=2, default=str))
        return
    for key, value in data.items():
        click.echo(f"{key}: {value}")


@click.group()
def config() -> None:
    """Manage AuthSession configuration."""


@config.command("init")
@config_path_option
@click.option(
    "--force",
    is_flag=True,
    help="Overwrite an existing config file.",
)
def config_init(config_path: Path | None, force: bool) -> None:
    """Write a commented config.yaml template.

    Examples:

        # Write to ~/.authsession/config.yaml
        authsession config init

        # Write somewhere else, replacing any existing file
        authsession config init --config ./config.yaml --force
    """
    path = config_path or DEFAULT_CONFIG_FILE
    if path.exists() and not force:
        raise click.ClickException(f"{path} already exists. Use --force to overwrite it.")

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(get_default_config_yaml())
    click.echo(f"Configuration template written to: {path}")


@config.command("show")
@config_path_option
@json_option
def config_show(config_path: Path | None, output_json: bool) -> None:
    """Show the effective configuration (file plus environment).

    The client secret is masked.
    """
    try:
        session_config = load_config(config_path)
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from None
    output_result(session_config.to_dict(), as_json=output_json)
