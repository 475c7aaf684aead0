"""
CLI command: info

Displays Fundament package version, registered response decoders and the
data sources of the default configuration.
"""

import logging
from importlib.metadata import PackageNotFoundError, version

import click

from fundament.bootstrap import load_default_config
from fundament.fetch import DecoderRegistry
from fundament.plugins.cli import context_settings

# Configure module-level logger
logger = logging.getLogger("fundament.cli.info")


@click.command("info")
@click.pass_context
def cli(ctx) -> None:
    """
    Show package metadata, response formats and configured data sources.
    """
    # Retrieve package version, fallback if not installed
    try:
        pkg_version = version("fundament")
        logger.debug("Retrieved package version: %s", pkg_version)
    except PackageNotFoundError:
        pkg_version = "0.0.0-dev"
        logger.warning(
            "Package 'fundament' not found; using development version placeholder."
        )

    click.echo(f"Fundament version: {pkg_version}")

    # List response formats
    click.echo("\nAvailable response formats:")
    for response_type, description in DecoderRegistry.get_info().items():
        click.echo(f"  - {response_type}: {description}")

    # List configured data sources
    settings = context_settings(ctx)
    click.echo(f"\nConfigured data sources ({settings.default_config}):")
    try:
        sources = load_default_config(settings.default_config)
    except ValueError as e:
        click.echo(f"  Error: {e}")
        return

    if not sources:
        click.echo("  (none)")
    for name in sorted(sources):
        click.echo(f"  - {name}")
