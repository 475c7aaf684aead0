"""
CLI command: config

Configuration management commands.
"""

import logging

import click

from fundament.bootstrap import load_default_config, parse_source
from fundament.plugins.cli import context_settings

# Configure module-level logger
logger = logging.getLogger("fundament.cli.config")


@click.group("config")
def cli():
    """
    Configuration management commands.
    """
    pass


@cli.command("show")
@click.pass_context
def show_config(ctx):
    """
    Show current configuration.
    """
    settings = context_settings(ctx)

    click.echo("Fundament Configuration")
    click.echo("=" * 30)
    click.echo(f"Root Directory: {settings.root_dir}")
    click.echo(f"Default Config: {settings.default_config}")
    click.echo(f"Default Update Interval: {settings.default_update_interval}s")
    click.echo(f"Fetch Timeout: {settings.fetch_timeout or 'disabled'}")
    click.echo(f"Descriptive Listener IDs: {settings.descriptive_listener_ids}")
    click.echo(f"Cache Max Entries: {settings.cache_max_entries}")
    click.echo(f"Request Timeout: {settings.request_timeout}s")
    click.echo(f"Max Workers: {settings.max_workers}")
    click.echo(f"Log Level: {settings.log_level}")


@cli.command("sources")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Data source config file (defaults to the configured one)",
)
@click.pass_context
def list_sources(ctx, config_path):
    """
    List the data sources of a configuration file.
    """
    path = config_path or context_settings(ctx).default_config
    try:
        sources = load_default_config(path)
    except ValueError as e:
        click.echo(f"Error: {e}")
        logger.error("Failed to read data source config %s", path)
        raise click.Abort()

    if not sources:
        click.echo(f"No data sources defined in {path}")
        return

    click.echo("Data Sources:")
    click.echo("=" * 30)
    for name, entry in sorted(sources.items()):
        try:
            source = parse_source(entry)
        except (TypeError, ValueError) as e:
            click.echo(f"  - {name}: invalid ({e.__class__.__name__})")
            continue
        interval = f"{source.interval}s" if source.interval else "default"
        click.echo(f"  - {name}: {source.format} {source.url} (every {interval})")
