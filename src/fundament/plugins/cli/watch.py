"""
CLI command: watch

Registers the configured data sources and prints every update as it arrives.
"""

import logging
import time

import click

from fundament.bootstrap import load_default_config
from fundament.engine import Fundament
from fundament.plugins.cli import context_settings
from fundament.utils import summarise

# Configure module-level logger
logger = logging.getLogger("fundament.cli.watch")


@click.command("watch")
@click.argument("keys", nargs=-1)
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Data source config file (defaults to the configured one)",
)
@click.option(
    "--duration",
    type=float,
    default=0.0,
    help="Stop after this many seconds (0 runs until interrupted)",
)
@click.option("--now/--no-now", default=True, help="Refresh once at start-up")
@click.pass_context
def cli(ctx, keys, config_path, duration, now) -> None:
    """
    Watch KEYS (or every configured data source) and print their updates.
    """
    settings = context_settings(ctx)
    path = config_path or settings.default_config
    try:
        mapping = load_default_config(path)
    except ValueError as e:
        click.echo(f"Error: {e}")
        raise click.Abort()

    if keys:
        unknown = [key for key in keys if key not in mapping]
        if unknown:
            click.echo(
                f"Error: Unknown data source(s) {', '.join(unknown)}.\n"
                f"Available: {', '.join(sorted(mapping))}"
            )
            raise click.Abort()
        mapping = {key: mapping[key] for key in keys}

    if not mapping:
        click.echo(f"No data sources defined in {path}")
        return

    with Fundament(settings) as engine:
        registered = [
            key for key in engine.add_url_data_sources_from_dict(mapping).values() if key
        ]
        for key in registered:
            engine.add_listener(
                key,
                lambda value, key=key: click.echo(f"[{key}] {summarise(value)}"),
                listener_id="cli-watch",
            )
        click.echo(f"Watching {len(registered)} data source(s)...")

        if now:
            for key in registered:
                engine.refresh(key)

        try:
            if duration > 0:
                time.sleep(duration)
            else:
                while True:
                    time.sleep(1)
        except KeyboardInterrupt:
            logger.info("Interrupted, stopping")

    click.echo("Stopped.")
