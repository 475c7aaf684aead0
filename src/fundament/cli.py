"""
Core Fundament CLI: dynamically loads commands from plugins/cli.
"""

import importlib
import logging
import pathlib
import pkgutil

import click

from fundament.settings import Settings

# Logging configuration
logger = logging.getLogger("fundament")
handler = logging.StreamHandler()
formatter = logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")
handler.setFormatter(formatter)
logger.addHandler(handler)


@click.group()
@click.option(
    "--log-level",
    default=None,
    help="Set logging level (defaults to FUNDAMENT_LOG_LEVEL or INFO)",
)
@click.pass_context
def main(ctx, log_level):
    """
    Fundament CLI
    """
    # Read per invocation so environment overrides apply to every command.
    settings = Settings()
    if log_level:
        settings.log_level = log_level.upper()

    ctx.ensure_object(dict)
    ctx.obj["log_level"] = settings.log_level
    ctx.obj["settings"] = settings

    logger.setLevel(getattr(logging, settings.log_level.upper()))


def load_commands():
    """
    Auto-discover and register click commands from fundament/plugins/cli/*.py
    Each plugin module must define a top-level `cli` click.Command.
    """
    plugins_path = pathlib.Path(__file__).parent / "plugins" / "cli"
    package = "fundament.plugins.cli"
    for _, module_name, _ in pkgutil.iter_modules([str(plugins_path)]):
        full_name = f"{package}.{module_name}"
        try:
            module = importlib.import_module(full_name)
            cmd = getattr(module, "cli", None)
            if isinstance(cmd, click.Command):
                main.add_command(cmd)
        except Exception as e:
            logger.error(f"Failed to load plugin {full_name}: {e}")


# Load all plugin commands
load_commands()

if __name__ == "__main__":
    main()
