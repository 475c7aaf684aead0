"""
Click commands discovered by ``fundament.cli.load_commands``.
"""

import click

from fundament.settings import Settings


def context_settings(ctx: click.Context) -> Settings:
    """
    Settings loaded by the root command, or fresh ones when a command is
    invoked on its own.
    """
    obj = ctx.find_object(dict)
    if obj and obj.get("settings") is not None:
        return obj["settings"]
    return Settings()
