"""Custom Click command with automatic help display on errors.

A missing or malformed option prints the error followed by the full help
text, then exits non-zero.
"""

from typing import Any

import click


class EvilianCommand(click.Command):
    """Click command that shows the full help when argument parsing fails."""

    def parse_args(self, ctx: click.Context, args: list[str]) -> list[str]:
        try:
            return super().parse_args(ctx, args)
        except (
            click.exceptions.UsageError,
            click.exceptions.BadParameter,
            click.exceptions.MissingParameter,
        ) as e:
            # Show the error message first
            click.echo(f"Error: {e.format_message()}", err=True)
            click.echo("")  # Add spacing
            click.echo(ctx.get_help())
            # Use ctx.exit() to properly handle Click's testing mode
            ctx.exit(e.exit_code if hasattr(e, "exit_code") else 2)
            return []  # Explicit return for code clarity (never reached)

    def invoke(self, ctx: click.Context) -> Any:
        try:
            return super().invoke(ctx)
        except click.exceptions.BadParameter as e:
            click.echo(f"Error: {e.format_message()}", err=True)
            click.echo("")  # Add spacing
            click.echo(ctx.get_help())
            ctx.exit(e.exit_code)
            return None
