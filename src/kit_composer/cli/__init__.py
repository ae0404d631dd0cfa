import logging

import click

from kit_composer.cli.output import user_output
from kit_composer.config import debug_from_env
from kit_composer.error_boundary import cli_error_boundary
from kit_composer.version import __version__

CONTEXT_SETTINGS = dict(help_option_names=["-h", "--help"])

# Track whether commands are registered
_commands_registered = False


class LazyGroup(click.Group):
    """Click Group that lazily loads commands."""

    def list_commands(self, ctx):
        """List available commands, registering them if needed."""
        global _commands_registered
        if not _commands_registered:
            _register_commands()
        return super().list_commands(ctx)

    def get_command(self, ctx, cmd_name):
        """Get a command by name, registering if needed."""
        global _commands_registered
        if not _commands_registered:
            _register_commands()
        return super().get_command(ctx, cmd_name)


def _configure_logging(debug: bool) -> None:
    if not debug:
        return
    logging.basicConfig(
        level=logging.DEBUG,
        format="[DEBUG %(name)s:%(lineno)d] %(message)s",
        force=True,
    )
    # httpx logs every request at INFO; keep it quiet unless asked for
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


@click.command(cls=LazyGroup, invoke_without_command=True, context_settings=CONTEXT_SETTINGS)
@click.version_option(version=__version__)
@click.option("--debug", is_flag=True, help="Show debug logging and full stack traces")
@click.pass_context
def cli(ctx: click.Context, debug: bool) -> None:
    """Compose kits into a generated project."""
    debug = debug or debug_from_env()
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug
    _configure_logging(debug)

    if ctx.invoked_subcommand is None:
        user_output(ctx.get_help())


def _register_commands() -> None:
    """Register all commands with the CLI group."""
    global _commands_registered

    if _commands_registered:
        return

    from kit_composer.commands.apply import apply
    from kit_composer.commands.catalog import catalog_group
    from kit_composer.commands.plan import plan

    cli.add_command(apply)
    cli.add_command(plan)
    cli.add_command(catalog_group)

    _commands_registered = True


def main() -> None:
    """Entry point with error boundary."""
    cli_error_boundary(cli)()


if __name__ == "__main__":
    main()
