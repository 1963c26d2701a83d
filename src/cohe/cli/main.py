"""Main entry point for the cohe CLI."""

import typer

from cohe import __version__
from cohe.cli.commands import account, alert, auto, legacy
from cohe.cli.commands.rotate import rotate
from cohe.cli.commands.usage import usage
from cohe.cli.helpers import err_console, load_settings
from cohe.core.logging import setup_logging
from cohe.exceptions import StorePersistenceError


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        typer.echo(f"cohe {__version__}")
        raise typer.Exit()


app = typer.Typer(
    rich_markup_mode="rich",
    add_completion=False,
    no_args_is_help=True,
    help="Multi-account rotation and usage tracking for Z.AI and MiniMax.",
)


@app.callback()
def app_main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """cohe: rotate Claude CLI credentials across provider accounts."""
    setup_logging(load_settings().log_level)


app.command(name="rotate")(rotate)
app.command(name="usage")(usage)
app.add_typer(auto.app, name="auto")
app.add_typer(account.app, name="account")
app.add_typer(alert.app, name="alert")
app.add_typer(legacy.app, name="legacy")


def main() -> None:
    """Console script entry point."""
    try:
        app()
    except StorePersistenceError as e:
        err_console.print(f"[red]{e.message}[/red]")
        raise SystemExit(1) from e


if __name__ == "__main__":
    main()
