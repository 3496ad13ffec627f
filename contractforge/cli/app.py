"""Main Typer application — imports and registers all CLI commands.

Entry point: ``contractforge`` (configured via pyproject.toml project.scripts).
"""

from __future__ import annotations

import logging

import typer
from rich.logging import RichHandler

from contractforge.cli.commands.checksum_cmd import checksum_cmd
from contractforge.cli.commands.state_cmd import state_app
from contractforge.config import ForgeConfig

app = typer.Typer(
    name="contractforge",
    help="contractforge: idempotent wasm contract deployment scripting.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)


@app.callback()
def main_callback(
    log_level: str = typer.Option(None, "--log-level", help="Override CONTRACTFORGE_LOG_LEVEL."),
) -> None:
    """Configure logging for every subcommand."""
    level = (log_level or ForgeConfig().log_level).upper()
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(show_path=False)],
    )


# Register subcommands
app.add_typer(state_app, name="state")
app.command(name="checksum", help="Print the local checksum of a contract's wasm.")(checksum_cmd)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
