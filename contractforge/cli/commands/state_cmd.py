"""``contractforge state`` — inspect and administer the local state file."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from contractforge.config import ForgeConfig
from contractforge.core.state_store import JsonStateStore

console = Console()

state_app = typer.Typer(
    help="Inspect and administer recorded code ids and addresses.",
    no_args_is_help=True,
)


def _open_store(state_file: str, chain_id: str, deployment: str) -> JsonStateStore:
    config = ForgeConfig()
    path = Path(state_file) if state_file else config.state_file
    store = JsonStateStore(
        path,
        chain_id=chain_id or config.chain_id,
        deployment_id=deployment or config.deployment_id,
    )
    try:
        return store.load()
    except (OSError, ValueError) as exc:
        console.print(f"[bold red]Cannot read state file {path}:[/bold red] {exc}")
        raise typer.Exit(code=1)


@state_app.command(name="list", help="List recorded code ids and addresses.")
def list_cmd(
    state_file: str = typer.Option(None, "--state-file", "-s", help="Path to the state JSON file."),
    chain_id: str = typer.Option(None, "--chain-id", "-c", help="Chain namespace to read."),
    deployment: str = typer.Option(None, "--deployment", "-d", help="Deployment namespace to read."),
) -> None:
    """Show every identifier recorded for a chain and deployment."""
    store = _open_store(state_file, chain_id, deployment)
    identifiers = store.identifiers()
    if not identifiers:
        console.print(
            f"[dim]Nothing recorded for chain {store.chain_id} "
            f"(deployment {store.deployment_id}).[/dim]"
        )
        return

    code_ids = store.get_all_code_ids()
    addresses = store.get_all_addresses()

    table = Table(title=f"{store.chain_id} / {store.deployment_id}")
    table.add_column("Contract", style="cyan")
    table.add_column("Code ID", justify="right", style="green")
    table.add_column("Address")
    for identifier in identifiers:
        code_id = code_ids.get(identifier)
        table.add_row(
            identifier,
            str(code_id) if code_id is not None else "[dim]-[/dim]",
            addresses.get(identifier, "[dim]-[/dim]"),
        )
    console.print(table)


@state_app.command(
    name="forget",
    help=(
        "Remove a contract from the state file. The chain-wide code id is kept "
        "while another deployment still records an address for it."
    ),
)
def forget_cmd(
    contract_id: str = typer.Argument(..., help="Identifier to remove."),
    state_file: str = typer.Option(None, "--state-file", "-s", help="Path to the state JSON file."),
    chain_id: str = typer.Option(None, "--chain-id", "-c", help="Chain namespace to edit."),
    deployment: str = typer.Option(None, "--deployment", "-d", help="Deployment namespace to edit."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Confirm removal in production."),
) -> None:
    """Drop the address (and unshared code id) recorded for CONTRACT_ID, then save."""
    if ForgeConfig().is_production and not yes:
        console.print(
            "[bold red]Refusing to edit production state without --yes.[/bold red]"
        )
        raise typer.Exit(code=1)
    store = _open_store(state_file, chain_id, deployment)
    if not store.forget(contract_id):
        console.print(f"[bold red]Nothing recorded for {contract_id}.[/bold red]")
        raise typer.Exit(code=1)
    store.save()
    console.print(f"[green]Forgot {contract_id}[/green] on {store.chain_id}.")
