"""``contractforge checksum ID [LOCATION]`` — print a contract's local checksum.

LOCATION is a wasm path or an artifact name under ARTIFACTS_DIR. It
defaults to the identifier's last segment, so ``contractforge checksum
ns:cw20_base`` reads ``$ARTIFACTS_DIR/cw20_base.wasm``.
"""

from __future__ import annotations

import typer
from rich.console import Console

from contractforge.config import ForgeConfig
from contractforge.core.code_reference import CodeReference, artifact_name
from contractforge.errors import ForgeError

console = Console()


def checksum_cmd(
    contract_id: str = typer.Argument(..., help="Contract identifier (may be namespaced)."),
    location: str = typer.Argument(None, help="Wasm path or artifact name."),
) -> None:
    """Compute the checksum used to decide whether an upload is needed."""
    source = CodeReference.with_wasm_path(location or artifact_name(contract_id))
    try:
        digest = source.checksum(contract_id, ForgeConfig())
    except ForgeError as exc:
        console.print(f"[bold red]Checksum failed:[/bold red] {exc}")
        raise typer.Exit(code=1)
    console.print(digest, highlight=False)
