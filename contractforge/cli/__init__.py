"""contractforge CLI — Typer-based command-line interface.

Provides the ``contractforge`` command for inspecting and administering the
local deployment state file and for computing wasm checksums.

All output uses Rich for formatted terminal display.
"""
