"""contractforge: idempotent deployment scripting for wasm contracts.

One script of upload / instantiate / execute / query / migrate calls runs
unchanged against:
  - an in-process simulated ledger (``MockBackend``), or
  - a live chain behind an async RPC channel (``DaemonBackend``).

A shared ``StateStore`` records code ids and addresses per identifier;
``Contract.upload_if_needed`` and ``Contract.migrate_if_needed`` reconcile
that record with the chain so re-running a script skips finished work.
"""

__version__ = "0.1.0"
__author__ = "CORVUSFORGE, LLC"
__description__ = (
    "Idempotent deployment scripting for wasm contracts against simulated or live chains"
)

from contractforge.backends import (
    ChainBackend,
    DaemonBackend,
    MockBackend,
    instantiate_default_mock_env,
)
from contractforge.config import ForgeConfig
from contractforge.core.code_reference import CodeReference
from contractforge.core.contract import Contract
from contractforge.core.state_store import JsonStateStore, StateStore

__all__ = [
    "ChainBackend",
    "CodeReference",
    "Contract",
    "DaemonBackend",
    "ForgeConfig",
    "JsonStateStore",
    "MockBackend",
    "StateStore",
    "instantiate_default_mock_env",
    "__version__",
]
