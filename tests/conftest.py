"""Shared test fixtures for contractforge."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import pytest

from contractforge.backends.daemon import DaemonBackend
from contractforge.backends.mock import (
    CallContext,
    ContractResponse,
    ContractWrapper,
    MockApp,
    MockBackend,
)
from contractforge.config import ForgeConfig
from contractforge.core.hasher import sha256_hex
from contractforge.core.state_store import StateStore
from contractforge.models.chain import BlockInfo, Coin, ContractInfo, Event, TxResult

SENDER = "juno1sender"


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep ambient ARTIFACTS_DIR / .env files out of every test."""
    monkeypatch.delenv("ARTIFACTS_DIR", raising=False)
    monkeypatch.delenv("CONTRACTFORGE_ARTIFACTS_DIR", raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def config(tmp_path: Path) -> ForgeConfig:
    """Config with an artifacts dir and instant block polling."""
    artifacts = tmp_path / "wasm"
    artifacts.mkdir()
    return ForgeConfig(
        artifacts_dir=artifacts,
        block_poll_interval=0.0,
        block_wait_timeout=5.0,
    )


@pytest.fixture
def state() -> StateStore:
    return StateStore()


# ---------------------------------------------------------------------------
# Simulated chain
# ---------------------------------------------------------------------------


def _counter_instantiate(ctx: CallContext, msg: dict[str, Any]) -> ContractResponse:
    ctx.storage["count"] = msg["count"]
    ctx.storage["owner"] = ctx.sender
    return ContractResponse(attributes={"method": "instantiate"})


def _counter_execute(ctx: CallContext, msg: dict[str, Any]) -> ContractResponse:
    if "increment" in msg:
        ctx.storage["count"] += 1
        return ContractResponse(attributes={"method": "increment"})
    if "reset" in msg:
        if ctx.sender != ctx.storage["owner"]:
            raise PermissionError("unauthorized")
        ctx.storage["count"] = msg["reset"]["count"]
        return ContractResponse(attributes={"method": "reset"}, data={"count": msg["reset"]["count"]})
    raise ValueError(f"unknown message {msg}")


def _counter_query(ctx: CallContext, msg: dict[str, Any]) -> Any:
    if "get_count" in msg:
        return {"count": ctx.storage["count"]}
    raise ValueError(f"unknown query {msg}")


def _counter_migrate(ctx: CallContext, msg: dict[str, Any]) -> ContractResponse:
    ctx.storage["version"] = msg.get("version", 2)
    return ContractResponse(attributes={"method": "migrate"})


def make_counter(with_migrate: bool = True) -> ContractWrapper:
    """A small counter contract for the simulated ledger."""
    return ContractWrapper(
        instantiate=_counter_instantiate,
        execute=_counter_execute,
        query=_counter_query,
        migrate=_counter_migrate if with_migrate else None,
    )


@pytest.fixture
def counter() -> ContractWrapper:
    return make_counter()


@pytest.fixture
def mock_app() -> MockApp:
    return MockApp()


@pytest.fixture
def mock_chain(state: StateStore, mock_app: MockApp, config: ForgeConfig) -> MockBackend:
    return MockBackend(SENDER, state, mock_app, config)


# ---------------------------------------------------------------------------
# Remote chain
# ---------------------------------------------------------------------------


class FakeChannel:
    """In-memory async stand-in for a chain RPC client.

    Records every call in ``calls`` as ``(method, args)`` tuples.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.code_hashes: dict[int, str] = {}
        self.contracts: dict[str, ContractInfo] = {}
        self.storage: dict[str, Any] = {}
        self.height = 100
        self.reject_code = 0
        self.fail_with: Exception | None = None

    def _enter(self, method: str, *args: Any) -> None:
        self.calls.append((method, args))
        if self.fail_with is not None:
            raise self.fail_with

    def count(self, method: str) -> int:
        return sum(1 for name, _ in self.calls if name == method)

    def _tx(self, *events: Event) -> TxResult:
        self.height += 1
        if self.reject_code:
            return TxResult(code=self.reject_code, raw_log="out of gas", height=self.height)
        return TxResult(
            events=list(events),
            txhash=f"TX{len(self.calls):04d}",
            height=self.height,
        )

    async def store_code(self, sender: str, wasm_byte_code: bytes) -> TxResult:
        self._enter("store_code", sender, wasm_byte_code)
        code_id = len(self.code_hashes) + 1
        result = self._tx(Event.new("store_code", code_id=code_id))
        if result.code == 0:
            self.code_hashes[code_id] = sha256_hex(wasm_byte_code)
        return result

    async def instantiate(
        self,
        sender: str,
        code_id: int,
        msg: Any,
        label: str,
        admin: str | None,
        funds: Sequence[Coin],
    ) -> TxResult:
        self._enter("instantiate", sender, code_id, msg, label, admin, funds)
        address = f"juno1contract{len(self.contracts)}"
        self.contracts[address] = ContractInfo(
            address=address, code_id=code_id, creator=sender, admin=admin, label=label
        )
        self.storage[address] = msg
        return self._tx(Event.new("instantiate", _contract_address=address, code_id=code_id))

    async def execute(
        self, sender: str, contract: str, msg: Any, funds: Sequence[Coin]
    ) -> TxResult:
        self._enter("execute", sender, contract, msg, funds)
        return self._tx(Event.new("execute", _contract_address=contract))

    async def migrate(self, sender: str, contract: str, msg: Any, code_id: int) -> TxResult:
        self._enter("migrate", sender, contract, msg, code_id)
        info = self.contracts[contract]
        self.contracts[contract] = info.model_copy(update={"code_id": code_id})
        return self._tx(Event.new("migrate", _contract_address=contract, code_id=code_id))

    async def query_smart(self, contract: str, msg: Any) -> Any:
        self._enter("query_smart", contract, msg)
        return self.storage[contract]

    async def code_id_hash(self, code_id: int) -> str:
        self._enter("code_id_hash", code_id)
        if code_id not in self.code_hashes:
            raise LookupError(f"code id {code_id} not found")
        return self.code_hashes[code_id]

    async def contract_info(self, contract: str) -> ContractInfo:
        self._enter("contract_info", contract)
        return self.contracts[contract]

    async def latest_block(self) -> BlockInfo:
        self._enter("latest_block")
        self.height += 1
        return BlockInfo(
            height=self.height,
            time=datetime(2026, 1, 1, tzinfo=timezone.utc) + timedelta(seconds=6 * self.height),
            chain_id="uni-6",
        )


@pytest.fixture
def channel() -> FakeChannel:
    return FakeChannel()


@pytest.fixture
def daemon(state: StateStore, channel: FakeChannel, config: ForgeConfig) -> DaemonBackend:
    backend = DaemonBackend(SENDER, state, channel, config)
    yield backend
    backend.close()


@pytest.fixture
def wasm_file(config: ForgeConfig) -> Path:
    """A fake wasm artifact named ``counter.wasm`` in the artifacts dir."""
    path = config.artifacts_dir / "counter.wasm"
    path.write_bytes(b"\x00asm\x01\x00\x00\x00counter-v1")
    return path


@pytest.fixture
def counter_factory():
    """Build fresh counter endpoints (each upload consumes one)."""
    return make_counter


@pytest.fixture
def sender() -> str:
    return SENDER
