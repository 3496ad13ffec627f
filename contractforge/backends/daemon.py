"""Remote backend — a live chain behind an asynchronous RPC channel.

Bridge boundary
---------------
Signing, broadcasting, and gRPC plumbing belong to an RPC client outside
contractforge. It is plugged in as a ``DaemonChannel``: any object with the
async methods below. ``DaemonBackend`` owns a dedicated asyncio event loop
and drives exactly one channel coroutine to completion per public call, so
scripts see plain blocking methods.

Failure mapping:

- exception raised by the channel (including timeouts) -> ``TransportError``
- tx result with a non-zero ``code``                    -> ``TxRejectedError``
- code reference without a wasm file                    -> ``MismatchedCapabilityError``

There are no retries at this layer.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Sequence
from typing import Any, Protocol, TypeVar, runtime_checkable

from contractforge.backends.base import ChainBackend
from contractforge.config import ForgeConfig
from contractforge.core.code_reference import CodeReference
from contractforge.core.messages import deserialize_response, serialize_message
from contractforge.core.state_store import StateStore
from contractforge.errors import (
    ChecksumSourceError,
    ForgeError,
    MismatchedCapabilityError,
    TransportError,
    TxRejectedError,
)
from contractforge.models.chain import BlockInfo, Coin, ContractInfo, TxResult

logger = logging.getLogger(__name__)

T = TypeVar("T")


@runtime_checkable
class DaemonChannel(Protocol):
    """Async RPC surface of a live chain, as seen by ``DaemonBackend``."""

    async def store_code(self, sender: str, wasm_byte_code: bytes) -> TxResult: ...

    async def instantiate(
        self,
        sender: str,
        code_id: int,
        msg: Any,
        label: str,
        admin: str | None,
        funds: Sequence[Coin],
    ) -> TxResult: ...

    async def execute(
        self, sender: str, contract: str, msg: Any, funds: Sequence[Coin]
    ) -> TxResult: ...

    async def migrate(
        self, sender: str, contract: str, msg: Any, code_id: int
    ) -> TxResult: ...

    async def query_smart(self, contract: str, msg: Any) -> Any: ...

    async def code_id_hash(self, code_id: int) -> str: ...

    async def contract_info(self, contract: str) -> ContractInfo: ...

    async def latest_block(self) -> BlockInfo: ...


class DaemonBackend(ChainBackend):
    """Blocking ``ChainBackend`` facade over a ``DaemonChannel``.

    Parameters
    ----------
    sender:
        Address of the signing key the channel broadcasts with.
    state:
        Shared state store (typically a loaded ``JsonStateStore``).
    channel:
        The async RPC client.
    config:
        Supplies block polling cadence and artifacts directory.
    """

    def __init__(
        self,
        sender: str,
        state: StateStore,
        channel: DaemonChannel,
        config: ForgeConfig | None = None,
    ) -> None:
        super().__init__(sender, state, config)
        self.channel = channel
        self._loop: asyncio.AbstractEventLoop | None = asyncio.new_event_loop()
        logger.info("DaemonBackend: connected as %s", sender)

    # ------------------------------------------------------------------
    # Blocking bridge
    # ------------------------------------------------------------------

    def block_on(self, awaitable: Awaitable[T], action: str) -> T:
        """Run one round trip on the backend's loop and return its result."""
        if self._loop is None or self._loop.is_closed():
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise TransportError(f"{action}: backend is closed")
        try:
            return self._loop.run_until_complete(_as_coroutine(awaitable))
        except ForgeError:
            raise
        except Exception as exc:
            raise TransportError(f"{action} failed: {exc}") from exc

    def _broadcast(self, awaitable: Awaitable[TxResult], action: str) -> TxResult:
        result = self.block_on(awaitable, action)
        if result.code != 0:
            raise TxRejectedError(result.code, result.raw_log)
        logger.debug("%s included at height %d (tx %s)", action, result.height, result.txhash)
        return result

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def execute(
        self, msg: Any, funds: Sequence[Coin], contract_address: str
    ) -> TxResult:
        return self._broadcast(
            self.channel.execute(
                self._sender, contract_address, serialize_message(msg), list(funds)
            ),
            "execute",
        )

    def instantiate(
        self,
        code_id: int,
        msg: Any,
        label: str | None,
        admin: str | None,
        funds: Sequence[Coin],
    ) -> TxResult:
        return self._broadcast(
            self.channel.instantiate(
                self._sender,
                code_id,
                serialize_message(msg),
                label or "instantiate",
                admin,
                list(funds),
            ),
            "instantiate",
        )

    def migrate(self, msg: Any, new_code_id: int, contract_address: str) -> TxResult:
        return self._broadcast(
            self.channel.migrate(
                self._sender, contract_address, serialize_message(msg), new_code_id
            ),
            "migrate",
        )

    def upload(self, code_reference: CodeReference) -> TxResult:
        if code_reference.wasm_path is None:
            raise MismatchedCapabilityError(
                "The remote backend uploads wasm files; this code reference "
                "only has in-process endpoints"
            )
        path = code_reference.resolve_path(self.config)
        try:
            wasm = path.read_bytes()
        except OSError as exc:
            raise ChecksumSourceError(f"Cannot read wasm file {path}: {exc}") from exc
        logger.debug("Uploading %s (%d bytes)", path, len(wasm))
        return self._broadcast(self.channel.store_code(self._sender, wasm), "store_code")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def query(
        self, msg: Any, contract_address: str, response_type: type[T] | None = None
    ) -> T | Any:
        raw = self.block_on(
            self.channel.query_smart(contract_address, serialize_message(msg)), "query"
        )
        return deserialize_response(raw, response_type)

    def code_id_hash(self, code_id: int) -> str:
        return self.block_on(self.channel.code_id_hash(code_id), "code_id_hash")

    def contract_info(self, contract_address: str) -> ContractInfo:
        return self.block_on(
            self.channel.contract_info(contract_address), "contract_info"
        )

    # ------------------------------------------------------------------
    # Blocks
    # ------------------------------------------------------------------

    def block_info(self) -> BlockInfo:
        return self.block_on(self.channel.latest_block(), "block_info")

    def wait_blocks(self, amount: int) -> None:
        self.block_on(self._wait_for_height(amount), "wait_blocks")

    def next_block(self) -> None:
        self.wait_blocks(1)

    async def _wait_for_height(self, amount: int) -> None:
        start = (await self.channel.latest_block()).height
        target = start + amount
        interval = self.config.block_poll_interval

        async def poll() -> None:
            height = start
            while height < target:
                await asyncio.sleep(interval)
                height = (await self.channel.latest_block()).height
            logger.debug("Reached height %d (waited %d blocks)", height, amount)

        try:
            await asyncio.wait_for(poll(), timeout=self.config.block_wait_timeout)
        except asyncio.TimeoutError:
            raise TransportError(
                f"Timed out waiting for height {target} "
                f"after {self.config.block_wait_timeout}s"
            ) from None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Close the event loop. Further calls raise ``TransportError``."""
        if self._loop is not None and not self._loop.is_closed():
            self._loop.close()
            logger.info("DaemonBackend: closed (sender=%s)", self._sender)
        self._loop = None

    def __enter__(self) -> DaemonBackend:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"DaemonBackend(sender={self._sender!r}, state={self._state!r})"


async def _as_coroutine(awaitable: Awaitable[T]) -> T:
    return await awaitable
