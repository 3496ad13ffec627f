"""Contract handle — the object deployment scripts work with.

A ``Contract`` binds an identifier, a ``CodeReference`` and a
``ChainBackend``. Raw operations (upload, instantiate, execute, query,
migrate) go straight to the backend and record resulting code ids and
addresses in the backend's shared state store.

On top of those sit the reconciliation helpers:

- ``upload_if_needed`` compares the local wasm checksum with the checksum
  the chain holds for the recorded code id, and only uploads on mismatch.
- ``migrate_if_needed`` compares the recorded code id with the code id the
  contract is running, and only migrates on mismatch.

Neither helper guesses: if either side of a comparison cannot be computed
the error propagates.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any, Generic, TypeVar

from contractforge.backends.base import ChainBackend
from contractforge.backends.mock import ContractEndpoints
from contractforge.core.code_reference import CodeReference
from contractforge.errors import NotFoundError
from contractforge.models.chain import Coin, TxResult
from contractforge.models.deployment import DeploymentRecord

logger = logging.getLogger(__name__)

ChainT = TypeVar("ChainT", bound=ChainBackend)
T = TypeVar("T")


class Contract(Generic[ChainT]):
    """An artifact on a chain, tracked by identifier.

    Parameters
    ----------
    contract_id:
        Identifier under which address and code id are recorded. May be
        namespaced (``"ns:name"``); the last segment names the artifact in
        checksum manifests.
    chain:
        Backend executing transactions and holding the state store.
    source:
        Where the code lives. Defaults to an empty reference to be filled
        with ``with_wasm_path`` / ``with_endpoints``.
    """

    def __init__(
        self,
        contract_id: str,
        chain: ChainT,
        source: CodeReference | None = None,
    ) -> None:
        self.id = contract_id
        self.chain = chain
        self.source = source or CodeReference()

    def get_chain(self) -> ChainT:
        return self.chain

    # ------------------------------------------------------------------
    # Builders
    # ------------------------------------------------------------------

    def with_wasm_path(self, path: str) -> Contract[ChainT]:
        self.source.wasm_path = str(path)
        return self

    def with_endpoints(self, endpoints: ContractEndpoints) -> Contract[ChainT]:
        self.source.endpoints = endpoints
        return self

    with_mock = with_endpoints

    def set_endpoints(self, endpoints: ContractEndpoints) -> None:
        self.source.endpoints = endpoints

    def with_address(self, address: str | None) -> Contract[ChainT]:
        """Record ``address`` for this contract (no-op when None)."""
        if address is not None:
            self.set_address(address)
        return self

    # ------------------------------------------------------------------
    # Chain operations
    # ------------------------------------------------------------------

    def execute(self, msg: Any, funds: Sequence[Coin] | None = None) -> TxResult:
        logger.info("Executing %r on %s", msg, self.id)
        resp = self.chain.execute(msg, funds or [], self.address())
        logger.debug("Execute response: %r", resp)
        return resp

    def instantiate(
        self,
        msg: Any,
        admin: str | None = None,
        funds: Sequence[Coin] | None = None,
    ) -> TxResult:
        logger.info("Instantiating %s with msg %r", self.id, msg)
        resp = self.chain.instantiate(self.code_id(), msg, self.id, admin, funds or [])
        contract_address = resp.instantiated_contract_address()
        self.set_address(contract_address)
        logger.info("Instantiated %s with address %s", self.id, contract_address)
        logger.debug("Instantiate response: %r", resp)
        return resp

    def upload(self) -> TxResult:
        logger.info("Uploading %s", self.id)
        resp = self.chain.upload(self.source)
        code_id = resp.uploaded_code_id()
        self.set_code_id(code_id)
        logger.info("Uploaded %s with code id %d", self.id, code_id)
        logger.debug("Upload response: %r", resp)
        return resp

    def query(self, msg: Any, response_type: type[T] | None = None) -> T | Any:
        logger.info("Querying %r on %s", msg, self.id)
        resp = self.chain.query(msg, self.address(), response_type)
        logger.debug("Query response: %r", resp)
        return resp

    def migrate(self, msg: Any, new_code_id: int) -> TxResult:
        logger.info("Migrating %s to code id %d", self.id, new_code_id)
        resp = self.chain.migrate(msg, new_code_id, self.address())
        logger.debug("Migrate response: %r", resp)
        return resp

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    def upload_if_needed(self) -> TxResult | None:
        """Upload only if the chain does not hold the current wasm.

        Returns the upload result, or None when nothing was uploaded.
        """
        try:
            needs_upload = not self.latest_is_uploaded()
        except NotFoundError as exc:
            if exc.identifier != self.id or exc.kind != "code id":
                raise
            logger.info("%s has no recorded code id", self.id)
            needs_upload = True

        if not needs_upload:
            logger.info("%s is already uploaded", self.id)
            return None
        return self.upload()

    def latest_is_uploaded(self) -> bool:
        """Whether the local checksum equals the chain's for the recorded code id."""
        latest_uploaded_code_id = self.code_id()
        on_chain_hash = self.chain.code_id_hash(latest_uploaded_code_id)
        local_hash = self.source.checksum(self.id, self.chain.config)
        logger.debug(
            "%s checksums: local=%s on-chain(code id %d)=%s",
            self.id,
            local_hash,
            latest_uploaded_code_id,
            on_chain_hash,
        )
        return local_hash == on_chain_hash

    def migrate_if_needed(self, migrate_msg: Any) -> TxResult | None:
        """Migrate only if the contract is not running the recorded code id."""
        if self.is_running_latest():
            logger.info("%s is already running the latest code", self.id)
            return None
        return self.migrate(migrate_msg, self.code_id())

    def is_running_latest(self) -> bool:
        """Whether the live contract runs the most recently recorded code id."""
        latest_uploaded_code_id = self.code_id()
        info = self.chain.contract_info(self.address())
        return latest_uploaded_code_id == info.code_id

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def address(self) -> str:
        return self.chain.state.get_address(self.id)

    def code_id(self) -> int:
        return self.chain.state.get_code_id(self.id)

    def set_address(self, address: str) -> None:
        self.chain.state.set_address(self.id, address)

    def set_code_id(self, code_id: int) -> None:
        self.chain.state.set_code_id(self.id, code_id)

    def record(self) -> DeploymentRecord:
        return self.chain.state.record(self.id)

    def __repr__(self) -> str:
        return f"Contract(id={self.id!r}, source={self.source!r}, chain={self.chain!r})"
