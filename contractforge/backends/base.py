"""The backend contract every execution environment implements.

``Contract`` handles only ever talk to a ``ChainBackend``. Two
implementations ship with contractforge:

1. **MockBackend** — synchronous, in-process ledger; uploads in-process
   contract endpoints.
2. **DaemonBackend** — live chain behind an asynchronous RPC channel,
   presented as blocking calls; uploads wasm bytes.

Inspection queries (``code_id_hash``, ``contract_info``) are optional. A
backend that cannot answer one raises ``MismatchedCapabilityError`` so the
caller learns about it instead of getting a guessed answer.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any, TypeVar

from contractforge.config import ForgeConfig
from contractforge.core.code_reference import CodeReference
from contractforge.core.state_store import StateStore
from contractforge.errors import MismatchedCapabilityError
from contractforge.models.chain import BlockInfo, Coin, ContractInfo, TxResult

T = TypeVar("T")


class ChainBackend(ABC):
    """Uniform transaction / query interface over one chain.

    Parameters
    ----------
    sender:
        Address used to author every transaction.
    state:
        The session's shared state store.
    config:
        Settings used to resolve artifacts and pace block waits.
    """

    def __init__(
        self, sender: str, state: StateStore, config: ForgeConfig | None = None
    ) -> None:
        self._sender = sender
        self._state = state
        self.config = config or ForgeConfig()

    @property
    def sender(self) -> str:
        return self._sender

    def sender_identity(self) -> str:
        """The identity transactions are authored by."""
        return self._sender

    @property
    def state(self) -> StateStore:
        """The state store shared with every handle on this backend."""
        return self._state

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    @abstractmethod
    def execute(
        self, msg: Any, funds: Sequence[Coin], contract_address: str
    ) -> TxResult:
        """Execute ``msg`` on an instantiated contract."""

    @abstractmethod
    def instantiate(
        self,
        code_id: int,
        msg: Any,
        label: str | None,
        admin: str | None,
        funds: Sequence[Coin],
    ) -> TxResult:
        """Instantiate stored code. The result carries the new address."""

    @abstractmethod
    def migrate(self, msg: Any, new_code_id: int, contract_address: str) -> TxResult:
        """Migrate a contract to ``new_code_id``."""

    @abstractmethod
    def upload(self, code_reference: CodeReference) -> TxResult:
        """Store code. The result carries the new code id.

        Consumes the reference's in-process endpoints when the backend uses
        them.
        """

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @abstractmethod
    def query(
        self, msg: Any, contract_address: str, response_type: type[T] | None = None
    ) -> T | Any:
        """Smart-query a contract, validating into ``response_type`` if given."""

    def code_id_hash(self, code_id: int) -> str:
        """Checksum the chain holds for ``code_id``."""
        raise MismatchedCapabilityError(
            f"{type(self).__name__} cannot report checksums of stored code"
        )

    def contract_info(self, contract_address: str) -> ContractInfo:
        """Live information (notably the running code id) for a contract."""
        raise MismatchedCapabilityError(
            f"{type(self).__name__} cannot report contract info"
        )

    # ------------------------------------------------------------------
    # Block progression
    # ------------------------------------------------------------------

    @abstractmethod
    def wait_blocks(self, amount: int) -> None:
        """Advance (or wait for) ``amount`` blocks."""

    @abstractmethod
    def next_block(self) -> None:
        """Advance (or wait for) a single block."""

    @abstractmethod
    def block_info(self) -> BlockInfo:
        """The block the backend is currently at."""

    # Aliases matching the ledger-time vocabulary used in scripts
    def advance_blocks(self, amount: int) -> None:
        self.wait_blocks(amount)

    def advance_to_next_block(self) -> None:
        self.next_block()

    def current_block_info(self) -> BlockInfo:
        return self.block_info()
