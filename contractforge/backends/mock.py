"""Simulated backend — an in-process ledger running Python contract endpoints.

The simulator executes contract logic directly instead of wasm, so uploads
take a ``ContractEndpoints`` object out of the ``CodeReference``. A wasm
path alone is useless here and is rejected with
``MismatchedCapabilityError``.

``MockApp`` keeps just enough ledger state to run scripts: stored code,
contract instances with their own storage, a small bank, and block
height/time. Contract calls are transactional: storage and funds only
change when the endpoint returns without raising.

Usage::

    state, chain = instantiate_default_mock_env("sender")
    counter = Contract("ns:counter", chain).with_endpoints(counter_contract())
    counter.upload()
    counter.instantiate({"count": 0})
"""

from __future__ import annotations

import copy
import json
import logging
import threading
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Any, Protocol, TypeVar, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

from contractforge.backends.base import ChainBackend
from contractforge.config import ForgeConfig
from contractforge.core.code_reference import CodeReference
from contractforge.core.messages import deserialize_response, serialize_message
from contractforge.core.state_store import StateStore
from contractforge.errors import (
    BackendOperationError,
    ContractError,
    LedgerBorrowError,
    MismatchedCapabilityError,
)
from contractforge.models.chain import (
    CODE_ID_ATTR,
    CONTRACT_ADDRESS_ATTR,
    INSTANTIATE_EVENT,
    STORE_CODE_EVENT,
    BlockInfo,
    Coin,
    ContractInfo,
    Event,
    EventAttribute,
    TxResult,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_CHAIN_ID = "cosmos-testnet-14002"
DEFAULT_HEIGHT = 12_345
DEFAULT_TIME = datetime.fromtimestamp(1_571_797_419, tz=timezone.utc)
DEFAULT_LABEL = "contract_init"


# ---------------------------------------------------------------------------
# Contract endpoint interface
# ---------------------------------------------------------------------------


class CallContext:
    """What an endpoint sees when it runs: block, caller, funds, its storage."""

    def __init__(
        self,
        block: BlockInfo,
        contract_address: str,
        sender: str,
        funds: Sequence[Coin],
        storage: dict[str, Any],
    ) -> None:
        self.block = block
        self.contract_address = contract_address
        self.sender = sender
        self.funds = list(funds)
        self.storage = storage


class ContractResponse(BaseModel):
    """What an instantiate/execute/migrate endpoint returns."""

    model_config = ConfigDict(frozen=True)

    attributes: dict[str, str] = Field(default_factory=dict)
    events: list[Event] = Field(default_factory=list)
    data: Any = None


@runtime_checkable
class ContractEndpoints(Protocol):
    """In-process contract implementation.

    Every endpoint receives a ``CallContext`` and the JSON-decoded message.
    """

    def instantiate(self, ctx: CallContext, msg: Any) -> ContractResponse | None: ...

    def execute(self, ctx: CallContext, msg: Any) -> ContractResponse | None: ...

    def query(self, ctx: CallContext, msg: Any) -> Any: ...

    def migrate(self, ctx: CallContext, msg: Any) -> ContractResponse | None: ...


Endpoint = Callable[[CallContext, Any], Any]


class ContractWrapper:
    """``ContractEndpoints`` assembled from plain functions.

    ``migrate`` is optional; migrating to code without one fails.
    """

    def __init__(
        self,
        instantiate: Endpoint,
        execute: Endpoint,
        query: Endpoint,
        migrate: Endpoint | None = None,
    ) -> None:
        self._instantiate = instantiate
        self._execute = execute
        self._query = query
        self._migrate = migrate

    def instantiate(self, ctx: CallContext, msg: Any) -> ContractResponse | None:
        return self._instantiate(ctx, msg)

    def execute(self, ctx: CallContext, msg: Any) -> ContractResponse | None:
        return self._execute(ctx, msg)

    def query(self, ctx: CallContext, msg: Any) -> Any:
        return self._query(ctx, msg)

    def migrate(self, ctx: CallContext, msg: Any) -> ContractResponse | None:
        if self._migrate is None:
            raise ContractError("Contract does not implement migrate")
        return self._migrate(ctx, msg)


# ---------------------------------------------------------------------------
# In-process ledger
# ---------------------------------------------------------------------------


class _Instance:
    def __init__(
        self, code_id: int, creator: str, admin: str | None, label: str
    ) -> None:
        self.code_id = code_id
        self.creator = creator
        self.admin = admin
        self.label = label
        self.storage: dict[str, Any] = {}


class MockApp:
    """Synthetic ledger holding code, contract instances, balances, and blocks.

    Access is exclusive: a call made while another is running (from another
    thread) raises ``LedgerBorrowError``.
    """

    def __init__(
        self,
        block: BlockInfo | None = None,
        *,
        block_time_seconds: int = 5,
    ) -> None:
        self._block = block or BlockInfo(
            height=DEFAULT_HEIGHT, time=DEFAULT_TIME, chain_id=DEFAULT_CHAIN_ID
        )
        self._block_time = block_time_seconds
        self._codes: dict[int, ContractEndpoints] = {}
        self._contracts: dict[str, _Instance] = {}
        self._balances: dict[str, dict[str, int]] = {}
        self._guard = threading.Lock()

    @contextmanager
    def _exclusive(self) -> Iterator[None]:
        if not self._guard.acquire(blocking=False):
            raise LedgerBorrowError(
                "Simulated ledger is already in use; serialize access across threads"
            )
        try:
            yield
        finally:
            self._guard.release()

    # ------------------------------------------------------------------
    # Code and instances
    # ------------------------------------------------------------------

    def store_code(self, endpoints: ContractEndpoints) -> int:
        with self._exclusive():
            code_id = len(self._codes) + 1
            self._codes[code_id] = endpoints
        return code_id

    def instantiate_contract(
        self,
        code_id: int,
        sender: str,
        msg: Any,
        funds: Sequence[Coin],
        label: str,
        admin: str | None,
    ) -> tuple[str, ContractResponse]:
        with self._exclusive():
            endpoints = self._code(code_id)
            address = f"contract{len(self._contracts)}"
            instance = _Instance(code_id, sender, admin, label)
            response, storage = self._run(
                endpoints.instantiate, instance, address, sender, funds, msg
            )
            instance.storage = storage
            self._transfer(sender, address, funds)
            self._contracts[address] = instance
        return address, response

    def execute_contract(
        self, sender: str, contract_address: str, msg: Any, funds: Sequence[Coin]
    ) -> ContractResponse:
        with self._exclusive():
            instance = self._instance(contract_address)
            endpoints = self._code(instance.code_id)
            response, storage = self._run(
                endpoints.execute, instance, contract_address, sender, funds, msg
            )
            instance.storage = storage
            self._transfer(sender, contract_address, funds)
        return response

    def query_wasm_smart(self, contract_address: str, msg: Any) -> Any:
        with self._exclusive():
            instance = self._instance(contract_address)
            endpoints = self._code(instance.code_id)
            ctx = CallContext(
                self._block, contract_address, "", [], copy.deepcopy(instance.storage)
            )
            try:
                return endpoints.query(ctx, msg)
            except ContractError:
                raise
            except Exception as exc:
                raise ContractError(f"Query on {contract_address} failed: {exc}") from exc

    def migrate_contract(
        self, sender: str, contract_address: str, msg: Any, new_code_id: int
    ) -> ContractResponse:
        with self._exclusive():
            instance = self._instance(contract_address)
            if instance.admin != sender:
                raise ContractError(
                    f"{sender} is not the admin of {contract_address}"
                )
            endpoints = self._code(new_code_id)
            response, storage = self._run(
                endpoints.migrate, instance, contract_address, sender, [], msg
            )
            instance.storage = storage
            instance.code_id = new_code_id
        return response

    def contract_info(self, contract_address: str) -> ContractInfo:
        with self._exclusive():
            instance = self._instance(contract_address)
            return ContractInfo(
                address=contract_address,
                code_id=instance.code_id,
                creator=instance.creator,
                admin=instance.admin,
                label=instance.label,
            )

    # ------------------------------------------------------------------
    # Bank
    # ------------------------------------------------------------------

    def init_balance(self, address: str, amount: Sequence[Coin]) -> None:
        """Set (not add to) the balances of ``address``."""
        with self._exclusive():
            self._balances[address] = {coin.denom: coin.amount for coin in amount}

    def balance(self, address: str, denom: str) -> int:
        with self._exclusive():
            return self._balances.get(address, {}).get(denom, 0)

    # ------------------------------------------------------------------
    # Blocks
    # ------------------------------------------------------------------

    def block_info(self) -> BlockInfo:
        with self._exclusive():
            return self._block

    def update_block(self, action: Callable[[BlockInfo], BlockInfo]) -> None:
        with self._exclusive():
            self._block = action(self._block)

    def advance_blocks(self, amount: int) -> None:
        self.update_block(
            lambda b: b.model_copy(
                update={
                    "height": b.height + amount,
                    "time": b.time + timedelta(seconds=self._block_time * amount),
                }
            )
        )

    def next_block(self) -> None:
        self.advance_blocks(1)

    # ------------------------------------------------------------------
    # Internal (callers hold the guard)
    # ------------------------------------------------------------------

    def _code(self, code_id: int) -> ContractEndpoints:
        try:
            return self._codes[code_id]
        except KeyError:
            raise BackendOperationError(f"No code stored under code id {code_id}") from None

    def _instance(self, contract_address: str) -> _Instance:
        try:
            return self._contracts[contract_address]
        except KeyError:
            raise BackendOperationError(
                f"No contract at address {contract_address}"
            ) from None

    def _check_funds(self, sender: str, funds: Sequence[Coin]) -> None:
        held = self._balances.get(sender, {})
        needed: dict[str, int] = {}
        for coin in funds:
            needed[coin.denom] = needed.get(coin.denom, 0) + coin.amount
        for denom, amount in needed.items():
            if held.get(denom, 0) < amount:
                raise ContractError(
                    f"Insufficient funds: {sender} holds "
                    f"{held.get(denom, 0)}{denom}, needs {amount}{denom}"
                )

    def _transfer(self, sender: str, recipient: str, funds: Sequence[Coin]) -> None:
        for coin in funds:
            if coin.amount == 0:
                continue
            source = self._balances.setdefault(sender, {})
            source[coin.denom] = source.get(coin.denom, 0) - coin.amount
            target = self._balances.setdefault(recipient, {})
            target[coin.denom] = target.get(coin.denom, 0) + coin.amount

    def _run(
        self,
        endpoint: Endpoint,
        instance: _Instance,
        contract_address: str,
        sender: str,
        funds: Sequence[Coin],
        msg: Any,
    ) -> tuple[ContractResponse, dict[str, Any]]:
        """Run an endpoint against a scratch copy of the contract's storage."""
        self._check_funds(sender, funds)
        storage = copy.deepcopy(instance.storage)
        ctx = CallContext(self._block, contract_address, sender, funds, storage)
        try:
            response = endpoint(ctx, msg)
        except ContractError:
            raise
        except Exception as exc:
            raise ContractError(f"Contract {contract_address} failed: {exc}") from exc
        return response or ContractResponse(), storage


# ---------------------------------------------------------------------------
# Backend
# ---------------------------------------------------------------------------


def _wasm_events(contract_address: str, response: ContractResponse) -> list[Event]:
    events: list[Event] = []
    if response.attributes:
        events.append(
            Event(
                type="wasm",
                attributes=[EventAttribute(key=CONTRACT_ADDRESS_ATTR, value=contract_address)]
                + [EventAttribute(key=k, value=str(v)) for k, v in response.attributes.items()],
            )
        )
    for event in response.events:
        events.append(
            Event(
                type=f"wasm-{event.type}",
                attributes=[EventAttribute(key=CONTRACT_ADDRESS_ATTR, value=contract_address)]
                + list(event.attributes),
            )
        )
    return events


def _encode_data(data: Any) -> str | None:
    if data is None or isinstance(data, str):
        return data
    return json.dumps(data, sort_keys=True)


class MockBackend(ChainBackend):
    """``ChainBackend`` over a ``MockApp``. Every call is synchronous.

    Parameters
    ----------
    sender:
        Address authoring transactions.
    state:
        Shared state store.
    app:
        The simulated ledger; may be shared by several backends.
    config:
        Settings used when resolving wasm paths for checksums.
    """

    def __init__(
        self,
        sender: str,
        state: StateStore,
        app: MockApp,
        config: ForgeConfig | None = None,
    ) -> None:
        super().__init__(sender, state, config)
        self.app = app

    def set_sender(self, sender: str) -> MockBackend:
        """Author subsequent transactions as ``sender``."""
        self._sender = sender
        return self

    def init_balance(self, address: str, amount: Sequence[Coin]) -> None:
        self.app.init_balance(address, amount)

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def execute(
        self, msg: Any, funds: Sequence[Coin], contract_address: str
    ) -> TxResult:
        response = self.app.execute_contract(
            self._sender, contract_address, serialize_message(msg), funds
        )
        events = [Event.new("execute", **{CONTRACT_ADDRESS_ATTR: contract_address})]
        return self._tx_result(events + _wasm_events(contract_address, response), response)

    def instantiate(
        self,
        code_id: int,
        msg: Any,
        label: str | None,
        admin: str | None,
        funds: Sequence[Coin],
    ) -> TxResult:
        address, response = self.app.instantiate_contract(
            code_id,
            self._sender,
            serialize_message(msg),
            funds,
            label or DEFAULT_LABEL,
            admin,
        )
        # The ledger returns a bare address; expose it the way chains emit it
        event = Event.new(
            INSTANTIATE_EVENT,
            **{CONTRACT_ADDRESS_ATTR: address, CODE_ID_ATTR: code_id},
        )
        return self._tx_result([event] + _wasm_events(address, response), response)

    def migrate(self, msg: Any, new_code_id: int, contract_address: str) -> TxResult:
        response = self.app.migrate_contract(
            self._sender, contract_address, serialize_message(msg), new_code_id
        )
        event = Event.new(
            "migrate",
            **{CONTRACT_ADDRESS_ATTR: contract_address, CODE_ID_ATTR: new_code_id},
        )
        return self._tx_result([event] + _wasm_events(contract_address, response), response)

    def upload(self, code_reference: CodeReference) -> TxResult:
        endpoints = code_reference.take_endpoints()
        if endpoints is None:
            raise MismatchedCapabilityError(
                "The simulated backend needs in-process contract endpoints; "
                "this code reference has none (wasm paths cannot run here)"
            )
        code_id = self.app.store_code(endpoints)
        return self._tx_result(
            [Event.new(STORE_CODE_EVENT, **{CODE_ID_ATTR: code_id})], ContractResponse()
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def query(
        self, msg: Any, contract_address: str, response_type: type[T] | None = None
    ) -> T | Any:
        raw = self.app.query_wasm_smart(contract_address, serialize_message(msg))
        return deserialize_response(raw, response_type)

    def contract_info(self, contract_address: str) -> ContractInfo:
        return self.app.contract_info(contract_address)

    # ------------------------------------------------------------------
    # Blocks
    # ------------------------------------------------------------------

    def wait_blocks(self, amount: int) -> None:
        self.app.advance_blocks(amount)

    def next_block(self) -> None:
        self.app.next_block()

    def block_info(self) -> BlockInfo:
        return self.app.block_info()

    def _tx_result(self, events: list[Event], response: ContractResponse) -> TxResult:
        return TxResult(
            events=events,
            data=_encode_data(response.data),
            height=self.app.block_info().height,
        )

    def __repr__(self) -> str:
        return f"MockBackend(sender={self._sender!r}, state={self._state!r})"


# ---------------------------------------------------------------------------
# Environment helpers
# ---------------------------------------------------------------------------


def instantiate_custom_mock_env(
    sender: str,
    state: StateStore,
    config: ForgeConfig | None = None,
) -> tuple[StateStore, MockBackend]:
    """Build a simulated chain around an existing state store."""
    cfg = config or ForgeConfig()
    app = MockApp(block_time_seconds=cfg.mock_block_time_seconds)
    logger.debug("Created simulated ledger for sender %s", sender)
    return state, MockBackend(sender, state, app, cfg)


def instantiate_default_mock_env(
    sender: str, config: ForgeConfig | None = None
) -> tuple[StateStore, MockBackend]:
    """Build a simulated chain with a fresh in-memory state store."""
    return instantiate_custom_mock_env(sender, StateStore(), config)
