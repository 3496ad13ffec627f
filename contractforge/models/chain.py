"""Chain-facing models — funds, block info, contract info, and tx results.

``TxResult`` is the uniform shape every backend returns for a transaction.
Backends that do not natively emit the well-known attributes (the simulated
ledger) synthesize them so callers can always extract new addresses and code
ids the same way.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from contractforge.errors import MissingAttributeError

# Well-known event attributes
INSTANTIATE_EVENT = "instantiate"
CONTRACT_ADDRESS_ATTR = "_contract_address"
STORE_CODE_EVENT = "store_code"
CODE_ID_ATTR = "code_id"


class Coin(BaseModel):
    """An amount of a single denomination."""

    model_config = ConfigDict(frozen=True)

    denom: str
    amount: int = Field(ge=0)


class BlockInfo(BaseModel):
    """Height, time, and chain id of the block a backend is currently at."""

    model_config = ConfigDict(frozen=True)

    height: int
    time: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    chain_id: str = ""


class ContractInfo(BaseModel):
    """What the backend reports about an instantiated contract."""

    model_config = ConfigDict(frozen=True)

    address: str
    code_id: int
    creator: str = ""
    admin: str | None = None
    label: str = ""


class EventAttribute(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str
    value: str


class Event(BaseModel):
    """A typed event with ordered key/value attributes."""

    model_config = ConfigDict(frozen=True)

    type: str
    attributes: list[EventAttribute] = Field(default_factory=list)

    @classmethod
    def new(cls, event_type: str, **attributes: Any) -> Event:
        """Build an event from keyword attributes (values are stringified)."""
        return cls(
            type=event_type,
            attributes=[
                EventAttribute(key=k, value=str(v)) for k, v in attributes.items()
            ],
        )


class TxResult(BaseModel):
    """Result of a transaction on any backend.

    ``code`` follows the chain convention: 0 is success. The simulated
    backend always reports 0 because failing calls raise instead.
    """

    model_config = ConfigDict(frozen=True)

    events: list[Event] = Field(default_factory=list)
    data: str | None = None
    txhash: str = ""
    height: int = 0
    gas_used: int = 0
    code: int = 0
    raw_log: str = ""

    # ------------------------------------------------------------------
    # Event lookup
    # ------------------------------------------------------------------

    def event_attr_values(self, event_type: str, key: str) -> list[str]:
        """Return every value of ``key`` across events of ``event_type``."""
        return [
            attr.value
            for event in self.events
            if event.type == event_type
            for attr in event.attributes
            if attr.key == key
        ]

    def event_attr_value(self, event_type: str, key: str) -> str:
        """Return the first value of ``key`` on an ``event_type`` event.

        Raises MissingAttributeError when no such attribute was emitted.
        """
        values = self.event_attr_values(event_type, key)
        if not values:
            raise MissingAttributeError(event_type, key)
        return values[0]

    def instantiated_contract_address(self) -> str:
        """Address emitted by an instantiate transaction."""
        return self.event_attr_value(INSTANTIATE_EVENT, CONTRACT_ADDRESS_ATTR)

    def uploaded_code_id(self) -> int:
        """Code id emitted by a store-code transaction."""
        raw = self.event_attr_value(STORE_CODE_EVENT, CODE_ID_ATTR)
        try:
            return int(raw)
        except ValueError as exc:
            raise MissingAttributeError(STORE_CODE_EVENT, CODE_ID_ATTR) from exc
