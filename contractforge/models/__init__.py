"""contractforge data models — all Pydantic v2, all frozen (immutable)."""

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
from contractforge.models.deployment import DeploymentRecord

__all__ = [
    # chain
    "Coin",
    "BlockInfo",
    "ContractInfo",
    "Event",
    "EventAttribute",
    "TxResult",
    "INSTANTIATE_EVENT",
    "CONTRACT_ADDRESS_ATTR",
    "STORE_CODE_EVENT",
    "CODE_ID_ATTR",
    # deployment
    "DeploymentRecord",
]
