"""Execution backends: the backend contract plus simulated and remote chains."""

from contractforge.backends.base import ChainBackend
from contractforge.backends.daemon import DaemonBackend, DaemonChannel
from contractforge.backends.mock import (
    CallContext,
    ContractEndpoints,
    ContractResponse,
    ContractWrapper,
    MockApp,
    MockBackend,
    instantiate_custom_mock_env,
    instantiate_default_mock_env,
)

__all__ = [
    "ChainBackend",
    "DaemonBackend",
    "DaemonChannel",
    "CallContext",
    "ContractEndpoints",
    "ContractResponse",
    "ContractWrapper",
    "MockApp",
    "MockBackend",
    "instantiate_custom_mock_env",
    "instantiate_default_mock_env",
]
