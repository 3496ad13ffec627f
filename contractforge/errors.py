"""Error taxonomy shared by the state store, code references, and backends.

Every public operation either returns a value or raises one of these.
None of them are recovered inside contractforge; they propagate to the
script that drives the ``Contract`` handles.
"""

from __future__ import annotations


class ForgeError(RuntimeError):
    """Base class for every contractforge error."""


class ConfigurationError(ForgeError):
    """Raised when a required configuration value (e.g. ARTIFACTS_DIR) is unset."""


class NotFoundError(ForgeError):
    """Raised when an identifier has no recorded address or code id."""

    def __init__(self, identifier: str, kind: str = "entry") -> None:
        self.identifier = identifier
        self.kind = kind
        super().__init__(f"No {kind} recorded for {identifier!r}")


class ChecksumSourceError(ForgeError):
    """Raised when neither the manifest nor the wasm file yields a checksum."""


class MismatchedCapabilityError(ForgeError):
    """Raised when a backend is handed something it cannot work with.

    Examples: a wasm path given to the simulated backend, an in-process
    endpoint handle given to the remote backend, or an inspection query the
    backend has no way to answer.
    """


class BackendOperationError(ForgeError):
    """Raised when upload/instantiate/execute/query/migrate fails."""


class TransportError(BackendOperationError):
    """Raised when the round trip to the backend itself fails or times out."""


class TxRejectedError(BackendOperationError):
    """Raised when the chain accepted the round trip but rejected the tx."""

    def __init__(self, code: int, raw_log: str = "") -> None:
        self.code = code
        self.raw_log = raw_log
        super().__init__(f"Transaction rejected with code {code}: {raw_log}")


class MissingAttributeError(BackendOperationError):
    """Raised when a tx result lacks the event attribute a caller expects."""

    def __init__(self, event_type: str, key: str) -> None:
        self.event_type = event_type
        self.key = key
        super().__init__(
            f"Event attribute {event_type}.{key} not present in tx result"
        )


class ContractError(BackendOperationError):
    """Raised when contract code running on the simulated ledger fails."""


class DeserializationError(BackendOperationError):
    """Raised when a message or query response does not fit the expected shape."""


class StateBorrowError(ForgeError):
    """Raised when the state store is accessed while another access is in flight."""


class LedgerBorrowError(ForgeError):
    """Raised when the simulated ledger is accessed while another access is in flight."""
