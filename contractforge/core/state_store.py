"""Local deployment state — addresses and code ids per artifact identifier.

One ``StateStore`` is created per script session and handed explicitly to
every backend and ``Contract`` that needs it. Handles referring to the same
identifier therefore observe the same values.

Access is exclusive and non-blocking: if a second thread touches the store
while another access is in flight, ``StateBorrowError`` is raised instead of
waiting or interleaving.

``JsonStateStore`` adds explicit ``load()``/``save()`` against a JSON file::

    {
        "<chain_id>": {
            "code_ids": {"<identifier>": <code_id>},
            "<deployment_id>": {"<identifier>": "<address>"}
        }
    }

Code ids are shared by every deployment on a chain; addresses are scoped to
one deployment. Nothing is saved implicitly.
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from contractforge.errors import NotFoundError, StateBorrowError
from contractforge.models.deployment import DeploymentRecord

logger = logging.getLogger(__name__)

_CODE_IDS_KEY = "code_ids"


class StateStore:
    """In-memory mapping of identifier -> address / code id."""

    def __init__(
        self,
        addresses: dict[str, str] | None = None,
        code_ids: dict[str, int] | None = None,
    ) -> None:
        self._addresses: dict[str, str] = dict(addresses or {})
        self._code_ids: dict[str, int] = dict(code_ids or {})
        self._guard = threading.Lock()

    @contextmanager
    def _exclusive(self) -> Iterator[None]:
        if not self._guard.acquire(blocking=False):
            raise StateBorrowError(
                "State store is already being accessed; "
                "serialize access across threads"
            )
        try:
            yield
        finally:
            self._guard.release()

    # ------------------------------------------------------------------
    # Addresses
    # ------------------------------------------------------------------

    def get_address(self, contract_id: str) -> str:
        with self._exclusive():
            try:
                return self._addresses[contract_id]
            except KeyError:
                raise NotFoundError(contract_id, "address") from None

    def set_address(self, contract_id: str, address: str) -> None:
        with self._exclusive():
            self._addresses[contract_id] = str(address)
        logger.debug("State: %s -> address %s", contract_id, address)

    def get_all_addresses(self) -> dict[str, str]:
        with self._exclusive():
            return dict(self._addresses)

    # ------------------------------------------------------------------
    # Code ids
    # ------------------------------------------------------------------

    def get_code_id(self, contract_id: str) -> int:
        with self._exclusive():
            try:
                return self._code_ids[contract_id]
            except KeyError:
                raise NotFoundError(contract_id, "code id") from None

    def set_code_id(self, contract_id: str, code_id: int) -> None:
        with self._exclusive():
            self._code_ids[contract_id] = int(code_id)
        logger.debug("State: %s -> code id %d", contract_id, code_id)

    def get_all_code_ids(self) -> dict[str, int]:
        with self._exclusive():
            return dict(self._code_ids)

    list_addresses = get_all_addresses
    list_code_ids = get_all_code_ids

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    def record(self, contract_id: str) -> DeploymentRecord:
        """Return everything known about ``contract_id`` (fields may be None)."""
        with self._exclusive():
            return DeploymentRecord(
                identifier=contract_id,
                address=self._addresses.get(contract_id),
                code_id=self._code_ids.get(contract_id),
            )

    def identifiers(self) -> list[str]:
        """Every identifier with an address or code id, sorted."""
        with self._exclusive():
            return sorted(set(self._addresses) | set(self._code_ids))

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(addresses={len(self._addresses)}, "
            f"code_ids={len(self._code_ids)})"
        )


class JsonStateStore(StateStore):
    """State store persisted to a JSON file, namespaced by chain and deployment.

    Parameters
    ----------
    path:
        JSON file holding state for any number of chains.
    chain_id:
        Chain whose code ids this store reads and writes.
    deployment_id:
        Deployment whose addresses this store reads and writes.
    """

    def __init__(self, path: Path, chain_id: str, deployment_id: str = "default") -> None:
        if deployment_id == _CODE_IDS_KEY:
            raise ValueError(f"deployment_id may not be {_CODE_IDS_KEY!r}")
        super().__init__()
        self._path = Path(path)
        self.chain_id = chain_id
        self.deployment_id = deployment_id

    @property
    def path(self) -> Path:
        return self._path

    def _read_file(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        return json.loads(self._path.read_text(encoding="utf-8"))

    def load(self) -> JsonStateStore:
        """Populate the store from disk. A missing file means empty state."""
        raw = self._read_file()
        chain = raw.get(self.chain_id, {})
        with self._exclusive():
            self._code_ids = {k: int(v) for k, v in chain.get(_CODE_IDS_KEY, {}).items()}
            self._addresses = dict(chain.get(self.deployment_id, {}))
        logger.debug(
            "Loaded state for chain=%s deployment=%s from %s (%d code ids, %d addresses)",
            self.chain_id,
            self.deployment_id,
            self._path,
            len(self._code_ids),
            len(self._addresses),
        )
        return self

    def save(self) -> None:
        """Write this chain/deployment back, keeping every other namespace."""
        raw = self._read_file()
        chain = raw.setdefault(self.chain_id, {})
        with self._exclusive():
            chain[_CODE_IDS_KEY] = dict(self._code_ids)
            chain[self.deployment_id] = dict(self._addresses)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(
            json.dumps(raw, indent=2, sort_keys=True),
            encoding="utf-8",
        )
        logger.debug("Saved state for chain=%s to %s", self.chain_id, self._path)

    def forget(self, contract_id: str) -> bool:
        """Drop every record of ``contract_id``. Returns False if nothing was known.

        Administrative operation; callers still have to ``save()``. The code
        id is shared by the whole chain, so it is kept while another
        deployment in the file still records an address for ``contract_id``.
        """
        chain = self._read_file().get(self.chain_id, {})
        still_deployed = sorted(
            name
            for name, addresses in chain.items()
            if name not in (_CODE_IDS_KEY, self.deployment_id) and contract_id in addresses
        )
        with self._exclusive():
            had_address = self._addresses.pop(contract_id, None) is not None
            if still_deployed:
                had_code_id = False
            else:
                had_code_id = self._code_ids.pop(contract_id, None) is not None
        if still_deployed:
            logger.info(
                "State: keeping code id of %s, still deployed in %s",
                contract_id,
                ", ".join(still_deployed),
            )
        if had_address or had_code_id:
            logger.info("State: forgot %s on chain %s", contract_id, self.chain_id)
            return True
        return False
