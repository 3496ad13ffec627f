"""Where a contract's code lives, and how to checksum it.

A ``CodeReference`` carries up to two forms of the same contract:

- ``wasm_path``: a path to a ``.wasm`` file, or a bare artifact name that
  resolves to ``<ARTIFACTS_DIR>/<name>.wasm``. Used by the remote backend
  and for checksums.
- ``endpoints``: an in-process implementation for the simulated ledger.
  It is move-only: uploading takes it out of the reference, and copying a
  reference never copies it.

Checksums come from the optimizer's ``checksums.txt`` manifest
(``<hex>  <name>.wasm`` per line) for files under an artifacts directory
that holds one, and for files sitting in a build-output directory. Any
other file is hashed directly.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

from contractforge.config import ForgeConfig
from contractforge.core.hasher import sha256_file
from contractforge.errors import (
    ChecksumSourceError,
    ConfigurationError,
    MismatchedCapabilityError,
)

if TYPE_CHECKING:
    from contractforge.backends.mock import ContractEndpoints

logger = logging.getLogger(__name__)

WASM_SUFFIX = ".wasm"
NAMESPACE_SEPARATOR = ":"


def artifact_name(contract_id: str) -> str:
    """Segment of an identifier after its last namespace separator."""
    return contract_id.rsplit(NAMESPACE_SEPARATOR, 1)[-1]


def parse_manifest(contents: str) -> list[tuple[str, str]]:
    """Parse optimizer manifest lines into ``(hash, filename)`` pairs."""
    entries: list[tuple[str, str]] = []
    for line in contents.splitlines():
        parts = line.strip().split()
        if len(parts) >= 2:
            entries.append((parts[0], parts[-1]))
    return entries


def lookup_manifest_hash(contents: str, contract_id: str) -> str:
    """Find the hash for ``contract_id`` in manifest contents.

    An exact filename stem match wins; otherwise the first filename that
    contains the artifact name is used.
    """
    name = artifact_name(contract_id)
    entries = parse_manifest(contents)
    for digest, filename in entries:
        if Path(filename).stem == name:
            return digest
    for digest, filename in entries:
        if name in filename:
            return digest
    raise ChecksumSourceError(f"No checksum line for {name!r} in manifest")


class CodeReference:
    """Wasm location and/or in-process endpoints for one contract."""

    def __init__(
        self,
        wasm_path: str | Path | None = None,
        endpoints: ContractEndpoints | None = None,
    ) -> None:
        self.wasm_path: str | None = str(wasm_path) if wasm_path is not None else None
        self.endpoints = endpoints

    @classmethod
    def with_wasm_path(cls, path: str | Path) -> CodeReference:
        return cls(wasm_path=path)

    @classmethod
    def with_endpoints(cls, endpoints: ContractEndpoints) -> CodeReference:
        return cls(endpoints=endpoints)

    # ------------------------------------------------------------------
    # Move-only endpoints
    # ------------------------------------------------------------------

    @property
    def has_endpoints(self) -> bool:
        return self.endpoints is not None

    def take_endpoints(self) -> ContractEndpoints | None:
        """Move the endpoints out, leaving the reference without them."""
        endpoints, self.endpoints = self.endpoints, None
        return endpoints

    def clone(self) -> CodeReference:
        """Copy the wasm location only; endpoints are never duplicated."""
        return CodeReference(wasm_path=self.wasm_path)

    def __copy__(self) -> CodeReference:
        return self.clone()

    def __deepcopy__(self, memo: dict[int, Any]) -> CodeReference:
        return self.clone()

    # ------------------------------------------------------------------
    # Wasm path and checksum
    # ------------------------------------------------------------------

    def resolve_path(self, config: ForgeConfig | None = None) -> Path:
        """Return the wasm file this reference points at.

        A location ending in ``.wasm`` or naming an existing file is used as
        is. Anything else is an artifact name under the artifacts directory.
        """
        if self.wasm_path is None:
            raise MismatchedCapabilityError(
                "A wasm path is required; this code reference only has "
                "in-process endpoints"
            )
        location = Path(self.wasm_path)
        if location.suffix == WASM_SUFFIX or location.is_file():
            return location

        cfg = config or ForgeConfig()
        if cfg.artifacts_dir is None:
            raise ConfigurationError(
                f"ARTIFACTS_DIR is not set; cannot resolve artifact {self.wasm_path!r}"
            )
        return Path(cfg.artifacts_dir) / f"{self.wasm_path}{WASM_SUFFIX}"

    def checksum(self, contract_id: str, config: ForgeConfig | None = None) -> str:
        """Checksum of the local wasm, used to compare against stored code."""
        cfg = config or ForgeConfig()
        path = self.resolve_path(cfg)

        manifest = self._manifest_for(path, cfg)
        if manifest is not None:
            try:
                contents = manifest.read_text(encoding="utf-8")
            except OSError as exc:
                raise ChecksumSourceError(
                    f"Cannot read checksum manifest {manifest}: {exc}"
                ) from exc
            digest = lookup_manifest_hash(contents, contract_id)
            logger.debug("Manifest checksum for %s: %s", contract_id, digest)
            return digest

        try:
            digest = sha256_file(path)
        except OSError as exc:
            raise ChecksumSourceError(f"Cannot read wasm file {path}: {exc}") from exc
        logger.debug("Computed checksum for %s: %s", contract_id, digest)
        return digest

    @staticmethod
    def _manifest_for(path: Path, cfg: ForgeConfig) -> Path | None:
        """The manifest that vouches for ``path``, or None to hash the file.

        Files anywhere under the artifacts directory use its manifest when
        one is present. Files directly inside a build-output directory
        always need the manifest next to them.
        """
        if cfg.artifacts_dir is not None:
            root = Path(cfg.artifacts_dir).resolve()
            if path.resolve().is_relative_to(root):
                manifest = root / cfg.checksum_manifest
                if manifest.is_file():
                    return manifest
        if path.parent.name == cfg.build_output_dirname:
            return path.parent / cfg.checksum_manifest
        return None

    def __repr__(self) -> str:
        return (
            f"CodeReference(wasm_path={self.wasm_path!r}, "
            f"endpoints={'present' if self.has_endpoints else 'absent'})"
        )
