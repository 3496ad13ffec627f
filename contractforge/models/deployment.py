"""Deployment record — what the local state knows about one artifact."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class DeploymentRecord(BaseModel):
    """Last-known address and code id for an artifact identifier.

    Both fields start absent. Writes overwrite; nothing ever clears a
    single field back to ``None``.
    """

    model_config = ConfigDict(frozen=True)

    identifier: str
    address: str | None = None
    code_id: int | None = None

    @property
    def is_uploaded(self) -> bool:
        return self.code_id is not None

    @property
    def is_instantiated(self) -> bool:
        return self.address is not None
