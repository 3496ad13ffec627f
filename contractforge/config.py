"""Env-driven configuration for deployment scripts.

Centralized config using pydantic-settings. Reads from a .env file and
CONTRACTFORGE_* environment variables. The artifacts directory also honours
the bare ``ARTIFACTS_DIR`` variable written by wasm optimizer tooling.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ForgeConfig(BaseSettings):
    """Deployment configuration with environment variable overrides.

    Examples
    --------
    Override via environment::

        export ARTIFACTS_DIR=./artifacts
        export CONTRACTFORGE_STATE_FILE=/data/state.json
        export CONTRACTFORGE_LOG_LEVEL=DEBUG

    Or via .env file::

        CONTRACTFORGE_CHAIN_ID=uni-6
        CONTRACTFORGE_DEPLOYMENT_ID=staging
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="CONTRACTFORGE_",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Runtime environment
    environment: str = "development"
    log_level: str = "INFO"

    # Wasm artifacts
    artifacts_dir: Path | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "artifacts_dir", "ARTIFACTS_DIR", "CONTRACTFORGE_ARTIFACTS_DIR"
        ),
    )
    checksum_manifest: str = "checksums.txt"
    build_output_dirname: str = "artifacts"

    # Local deployment state
    state_file: Path = Path(".contractforge/state.json")
    chain_id: str = "local"
    deployment_id: str = "default"

    # Remote chain timing
    block_poll_interval: float = 1.0
    block_wait_timeout: float = 120.0

    # Simulated chain timing
    mock_block_time_seconds: int = 5

    @property
    def is_production(self) -> bool:
        """Whether running in production mode."""
        return self.environment == "production"
