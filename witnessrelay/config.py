"""Runtime configuration — env-driven.

Centralized config using pydantic-settings. Reads from a .env file and
WITNESSRELAY_* environment variables. The signing seed is also accepted
under the bare ``NODE_PRIVATE_KEY`` name used by existing node deployments.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class RelayConfig(BaseSettings):
    """Relay configuration with environment variable overrides.

    Examples
    --------
    Override via environment::

        export WITNESSRELAY_ANCHOR_SERVICE_URL=https://cas-dev-direct.3boxlabs.com
        export WITNESSRELAY_LOG_LEVEL=DEBUG
        export NODE_PRIVATE_KEY=<64 hex chars>

    Or via .env file::

        WITNESSRELAY_IPFS_API_URL=http://localhost:5101
        WITNESSRELAY_DELIVERY_POLICY=all
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="WITNESSRELAY_",
        env_file_encoding="utf-8",
        populate_by_name=True,
        extra="ignore",
    )

    # Logging
    log_level: str = "INFO"

    # Remote endpoints
    anchor_service_url: str = "https://cas.3boxlabs.com"
    ipfs_api_url: str = "http://ceramic-one-0:5101"
    event_store_url: str = "http://ceramic-one-0:5101"
    ceramic_url: str = "http://localhost:7007"

    # Credentials: hex-encoded Ed25519 seed
    node_private_key: str = Field(
        default="",
        validation_alias=AliasChoices(
            "WITNESSRELAY_NODE_PRIVATE_KEY", "NODE_PRIVATE_KEY", "node_private_key"
        ),
    )
    require_credential: bool = False

    # Transport
    request_timeout_seconds: float = 30.0

    # Batch behaviour
    input_column: str = "Commit ID"
    output_dir: Path = Path("cars")
    delivery_policy: str = "any"  # "any" | "all"
    verify_streams: bool = False
    workers: int = 1

    @property
    def has_signing_key(self) -> bool:
        return bool(self.node_private_key.strip())
