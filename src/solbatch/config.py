"""
Configuration management for the Solana batch wallets manager.

Supports configuration via environment variables and .env files.
"""

from enum import Enum
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class NetworkType(str, Enum):
    """Solana clusters."""
    MAINNET = "mainnet-beta"
    DEVNET = "devnet"
    TESTNET = "testnet"
    LOCAL = "localnet"


class Commitment(str, Enum):
    """Commitment levels accepted by the Solana RPC."""
    PROCESSED = "processed"
    CONFIRMED = "confirmed"
    FINALIZED = "finalized"


class BatcherConfig(BaseSettings):
    """
    Configuration settings for the batch wallets manager.

    All settings can be configured via environment variables with the SOLBATCH_ prefix.
    The RPC endpoint is also read from the plain RPC_ENDPOINT variable.
    """

    model_config = SettingsConfigDict(
        env_prefix="SOLBATCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    # Network settings
    network: NetworkType = Field(
        default=NetworkType.MAINNET,
        description="Solana cluster the RPC endpoint belongs to"
    )
    rpc_endpoint: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("SOLBATCH_RPC_ENDPOINT", "RPC_ENDPOINT", "rpc_endpoint"),
        description="HTTP JSON-RPC endpoint of a Solana node"
    )
    commitment: Commitment = Field(
        default=Commitment.CONFIRMED,
        description="Commitment used for reads and transaction confirmation"
    )
    request_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="HTTP timeout for a single RPC request"
    )

    # Batching parameters
    fund_transfers_per_tx: int = Field(
        default=10,
        ge=1,
        description="Maximum transfer instructions per funding transaction"
    )
    consolidate_transfers_per_tx: int = Field(
        default=5,
        ge=1,
        description="Maximum transfer instructions per consolidation transaction"
    )
    reserve_lamports: int = Field(
        default=1_000_000,
        ge=0,
        description="Lamports kept back on every source wallet for fees"
    )

    # Submission settings
    send_max_retries: int = Field(
        default=5,
        ge=0,
        description="maxRetries passed to sendTransaction"
    )
    confirm_timeout_seconds: float = Field(
        default=90.0,
        gt=0,
        description="Maximum time to wait for a transaction to reach the commitment"
    )
    confirm_poll_interval_seconds: float = Field(
        default=2.0,
        gt=0,
        description="Delay between signature status polls"
    )

    # Logging settings
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format"
    )

    # Output settings
    explorer_base_url: str = Field(
        default="https://solscan.io",
        description="Block explorer used for transaction links"
    )

    def explorer_tx_url(self, signature: str) -> str:
        """Get the explorer link for a transaction signature."""
        url = f"{self.explorer_base_url.rstrip('/')}/tx/{signature}"
        if self.network in (NetworkType.DEVNET, NetworkType.TESTNET):
            url += f"?cluster={self.network.value}"
        return url


# Global config instance
_config: Optional[BatcherConfig] = None


def get_config() -> BatcherConfig:
    """Get or create the global configuration instance."""
    global _config
    if _config is None:
        _config = BatcherConfig()
    return _config


def set_config(config: BatcherConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
