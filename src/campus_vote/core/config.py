"""Application configuration via Pydantic Settings.

All configuration is loaded from environment variables following 12-factor principles.
"""

import re

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = Field(
        description="Async SQLAlchemy connection string (postgresql+asyncpg://...)",
    )
    database_schema: str | None = Field(
        default=None,
        description="PostgreSQL schema for isolated environments (e.g., pr_42)",
    )

    @field_validator("database_schema")
    @classmethod
    def validate_database_schema(cls, v: str | None) -> str | None:
        if v is None:
            return None
        if not re.match(r"^[a-z_][a-z0-9_]{0,62}$", v):
            msg = "Invalid database_schema: must match ^[a-z_][a-z0-9_]{0,62}$"
            raise ValueError(msg)
        return v

    # JWT
    jwt_secret_key: str = Field(min_length=32, description="Secret key for signing JWTs (minimum 32 characters)")
    jwt_algorithm: str = Field(default="HS256", description="JWT signing algorithm")
    jwt_access_token_expire_minutes: int = Field(
        default=30,
        description="Access token expiration in minutes",
        gt=0,
    )

    # Ledger
    ledger_rpc_url: str | None = Field(
        default=None,
        description="JSON-RPC endpoint of the chain hosting the voting contract",
    )
    ledger_contract_address: str | None = Field(
        default=None,
        description="Address of the deployed voting contract",
    )
    ledger_private_key: str | None = Field(
        default=None,
        description="Private key of the account that signs ledger transactions",
    )
    ledger_voter_mnemonic: str | None = Field(
        default=None,
        description="BIP-39 mnemonic from which each student's voting account is derived (m/44'/60'/0'/0/<user id>)",
    )
    ledger_chain_id: int | None = Field(
        default=None,
        description="Chain ID; read from the RPC node when unset",
        gt=0,
    )
    ledger_gas_limit: int = Field(
        default=2_000_000,
        description="Gas limit attached to every ledger transaction",
        gt=0,
    )
    ledger_priority_fee_gwei: float = Field(
        default=15.0,
        description="Base maxPriorityFeePerGas in gwei",
        gt=0,
    )
    ledger_max_fee_gwei: float = Field(
        default=35.0,
        description="Base maxFeePerGas in gwei",
        gt=0,
    )
    ledger_priority_fee_step_gwei: float = Field(
        default=10.0,
        description="Fee increase in gwei per priority level when resubmitting under congestion",
        ge=0,
    )
    ledger_receipt_timeout_seconds: float = Field(
        default=600.0,
        description="Upper bound on waiting for a transaction receipt",
        gt=0,
    )

    @field_validator("ledger_contract_address")
    @classmethod
    def validate_ledger_contract_address(cls, v: str | None) -> str | None:
        if v is None or not v.strip():
            return None
        v = v.strip()
        if not re.match(r"^0x[0-9a-fA-F]{40}$", v):
            msg = "ledger_contract_address must be 0x followed by 40 hex characters"
            raise ValueError(msg)
        return v

    @property
    def ledger_enabled(self) -> bool:
        """Whether enough ledger configuration is present to submit transactions."""
        return bool(self.ledger_rpc_url and self.ledger_contract_address and self.ledger_private_key)

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    log_dir: str | None = Field(
        default=None,
        description="Directory for log files (enables file logging with 24h rotation when set)",
    )

    # CORS
    cors_origins: str = Field(
        default="",
        description="Comma-separated list of allowed CORS origins (must be explicitly configured)",
    )

    @property
    def cors_origin_list(self) -> list[str]:
        """Parse CORS origins string into a list."""
        if not self.cors_origins.strip():
            return []
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    # Environment
    environment: str = Field(
        default="production",
        description="Deployment environment name (e.g. production, dev, staging)",
    )

    # API
    api_v1_prefix: str = Field(
        default="/api/v1",
        description="API version prefix",
    )


def get_settings() -> Settings:
    """Create and return application settings."""
    return Settings()  # type: ignore[call-arg]
