"""
Configuration management using Pydantic Settings.
All environment variables are validated at startup.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Bounds enforced on the withdrawal cancel window (seconds)
MIN_CANCEL_WINDOW = 15
MAX_CANCEL_WINDOW = 24 * 60 * 60
DEFAULT_CANCEL_WINDOW = 5 * 60


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="BRIDGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ===================
    # Chain Identity
    # ===================
    this_chain_id: int = Field(
        default=1,
        ge=1,
        le=0xFFFFFFFF,
        description="4-byte incremental chain id of the chain this bridge runs on",
    )
    chain_identifier: str = Field(
        default="evm_31337",
        description="Human-readable identifier of the local chain",
    )

    # ===================
    # Withdrawal Safety
    # ===================
    cancel_window_seconds: int = Field(
        default=DEFAULT_CANCEL_WINDOW,
        description="Delay between withdrawal approval and execution eligibility",
    )

    # ===================
    # Fee Configuration
    # ===================
    standard_fee_bps: int = Field(default=50, ge=0, le=100, description="Standard deposit fee (50 = 0.5%)")
    discounted_fee_bps: int = Field(default=10, ge=0, le=100, description="Discounted deposit fee (10 = 0.1%)")
    discount_threshold: int = Field(
        default=100 * 10**18,
        ge=0,
        description="Minimum discount-token balance for the discounted rate",
    )
    discount_token: Optional[str] = Field(default=None, description="Discount token address (None disables discounts)")
    fee_recipient: Optional[str] = Field(default=None, description="Address receiving deposit fees")
    admin_address: Optional[str] = Field(default=None, description="Bridge admin address")

    # ===================
    # Database Configuration
    # ===================
    database_url: str = Field(
        default="sqlite+aiosqlite:///./bridge.db",
        description="SQLAlchemy URL for the deposit/withdraw archive",
    )

    # ===================
    # API Server
    # ===================
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=8000, ge=1, le=65535)

    # ===================
    # Logging
    # ===================
    log_level: str = Field(default="INFO")

    @field_validator("cancel_window_seconds")
    @classmethod
    def validate_cancel_window(cls, v: int) -> int:
        """Keep the configured window inside the bounds the bridge enforces."""
        if v < MIN_CANCEL_WINDOW or v > MAX_CANCEL_WINDOW:
            raise ValueError(
                f"Cancel window must be between {MIN_CANCEL_WINDOW} and {MAX_CANCEL_WINDOW} seconds"
            )
        return v

    @property
    def this_chain_bytes(self) -> bytes:
        """Local chain id as the 4-byte big-endian value used in hashes."""
        return self.this_chain_id.to_bytes(4, "big")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Convenience export
settings = get_settings()
