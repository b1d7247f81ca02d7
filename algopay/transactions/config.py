"""
Transaction lifecycle configuration.

Defines settings for confirmation bounds, note limits, the ledger
client's retry policy and the reconciliation scheduler.
"""

from typing import Optional
from pydantic import BaseModel, Field

from algopay.core.config import Settings, get_settings


class RetryConfig(BaseModel):
    """Configuration for retry behavior with exponential backoff."""

    max_attempts: int = Field(default=3, ge=1, description="Maximum retry attempts")
    initial_delay: float = Field(
        default=0.5, gt=0, description="Initial delay in seconds"
    )
    max_delay: float = Field(default=10.0, gt=0, description="Maximum delay in seconds")
    exponential_base: float = Field(default=2.0, gt=1, description="Backoff multiplier")
    jitter: bool = Field(
        default=True, description="Add random jitter to prevent thundering herd"
    )


class SchedulerConfig(BaseModel):
    """Configuration for the periodic reconciliation runner."""

    interval_seconds: float = Field(
        default=60.0, gt=0, description="Seconds between reconciliation passes"
    )
    enabled: bool = Field(default=True, description="Enable/disable scheduled passes")
    run_on_startup: bool = Field(
        default=True, description="Run a pass immediately on start"
    )
    error_backoff_seconds: float = Field(
        default=30.0, ge=0, description="Extra wait after a pass raised"
    )


class LifecycleConfig(BaseModel):
    """Main transaction lifecycle configuration."""

    # Confirmation
    confirm_on_submit: bool = Field(
        default=False, description="Wait for confirmation inline after submit"
    )
    max_confirmation_rounds: int = Field(
        default=10, ge=0, description="Rounds to wait before reporting timed out"
    )

    # Payload limits
    note_max_bytes: int = Field(
        default=1024, ge=0, description="Maximum note size after encoding"
    )

    # Ledger client
    ledger_timeout: float = Field(
        default=10.0, gt=0, description="Ledger request timeout in seconds"
    )
    retry: RetryConfig = Field(default_factory=RetryConfig)

    # Default credential
    default_mnemonic: Optional[str] = Field(
        default=None, repr=False, description="Sender mnemonic used when none is given"
    )

    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)

    # Metrics
    metrics_history_size: int = Field(
        default=100, ge=1, description="Reconciliation runs kept in memory"
    )

    @classmethod
    def from_settings(cls, settings: Settings) -> "LifecycleConfig":
        """Build configuration from environment settings."""
        return cls(
            confirm_on_submit=settings.CONFIRM_ON_SUBMIT,
            max_confirmation_rounds=settings.MAX_CONFIRMATION_ROUNDS,
            ledger_timeout=settings.ALGOD_TIMEOUT,
            default_mnemonic=settings.ALGORAND_MNEMONIC,
            scheduler=SchedulerConfig(
                interval_seconds=settings.RECONCILE_INTERVAL_SECONDS
            ),
        )


def get_lifecycle_config() -> LifecycleConfig:
    """Get lifecycle configuration from the current environment settings."""
    return LifecycleConfig.from_settings(get_settings())
