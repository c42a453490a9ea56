"""Configuration settings for Occupancy Pacer."""

from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class PacingConfig(BaseModel):
    """Configuration for burst-then-reactive pacing.

    Controls the size and cadence of the initial burst, the settle
    delay after a free slot is seen, and the fallback poll interval.
    """

    # Burst phase
    burst_size: int = Field(
        default=3,
        ge=0,
        le=100,
        description="Items sent up front without waiting for occupancy feedback",
    )
    burst_delay_ms: int = Field(
        default=3000,
        ge=0,
        description="Milliseconds between consecutive burst submissions",
    )

    # Reactive phase
    settle_delay_ms: int = Field(
        default=5000,
        ge=0,
        description="Milliseconds to wait after an empty slot before submitting",
    )
    poll_interval_ms: int = Field(
        default=2000,
        ge=10,
        description="Milliseconds between fallback occupancy probes",
    )

    @property
    def burst_delay(self) -> float:
        """Burst delay in seconds."""
        return self.burst_delay_ms / 1000

    @property
    def settle_delay(self) -> float:
        """Settle delay in seconds."""
        return self.settle_delay_ms / 1000

    @property
    def poll_interval(self) -> float:
        """Poll interval in seconds."""
        return self.poll_interval_ms / 1000


class SignalConfig(BaseModel):
    """Configuration for occupancy signal capture.

    The pattern identifies occupancy responses in observed traffic; the
    probe URL must be the same logical resource so that synthetic and
    organic responses are indistinguishable.
    """

    occupancy_pattern: str = Field(
        default="pending",
        min_length=1,
        description="URL substring identifying the occupancy endpoint",
    )
    probe_url: str = Field(
        default="",
        description="URL probed when no organic occupancy traffic arrives",
    )
    probe_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Timeout for a single occupancy probe",
    )


class ActuatorConfig(BaseModel):
    """Configuration for the step delays of a single submission."""

    pre_submit_delay_ms: int = Field(
        default=1000,
        ge=0,
        description="Wait before locating the input",
    )
    fill_settle_delay_ms: int = Field(
        default=1500,
        ge=0,
        description="Wait between filling the input and locating the submit control",
    )
    post_activate_delay_ms: int = Field(
        default=2000,
        ge=0,
        description="Wait after activating the submit control",
    )
    clear_after_submit: bool = Field(
        default=True,
        description="Clear the input after a successful submission",
    )


class LoggingConfig(BaseModel):
    """Configuration for logging behavior.

    Controls file logging, rotation, and output format.
    """

    log_file: str | None = Field(
        default=None,
        description="Optional path for file logging (enables rotation)",
    )
    rotation: str = Field(
        default="10 MB",
        description="When to rotate log file (e.g., '10 MB', '1 day')",
    )
    retention: str = Field(
        default="7 days",
        description="How long to keep rotated logs",
    )
    serialize: bool = Field(
        default=False,
        description="If True, output JSON format to file",
    )


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    # --------------------------------------------------------------------------
    # Application
    # --------------------------------------------------------------------------
    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Application environment",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )

    # --------------------------------------------------------------------------
    # Pacing & Signal
    # --------------------------------------------------------------------------
    pacing: PacingConfig = Field(
        default_factory=PacingConfig,
        description="Burst and reactive pacing configuration",
    )
    signal: SignalConfig = Field(
        default_factory=SignalConfig,
        description="Occupancy signal configuration",
    )

    # --------------------------------------------------------------------------
    # Actuator
    # --------------------------------------------------------------------------
    actuator: ActuatorConfig = Field(
        default_factory=ActuatorConfig,
        description="Submission step timing",
    )

    # --------------------------------------------------------------------------
    # Logging Configuration
    # --------------------------------------------------------------------------
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig,
        description="Logging configuration (file output, rotation)",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
