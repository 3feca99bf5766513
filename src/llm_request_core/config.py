"""Validated settings for the orchestration components.

All durations are in seconds.
"""

from pydantic import BaseModel, ConfigDict, Field, model_validator


class CacheConfig(BaseModel):
    """Response cache settings."""

    model_config = ConfigDict(frozen=True)

    max_size: int = Field(default=1_000_000, gt=0, description="Byte budget for cached payloads")
    default_ttl: float = Field(default=3600.0, gt=0)


class RateLimitConfig(BaseModel):
    """Sliding window quota for one provider."""

    model_config = ConfigDict(frozen=True)

    limit: int = Field(default=60, gt=0, description="Requests admitted per window")
    window: float = Field(default=60.0, gt=0)


class RetryConfig(BaseModel):
    """Backoff settings for the retry controller."""

    model_config = ConfigDict(frozen=True)

    max_retries: int = Field(default=3, ge=0)
    base_delay: float = Field(default=1.0, ge=0)
    max_delay: float = Field(default=30.0, ge=0)
    backoff_multiplier: float = Field(default=2.0, ge=1.0)
    jitter: bool = True

    @model_validator(mode="after")
    def _check_delays(self) -> "RetryConfig":
        if self.max_delay < self.base_delay:
            raise ValueError("max_delay must be greater than or equal to base_delay")
        return self


class BatchConfig(BaseModel):
    """Batch drain settings."""

    model_config = ConfigDict(frozen=True)

    batch_size: int = Field(default=5, gt=0)
    processing_delay: float = Field(default=0.1, ge=0, description="Pause between batches")


class OrchestratorConfig(BaseModel):
    """Top-level settings wiring every component together."""

    model_config = ConfigDict(frozen=True)

    cache: CacheConfig = Field(default_factory=CacheConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    provider_rate_limits: dict[str, RateLimitConfig] = Field(default_factory=dict)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    batch: BatchConfig = Field(default_factory=BatchConfig)
    single_flight: bool = True
    metrics_max_entries: int = Field(default=10_000, gt=0)

    def rate_limit_for(self, provider_id: str) -> RateLimitConfig:
        """Get the quota for a provider, falling back to the default."""
        return self.provider_rate_limits.get(provider_id, self.rate_limit)
