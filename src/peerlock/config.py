from __future__ import annotations

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="PEERLOCK_", env_file=".env", extra="ignore")

    # Resource namespace (one lock per resource name)
    resource: str = "default"
    key_prefix: str = "peerlock"

    # Backend for the shared store and broadcast bus: "redis" or "memory"
    backend: str = "redis"

    # Redis
    redis_url: str = Field(default="redis://localhost:6379/0", validation_alias="REDIS_URL")

    # Heartbeat (milliseconds)
    heartbeat_period_ms: int = Field(default=1500, gt=0)
    commit_every: int = Field(default=5, ge=1)
    stale_after_ms: int = Field(default=15000, gt=0)

    # Takeover negotiation (milliseconds)
    takeover_wait_ms: int = Field(default=3000, ge=0)
    election_window_ms: int = Field(default=160, ge=0)

    # Randomized delay around double-checked writes (milliseconds)
    jitter_min_ms: int = Field(default=25, ge=0)
    jitter_max_ms: int = Field(default=125, ge=0)

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    @model_validator(mode="after")
    def _check_timing(self) -> "Settings":
        if self.stale_after_ms <= self.commit_interval_ms:
            raise ValueError(
                f"stale_after_ms ({self.stale_after_ms}) must exceed "
                f"heartbeat_period_ms * commit_every ({self.commit_interval_ms}), "
                "or a live owner will be judged stale"
            )
        if self.jitter_min_ms > self.jitter_max_ms:
            raise ValueError(
                f"jitter_min_ms ({self.jitter_min_ms}) must not exceed "
                f"jitter_max_ms ({self.jitter_max_ms})"
            )
        return self

    @property
    def commit_interval_ms(self) -> int:
        """Time between durable heartbeat commits while owner."""
        return self.heartbeat_period_ms * self.commit_every

    @property
    def staleness_margin_ms(self) -> int:
        """Slack between the last expected commit and the staleness threshold."""
        return self.stale_after_ms - self.commit_interval_ms


settings = Settings()
