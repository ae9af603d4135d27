from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from dealrota.errors import ConfigurationError

DEFAULT_POLL_INTERVAL = 15.0  # Seconds between turn checks
DEFAULT_JOB_TIMEOUT = 5 * 60.0  # A turn held longer than this is considered abandoned


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="ROTA_",
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )

    app_name: str = "dealrota"
    env: str = "dev"

    # Stable, externally provisioned identity of this worker
    server_id: str | None = Field(default=None, validation_alias="SERVER_ID")

    # Shared store
    store_backend: str = "redis"  # redis or memory
    redis_url: str = Field(default="redis://localhost:6379/0", validation_alias="REDIS_URL")
    state_key: str = "dealrota:scraper_state"
    seen_key: str = "dealrota:deals_cache"
    store_max_retries: int = 25

    # Turn taking
    poll_interval: float = DEFAULT_POLL_INTERVAL
    job_timeout: float = DEFAULT_JOB_TIMEOUT

    # Observability
    log_level: str = "INFO"
    log_json: bool = True
    enable_metrics: bool = True
    metrics_port: int | None = None  # Serve /metrics when set

    def require_server_id(self) -> str:
        """Return the configured server id or fail loudly."""
        if not self.server_id:
            raise ConfigurationError(
                "SERVER_ID environment variable is not set. "
                "Assign a unique id to this worker (e.g. 'server_1')."
            )
        return self.server_id


settings = Settings()
