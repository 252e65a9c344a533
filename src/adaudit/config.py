"""adaudit configuration via pydantic-settings."""

from __future__ import annotations

from pydantic_settings import BaseSettings

DEFAULT_STEP_NAMES = "Campaigns,Ad Sets,Creatives"


class AdAuditSettings(BaseSettings):
    api_url: str = "http://localhost:5000"
    api_token: str | None = None
    request_timeout_seconds: float = 30.0

    # Wait this long after a stream drops before declaring the sync failed;
    # the final event can still be in flight when the transport tears down.
    stream_grace_seconds: float = 0.5

    # Comma-separated phase labels shown before the server names them.
    sync_step_names: str = DEFAULT_STEP_NAMES

    log_level: str = "WARNING"

    model_config = {"env_prefix": "ADAUDIT_", "env_file": ".env", "extra": "ignore"}

    @property
    def step_names(self) -> list[str]:
        names = [n.strip() for n in self.sync_step_names.split(",")]
        return [n for n in names if n]

    @property
    def has_token(self) -> bool:
        return bool(self.api_token and self.api_token.strip())


settings = AdAuditSettings()
