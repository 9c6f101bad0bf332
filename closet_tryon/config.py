"""Configuration management for the closet try-on service."""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class FalConfig(BaseModel):
    """fal.ai queue connection settings."""
    model_config = ConfigDict(protected_namespaces=())

    key: str | None = None
    model_id: str = "fal-ai/kling/v1-5/kolors-virtual-try-on"
    poll_interval: float = 0.5
    request_timeout: float = 30.0


class PipelineConfig(BaseModel):
    """Try-on pipeline behaviour."""
    failure_policy: Literal["best_effort", "fail_fast"] = "best_effort"
    step_timeout: float | None = 300.0  # None = wait forever
    stream_buffer: int = Field(default=1, ge=1)


class AuthConfig(BaseModel):
    """Session token verification."""
    secret: str | None = None
    algorithm: str = "HS256"


class CreditsConfig(BaseModel):
    ledger_path: Path = Path("data/credits.json")


class Settings(BaseSettings):
    """Main service configuration."""

    # Sub-configs
    fal: FalConfig = Field(default_factory=FalConfig)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)
    credits: CreditsConfig = Field(default_factory=CreditsConfig)

    # Flat aliases kept for the variable names the deployment already uses
    fal_key: str | None = None
    auth_secret: str | None = None

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="",
        env_nested_delimiter="__",
        extra="ignore",
    )

    def model_post_init(self, __context) -> None:
        if self.fal_key and not self.fal.key:
            self.fal.key = self.fal_key
        if self.auth_secret and not self.auth.secret:
            self.auth.secret = self.auth_secret


def load_settings() -> Settings:
    """Load configuration from environment and defaults."""
    return Settings()
