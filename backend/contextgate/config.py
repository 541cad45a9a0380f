"""Application configuration via pydantic-settings.

Reads from environment variables and .env file. The OAuth client id, secret
and public base URL have no defaults, so the process refuses to start
without them.
"""

from functools import lru_cache
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # GitHub OAuth app
    github_client_id: str
    github_client_secret: str
    public_base_url: str
    oauth_scope: str = "read:user"

    # Remote endpoints
    github_url: str = "https://github.com"
    github_api_url: str = "https://api.github.com"
    copilot_api_url: str = "https://api.githubcopilot.com"
    retrieval_url: str = ""

    # Prompting
    project_context: str = ""
    project_context_path: str = ""
    default_model: str = "gpt-4o"
    domain_prompt: str = (
        "You are an expert assistant specializing in distributed systems "
        "and payments processing."
    )

    # Sessions and cookies
    session_backend: Literal["cookie", "redis", "memory"] = "cookie"
    redis_url: str = "redis://localhost:6379"
    cookie_secure: bool = True
    state_ttl_seconds: int = 600
    token_cookie_max_age: int = 8 * 60 * 60

    # Server
    upstream_timeout: float = 60.0
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 3000

    @field_validator("github_client_id", "github_client_secret", "public_base_url")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be empty")
        return value.strip()

    @field_validator("public_base_url", "github_url", "github_api_url", "copilot_api_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @property
    def callback_url(self) -> str:
        return f"{self.public_base_url}/auth/callback"

    @property
    def retrieval_configured(self) -> bool:
        return bool(self.retrieval_url)


@lru_cache
def get_settings() -> Settings:
    """Build the process-wide settings once. Raises ValidationError if incomplete."""
    return Settings()
