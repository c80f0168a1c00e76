"""
Configuration settings for German Legal MCP
"""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    # Service
    service_name: str = "german-legal-mcp"
    service_version: str = "1.0.0"
    log_level: str = "INFO"

    # beck-online
    beck_username: str = Field(
        default="",
        description="beck-online account name (required to enable the beck:* tools)",
    )
    beck_password: str = Field(
        default="",
        description="beck-online account password (required to enable the beck:* tools)",
    )
    beck_base_url: str = "https://beck-online.beck.de"
    beck_cookie_path: Path = Path.home() / ".beck-online-mcp" / "cookies.json"

    # Browser
    browser_headless: bool = True
    browser_user_agent: str = DEFAULT_USER_AGENT
    content_wait_timeout_ms: int = 2000  # best-effort wait for content selectors
    redirect_wait_timeout_ms: int = 10000  # extra wait for OIDC redirect hops

    @property
    def beck_configured(self) -> bool:
        """True when both beck-online credentials are set"""
        return bool(self.beck_username and self.beck_password)


# Global settings instance
settings = Settings()
