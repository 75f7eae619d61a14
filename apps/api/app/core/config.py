"""Application configuration with environment variables."""

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Environment
    ENV: str = "dev"
    VERSION: str = "0.1.0"

    # Metadata database (hook logs live here)
    DATABASE_URL: str = "sqlite:///./nc_meta.db"

    # Edition flags - only change error message wording and default log level
    NC_IS_EE: bool = False
    NC_IS_ON_PREM: bool = False

    # Webhooks
    NC_ALLOW_LOCAL_HOOKS: bool = False  # Disables the private-network guard
    NC_AUTOMATION_LOG_LEVEL: Literal["ERROR", "ALL", ""] = ""
    WEBHOOK_TIMEOUT_SECONDS: float = 30.0
    WEBHOOK_MAX_REDIRECTS: int = 5

    @property
    def automation_log_level(self) -> str | None:
        """Configured automation log level, None when unset."""
        return self.NC_AUTOMATION_LOG_LEVEL or None

    @property
    def show_local_hooks_hint(self) -> bool:
        """Self-hosted deployments may flip NC_ALLOW_LOCAL_HOOKS themselves."""
        return not self.NC_IS_EE or self.NC_IS_ON_PREM


settings = Settings()
