"""Configuration management for openlens."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings from environment variables and .env file."""

    model_config = SettingsConfigDict(
        env_prefix="OPENLENS_",
        env_file=".env",
        extra="ignore",
    )

    github_token: str = ""
    data_dir: Path = Path("data")
    api_base_url: str = "https://api.github.com"
    trending_url: str = "https://github-trending-api-seven.vercel.app/repositories"
    per_page: int = 30
    timeout: float = 30.0

    @property
    def cache_path(self) -> Path:
        """SQLite file backing the response cache."""
        return self.data_dir / "cache.db"

    @property
    def state_path(self) -> Path:
        """JSON file holding credential, filters, snapshot and history."""
        return self.data_dir / "state.json"


def get_settings() -> Settings:
    """Get application settings instance.

    Returns:
        Settings loaded from environment and .env file.
    """
    return Settings()
