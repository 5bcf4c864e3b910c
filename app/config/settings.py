from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Database - SQLite for local development, postgresql+asyncpg:// in production
    database_url: str = "sqlite+aiosqlite:///./codehub.db"

    # Application
    debug: bool = False
    cors_origins: list[str] = ["http://localhost:3000"]

    # Identity provider - HS256 tokens, `sub` is the user UUID
    jwt_secret: str = ""
    jwt_algorithm: str = "HS256"
    jwt_audience: str = "authenticated"

    # Commit history
    # Number of repositories whose history is kept in memory
    history_cache_size: int = 256
    history_cache_ttl_seconds: int = 600
    history_page_size: int = 30
    # Largest accepted file, in bytes (1 MiB)
    max_file_bytes: int = 1_048_576

    # Create the demo user and repository on an empty database at startup
    seed_demo_data: bool = False

    @property
    def is_sqlite(self) -> bool:
        """Check if the configured database is SQLite."""
        return self.database_url.startswith("sqlite")


settings = Settings()
