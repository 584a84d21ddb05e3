"""Settings for the reindex API, the extraction worker and the CLI runner.

Values come from the environment or a .env file (names are
case-insensitive, unknown keys are ignored).
"""

from urllib.parse import quote_plus

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # PostgreSQL holding the Users and Documents tables
    db_server: str
    db_name: str
    db_user: str
    db_password: str
    db_port: int = 5432
    db_pool_size: int = 10
    db_max_overflow: int = 20
    sql_echo: bool = False

    # Bearer tokens identifying the caller
    jwt_secret: str
    jwt_algorithm: str = "HS256"
    jwt_expiration_minutes: int = 1440

    # uvicorn bind address
    host: str = "0.0.0.0"
    port: int = 8000

    # ARQ job queue for extraction jobs
    redis_url: str = "redis://localhost:6379/0"
    redis_required: bool = False  # Refuse to start the API without a job queue

    # Search index written by the worker
    meilisearch_url: str = "http://localhost:7700"
    meilisearch_api_key: str = ""
    meilisearch_index_name: str = "documents"
    meilisearch_timeout: int = 10

    # Reindex runs
    reindex_default_batch_size: int = 100
    # Seconds to wait for one extraction job before the batch counts as failed
    reindex_async_timeout: float = 600.0
    repository_name: str = "default"
    # Comma-separated document types never sent to fulltext extraction
    # Example: "Picture,Video"
    fulltext_excluded_types: str = ""

    @property
    def excluded_fulltext_types(self) -> set[str]:
        return {t.strip() for t in self.fulltext_excluded_types.split(",") if t.strip()}

    def _postgres_url(self, driver: str) -> str:
        return (
            f"postgresql+{driver}://{self.db_user}:{quote_plus(self.db_password)}"
            f"@{self.db_server}:{self.db_port}/{self.db_name}"
        )

    @property
    def database_url(self) -> str:
        """Async URL used by the API and the worker."""
        return self._postgres_url("asyncpg")

    @property
    def sync_database_url(self) -> str:
        """Sync URL used by Alembic."""
        return self._postgres_url("psycopg2")


settings = Settings()
