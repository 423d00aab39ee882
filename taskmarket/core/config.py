from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="TASKMARKET_", extra="ignore")

    app_name: str = "taskmarket"

    # ---------------------------------------------------------------------
    # API contract / OpenAPI
    # ---------------------------------------------------------------------

    api_version: str = "1.0.0"
    api_description: str = (
        "Campus task marketplace API.\n\n"
        "Mutations require the caller identity in the X-User-Id header (UUID). "
        "Errors are returned as {\"error\": {code, category, message, retryable}}."
    )

    env: str = "local"
    debug: bool = True
    log_level: str = "INFO"
    logfire_token: str | None = None

    db_host: str = "127.0.0.1"
    db_port: int = 5432
    db_name: str = "taskmarket"
    db_user: str = "taskmarket"
    db_password: str = "taskmarket"

    # Full URL wins over the db_* parts (sqlite for local dev, managed PG URLs)
    database_url_override: str | None = None
    test_database_url: str = "sqlite+pysqlite:///:memory:"

    # ---------------------------------------------------------------------
    # Task lifecycle
    # ---------------------------------------------------------------------

    accept_code_digits: int = 5

    # ---------------------------------------------------------------------
    # Notifications / push relay
    # ---------------------------------------------------------------------

    push_enabled: bool = True
    push_relay_url: str = "https://exp.host/--/api/v2/push/send"
    push_chunk_size: int = 100
    push_timeout_seconds: float = 10.0

    # none | all_users
    posted_audience: str = "none"

    profile_cache_ttl_seconds: float = 300.0

    @property
    def database_url(self) -> str:
        if self.database_url_override:
            return self.database_url_override
        return (
            f"postgresql+psycopg://{self.db_user}:{self.db_password}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )


settings = Settings()
