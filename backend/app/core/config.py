"""Application configuration using Pydantic settings."""

from typing import Any

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "EverLaunch Regression API"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    API_V1_PREFIX: str = "/api/v1"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    RELOAD: bool = False

    # Database
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "everlaunch"
    # Any SQLAlchemy async URL (tests use sqlite+aiosqlite)
    DATABASE_URL: str | None = None
    AUTO_CREATE_TABLES: bool = True  # Create tables from ORM metadata on startup

    @field_validator("DATABASE_URL", mode="before")
    @classmethod
    def assemble_db_connection(cls, v: str | None, info: Any) -> str:
        """Build database URL from components if not provided."""
        if isinstance(v, str):
            return v

        data = info.data
        return (
            f"postgresql+asyncpg://{data.get('POSTGRES_USER')}:{data.get('POSTGRES_PASSWORD')}"
            f"@{data.get('POSTGRES_SERVER')}:{data.get('POSTGRES_PORT')}/{data.get('POSTGRES_DB') or ''}"
        )

    # CORS
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://localhost:8000",
    ]
    CORS_ALLOW_CREDENTIALS: bool = True
    CORS_ALLOW_METHODS: list[str] = ["*"]
    CORS_ALLOW_HEADERS: list[str] = ["*"]

    # Chat-completion backend
    OPENAI_API_KEY: str | None = None
    OPENAI_BASE_URL: str | None = None  # OpenAI-compatible gateway, if any
    OPENAI_TIMEOUT: float = 30.0  # LLM inference can be slow

    # Regression test runner
    REGRESSION_MODEL: str = "gpt-4o-mini"
    REGRESSION_MAX_TOKENS: int = 500
    REGRESSION_TEMPERATURE: float = 0.3  # Low for repeatable results

    # OpenAI circuit breaker (fail fast, no retries)
    OPENAI_CIRCUIT_FAILURE_THRESHOLD: int = 5  # Failures before circuit opens
    OPENAI_CIRCUIT_RECOVERY_TIMEOUT: int = 60  # Seconds before circuit recovery

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    # Monitoring
    ENABLE_PROMETHEUS_METRICS: bool = True  # Expose /metrics endpoint


settings = Settings()
