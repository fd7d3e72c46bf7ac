"""
Process Settings

Environment-driven settings for database access and logging. Workload shape
(workers, rates, console format) lives in `cutoverbench.models.WorkloadConfig`.
"""

from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from the environment (and an optional .env file)."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database
    DB_ENGINE: Literal["mysql", "postgres"] = "mysql"
    DB_HOST: str = ""
    DB_PORT: Optional[int] = None
    DB_NAME: str = "lab_db"
    DB_USER: str = "admin"
    DB_PASSWORD: str = ""
    DB_CONNECT_TIMEOUT: float = 30.0

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    LOG_FILE: Optional[str] = None
    OPERATIONS_LOG_FILE: str = "operations.log"
    DRIVER_LOG_LEVEL: str = "WARNING"

    def default_port(self, engine: Optional[str] = None) -> int:
        """DB_PORT, or the engine's standard port when unset."""
        if self.DB_PORT:
            return self.DB_PORT
        return 5432 if (engine or self.DB_ENGINE) == "postgres" else 3306


settings = Settings()
