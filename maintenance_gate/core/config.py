from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import PostgresDsn, Field, field_validator
from typing import Optional, Any, List


class Settings(BaseSettings):
    # --- Project Settings ---
    PROJECT_NAME: str = "Maintenance Gate"
    API_V1_STR: str = "/api/v1"

    # --- Database Settings ---
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = ""
    POSTGRES_DB: str = "maintenance"
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: str = "5432"
    DATABASE_URL: Optional[str] = Field(None, validate_default=True)

    @field_validator("DATABASE_URL", mode="before")
    @classmethod
    def assemble_db_connection(cls, v: Optional[str], info) -> Any:
        if isinstance(v, str) and v:
            return v

        return str(PostgresDsn.build(
            scheme="postgresql",
            username=info.data.get("POSTGRES_USER"),
            password=info.data.get("POSTGRES_PASSWORD") or None,
            host=info.data.get("POSTGRES_HOST"),
            port=int(info.data.get("POSTGRES_PORT", 5432)),
            path=info.data.get("POSTGRES_DB") or "",
        ))

    # --- Invalidation Bus Settings ---
    #empty => in-process bus (single worker deployments)
    REDIS_URL: str = ""
    MAINTENANCE_CHANNEL: str = "maintenance:update"

    # --- Maintenance Gate Settings ---
    MAINTENANCE_CACHE_TTL_SECONDS: float = 5.0
    MAINTENANCE_STORE_TIMEOUT_SECONDS: float = 2.0
    MAINTENANCE_FAILURE_TTL_SECONDS: float = 1.0
    MAINTENANCE_FAIL_OPEN: bool = True
    MAINTENANCE_BYPASS_PREFIXES: List[str] = []
    MAINTENANCE_RETRY_AFTER_SECONDS: int = 3600

    # --- Maintenance Admin Settings ---
    MAINTENANCE_MESSAGE_MAX_LENGTH: int = 500
    MAINTENANCE_DATA_MAX_BYTES: int = 16 * 1024
    MAINTENANCE_MAX_WRITE_ATTEMPTS: int = 3
    MAINTENANCE_WRITE_RATE_LIMIT: str = "30/minute"

    @property
    def maintenance_bypass_prefixes(self) -> tuple:
        if self.MAINTENANCE_BYPASS_PREFIXES:
            return tuple(self.MAINTENANCE_BYPASS_PREFIXES)
        return (
            "/health",
            f"{self.API_V1_STR}/maintenance",
            f"{self.API_V1_STR}/admin",
        )

    # --- HTTP Settings ---
    ALLOWED_HOSTS: List[str] = [
        "localhost",
        "localhost:8000",
        "127.0.0.1",
        "127.0.0.1:8000",
    ]
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:3001",
    ]

    model_config = SettingsConfigDict(case_sensitive=True, env_file=".env")


settings = Settings()
