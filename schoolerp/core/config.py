import json
from typing import Dict, List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Application Settings
    APP_NAME: str = "School ERP"
    VERSION: str = "1.0.0"
    DEBUG: bool = Field(default=False)

    # Directory database (global School rows)
    DATABASE_URL: str = Field(...)

    # Tenant databases, one per school
    TENANT_DATABASE_URL_TEMPLATE: str = Field(
        default="sqlite+aiosqlite:///./data/{database_name}.db"
    )
    TENANT_POOL_SIZE: int = Field(default=10)
    TENANT_MAX_OVERFLOW: int = Field(default=5)
    TENANT_POOL_RECYCLE: int = Field(default=1800)
    TENANT_CONNECT_TIMEOUT: float = Field(default=10.0)
    TENANT_REVALIDATE_SECONDS: float = Field(default=300.0)

    # Authentication Settings
    SECRET_KEY: str = Field(...)
    ALGORITHM: str = Field(default="HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default=60 * 24)
    TOKEN_ISSUER: str = Field(default="schoolerp")

    # CORS Settings
    ALLOWED_ORIGINS: List[str] = Field(
        default=[
            "http://localhost:5173",
            "http://127.0.0.1:5173",
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ]
    )

    # Academic defaults
    DEFAULT_ACADEMIC_YEAR: str = Field(default="2024-25")

    # Logging Settings
    LOG_LEVEL: str = Field(default="INFO")
    LOG_DIR: Optional[str] = Field(default=None)

    @field_validator("ALLOWED_ORIGINS", mode="before")
    @classmethod
    def parse_allowed_origins(cls, v):
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @field_validator("TENANT_DATABASE_URL_TEMPLATE")
    @classmethod
    def validate_tenant_template(cls, v: str) -> str:
        if "{database_name}" not in v:
            raise ValueError("TENANT_DATABASE_URL_TEMPLATE must contain '{database_name}'")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        return v.upper()

    def tenant_database_url(self, database_name: str) -> str:
        return self.TENANT_DATABASE_URL_TEMPLATE.format(database_name=database_name)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=True,
    )


def get_settings() -> Settings:
    return Settings()


def get_tenant_pool_settings(settings: Settings) -> dict:
    return {
        "pool_size": settings.TENANT_POOL_SIZE,
        "max_overflow": settings.TENANT_MAX_OVERFLOW,
        "pool_recycle": settings.TENANT_POOL_RECYCLE,
    }


def get_logging_config(settings: Settings) -> Dict[str, Optional[str]]:
    return {
        "log_level": settings.LOG_LEVEL,
        "log_dir": settings.LOG_DIR,
    }
