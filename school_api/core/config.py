import os
import json
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from typing import Optional, List, Dict


class Settings(BaseSettings):
    # Application Settings
    APP_NAME: str = "School Management API"
    VERSION: str = "1.0.0"
    DEBUG: bool = Field(default=False)
    PRODUCTION: bool = Field(default=False)

    # Database Settings
    DATABASE_URL: str = Field(default="sqlite+aiosqlite:///./school.db")
    DATABASE_ECHO: bool = Field(default=False)
    DATABASE_POOL_SIZE: int = Field(default=20)
    DATABASE_MAX_OVERFLOW: int = Field(default=10)
    AUTO_CREATE_TABLES: bool = Field(default=True)

    # Authentication Settings
    SECRET_KEY: str = Field(default="change-this-secret-key-in-production-environments")
    ALGORITHM: str = Field(default="HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default=15)
    REFRESH_TOKEN_EXPIRE_DAYS: int = Field(default=7)
    RESET_TOKEN_EXPIRE_MINUTES: int = Field(default=60)
    BCRYPT_ROUNDS: int = Field(default=12)
    TOKEN_ISSUER: str = Field(default="school_management_api")

    # CORS Settings
    ALLOWED_ORIGINS: List[str] = Field(
        default=[
            "http://localhost:5173",
            "http://127.0.0.1:5173",
            "http://localhost:3000",
            "http://127.0.0.1:3000"
        ]
    )

    # Pagination
    DEFAULT_PAGE_SIZE: int = Field(default=10)
    MAX_PAGE_SIZE: int = Field(default=100)

    # Logging Settings
    LOG_LEVEL: str = Field(default="INFO")
    LOG_DIR: Optional[str] = Field(default=None)

    # Bootstrap account
    SUPER_ADMIN_EMAIL: Optional[str] = Field(default=None)
    SUPER_ADMIN_PASSWORD: Optional[str] = Field(default=None)

    @field_validator('ALLOWED_ORIGINS', mode='before')
    @classmethod
    def parse_allowed_origins(cls, v):
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @field_validator('LOG_LEVEL')
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return v.upper()

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=True
    )

# Initialize settings
settings = Settings()

# Helper Functions
def get_logging_config() -> Dict[str, Optional[str]]:
    log_dir = settings.LOG_DIR or os.path.join(os.getcwd(), "logs")
    return {
        "log_level": settings.LOG_LEVEL,
        "log_dir": log_dir
    }
