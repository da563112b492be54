import os
from functools import lru_cache

from pydantic import BaseModel, ConfigDict, Field, field_validator

from db_setup import DB_NAME

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Settings(BaseModel):
    """Runtime configuration for the identify service."""

    # numeric values arrive as env strings and are coerced during validation
    model_config = ConfigDict(validate_default=True)

    database_path: str = Field(default_factory=lambda: os.getenv("CONTACTS_DB_PATH", DB_NAME))
    busy_timeout: float = Field(default_factory=lambda: os.getenv("DB_BUSY_TIMEOUT", "5.0"), gt=0)
    log_level: str = Field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    host: str = Field(default_factory=lambda: os.getenv("HOST", "0.0.0.0"))
    port: int = Field(default_factory=lambda: os.getenv("PORT", "8000"), ge=1, le=65535)
    strict_validation: bool = Field(default_factory=lambda: _env_flag("STRICT_VALIDATION"))
    legacy_primary_field: bool = Field(default_factory=lambda: _env_flag("LEGACY_PRIMARY_FIELD"))
    conflict_retries: int = Field(default_factory=lambda: os.getenv("IDENTIFY_CONFLICT_RETRIES", "1"), ge=0)

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}")
        return level


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


__all__ = ["Settings", "get_settings"]
