# cvbuilder/core/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator, Field
from typing import List, Optional, Union


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Uses pydantic-settings for validation and type conversion.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Application
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # CORS - Can be a comma-separated string or list
    CORS_ORIGINS: Union[List[str], str] = "http://localhost:3000,http://localhost:5173"

    @field_validator('CORS_ORIGINS', mode='before')
    @classmethod
    def parse_cors_origins(cls, v):
        """Parse CORS_ORIGINS from comma-separated string or list."""
        if isinstance(v, str):
            return [origin.strip().rstrip('/') for origin in v.split(',') if origin.strip()]
        elif isinstance(v, list):
            return [origin.strip().rstrip('/') for origin in v if isinstance(origin, str) and origin.strip()]
        return v

    # Sanitization
    # Number of decode rounds applied before filtering. 1 = single pass.
    SANITIZER_DECODE_PASSES: int = Field(1, ge=1, le=10)
    # Upper bound on full passes over the threat rule table.
    SANITIZER_STRIP_PASSES: int = Field(10, ge=1, le=50)
    # Raw values are cut to this many characters before any decoding.
    SANITIZER_MAX_INPUT_LENGTH: int = Field(20_000, ge=1)

    # Rate Limiting
    RATE_LIMIT_ENABLED: bool = True
    REDIS_URL: Optional[str] = None
    REDIS_MAX_CONNECTIONS: int = 50

    # Monitoring
    SENTRY_DSN: Optional[str] = None

    @field_validator('LOG_LEVEL')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize and check the log level name."""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unsupported LOG_LEVEL: {v}")
        return level


settings = Settings()
