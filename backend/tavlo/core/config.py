"""
Configuration management using Pydantic Settings
"""
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# config.py is at: backend/tavlo/core/config.py
_current_file = Path(__file__).resolve()
_backend_dir = _current_file.parent.parent.parent
_project_root = _backend_dir.parent
ENV_FILE = _project_root / ".env"
# Fallback: try in backend/ directory if not found in project root
if not ENV_FILE.exists():
    ENV_FILE = _backend_dir / ".env"
if ENV_FILE.exists():
    load_dotenv(ENV_FILE, override=False)


class RateLimitWindow(BaseModel):
    """Limit for a single aligned window"""
    window: str = Field(..., description="minute, hour or day")
    limit: int = Field(..., ge=1)


class Settings(BaseSettings):
    """Application settings"""

    # Application
    app_name: str = "Tavlo"
    app_env: str = Field(default="development", description="Application environment")
    log_level: str = Field(default="INFO", description="Logging level")
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8000, ge=1, le=65535, description="API port")
    allowed_origins: str = Field(
        default="http://localhost:3000",
        description="Allowed CORS origins (comma-separated)"
    )

    # Logging
    log_sqlalchemy: bool = Field(default=False, description="Enable SQLAlchemy query logging")
    log_uvicorn_access: bool = Field(default=False, description="Enable Uvicorn access logging")
    log_module_levels: Optional[str] = Field(
        default=None,
        description='Module-specific log levels (JSON string, e.g., {"tavlo.services": "DEBUG"})'
    )
    log_format: str = Field(
        default="json",
        description="Log format: 'json' for structured logging, 'text' for plain text"
    )
    log_file_enabled: bool = Field(default=False, description="Enable file logging")
    log_file_path: str = Field(
        default="logs/tavlo.log",
        description="Path to log file (relative to project root)"
    )
    log_file_rotation: str = Field(
        default="midnight",
        description="Log file rotation: 'midnight' or 'W0'..'W6' (weekly)"
    )
    log_file_retention: int = Field(default=30, ge=1, description="Number of days to keep log files")
    log_sensitive_data: bool = Field(
        default=False,
        description="Enable logging of sensitive data (tokens, secrets) - NOT RECOMMENDED"
    )

    # Database
    database_url_override: Optional[str] = Field(
        default=None,
        alias="DATABASE_URL",
        description="Full SQLAlchemy URL, takes precedence over POSTGRES_* parts"
    )
    postgres_host: str = Field(default="localhost", description="PostgreSQL host")
    postgres_db: str = Field(default="tavlo", description="PostgreSQL database name")
    postgres_user: str = Field(default="tavlo", description="PostgreSQL user")
    postgres_password: str = Field(default="", description="PostgreSQL password")
    postgres_port: int = Field(default=5432, ge=1, le=65535, description="PostgreSQL port")
    database_pool_size: int = Field(default=10, ge=1, description="Database pool size")
    database_max_overflow: int = Field(default=10, ge=0, description="Database max overflow")

    # LLM (OpenAI-compatible chat completions API)
    llm_base_url: str = Field(default="https://api.openai.com/v1", description="Chat completions base URL")
    llm_api_key: Optional[str] = Field(default=None, alias="OPENAI_API_KEY", description="LLM API key")
    llm_model: str = Field(default="gpt-4.1-mini", description="Model used for text summaries")
    llm_vision_model: str = Field(default="gpt-4o-mini", description="Model used for image summaries")
    llm_temperature: float = Field(default=0.3, ge=0.0, le=1.0)
    llm_max_tokens: int = Field(default=1000, ge=50, le=4000)
    llm_vision_max_tokens: int = Field(default=1500, ge=50, le=4000)
    llm_timeout_seconds: int = Field(default=30, ge=5, le=300)
    llm_existing_tags_limit: int = Field(default=100, ge=0, le=500)

    # Extraction
    fetch_timeout_seconds: int = Field(default=10, ge=1, le=120)
    max_content_chars: int = Field(default=4000, ge=100)
    fetch_user_agent: str = Field(
        default=(
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
        )
    )
    microlink_api_url: str = Field(default="https://api.microlink.io")

    # Clerk
    clerk_jwt_public_key: Optional[str] = Field(default=None, description="PEM public key for session JWTs")
    clerk_issuer: Optional[str] = Field(default=None, description="Expected iss claim")
    clerk_webhook_secret: Optional[str] = Field(default=None, description="svix secret for Clerk webhooks")

    # Resend (email ingestion)
    resend_api_key: Optional[str] = Field(default=None)
    resend_webhook_secret: Optional[str] = Field(default=None)
    resend_api_url: str = Field(default="https://api.resend.com")
    email_domain: str = Field(default="tavlo.app", description="Domain used for generated message ids")

    # Quick add
    quick_add_secret: Optional[str] = Field(default=None)

    # Rate limiting for item creation
    rate_limit_enabled: bool = Field(default=True)
    rate_limit_per_minute: int = Field(default=10, ge=1)
    rate_limit_per_hour: int = Field(default=100, ge=1)
    rate_limit_per_day: int = Field(default=500, ge=1)

    # Caching
    domain_cache_ttl_seconds: int = Field(default=300, ge=0)
    badge_cache_ttl_seconds: int = Field(default=3600, ge=0)

    @field_validator("clerk_jwt_public_key", mode="before")
    @classmethod
    def unescape_pem(cls, v):
        """Allow PEM keys with literal \\n in .env files"""
        if isinstance(v, str):
            return v.replace("\\n", "\n")
        return v

    @property
    def database_url(self) -> str:
        """Construct database URL"""
        if self.database_url_override:
            return self.database_url_override
        return (
            f"postgresql://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    @property
    def allowed_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string"""
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]

    @property
    def item_rate_limits(self) -> List[RateLimitWindow]:
        return [
            RateLimitWindow(window="minute", limit=self.rate_limit_per_minute),
            RateLimitWindow(window="hour", limit=self.rate_limit_per_hour),
            RateLimitWindow(window="day", limit=self.rate_limit_per_day),
        ]

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE) if ENV_FILE.exists() else None,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_ignore_empty=True,
        populate_by_name=True,
    )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
