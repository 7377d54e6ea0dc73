"""
Centralized configuration management with validation.

All environment variables are loaded and validated here.
Supabase credentials, assistant limits and logging options live on one
settings object shared by the HTTP handlers and the session layer.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import Optional
from dotenv import load_dotenv

load_dotenv()


class Settings(BaseSettings):
    """Application settings with validation."""

    # Pydantic v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore"
    )

    # Supabase Configuration
    SUPABASE_URL: str = Field(default="http://localhost:54321")
    SUPABASE_ANON_KEY: Optional[str] = Field(default=None)
    # Service-role key bypasses row level security; server-side handlers only.
    SUPABASE_SERVICE_ROLE_KEY: Optional[str] = Field(default=None)
    # Used to verify access tokens locally. When unset, tokens are checked
    # against the auth server instead.
    SUPABASE_JWT_SECRET: Optional[str] = Field(default=None)
    SUPABASE_JWT_AUDIENCE: str = Field(default="authenticated")
    SUPABASE_STORAGE_BUCKET: str = Field(default="files")

    # Web app base URL (OAuth and password-reset redirects back to the UI).
    APP_BASE_URL: str = Field(default="http://localhost:5173")

    # AI assistant proxy
    ANTHROPIC_API_KEY: Optional[str] = Field(default=None)
    ANTHROPIC_MODEL: str = Field(default="claude-3-5-haiku-latest")
    ASSISTANT_MAX_TOKENS: int = Field(default=800, ge=1)
    ASSISTANT_TEMPERATURE: float = Field(default=0.2, ge=0.0, le=1.0)
    ASSISTANT_RATE_LIMIT_WINDOW_S: int = Field(default=60, ge=1)
    ASSISTANT_RATE_LIMIT_MAX: int = Field(default=6, ge=1)

    # File handlers
    FILES_SEARCH_DEFAULT_PAGE_SIZE: int = Field(default=20)
    FILES_SEARCH_MAX_PAGE_SIZE: int = Field(default=200)

    # API Configuration
    API_HOST: str = Field(default="0.0.0.0")
    API_PORT: int = Field(default=8000)

    # Logging Configuration
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FORMAT: str = Field(default="json")  # json or text

    # Environment
    ENVIRONMENT: str = Field(default="development")
    DEBUG: bool = Field(default=False)

    # CORS - comma-separated list of allowed origins for production
    CORS_ORIGINS: Optional[str] = Field(default=None)

    # Sentry Error Tracking
    SENTRY_DSN: Optional[str] = Field(default=None)
    SENTRY_TRACES_SAMPLE_RATE: float = Field(default=0.1)


# Global settings instance
settings = Settings()
