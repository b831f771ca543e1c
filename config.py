from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional

INSECURE_DEFAULT_ENCRYPTION_KEY = "default-key-please-change-in-production-env"

class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = "sqlite:///agent_credentials.db"

    # Deployment
    ENVIRONMENT: str = "development"  # development, production or test
    APP_URL: str = "http://localhost:3000"
    OAUTH_REDIRECT_PATH: str = "/dashboard/agents"

    # Security
    SECRET_KEY: str = "your-secret-key-here"  # Change this in production!
    TOKEN_ENCRYPTION_KEY: str = INSECURE_DEFAULT_ENCRYPTION_KEY
    ALLOW_LEGACY_PLAINTEXT_SECRETS: bool = True

    # Twitter API Settings
    TWITTER_CONSUMER_KEY: Optional[str] = None
    TWITTER_CONSUMER_SECRET: Optional[str] = None
    TWITTER_OAUTH_CALLBACK_URL: str = "http://localhost:8000/twitter/oauth/callback"
    TWITTER_API_TIMEOUT_SECONDS: float = 10.0

    # Handshake token cache
    TEMP_TOKEN_TTL_SECONDS: int = 600
    TOKEN_SWEEP_INTERVAL_SECONDS: int = 300

    # Flow initiation rate limiting
    OAUTH_RATE_LIMIT_WINDOW_SECONDS: int = 300
    OAUTH_RATE_LIMIT_MAX_REQUESTS: int = 10

    class Config:
        env_file = ".env"
        extra = "ignore"  # Allow extra fields from environment variables

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    def require_twitter_credentials(self):
        """Raise ConfigurationError unless both consumer credentials are set."""
        from credentials.errors import ConfigurationError

        missing = [
            name
            for name in ("TWITTER_CONSUMER_KEY", "TWITTER_CONSUMER_SECRET")
            if not getattr(self, name)
        ]
        if missing:
            raise ConfigurationError(f"Missing required settings: {', '.join(missing)}")

@lru_cache()
def get_settings():
    return Settings()
