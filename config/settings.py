from pydantic_settings import BaseSettings, SettingsConfigDict

from config.stores import (
    CompositeConfigurationStore,
    EnvConfigurationStore,
    FileConfigurationStore,
)


# -----------------------------------------------------------------------------
# Settings
# -----------------------------------------------------------------------------
class Settings(BaseSettings):
    """
    Application settings managed by Pydantic.
    Reads from environment variables and/or .env file.
    """
    # Project Info
    ENVIRONMENT: str = "production"
    API_VERSION: str = "1.0.0"
    LOG_LEVEL: str = "INFO"

    ALLOWED_ORIGINS: list[str] = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

    # Optional JSON file checked before the environment
    CONFIG_FILE: str | None = None

    # Database
    DATABASE_URL: str
    DATABASE_ECHO: bool = False

    # Sessions
    SESSION_TOKEN_SALT: str
    SESSION_LIFESPAN_DAYS: int = 7
    SESSION_COOKIE_NAME: str = "session_token"

    # Response caching (seconds)
    SESSIONS_CACHE_TTL: int = 300
    API_KEYS_CACHE_TTL: int = 600

    # Cognito
    COGNITO_REGION: str = "us-west-2"
    COGNITO_USER_POOL_ID: str = ""
    COGNITO_CLIENT_ID: str = ""
    COGNITO_JWKS_URL: str | None = None

    # Peers whose X-Forwarded-For / cf-connecting-ip headers are believed
    TRUSTED_PROXIES: list[str] = []

    @property
    def cognito_issuer(self) -> str:
        return f"https://cognito-idp.{self.COGNITO_REGION}.amazonaws.com/{self.COGNITO_USER_POOL_ID}"

    @property
    def cognito_jwks_url(self) -> str:
        return self.COGNITO_JWKS_URL or f"{self.cognito_issuer}/.well-known/jwks.json"

    # Config to read from .env file if available
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
        )


def load_settings() -> Settings:
    """Load settings from the configured file (if any), then the environment."""
    store = CompositeConfigurationStore(Settings)

    env_store = EnvConfigurationStore(Settings)
    config_file = env_store.peek("CONFIG_FILE")
    if config_file:
        store.add_store(FileConfigurationStore(config_file))
    store.add_store(env_store)

    return store.get()


settings = load_settings()
