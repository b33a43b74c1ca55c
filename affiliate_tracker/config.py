from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import List, Optional


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Environment
    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "sqlite:///./affiliate.db"

    # Admin capability key (X-Admin-Key). AFFILIATE_API_KEY is the legacy name.
    ADMIN_API_KEY: str = Field(
        default="",
        validation_alias=AliasChoices("ADMIN_API_KEY", "AFFILIATE_API_KEY"),
    )

    # Payout policy (integer currency units)
    MINIMUM_PAYOUT: int = 500000

    # Redirects and attribution cookies
    DEFAULT_REDIRECT_URL: str = "https://suckhoetaichinh.vn"
    DEFAULT_COOKIE_DURATION_DAYS: int = 30

    # CORS (comma-separated)
    ALLOWED_ORIGINS: str = (
        "https://suckhoetaichinh.vn,"
        "https://www.suckhoetaichinh.vn,"
        "https://affiliate.suckhoetaichinh.vn,"
        "http://localhost:3000,"
        "http://localhost:4000,"
        "http://127.0.0.1:3000"
    )

    # Error tracking
    SENTRY_DSN: Optional[str] = None

    @property
    def database_url(self) -> str:
        return self.DATABASE_URL

    @property
    def allowed_origins(self) -> List[str]:
        return [o.strip() for o in self.ALLOWED_ORIGINS.split(",") if o.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Settings dependency. Routers pass the values they need into the services
    explicitly; tests override this through app.dependency_overrides.
    """
    return Settings()


settings = get_settings()
