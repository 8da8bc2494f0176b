from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
import os

from dotenv import load_dotenv

# Load local .env if present
PROJECT_ROOT = Path(__file__).resolve().parents[1]
load_dotenv(PROJECT_ROOT / ".env", override=False)


@dataclass(frozen=True)
class Settings:
    # Runtime
    ENV: str = os.getenv("ENV", "local")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Storage
    DATABASE_URL: str = os.getenv(
        "DATABASE_URL", f"sqlite:///{PROJECT_ROOT / 'data' / 'explorer.sqlite'}"
    )

    # JWT
    SECRET_KEY: str = os.getenv("SECRET_KEY", "change-me")
    ALGORITHM: str = os.getenv("ALGORITHM", "HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "30"))
    REFRESH_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("REFRESH_TOKEN_EXPIRE_MINUTES", "43200"))

    # Admin credentials
    ADMIN_USERNAME: str = os.getenv("ADMIN_USERNAME", "admin")
    ADMIN_PASSWORD_HASH: str = os.getenv("ADMIN_PASSWORD_HASH", "")

    # CORS (comma separated, "*" allows any origin)
    CORS_ORIGINS: str = os.getenv("CORS_ORIGINS", "*")

    # Search source (public storefront search index)
    ALGOLIA_APP_ID: str = os.getenv("ALGOLIA_APP_ID", "AR33G9NJGJ")
    ALGOLIA_API_KEY: str = os.getenv("ALGOLIA_API_KEY", "96c16938971ef89ae1d14e21494e2114")
    ALGOLIA_INDEX: str = os.getenv("ALGOLIA_INDEX", "shopify_products")
    SOURCE_BASE_URL: str = os.getenv("SOURCE_BASE_URL", "https://www.worldofbooks.com")
    DEFAULT_CURRENCY: str = os.getenv("DEFAULT_CURRENCY", "USD")

    # Collection tuning
    TARGET_BOOK_COUNT: int = int(os.getenv("TARGET_BOOK_COUNT", "1000"))
    BATCH_SIZE: int = int(os.getenv("BATCH_SIZE", "100"))
    HITS_PER_PAGE: int = int(os.getenv("HITS_PER_PAGE", "20"))
    PRICE_MIN: float = float(os.getenv("PRICE_MIN", "0.99"))
    PRICE_MAX: float = float(os.getenv("PRICE_MAX", "200"))
    REQUEST_TIMEOUT: int = int(os.getenv("REQUEST_TIMEOUT", "30"))
    REQUEST_RETRIES: int = int(os.getenv("REQUEST_RETRIES", "3"))
    DELAY_BETWEEN_QUERIES: float = float(os.getenv("DELAY_BETWEEN_QUERIES", "2.0"))
    DELAY_BETWEEN_PAGES: float = float(os.getenv("DELAY_BETWEEN_PAGES", "0.5"))
    DELAY_RANDOM: float = float(os.getenv("DELAY_RANDOM", "0.2"))

    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings (cheap, deterministic)."""
    return Settings()


# Singleton-style convenience
settings = get_settings()
