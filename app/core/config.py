# app/core/config.py
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Centralized application settings loaded from environment.

    Required env vars (.env):
      - SUPABASE_URL
      - SUPABASE_KEY (anon key)

    Optional:
      - SUPABASE_SERVICE_ROLE_KEY (preferred for status writes; bypasses RLS)
      - ORDERS_TABLE / ORDERS_SCHEMA / ORDERS_CREATED_FIELD
        (where the order documents live and how the feed is ordered)
    """

    PROJECT_NAME: str = "Order Board Backend"
    API_V1_STR: str = "/api/v1"

    # Supabase config
    SUPABASE_URL: str
    SUPABASE_KEY: str

    # Service role key bypasses RLS (backend only)
    SUPABASE_SERVICE_ROLE_KEY: str | None = None

    # Order collection
    ORDERS_TABLE: str = "pedidos"
    ORDERS_SCHEMA: str = "public"
    ORDERS_CREATED_FIELD: str = "criadoEm"

    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5173",
    ]

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings loader.
    Ensures we don't re-parse .env on every import / request.
    """
    return Settings()
