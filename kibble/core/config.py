# kibble/core/config.py
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Centralized application settings loaded from environment.

    Required env vars (.env):
      - SUPABASE_URL
      - SUPABASE_KEY (anon key)
      - DATABASE_URL (Supabase Postgres connection string)
      - SUPABASE_JWT_SECRET (JWT signing secret from Supabase project settings)
      - NOVA_POSHTA_API_KEY (carrier API key)

    Optional:
      - SUPABASE_SERVICE_ROLE_KEY (only used for admin Supabase client)
      - ADMIN_EMAILS (JSON list, e.g. '["owner@kitty-kibble.ua"]')
    """

    PROJECT_NAME: str = "Kitty Kibble API"
    API_V1_STR: str = "/api/v1"

    # Supabase / DB config
    SUPABASE_URL: str
    SUPABASE_KEY: str
    DATABASE_URL: str

    # JWT verification (backend-side)
    SUPABASE_JWT_SECRET: str
    SUPABASE_JWT_ALG: str = "HS256"

    # Service role key bypasses RLS (backend only)
    SUPABASE_SERVICE_ROLE_KEY: str | None = None

    # Profiles created with one of these emails get role="admin"
    ADMIN_EMAILS: list[str] = []

    # Nova Poshta carrier API
    NOVA_POSHTA_API_URL: str = "https://api.novaposhta.ua/v2.0/json/"
    NOVA_POSHTA_API_KEY: str
    NOVA_POSHTA_TIMEOUT: float = 15.0

    # Store's own dispatch point (Kyiv by default)
    NOVA_POSHTA_SENDER_CITY_REF: str = "8d5a980d-391c-11dd-90d9-001a92567626"
    NOVA_POSHTA_SENDER_WAREHOUSE_REF: str | None = "1ec09d2e-e1c2-11e3-8c4a-0050568002cf"
    # Warehouse type "branch" (not postomat / cargo)
    NOVA_POSHTA_WAREHOUSE_TYPE_REF: str = "841339c7-591a-42e2-8233-7a0a00f0ed6f"

    # Cargo composition
    CARGO_PACKAGING_KG: float = 0.1
    CARGO_DESCRIPTION_MAX_LENGTH: int = 100

    WAREHOUSE_PAGE_SIZE: int = 50

    # Saved checkout form drafts expire after this many days
    CHECKOUT_DRAFT_TTL_DAYS: int = 7

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings loader.
    Ensures we don't re-parse .env on every import / request.
    """
    return Settings()
