# app/core/config.py
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Process-wide settings from the environment (or .env).

    Required:
      - DATABASE_URL          Supabase Postgres (SQLite works for local runs)
      - SUPABASE_URL          project URL, issuer of staff tokens
      - SUPABASE_KEY          anon key
      - SUPABASE_JWT_SECRET   verifies staff access tokens

    Restaurant rules (delivery charge, tax switch, ...) differ per tenant
    and live in the tenant_settings table instead.
    """

    PROJECT_NAME: str = "Restaurant POS Backend"
    API_V1_STR: str = "/api/v1"

    SUPABASE_URL: str
    SUPABASE_KEY: str
    DATABASE_URL: str

    SUPABASE_JWT_SECRET: str
    SUPABASE_JWT_ALG: str = "HS256"

    LOG_LEVEL: str = "INFO"

    # POS / kitchen display frontends
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # Comment frame sent on idle kitchen streams
    SSE_HEARTBEAT_SECONDS: float = 30.0

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    """
    Parsed once per process.
    """
    return Settings()
