from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ---- App ----
    app_env: str = "local"  # local|dev|prod
    app_version: str = "2026-10-19.v1"
    database_url: str = "sqlite:///./residence.db"
    api_prefix: str = "/api"

    # ---- CORS (used by main.py) ----
    cors_allow_origins: list[str] | str = ["*"]

    # Local sqlite convenience; prod schema comes from migrations.
    create_tables_on_startup: bool = True

    # ---- Logging ----
    log_level: str = "INFO"
    sql_log_level: str = "WARNING"

    # ---- Listing ----
    default_page_size: int = 100
    max_page_size: int = 2000

    # ---- Inventory ----
    low_stock_default_minimum: int = 5

    def model_post_init(self, __context) -> None:
        env = (self.app_env or "local").strip().lower()
        is_prod = env in ("prod", "production")

        if is_prod:
            origins = self.cors_allow_origins
            if origins == "*" or origins == ["*"] or (isinstance(origins, str) and "*" in origins):
                raise ValueError("SECURITY: cors_allow_origins wildcard is not allowed in prod")
            if bool(self.create_tables_on_startup):
                raise ValueError("create_tables_on_startup=True is not allowed in prod; run migrations")


settings = Settings()
