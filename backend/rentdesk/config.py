from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ---- App ----
    app_env: str = "local"  # local|dev|prod
    api_version: str = "2026-10.v1"
    database_url: str = "sqlite:///./rentdesk.db"
    auto_create_schema: bool = True

    # ---- CORS (used by main.py) ----
    cors_allow_origins: list[str] | str = ["*"]

    # ---- Tenancy ----
    default_tenant_id: str = "default"
    header_tenant_id: str = "X-Tenant-Id"
    header_user: str = "X-User"

    # ---- Billing ----
    default_currency: str = "ARS"
    business_timezone: str = "America/Argentina/Buenos_Aires"
    expiring_window_months: int = 3
    default_due_day: int = 10

    def model_post_init(self, __context) -> None:
        if self.expiring_window_months < 0:
            raise ValueError("expiring_window_months must be >= 0")
        if not 1 <= int(self.default_due_day) <= 28:
            raise ValueError("default_due_day must be 1..28")

        env = (self.app_env or "local").strip().lower()
        if env in ("prod", "production"):
            origins = self.cors_allow_origins
            if origins == "*" or origins == ["*"] or (isinstance(origins, str) and "*" in origins):
                raise ValueError("SECURITY: cors_allow_origins wildcard is not allowed in prod")


settings = Settings()
