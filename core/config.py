from typing import List, Optional
from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    # -------------------------------------------------
    # General
    # -------------------------------------------------
    PROJECT_NAME: str = "Blockclub Access API"
    ENV: str = "development"

    BACKEND_CORS_ORIGINS: List[str] = []

    # -------------------------------------------------
    # Supabase (Primary DB & Auth)
    #   ANON key      -> restricted access (row-level security applies)
    #   SERVICE ROLE  -> elevated access (bypasses row-level security)
    # -------------------------------------------------
    SUPABASE_URL: Optional[str] = Field(None, env="SUPABASE_URL")
    SUPABASE_ANON_KEY: Optional[str] = Field(None, env="SUPABASE_ANON_KEY")
    SUPABASE_SERVICE_ROLE_KEY: Optional[str] = Field(None, env="SUPABASE_SERVICE_ROLE_KEY")

    # -------------------------------------------------
    # Staff admins
    # Comma separated list of emails, matched exactly (case-sensitive)
    # -------------------------------------------------
    STAFF_ADMIN_EMAILS: str = Field("", env="STAFF_ADMIN_EMAILS")

    # -------------------------------------------------
    # Impersonation session
    # -------------------------------------------------
    IMPERSONATION_SECRET: Optional[str] = Field(None, env="IMPERSONATION_SECRET")
    IMPERSONATION_ALGORITHM: str = "HS256"
    IMPERSONATION_COOKIE_NAME: str = "bc_impersonating"
    IMPERSONATION_MAX_AGE_SECONDS: int = Field(
        60 * 60 * 4,
        env="IMPERSONATION_MAX_AGE_SECONDS",
        description="Lifetime of an impersonation session (default: 4 hours)",
    )

    # -------------------------------------------------
    # Redirect targets handed back to the frontend
    # -------------------------------------------------
    SIGNIN_PATH: str = "/signin"
    STAFF_PANEL_PATH: str = "/staff"
    DEFAULT_LANDING_PATH: str = "/dashboard"

    @property
    def is_production(self) -> bool:
        return self.ENV == "production"

    @property
    def staff_admin_emails(self) -> List[str]:
        return [e.strip() for e in self.STAFF_ADMIN_EMAILS.split(",") if e.strip()]

    # -------------------------------------------------
    # Model Config
    # -------------------------------------------------
    class Config:
        case_sensitive = True


# Instantiate settings
settings = Settings()
