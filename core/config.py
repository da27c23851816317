from typing import List, Optional
from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    # -------------------------------------------------
    # General
    # -------------------------------------------------
    PROJECT_NAME: str = "Ollie API"
    ENV: str = "development"

    # -------------------------------------------------
    # Web app (approval links point here)
    # -------------------------------------------------
    APP_WEB_URL: str = Field("http://localhost:8081", env="APP_WEB_URL")

    OLLIE_DOMAINS: List[str] = [
        "https://ollie.app",
        "https://www.ollie.app",
    ]

    # -------------------------------------------------
    # CORS (auto-built below)
    # -------------------------------------------------
    BACKEND_CORS_ORIGINS: List[str] = []

    # -------------------------------------------------
    # Supabase (Primary DB, Auth & Realtime)
    # -------------------------------------------------
    SUPABASE_URL: Optional[str] = Field(None, env="SUPABASE_URL")
    SUPABASE_ANON_KEY: Optional[str] = Field(None, env="SUPABASE_ANON_KEY")
    SUPABASE_SERVICE_ROLE_KEY: Optional[str] = Field(None, env="SUPABASE_SERVICE_ROLE_KEY")

    # -------------------------------------------------
    # Email (Resend first, SMTP fallback)
    # -------------------------------------------------
    RESEND_API_KEY: Optional[str] = Field(None, env="RESEND_API_KEY")
    RESEND_FROM_EMAIL: str = Field("onboarding@resend.dev", env="RESEND_FROM_EMAIL")
    RESEND_FROM_NAME: str = Field("Ollie", env="RESEND_FROM_NAME")

    SMTP_HOST: Optional[str] = Field(None, env="SMTP_HOST")
    SMTP_PORT: Optional[int] = Field(None, env="SMTP_PORT")
    SMTP_USER: Optional[str] = Field(None, env="SMTP_USER")
    SMTP_PASS: Optional[str] = Field(None, env="SMTP_PASS")

    # -------------------------------------------------
    # SMS (Twilio)
    # -------------------------------------------------
    TWILIO_ACCOUNT_SID: Optional[str] = Field(None, env="TWILIO_ACCOUNT_SID")
    TWILIO_AUTH_TOKEN: Optional[str] = Field(None, env="TWILIO_AUTH_TOKEN")
    TWILIO_FROM_NUMBER: Optional[str] = Field(None, env="TWILIO_FROM_NUMBER")

    # -------------------------------------------------
    # Stripe Payment Processing
    # -------------------------------------------------
    STRIPE_SECRET_KEY: Optional[str] = Field(None, env="STRIPE_SECRET_KEY")

    # Outbound HTTP calls to Resend / Twilio
    PROVIDER_HTTP_TIMEOUT_SECONDS: float = Field(10.0, env="PROVIDER_HTTP_TIMEOUT_SECONDS")

    # -------------------------------------------------
    # Parent approval workflow
    # -------------------------------------------------
    APPROVAL_TOKEN_TTL_DAYS: int = Field(7, env="APPROVAL_TOKEN_TTL_DAYS", description="Days an emailed approval link stays valid (default: 7)")
    APPROVAL_SIDE_EFFECT_TIMEOUT_SECONDS: float = Field(15.0, env="APPROVAL_SIDE_EFFECT_TIMEOUT_SECONDS", description="Upper bound for work triggered after an approval is recorded")
    STATUS_POLL_INTERVAL_SECONDS: float = Field(5.0, env="STATUS_POLL_INTERVAL_SECONDS", description="Polling cadence used when realtime delivery is not confirmed")
    PENDING_MARKER_PATH: str = Field(".ollie/pending_requests.json", env="PENDING_MARKER_PATH")

    # -------------------------------------------------
    # Bank account approval (SMS one-time code)
    # -------------------------------------------------
    OTP_TTL_MINUTES: int = Field(15, env="OTP_TTL_MINUTES")
    OTP_MAX_ATTEMPTS: int = Field(5, env="OTP_MAX_ATTEMPTS")
    OTP_RESEND_COOLDOWN_SECONDS: int = Field(120, env="OTP_RESEND_COOLDOWN_SECONDS")

    # -------------------------------------------------
    # Model Config
    # -------------------------------------------------
    class Config:
        case_sensitive = True


# Instantiate settings
settings = Settings()

# -------------------------------------------------
# Build CORS list dynamically after loading settings
# -------------------------------------------------
cors_origins = []

# 1) the web app that serves /parent-approve
if settings.APP_WEB_URL:
    domain = settings.APP_WEB_URL
    if not domain.startswith("http"):
        domain = f"https://{domain}"
    cors_origins.append(domain.rstrip("/"))

# 2) public Ollie domains
cors_origins.extend([d.rstrip("/") for d in settings.OLLIE_DOMAINS])

# 3) remove duplicates
settings.BACKEND_CORS_ORIGINS = sorted(list(set(cors_origins)))
