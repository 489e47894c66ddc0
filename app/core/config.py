import json
from typing import List, Union
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


NOTIFICATION_PROVIDERS = ("seller_inbox", "log_only")


class Settings(BaseSettings):
    app_name: str = "SellerFlow Automation"
    env: str = "dev"
    secret_key: str
    access_token_expire_minutes: int = 60

    # DATABASE
    database_url: str
    db_pool_size: int = Field(default=10, ge=1, le=100)
    db_max_overflow: int = Field(default=20, ge=0, le=200)
    db_pool_timeout_seconds: int = Field(default=30, ge=1, le=300)
    db_pool_recycle_seconds: int = Field(default=1800, ge=30, le=86_400)

    # NOTIFICATIONS
    notification_provider_default: str = "seller_inbox"

    # AUTOMATION SCANS
    sla_warning_window_hours: int = Field(default=24, ge=1, le=720)
    low_stock_threshold: int = Field(default=10, ge=0)
    unread_rfq_hours: int = Field(default=4, ge=1, le=720)
    slow_moving_days: int = Field(default=30, ge=1, le=3650)
    stale_dispute_days: int = Field(default=7, ge=1, le=3650)
    execution_retention_days: int = Field(default=90, ge=1, le=3650)
    automation_batch_size: int = Field(default=100, ge=1, le=10_000)
    api_timeout_hint_ms: int = Field(default=300000, ge=1000, le=1_800_000)

    # CORS
    cors_origins: List[str] = Field(default_factory=lambda: ["http://localhost:3000"])
    cors_origin_regex: str | None = None

    @field_validator("cors_origins", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> List[str]:
        if v is None:
            return []
        if isinstance(v, str):
            if not v.strip():
                return []
            if v.startswith("["):
                parsed = json.loads(v)
                if not isinstance(parsed, list):
                    raise ValueError("CORS_ORIGINS JSON value must be a list")
                return [str(i).strip() for i in parsed if str(i).strip()]
            return [i.strip() for i in v.split(",") if i.strip()]
        if isinstance(v, list):
            return [str(i).strip() for i in v if str(i).strip()]
        raise ValueError(v)

    @field_validator("notification_provider_default", mode="before")
    @classmethod
    def normalize_provider_name(cls, value: str | None) -> str:
        cleaned = str(value or "").strip().lower() or "seller_inbox"
        if cleaned not in NOTIFICATION_PROVIDERS:
            raise ValueError(f"NOTIFICATION_PROVIDER_DEFAULT must be one of: {', '.join(NOTIFICATION_PROVIDERS)}")
        return cleaned

    @model_validator(mode="after")
    def validate_production_safety(self) -> "Settings":
        env_value = self.env.lower().strip()
        if env_value not in {"prod", "production"}:
            return self

        weak_secrets = {
            "",
            "change_me",
            "change_me_please_to_a_long_random_string",
            "dev-secret-key-change-before-prod",
        }
        if self.secret_key.strip() in weak_secrets or len(self.secret_key.strip()) < 32:
            raise ValueError("SECRET_KEY must be a strong random value in production")

        if "*" in self.cors_origins:
            raise ValueError("CORS_ORIGINS cannot contain '*' in production")
        if self.cors_origin_regex:
            raise ValueError("CORS_ORIGIN_REGEX cannot be set in production")

        return self

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        enable_decoding=False,
    )


settings = Settings()
