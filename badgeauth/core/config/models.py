from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class AppFileConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    config_version: int = Field(default=1, ge=1)
    product_name: str = "BuntingGPT"
    db_path: str = "data/badgeauth.db"
    log_dir: str = "logs"
    include_tracebacks: bool = False


class AuthConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    otp_ttl_seconds: int = Field(default=600, ge=30, le=24 * 3600)
    lockout_threshold: int = Field(default=5, ge=1, le=100)
    lockout_minutes: int = Field(default=15, ge=1, le=24 * 60)
    pin_min_length: int = Field(default=4, ge=1, le=32)
    pin_max_length: int = Field(default=8, ge=1, le=32)

    @model_validator(mode="after")
    def _check_pin_range(self) -> "AuthConfig":
        if self.pin_min_length > self.pin_max_length:
            raise ValueError("pin_min_length must not exceed pin_max_length")
        return self


class IdentityConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    base_url: str = "http://127.0.0.1:54321/auth/v1"
    synthetic_domain: str = "internal.buntingmagnetics.com"
    timeout_seconds: float = Field(default=10.0, gt=0, le=120)

    @field_validator("synthetic_domain")
    @classmethod
    def _domain_plain(cls, v: str) -> str:
        v = str(v or "").strip().lower()
        if not v or "@" in v or " " in v:
            raise ValueError("synthetic_domain must be a bare domain name")
        return v


class NotificationsConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    enabled: bool = True
    api_url: str = "https://api.resend.com/emails"
    from_address: str = "BuntingGPT <noreply@buntinggpt.com>"
    timeout_seconds: float = Field(default=10.0, gt=0, le=120)


class WebConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    bind_host: str = "127.0.0.1"
    port: int = Field(default=8000, ge=1, le=65535)
    allowed_origins: List[str] = Field(default_factory=list)
    max_request_bytes: int = Field(default=16384, ge=256)
    per_ip_per_minute: int = Field(default=60, ge=1)
    onboarding_base_url: Optional[str] = None

    @field_validator("allowed_origins")
    @classmethod
    def _no_wildcard(cls, v: List[str]) -> List[str]:
        if any(o.strip() == "*" for o in v):
            raise ValueError("Wildcard CORS origins are not allowed.")
        return v


class AppConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    app: AppFileConfig
    auth: AuthConfig
    identity: IdentityConfig
    notifications: NotificationsConfig
    web: WebConfig
