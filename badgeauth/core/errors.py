from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from badgeauth.core.redaction import redact


class Severity(str, Enum):
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


@dataclass
class BadgeAuthError(Exception):
    code: str
    user_message: str
    severity: Severity = Severity.ERROR
    status_code: int = 500
    context: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        super().__init__(self.code)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "user_message": self.user_message,
            "severity": self.severity.value,
            "status_code": int(self.status_code),
            "context": redact(self.context or {}),
        }

    def wire_extras(self) -> Dict[str, Any]:
        """Extra camelCase fields merged into the HTTP error body."""
        return {}


class NotFoundError(BadgeAuthError):
    def __init__(self, user_message: str = "Badge number not found. Please contact HR if you believe this is an error.", **ctx: Any):
        super().__init__("not_found", user_message, severity=Severity.INFO, status_code=404, context=ctx)


class ConflictError(BadgeAuthError):
    def __init__(self, user_message: str = "Request conflicts with the current account state.", **ctx: Any):
        super().__init__("conflict", user_message, severity=Severity.INFO, status_code=409, context=ctx)


class UnauthorizedError(BadgeAuthError):
    def __init__(self, user_message: str = "Unauthorized.", *, attempts_left: Optional[int] = None, **ctx: Any):
        super().__init__("unauthorized", user_message, severity=Severity.WARN, status_code=401, context=ctx)
        self.attempts_left = attempts_left

    def wire_extras(self) -> Dict[str, Any]:
        if self.attempts_left is None:
            return {}
        return {"attemptsLeft": int(self.attempts_left)}


class LockedError(BadgeAuthError):
    def __init__(self, *, retry_after_seconds: float, **ctx: Any):
        seconds = max(0, math.ceil(float(retry_after_seconds)))
        minutes = max(1, math.ceil(seconds / 60))
        super().__init__(
            "locked",
            f"Account locked. Please try again in {minutes} minute(s).",
            severity=Severity.WARN,
            status_code=429,
            context=ctx,
        )
        self.retry_after_seconds = seconds
        self.retry_after_minutes = minutes

    def wire_extras(self) -> Dict[str, Any]:
        return {"retryAfterMinutes": int(self.retry_after_minutes)}


class InvalidCodeError(BadgeAuthError):
    def __init__(self, user_message: str = "Invalid verification code.", **ctx: Any):
        super().__init__("invalid_code", user_message, severity=Severity.WARN, status_code=400, context=ctx)


class ExpiredCodeError(BadgeAuthError):
    def __init__(self, user_message: str = "Verification code has expired. Please request a new one.", **ctx: Any):
        super().__init__("otp_expired", user_message, severity=Severity.INFO, status_code=400, context=ctx)


class ValidationError(BadgeAuthError):
    def __init__(self, user_message: str = "Invalid request.", **ctx: Any):
        super().__init__("validation_error", user_message, severity=Severity.WARN, status_code=400, context=ctx)


class NoSupervisorError(BadgeAuthError):
    def __init__(self, user_message: str = "No supervisor email found. Please contact HR for assistance.", **ctx: Any):
        super().__init__("no_supervisor", user_message, severity=Severity.WARN, status_code=422, context=ctx)


class UpstreamError(BadgeAuthError):
    def __init__(self, user_message: str = "An upstream service is unavailable. Please try again.", **ctx: Any):
        super().__init__("upstream_error", user_message, severity=Severity.ERROR, status_code=502, context=ctx)


class ConfigError(BadgeAuthError):
    def __init__(self, user_message: str = "Configuration error.", **ctx: Any):
        super().__init__("config_error", user_message, severity=Severity.CRITICAL, status_code=500, context=ctx)
