from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Employee(BaseModel):
    """
    One badge holder. Directory fields come from the HR import; this service
    only ever writes the auth columns (identity_id and everything below it).
    """

    model_config = ConfigDict(extra="forbid")

    employee_id: str
    badge_number: str
    first_name: str = ""
    last_name: str = ""
    email: Optional[str] = None
    supervisor_id: Optional[str] = None

    identity_id: Optional[str] = None
    pin_hash: Optional[str] = None
    pin_is_default: bool = False
    pin_attempts: int = Field(default=0, ge=0)
    pin_locked_until: Optional[float] = None
    otp_hash: Optional[str] = None
    otp_expires_at: Optional[float] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def has_account(self) -> bool:
        return self.identity_id is not None and self.pin_hash is not None

    def is_locked(self, now: float) -> bool:
        return self.pin_locked_until is not None and now < float(self.pin_locked_until)


class EmployeeRecord(BaseModel):
    """Directory row as delivered by the HR import."""

    model_config = ConfigDict(extra="ignore")

    employee_id: str = Field(min_length=1, max_length=64)
    badge_number: str = Field(min_length=1, max_length=32)
    first_name: str = ""
    last_name: str = ""
    email: Optional[str] = None
    supervisor_id: Optional[str] = None


@dataclass(frozen=True)
class PinFailure:
    attempts: int
    locked_until: Optional[float]
    counted: bool = True
