from __future__ import annotations

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, RootModel
from pydantic.alias_generators import to_camel


class _Wire(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class _BadgeRequest(_Wire):
    badge_number: str = Field(min_length=1, max_length=32)


class LookupRequest(_BadgeRequest):
    action: Literal["lookup"]


class QuickSignupRequest(_BadgeRequest):
    action: Literal["quick-signup"]
    pin: str = Field(min_length=1, max_length=64)


class ChangePinRequest(_BadgeRequest):
    action: Literal["change-pin"]
    pin: str = Field(min_length=1, max_length=64)
    new_pin: str = Field(min_length=1, max_length=64)


class SignupRequestRequest(_BadgeRequest):
    action: Literal["signup-request"]


class SignupVerifyRequest(_BadgeRequest):
    action: Literal["signup-verify"]
    otp: str = Field(min_length=1, max_length=16)
    pin: str = Field(min_length=1, max_length=64)


class LoginRequest(_BadgeRequest):
    action: Literal["login"]
    pin: str = Field(min_length=1, max_length=64)


class ResetRequestRequest(_BadgeRequest):
    action: Literal["reset-request"]


class ResetVerifyRequest(_BadgeRequest):
    action: Literal["reset-verify"]
    otp: str = Field(min_length=1, max_length=16)
    pin: str = Field(min_length=1, max_length=64)


ActionPayload = Annotated[
    Union[
        LookupRequest,
        QuickSignupRequest,
        ChangePinRequest,
        SignupRequestRequest,
        SignupVerifyRequest,
        LoginRequest,
        ResetRequestRequest,
        ResetVerifyRequest,
    ],
    Field(discriminator="action"),
]


class BadgeAuthRequest(RootModel[ActionPayload]):
    pass


class BadgeAuthResponse(_Wire):
    success: Optional[bool] = None
    message: Optional[str] = None
    exists: Optional[bool] = None
    has_account: Optional[bool] = None
    employee_name: Optional[str] = None
    masked_supervisor_contact: Optional[str] = None
    requires_pin_change: Optional[bool] = None
    magic_link: Optional[str] = None
    exchange_token: Optional[str] = None
    identity_id: Optional[str] = None
