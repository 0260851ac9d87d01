from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from badgeauth.core.credentials import CredentialStore
from badgeauth.core.errors import ConflictError, NoSupervisorError, ValidationError
from badgeauth.core.otp import OtpIssuer
from badgeauth.core.pins import PinLifecycleManager
from badgeauth.core.session_broker import SessionBroker
from badgeauth.core.store import Employee


@dataclass(frozen=True)
class ActionRequest:
    action: str
    badge_number: str
    pin: Optional[str] = None
    new_pin: Optional[str] = None
    otp: Optional[str] = None


class BadgeAuthRouter:
    """
    Dispatches one badge-auth action. Handlers return snake_case result dicts;
    failures propagate as BadgeAuthError subclasses.
    """

    def __init__(
        self,
        *,
        credentials: CredentialStore,
        pins: PinLifecycleManager,
        otp: OtpIssuer,
        broker: SessionBroker,
        logger: Any = None,
    ):
        self.credentials = credentials
        self.pins = pins
        self.otp = otp
        self.broker = broker
        self.logger = logger
        self._handlers: Dict[str, Callable[[ActionRequest], Dict[str, Any]]] = {
            "lookup": self._lookup,
            "quick-signup": self._quick_signup,
            "change-pin": self._change_pin,
            "signup-request": self._signup_request,
            "signup-verify": self._signup_verify,
            "login": self._login,
            "reset-request": self._reset_request,
            "reset-verify": self._reset_verify,
        }

    def dispatch(self, req: ActionRequest) -> Dict[str, Any]:
        handler = self._handlers.get(req.action)
        if handler is None:
            raise ValidationError("Invalid action.", action=req.action)
        if not str(req.badge_number or "").strip():
            raise ValidationError("Badge number is required.", action=req.action)
        if self.logger:
            self.logger.info("badge-auth action=%s badge=%s", req.action, req.badge_number)
        return handler(req)

    @staticmethod
    def _require(value: Optional[str], what: str) -> str:
        if value is None or str(value) == "":
            raise ValidationError(f"{what} is required.")
        return str(value)

    def _session_payload(self, emp: Employee) -> Dict[str, Any]:
        handle = self.broker.issue_session_handle(str(emp.identity_id), badge_number=emp.badge_number)
        return {"magic_link": handle.action_link, "exchange_token": handle.token, "identity_id": emp.identity_id}

    # ---- handlers ----
    def _lookup(self, req: ActionRequest) -> Dict[str, Any]:
        emp = self.credentials.lookup(req.badge_number)
        try:
            contact: Optional[str] = self.credentials.resolve_supervisor_contact(emp)
        except NoSupervisorError:
            contact = None
        return {
            "exists": True,
            "has_account": self.credentials.has_account(emp),
            "employee_name": emp.full_name,
            "masked_supervisor_contact": contact,
            "requires_pin_change": bool(emp.pin_is_default),
        }

    def _quick_signup(self, req: ActionRequest) -> Dict[str, Any]:
        emp = self.pins.quick_signup(req.badge_number, self._require(req.pin, "PIN"))
        return {
            "success": True,
            **self._session_payload(emp),
            "requires_pin_change": True,
            "employee_name": emp.full_name,
        }

    def _change_pin(self, req: ActionRequest) -> Dict[str, Any]:
        self.pins.change_pin(req.badge_number, self._require(req.pin, "Current PIN"), self._require(req.new_pin, "New PIN"))
        return {"success": True, "message": "PIN updated successfully!"}

    def _signup_request(self, req: ActionRequest) -> Dict[str, Any]:
        emp = self.credentials.lookup(req.badge_number)
        if emp.has_account:
            raise ConflictError("Account already exists. Please use login instead.", badge_number=emp.badge_number)
        masked = self.otp.issue(emp, purpose="signup")
        return {
            "success": True,
            "masked_supervisor_contact": masked,
            "message": f"Verification code sent to your supervisor at {masked}",
        }

    def _signup_verify(self, req: ActionRequest) -> Dict[str, Any]:
        emp = self.pins.otp_gated_set_pin(req.badge_number, self._require(req.otp, "Verification code"), self._require(req.pin, "PIN"), flow="signup-verify")
        return {
            "success": True,
            **self._session_payload(emp),
            "requires_pin_change": bool(emp.pin_is_default),
            "employee_name": emp.full_name,
        }

    def _login(self, req: ActionRequest) -> Dict[str, Any]:
        result = self.pins.verify_login(req.badge_number, self._require(req.pin, "PIN"))
        return {
            "success": True,
            **self._session_payload(result.employee),
            "requires_pin_change": result.requires_pin_change,
            "employee_name": result.employee.full_name,
        }

    def _reset_request(self, req: ActionRequest) -> Dict[str, Any]:
        emp = self.credentials.lookup(req.badge_number)
        if not emp.has_account:
            raise ConflictError("No account found. Please sign up first.", badge_number=emp.badge_number)
        masked = self.otp.issue(emp, purpose="reset")
        return {
            "success": True,
            "masked_supervisor_contact": masked,
            "message": f"Verification code sent to your supervisor at {masked}",
        }

    def _reset_verify(self, req: ActionRequest) -> Dict[str, Any]:
        self.pins.otp_gated_set_pin(req.badge_number, self._require(req.otp, "Verification code"), self._require(req.pin, "New PIN"), flow="reset-verify")
        return {"success": True, "message": "PIN updated successfully. Please log in with your new PIN."}
