from __future__ import annotations

import logging
import secrets
import time
from dataclasses import dataclass
from typing import Any, Callable, NoReturn, Optional

from badgeauth.core.audit import NullAuditLogger
from badgeauth.core.credentials import CredentialStore
from badgeauth.core.errors import ConflictError, LockedError, NotFoundError, UnauthorizedError, ValidationError
from badgeauth.core.hashing import digests_match, hash_secret
from badgeauth.core.otp import OtpIssuer
from badgeauth.core.session_broker import SessionBroker
from badgeauth.core.store import Employee, EmployeeStore


@dataclass(frozen=True)
class LoginResult:
    employee: Employee
    requires_pin_change: bool


class PinLifecycleManager:
    """
    Per-badge PIN state: Unregistered -> Registered(default) -> Registered(custom),
    with Locked reachable from either registered state after repeated failures.

    Failed checks on login and change-pin share one attempt counter; the
    increment and the lockout decision happen in a single store update.
    """

    def __init__(
        self,
        *,
        store: EmployeeStore,
        credentials: CredentialStore,
        otp: OtpIssuer,
        broker: SessionBroker,
        default_pin: Optional[str],
        audit: Any = None,
        logger: Any = None,
        lockout_threshold: int = 5,
        lockout_minutes: int = 15,
        pin_min_length: int = 4,
        pin_max_length: int = 8,
        now: Callable[[], float] = time.time,
    ):
        self.store = store
        self.credentials = credentials
        self.otp = otp
        self.broker = broker
        self.default_pin = default_pin or None
        self.audit = audit or NullAuditLogger()
        self.logger = logger or logging.getLogger("badgeauth")
        self.lockout_threshold = int(lockout_threshold)
        self.lockout_seconds = int(lockout_minutes) * 60
        self.pin_min_length = int(pin_min_length)
        self.pin_max_length = int(pin_max_length)
        self.now = now
        if self.default_pin is None:
            self.logger.warning("No default PIN configured; quick-signup will reject every request.")

    # ---- validation ----
    def validate_pin(self, pin: str) -> str:
        pin = str(pin or "")
        if not (self.pin_min_length <= len(pin) <= self.pin_max_length) or not (pin.isascii() and pin.isdigit()):
            raise ValidationError(f"PIN must be {self.pin_min_length}-{self.pin_max_length} digits.")
        return pin

    def validate_new_pin(self, pin: str) -> str:
        """A replacement PIN: well-formed and never the bootstrap default."""
        pin = self.validate_pin(pin)
        if self._is_default(pin):
            raise ValidationError("New PIN must be different from the default PIN.")
        return pin

    def _is_default(self, pin: str) -> bool:
        return self.default_pin is not None and secrets.compare_digest(str(pin), self.default_pin)

    # ---- flows ----
    def quick_signup(self, badge_number: str, supplied_pin: str) -> Employee:
        """First sign-up from the QR code: the supplied PIN must be the default PIN."""
        if not self._is_default(str(supplied_pin or "")):
            self.audit.log(event="pin.failure", badge_number=badge_number, outcome="denied", severity="WARN", details={"flow": "quick-signup"})
            raise UnauthorizedError("Invalid signup code. Please scan the QR code again.", badge_number=badge_number)

        emp = self.credentials.lookup(badge_number)
        if emp.has_account:
            raise ConflictError("Account already exists. Please use login instead.", badge_number=emp.badge_number)

        identity_id = self.broker.ensure_identity(emp.badge_number, full_name=emp.full_name)
        linked = self.store.link_account(
            emp.badge_number,
            identity_id=identity_id,
            pin_hash=hash_secret(self.default_pin),
            pin_is_default=True,
        )
        if not linked:
            raise ConflictError("Account already exists. Please use login instead.", badge_number=emp.badge_number)
        self.audit.log(event="account.created", badge_number=emp.badge_number, outcome="ok", details={"flow": "quick-signup", "identity_id": identity_id})
        return self._reload(emp.badge_number)

    def verify_login(self, badge_number: str, supplied_pin: str) -> LoginResult:
        emp = self.credentials.lookup(badge_number)
        if not emp.has_account:
            raise ConflictError("No account found. Please sign up first.", badge_number=emp.badge_number)
        self._ensure_not_locked(emp, flow="login")
        if not digests_match(hash_secret(str(supplied_pin or "")), emp.pin_hash):
            self._record_failure(emp, flow="login", message="Invalid PIN.")
        if not self.store.reset_pin_attempts(emp.badge_number, unlocked_at=self.now()):
            self._ensure_not_locked(self._reload(emp.badge_number), flow="login")
        self.audit.log(event="pin.success", badge_number=emp.badge_number, outcome="ok", details={"flow": "login"})
        return LoginResult(employee=emp, requires_pin_change=bool(emp.pin_is_default))

    def change_pin(self, badge_number: str, current_pin: str, new_pin: str) -> Employee:
        new_pin = self.validate_new_pin(new_pin)
        emp = self.credentials.lookup(badge_number)
        if not emp.has_account:
            raise ConflictError("No account found. Please sign up first.", badge_number=emp.badge_number)
        self._ensure_not_locked(emp, flow="change-pin")
        if not digests_match(hash_secret(str(current_pin or "")), emp.pin_hash):
            self._record_failure(emp, flow="change-pin", message="Current PIN is incorrect.")
        stored = self.store.set_pin(
            emp.badge_number, pin_hash=hash_secret(new_pin), pin_is_default=False, reset_lockout=True, unlocked_at=self.now()
        )
        if not stored:
            self._ensure_not_locked(self._reload(emp.badge_number), flow="change-pin")
        self.audit.log(event="pin.changed", badge_number=emp.badge_number, outcome="ok", details={"flow": "change-pin"})
        return self._reload(emp.badge_number)

    def otp_gated_set_pin(self, badge_number: str, code: str, new_pin: str, *, flow: str) -> Employee:
        """
        Shared by signup-verify and reset-verify. Creates the identity when the
        badge has none, then stores the PIN and clears any standing lockout.
        The code is consumed only once the identity exists, so an Identity
        Provider failure leaves it valid for a retry.
        """
        new_pin = self.validate_new_pin(new_pin)
        emp = self.credentials.lookup(badge_number)
        otp_hash = self.otp.check(emp, code)

        created = emp.identity_id is None
        identity_id = emp.identity_id or self.broker.ensure_identity(emp.badge_number, full_name=emp.full_name)
        self.otp.consume(emp.badge_number, otp_hash)
        self.store.set_pin(
            emp.badge_number,
            pin_hash=hash_secret(new_pin),
            pin_is_default=False,
            identity_id=identity_id,
            reset_lockout=True,
        )
        if created:
            self.audit.log(event="account.created", badge_number=emp.badge_number, outcome="ok", details={"flow": flow, "identity_id": identity_id})
        self.audit.log(event="pin.reset", badge_number=emp.badge_number, outcome="ok", details={"flow": flow})
        return self._reload(emp.badge_number)

    # ---- lockout ----
    def _ensure_not_locked(self, emp: Employee, *, flow: str) -> None:
        now = self.now()
        if emp.is_locked(now):
            remaining = float(emp.pin_locked_until) - now
            self.audit.log(
                event="pin.locked_reject",
                badge_number=emp.badge_number,
                outcome="denied",
                severity="WARN",
                details={"flow": flow, "retry_after_seconds": round(remaining, 1)},
            )
            raise LockedError(retry_after_seconds=remaining, badge_number=emp.badge_number)

    def _record_failure(self, emp: Employee, *, flow: str, message: str) -> NoReturn:
        now = self.now()
        failure = self.store.record_pin_failure(
            emp.badge_number, threshold=self.lockout_threshold, lockout_seconds=self.lockout_seconds, now=now
        )
        if failure is None:
            raise NotFoundError(badge_number=emp.badge_number)
        if not failure.counted:
            self._ensure_not_locked(self._reload(emp.badge_number), flow=flow)
        attempts_left = max(0, self.lockout_threshold - failure.attempts)
        if failure.locked_until is not None and float(failure.locked_until) > now:
            self.audit.log(
                event="pin.lockout",
                badge_number=emp.badge_number,
                outcome="locked",
                severity="WARN",
                details={"flow": flow, "attempts": failure.attempts, "locked_until": failure.locked_until},
            )
            minutes = self.lockout_seconds // 60
            raise UnauthorizedError(
                f"Too many failed attempts. Account locked for {minutes} minutes.",
                attempts_left=0,
                badge_number=emp.badge_number,
            )
        self.audit.log(
            event="pin.failure",
            badge_number=emp.badge_number,
            outcome="denied",
            severity="WARN",
            details={"flow": flow, "attempts": failure.attempts},
        )
        raise UnauthorizedError(f"{message} {attempts_left} attempt(s) remaining.", attempts_left=attempts_left, badge_number=emp.badge_number)

    def _reload(self, badge_number: str) -> Employee:
        emp = self.store.get_by_badge(badge_number)
        if emp is None:
            raise NotFoundError(badge_number=badge_number)
        return emp
