from __future__ import annotations

import logging
import time
from typing import Any, Callable, Optional

from badgeauth.core.audit import NullAuditLogger
from badgeauth.core.credentials import CredentialStore, mask_email
from badgeauth.core.errors import ExpiredCodeError, InvalidCodeError, NoSupervisorError
from badgeauth.core.hashing import digests_match, generate_otp, hash_secret
from badgeauth.core.notifications import NotificationError, NotificationGateway, Purpose, render_code_message
from badgeauth.core.store import Employee, EmployeeStore


class OtpIssuer:
    """
    Supervisor-delivered one-time codes.

    At most one code is outstanding per badge: issuing overwrites the stored
    hash/expiry pair, and a successful verify clears it (compare-and-clear).
    """

    def __init__(
        self,
        *,
        store: EmployeeStore,
        credentials: CredentialStore,
        gateway: Optional[NotificationGateway] = None,
        audit: Any = None,
        logger: Any = None,
        ttl_seconds: int = 600,
        product_name: str = "BuntingGPT",
        now: Callable[[], float] = time.time,
    ):
        self.store = store
        self.credentials = credentials
        self.gateway = gateway
        self.audit = audit or NullAuditLogger()
        self.logger = logger or logging.getLogger("badgeauth")
        self.ttl_seconds = int(ttl_seconds)
        self.product_name = product_name
        self.now = now

    def issue(self, employee: Employee, *, purpose: Purpose) -> str:
        """Store a fresh code and send it to the supervisor. Returns the masked address."""
        email = self.credentials.supervisor_email(employee)
        if email is None:
            raise NoSupervisorError(badge_number=employee.badge_number)
        masked = mask_email(email)

        code = generate_otp()
        expires_at = self.now() + self.ttl_seconds
        self.store.store_otp(employee.badge_number, otp_hash=hash_secret(code), expires_at=expires_at)
        self.audit.log(
            event="otp.issued",
            badge_number=employee.badge_number,
            outcome="ok",
            details={"purpose": purpose, "delivery_to": masked, "expires_at": expires_at},
        )

        message = render_code_message(
            purpose=purpose,
            to=email,
            product=self.product_name,
            employee_name=employee.full_name,
            badge_number=employee.badge_number,
            code=code,
            ttl_minutes=max(1, self.ttl_seconds // 60),
        )
        reason: Optional[str] = None
        if self.gateway is None:
            reason = "no_gateway"
        else:
            try:
                self.gateway.send(message)
            except NotificationError as e:
                reason = str(e)
        if reason is not None:
            # Degraded mode: the code goes to the service log only, never to the audit trail.
            self.logger.warning(
                "OTP delivery unavailable (%s); badge=%s supervisor=%s code=%s", reason, employee.badge_number, masked, code
            )
            self.audit.log(
                event="otp.delivery_degraded",
                badge_number=employee.badge_number,
                outcome="logged",
                severity="WARN",
                details={"purpose": purpose, "reason": reason},
            )
        return masked

    def check(self, employee: Employee, code: str) -> str:
        """
        Match the outstanding code without consuming it and return its stored
        hash for a later consume(). Raises InvalidCodeError or ExpiredCodeError.
        """
        badge = employee.badge_number
        current = self.store.get_by_badge(badge) or employee
        supplied = hash_secret(str(code or "").strip())

        if not current.otp_hash or not digests_match(supplied, current.otp_hash):
            self._rejected(badge, "mismatch")
            raise InvalidCodeError(badge_number=badge)
        if current.otp_expires_at is None or self.now() >= float(current.otp_expires_at):
            self._rejected(badge, "expired")
            raise ExpiredCodeError(badge_number=badge)
        return current.otp_hash

    def consume(self, badge_number: str, otp_hash: str) -> None:
        if not self.store.clear_otp_if_matches(badge_number, otp_hash=otp_hash):
            # Another request consumed or replaced it in between.
            self._rejected(badge_number, "consumed")
            raise InvalidCodeError(badge_number=badge_number)
        self.audit.log(event="otp.verified", badge_number=badge_number, outcome="ok")

    def verify(self, employee: Employee, code: str) -> None:
        """Check and consume the outstanding code in one go."""
        self.consume(employee.badge_number, self.check(employee, code))

    def _rejected(self, badge: str, reason: str) -> None:
        self.audit.log(event="otp.rejected", badge_number=badge, outcome="denied", severity="WARN", details={"reason": reason})
