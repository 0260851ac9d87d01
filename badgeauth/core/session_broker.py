from __future__ import annotations

from typing import Any, Dict, Optional

from badgeauth.core.audit import NullAuditLogger
from badgeauth.core.credentials import normalize_badge
from badgeauth.core.errors import UpstreamError
from badgeauth.core.identity_provider import (
    ExchangeToken,
    IdentityAlreadyExists,
    IdentityProvider,
    IdentityProviderError,
)


def synthetic_identity_key(badge_number: str, domain: str) -> str:
    """badge_1234@internal.example.com; pure, so lookups and creates are idempotent."""
    return f"badge_{normalize_badge(badge_number)}@{domain.strip().lower()}"


class SessionBroker:
    """Translates a verified badge holder into a redeemable identity-provider credential."""

    def __init__(self, provider: IdentityProvider, *, synthetic_domain: str, audit: Any = None, logger: Any = None):
        self.provider = provider
        self.synthetic_domain = synthetic_domain
        self.audit = audit or NullAuditLogger()
        self.logger = logger

    def identity_key(self, badge_number: str) -> str:
        return synthetic_identity_key(badge_number, self.synthetic_domain)

    def ensure_identity(self, badge_number: str, *, full_name: str = "") -> str:
        key = self.identity_key(badge_number)
        metadata: Dict[str, Any] = {"badge_number": normalize_badge(badge_number), "full_name": full_name}
        try:
            existing = self.provider.find_account(key)
            if existing is not None:
                return existing.id
            try:
                created = self.provider.create_account(key, metadata)
            except IdentityAlreadyExists:
                again = self.provider.find_account(key)
                if again is None:
                    raise
                return again.id
        except IdentityProviderError as e:
            self._upstream_failed("create", badge_number, e)
            raise UpstreamError("Failed to create account. Please try again.", badge_number=badge_number, stage="create") from e
        if self.logger:
            self.logger.info("Identity created for badge=%s", badge_number)
        return created.id

    def issue_session_handle(self, identity_id: str, *, badge_number: Optional[str] = None) -> ExchangeToken:
        try:
            account = self.provider.get_account(identity_id)
            if account is None:
                raise UpstreamError("User account not found.", badge_number=badge_number, stage="resolve")
            handle = self.provider.issue_exchange_token(account.key)
        except IdentityProviderError as e:
            self._upstream_failed("exchange", badge_number, e)
            raise UpstreamError("Failed to create session. Please try again.", badge_number=badge_number, stage="exchange") from e
        self.audit.log(event="session.issued", badge_number=badge_number, outcome="ok", details={"identity_id": identity_id})
        return handle

    def _upstream_failed(self, stage: str, badge_number: Optional[str], exc: BaseException) -> None:
        if self.logger:
            self.logger.error("Identity provider %s failed for badge=%s: %s", stage, badge_number, exc)
