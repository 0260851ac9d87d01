from __future__ import annotations

import os
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from badgeauth.core.audit import AuthAuditLogger
from badgeauth.core.config import AppConfig, ConfigManager, SecretUnavailable
from badgeauth.core.credentials import CredentialStore
from badgeauth.core.errors import ConfigError
from badgeauth.core.identity_provider import HttpIdentityProvider, IdentityProvider
from badgeauth.core.notifications import EmailNotificationGateway, NotificationGateway
from badgeauth.core.otp import OtpIssuer
from badgeauth.core.pins import PinLifecycleManager
from badgeauth.core.router import BadgeAuthRouter
from badgeauth.core.session_broker import SessionBroker
from badgeauth.core.store import EmployeeStore


@dataclass
class Service:
    config: AppConfig
    store: EmployeeStore
    router: BadgeAuthRouter
    audit: Any


def build_identity_provider(cfg: AppConfig, cfg_mgr: ConfigManager) -> IdentityProvider:
    try:
        key = cfg_mgr.get_secret("idp_service_key")
    except SecretUnavailable as e:
        raise ConfigError("Identity provider service key is not configured.") from e
    return HttpIdentityProvider(base_url=cfg.identity.base_url, service_key=key, timeout_seconds=cfg.identity.timeout_seconds)


def build_notification_gateway(cfg: AppConfig, cfg_mgr: ConfigManager, logger: Any = None) -> Optional[NotificationGateway]:
    if not cfg.notifications.enabled:
        return None
    key = cfg_mgr.get_optional_secret("mail_api_key")
    if not key:
        if logger:
            logger.warning("No mail API key configured; OTP codes will be written to the service log only.")
        return None
    n = cfg.notifications
    return EmailNotificationGateway(api_url=n.api_url, api_key=key, from_address=n.from_address, timeout_seconds=n.timeout_seconds)


def build_service(
    cfg_mgr: ConfigManager,
    *,
    logger: Any = None,
    identity_provider: Optional[IdentityProvider] = None,
    gateway: Optional[NotificationGateway] = None,
    audit: Any = None,
    now: Callable[[], float] = time.time,
) -> Service:
    cfg = cfg_mgr.get()
    store = EmployeeStore(db_path=cfg_mgr.resolve_path(cfg.app.db_path), logger=logger)
    audit = audit or AuthAuditLogger(path=os.path.join(cfg_mgr.resolve_path(cfg.app.log_dir), "auth_audit.jsonl"))
    provider = identity_provider or build_identity_provider(cfg, cfg_mgr)
    if gateway is None:
        gateway = build_notification_gateway(cfg, cfg_mgr, logger)

    credentials = CredentialStore(store)
    broker = SessionBroker(provider, synthetic_domain=cfg.identity.synthetic_domain, audit=audit, logger=logger)
    otp = OtpIssuer(
        store=store,
        credentials=credentials,
        gateway=gateway,
        audit=audit,
        logger=logger,
        ttl_seconds=cfg.auth.otp_ttl_seconds,
        product_name=cfg.app.product_name,
        now=now,
    )
    pins = PinLifecycleManager(
        store=store,
        credentials=credentials,
        otp=otp,
        broker=broker,
        default_pin=cfg_mgr.get_optional_secret("default_pin"),
        audit=audit,
        logger=logger,
        lockout_threshold=cfg.auth.lockout_threshold,
        lockout_minutes=cfg.auth.lockout_minutes,
        pin_min_length=cfg.auth.pin_min_length,
        pin_max_length=cfg.auth.pin_max_length,
        now=now,
    )
    router = BadgeAuthRouter(credentials=credentials, pins=pins, otp=otp, broker=broker, logger=logger)
    return Service(config=cfg, store=store, router=router, audit=audit)
