from __future__ import annotations

import pytest

from badgeauth.core.errors import UpstreamError
from badgeauth.core.identity_provider import IdentityAccount, IdentityAlreadyExists
from badgeauth.core.session_broker import SessionBroker, synthetic_identity_key

from .helpers.fakes import FakeIdentityProvider
from .helpers.harness import SYNTHETIC_DOMAIN


def test_synthetic_key_is_deterministic():
    assert synthetic_identity_key(" B100 ", "Internal.Example.com") == "badge_B100@internal.example.com"
    assert synthetic_identity_key("B100", SYNTHETIC_DOMAIN) == synthetic_identity_key("B100", SYNTHETIC_DOMAIN)
    assert synthetic_identity_key("B100", SYNTHETIC_DOMAIN) != synthetic_identity_key("B101", SYNTHETIC_DOMAIN)


def test_ensure_identity_is_idempotent(idp):
    broker = SessionBroker(idp, synthetic_domain=SYNTHETIC_DOMAIN)
    first = broker.ensure_identity("B100", full_name="Jo Worker")
    second = broker.ensure_identity("B100", full_name="Jo Worker")
    assert first == second
    assert idp.create_calls == 1
    acc = idp.accounts["badge_B100@internal.example.com"]
    assert acc.metadata == {"badge_number": "B100", "full_name": "Jo Worker"}


def test_create_race_falls_back_to_lookup():
    class RacingProvider(FakeIdentityProvider):
        def __init__(self):
            super().__init__()
            self.lookups = 0

        def find_account(self, key):
            self.lookups += 1
            if self.lookups == 1:
                return None
            return self.accounts.get(key)

        def create_account(self, key, metadata):
            self.accounts[key] = IdentityAccount(id="winner", key=key)
            raise IdentityAlreadyExists("exists", status_code=422)

    broker = SessionBroker(RacingProvider(), synthetic_domain=SYNTHETIC_DOMAIN)
    assert broker.ensure_identity("B100") == "winner"


def test_provider_failures_become_upstream(idp):
    broker = SessionBroker(idp, synthetic_domain=SYNTHETIC_DOMAIN)
    idp.fail_create = True
    with pytest.raises(UpstreamError) as ei:
        broker.ensure_identity("B100")
    assert ei.value.status_code == 502

    idp.fail_create = False
    identity_id = broker.ensure_identity("B100")
    idp.fail_exchange = True
    with pytest.raises(UpstreamError):
        broker.issue_session_handle(identity_id)


def test_issue_session_handle(idp, audit, audit_path):
    broker = SessionBroker(idp, synthetic_domain=SYNTHETIC_DOMAIN, audit=audit)
    identity_id = broker.ensure_identity("B100")
    handle = broker.issue_session_handle(identity_id, badge_number="B100")
    assert handle.action_link.startswith("https://idp.test/verify")
    assert idp.exchange_calls == ["badge_B100@internal.example.com"]
    with open(audit_path, "r", encoding="utf-8") as f:
        blob = f.read()
    assert "session.issued" in blob
    assert handle.action_link not in blob


def test_unknown_identity_is_upstream(idp):
    broker = SessionBroker(idp, synthetic_domain=SYNTHETIC_DOMAIN)
    with pytest.raises(UpstreamError):
        broker.issue_session_handle("missing")
