from __future__ import annotations

import pytest

from badgeauth.core.credentials import mask_email
from badgeauth.core.errors import NoSupervisorError, NotFoundError


def test_lookup_unknown_badge_is_not_found(harness):
    with pytest.raises(NotFoundError) as ei:
        harness.credentials.lookup("B999")
    assert ei.value.status_code == 404


def test_lookup_strips_whitespace(harness):
    emp = harness.credentials.lookup("  B100 ")
    assert emp.full_name == "Jo Worker"
    assert harness.credentials.has_account(emp) is False


def test_mask_email():
    assert mask_email("john.doe@corp.com") == "j***@corp.com"
    assert mask_email("not-an-email") == "***"


def test_supervisor_contact_is_masked(harness):
    emp = harness.credentials.lookup("B100")
    assert harness.credentials.resolve_supervisor_contact(emp) == "s***@example.com"


@pytest.mark.parametrize("badge", ["B200", "B300"])
def test_no_supervisor_or_no_supervisor_email(harness, badge):
    emp = harness.credentials.lookup(badge)
    with pytest.raises(NoSupervisorError):
        harness.credentials.resolve_supervisor_contact(emp)
