from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from badgeauth.core.config.models import WebConfig
from badgeauth.core.error_reporter import ErrorReporter
from badgeauth.web.api import create_app

from .helpers.harness import DEFAULT_PIN
from .helpers.log_assertions import assert_not_in_logs, read_jsonl

URL = "/v1/badge-auth"


@pytest.fixture
def errors_path(tmp_path):
    return str(tmp_path / "logs" / "errors.jsonl")


def _client(harness, audit, errors_path, **web) -> TestClient:
    web_cfg = WebConfig(**{"per_ip_per_minute": 1000, **web})
    app = create_app(router=harness.router, web_cfg=web_cfg, audit_logger=audit, error_reporter=ErrorReporter(path=errors_path))
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def client(harness, audit, errors_path):
    return _client(harness, audit, errors_path)


def _post(client, **body):
    return client.post(URL, json=body)


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_lookup(client):
    r = _post(client, action="lookup", badgeNumber="B100")
    assert r.status_code == 200
    assert r.json() == {
        "exists": True,
        "hasAccount": False,
        "employeeName": "Jo Worker",
        "maskedSupervisorContact": "s***@example.com",
        "requiresPinChange": False,
    }


def test_lookup_without_supervisor_omits_contact(client):
    body = _post(client, action="lookup", badgeNumber="B200").json()
    assert "maskedSupervisorContact" not in body
    assert body["exists"] is True


def test_lookup_unknown_badge(client):
    r = _post(client, action="lookup", badgeNumber="B999")
    assert r.status_code == 404
    assert r.json()["code"] == "not_found"


def test_quick_signup_then_conflict(client):
    r = _post(client, action="quick-signup", badgeNumber="B100", pin=DEFAULT_PIN)
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["requiresPinChange"] is True
    assert body["magicLink"].startswith("https://idp.test/verify")
    assert body["employeeName"] == "Jo Worker"

    r = _post(client, action="quick-signup", badgeNumber="B100", pin=DEFAULT_PIN)
    assert r.status_code == 409
    assert r.json()["code"] == "conflict"


def test_quick_signup_wrong_default(client):
    r = _post(client, action="quick-signup", badgeNumber="B100", pin="1111")
    assert r.status_code == 401
    assert r.json()["code"] == "unauthorized"


def test_login_lockout_over_http(client):
    _post(client, action="quick-signup", badgeNumber="B100", pin=DEFAULT_PIN)
    r = _post(client, action="login", badgeNumber="B100", pin="0000")
    assert r.status_code == 401
    assert r.json()["attemptsLeft"] == 4
    for _ in range(4):
        r = _post(client, action="login", badgeNumber="B100", pin="0000")
    assert r.json()["attemptsLeft"] == 0

    r = _post(client, action="login", badgeNumber="B100", pin=DEFAULT_PIN)
    assert r.status_code == 429
    body = r.json()
    assert body["code"] == "locked"
    assert body["retryAfterMinutes"] == 15
    assert body["detail"] == "Account locked. Please try again in 15 minute(s)."
    assert int(r.headers["Retry-After"]) == 900


def test_login_success_and_rotation(client):
    _post(client, action="quick-signup", badgeNumber="B100", pin=DEFAULT_PIN)
    r = _post(client, action="login", badgeNumber="B100", pin=DEFAULT_PIN)
    assert r.status_code == 200
    assert r.json()["requiresPinChange"] is True

    r = _post(client, action="change-pin", badgeNumber="B100", pin=DEFAULT_PIN, newPin="99119911")
    assert r.status_code == 200
    assert r.json() == {"success": True, "message": "PIN updated successfully!"}

    assert _post(client, action="login", badgeNumber="B100", pin=DEFAULT_PIN).status_code == 401
    r = _post(client, action="login", badgeNumber="B100", pin="99119911")
    assert r.status_code == 200
    assert r.json()["requiresPinChange"] is False


def test_login_without_account(client):
    r = _post(client, action="login", badgeNumber="B100", pin="1234")
    assert r.status_code == 409


def test_change_pin_short_new_pin(client):
    _post(client, action="quick-signup", badgeNumber="B100", pin=DEFAULT_PIN)
    r = _post(client, action="change-pin", badgeNumber="B100", pin=DEFAULT_PIN, newPin="12")
    assert r.status_code == 400
    assert r.json()["code"] == "validation_error"


def test_signup_request_and_verify(client, gateway):
    r = _post(client, action="signup-request", badgeNumber="B100")
    assert r.status_code == 200
    assert r.json()["maskedSupervisorContact"] == "s***@example.com"
    code = gateway.last_code()

    r = _post(client, action="signup-verify", badgeNumber="B100", otp=code, pin="4321")
    assert r.status_code == 200
    assert r.json()["magicLink"]
    assert r.json()["identityId"]

    r = _post(client, action="signup-verify", badgeNumber="B100", otp=code, pin="4321")
    assert r.status_code == 400
    assert r.json()["code"] == "invalid_code"

    assert _post(client, action="signup-request", badgeNumber="B100").status_code == 409


def test_signup_request_without_supervisor(client):
    r = _post(client, action="signup-request", badgeNumber="B200")
    assert r.status_code == 422
    assert r.json()["code"] == "no_supervisor"


def test_reset_flow(client, gateway, clock):
    assert _post(client, action="reset-request", badgeNumber="B100").status_code == 409
    _post(client, action="quick-signup", badgeNumber="B100", pin=DEFAULT_PIN)

    assert _post(client, action="reset-request", badgeNumber="B100").status_code == 200
    clock.advance(600)
    r = _post(client, action="reset-verify", badgeNumber="B100", otp=gateway.last_code(), pin="5678")
    assert r.status_code == 400
    assert r.json()["code"] == "otp_expired"

    _post(client, action="reset-request", badgeNumber="B100")
    r = _post(client, action="reset-verify", badgeNumber="B100", otp=gateway.last_code(), pin="5678")
    assert r.status_code == 200
    assert _post(client, action="login", badgeNumber="B100", pin="5678").status_code == 200


def test_upstream_failure_is_502(client, idp):
    _post(client, action="quick-signup", badgeNumber="B100", pin=DEFAULT_PIN)
    idp.fail_exchange = True
    r = _post(client, action="login", badgeNumber="B100", pin=DEFAULT_PIN)
    assert r.status_code == 502
    assert r.json()["code"] == "upstream_error"


@pytest.mark.parametrize(
    "body",
    [
        {"action": "dance", "badgeNumber": "B100"},
        {"badgeNumber": "B100"},
        {"action": "login", "badgeNumber": "B100"},
        {"action": "lookup", "badgeNumber": ""},
    ],
)
def test_malformed_requests_are_400(client, body):
    r = client.post(URL, json=body)
    assert r.status_code == 400
    assert r.json()["code"] == "validation_error"


def test_trace_id_header(client):
    r = _post(client, action="lookup", badgeNumber="B100")
    assert len(r.headers["X-Trace-Id"]) == 32
    r = client.post(URL, json={"action": "lookup", "badgeNumber": "B100"}, headers={"X-Trace-Id": "client-trace-0001"})
    assert r.headers["X-Trace-Id"] == "client-trace-0001"


def test_oversized_body_rejected(client):
    r = client.post(URL, json={"action": "lookup", "badgeNumber": "x" * 20000})
    assert r.status_code == 413


def test_rate_limited_per_ip(harness, audit, errors_path):
    c = _client(harness, audit, errors_path, per_ip_per_minute=2)
    assert _post(c, action="lookup", badgeNumber="B100").status_code == 200
    assert _post(c, action="lookup", badgeNumber="B100").status_code == 200
    r = _post(c, action="lookup", badgeNumber="B100")
    assert r.status_code == 429
    assert r.json()["code"] == "rate_limited"


def test_unhandled_error_is_500(audit, errors_path):
    class BrokenRouter:
        def dispatch(self, _req):
            raise RuntimeError("db on fire")

    app = create_app(router=BrokenRouter(), web_cfg=WebConfig(), audit_logger=audit, error_reporter=ErrorReporter(path=errors_path))
    r = TestClient(app, raise_server_exceptions=False).post(URL, json={"action": "lookup", "badgeNumber": "B100"})
    assert r.status_code == 500
    assert r.json()["code"] == "internal_error"
    assert "db on fire" not in r.text


def test_error_log_never_holds_pins(client, errors_path, audit_path):
    _post(client, action="quick-signup", badgeNumber="B100", pin=DEFAULT_PIN)
    for _ in range(3):
        _post(client, action="login", badgeNumber="B100", pin="90817")
    logged = read_jsonl(errors_path)
    assert any(e["error_code"] == "unauthorized" for e in logged)
    assert_not_in_logs(logged + read_jsonl(audit_path), "90817", DEFAULT_PIN)


def test_cors_wildcard_refused(harness):
    with pytest.raises(ValueError):
        create_app(router=harness.router, web_cfg=WebConfig.model_construct(allowed_origins=["*"], max_request_bytes=16384, per_ip_per_minute=60))
