from __future__ import annotations

import re
import time
from typing import Any, Optional

from fastapi import Request
from fastapi.responses import JSONResponse

from badgeauth.core.audit import NullAuditLogger
from badgeauth.core.config.models import WebConfig
from badgeauth.core.trace import new_trace_id, trace_context
from badgeauth.web.security.rate_limit import RateLimiter
from badgeauth.web.security.request_guard import RequestRejected, inspect_body

_TRACE_ID_RE = re.compile(r"^[A-Za-z0-9_-]{8,64}$")
_PUBLIC_PATHS = {"/health"}


def _client_ip(request: Request) -> Optional[str]:
    return getattr(getattr(request, "client", None), "host", None)


def _incoming_trace_id(request: Request) -> str:
    supplied = request.headers.get("X-Trace-Id", "")
    return supplied if _TRACE_ID_RE.match(supplied) else new_trace_id()


class WebSecurityMiddleware:
    """
    Request chain (order matters):
    1) trace_id
    2) body size + JSON shape guard
    3) per-IP rate limit
    4) audit outcome
    """

    def __init__(self, *, web_cfg: WebConfig, audit_logger: Any = None, logger: Any = None, rate_limiter: Optional[RateLimiter] = None):
        self.web_cfg = web_cfg
        self.audit_logger = audit_logger or NullAuditLogger()
        self.logger = logger
        self.rate = rate_limiter or RateLimiter()

    def _audit(self, *, trace_id: str, event: str, outcome: str, ip: Optional[str], path: str, severity: str = "INFO", **details: Any) -> None:
        self.audit_logger.log(
            event=event,
            badge_number=None,
            outcome=outcome,
            severity=severity,
            trace_id=trace_id,
            details={"ip": ip, "endpoint": path, **details},
        )

    async def __call__(self, request: Request, call_next):  # noqa: ANN001
        trace_id = _incoming_trace_id(request)
        request.state.trace_id = trace_id
        ip = _client_ip(request)
        path = request.url.path
        method = request.method
        t0 = time.time()

        with trace_context(trace_id):
            if method in {"POST", "PUT", "PATCH"}:
                try:
                    declared = request.headers.get("content-length", "")
                    if declared.isdigit() and int(declared) > self.web_cfg.max_request_bytes:
                        raise RequestRejected("request too large", status_code=413)
                    inspect_body(await request.body(), max_bytes=self.web_cfg.max_request_bytes)
                except RequestRejected as e:
                    self._audit(trace_id=trace_id, event="web.request_rejected", outcome=str(e.status_code), ip=ip, path=path, severity="WARN", reason=e.reason)
                    return JSONResponse(
                        status_code=e.status_code,
                        content={"detail": "Request rejected.", "code": "request_too_large" if e.status_code == 413 else "validation_error"},
                        headers={"X-Trace-Id": trace_id},
                    )

            if path not in _PUBLIC_PATHS and ip and not self.rate.allow(f"ip:{ip}", per_minute=self.web_cfg.per_ip_per_minute):
                self._audit(trace_id=trace_id, event="web.rate_limited", outcome="429", ip=ip, path=path, severity="WARN")
                return JSONResponse(
                    status_code=429,
                    content={"detail": "Rate limit exceeded.", "code": "rate_limited"},
                    headers={"X-Trace-Id": trace_id, "Retry-After": "60"},
                )

            try:
                resp = await call_next(request)
            except Exception as e:
                self._audit(trace_id=trace_id, event="web.exception", outcome="error", ip=ip, path=path, severity="ERROR", error=type(e).__name__)
                raise
            resp.headers["X-Trace-Id"] = trace_id
            if path not in _PUBLIC_PATHS:
                self._audit(
                    trace_id=trace_id,
                    event="web.response",
                    outcome=str(resp.status_code),
                    ip=ip,
                    path=path,
                    method=method,
                    latency_ms=round((time.time() - t0) * 1000.0, 1),
                )
            return resp
