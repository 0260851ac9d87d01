from __future__ import annotations

from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from badgeauth.core.config.models import WebConfig
from badgeauth.core.error_reporter import ErrorReporter
from badgeauth.core.errors import BadgeAuthError, LockedError, ValidationError
from badgeauth.core.router import ActionRequest, BadgeAuthRouter
from badgeauth.web.middleware import WebSecurityMiddleware
from badgeauth.web.models import BadgeAuthRequest, BadgeAuthResponse
from badgeauth.web.security.rate_limit import RateLimiter


def _trace_id(request: Request) -> str:
    return getattr(getattr(request, "state", None), "trace_id", "web")


def _error_response(err: BadgeAuthError, trace_id: str) -> JSONResponse:
    headers = {"X-Trace-Id": trace_id}
    if isinstance(err, LockedError):
        headers["Retry-After"] = str(err.retry_after_seconds)
    content = {"detail": err.user_message, "code": err.code, **err.wire_extras()}
    return JSONResponse(status_code=int(err.status_code), content=content, headers=headers)


def create_app(
    *,
    router: BadgeAuthRouter,
    web_cfg: Optional[WebConfig] = None,
    audit_logger: Any = None,
    logger: Any = None,
    error_reporter: Optional[ErrorReporter] = None,
    rate_limiter: Optional[RateLimiter] = None,
) -> FastAPI:
    web_cfg = web_cfg or WebConfig()
    reporter = error_reporter or ErrorReporter()
    app = FastAPI(title="Badge Auth", version="0.1.0")

    if web_cfg.allowed_origins:
        if any(o.strip() == "*" for o in web_cfg.allowed_origins):
            raise ValueError("Wildcard CORS origins are not allowed.")
        app.add_middleware(
            CORSMiddleware,
            allow_origins=web_cfg.allowed_origins,
            allow_credentials=False,
            allow_methods=["POST", "GET", "OPTIONS"],
            allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
        )
    app.middleware("http")(WebSecurityMiddleware(web_cfg=web_cfg, audit_logger=audit_logger, logger=logger, rate_limiter=rate_limiter))

    @app.exception_handler(BadgeAuthError)
    async def badge_auth_error_handler(request: Request, exc: BadgeAuthError):
        trace_id = _trace_id(request)
        reporter.write_error(exc, trace_id=trace_id, subsystem="web", internal_exc=None)
        return _error_response(exc, trace_id)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        trace_id = _trace_id(request)
        fields = [".".join(str(p) for p in e.get("loc", ())) for e in exc.errors()]
        err = ValidationError("Invalid request.", fields=fields)
        reporter.write_error(err, trace_id=trace_id, subsystem="web", internal_exc=None)
        return _error_response(err, trace_id)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        trace_id = _trace_id(request)
        err = reporter.report_exception(exc, trace_id=trace_id, subsystem="web")
        if logger:
            logger.error(f"Unhandled error trace_id={trace_id}: {type(exc).__name__}")
        return _error_response(err, trace_id)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.post("/v1/badge-auth")
    def badge_auth(req: BadgeAuthRequest):
        payload = req.root
        result = router.dispatch(
            ActionRequest(
                action=payload.action,
                badge_number=payload.badge_number,
                pin=getattr(payload, "pin", None),
                new_pin=getattr(payload, "new_pin", None),
                otp=getattr(payload, "otp", None),
            )
        )
        body = BadgeAuthResponse.model_validate(result)
        return JSONResponse(content=body.model_dump(by_alias=True, exclude_none=True))

    return app
