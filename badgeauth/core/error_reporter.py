from __future__ import annotations

import json
import os
import threading
import time
import traceback
from typing import Any, Dict, Optional

from badgeauth.core.errors import BadgeAuthError
from badgeauth.core.redaction import redact


class ErrorReporter:
    def __init__(self, *, path: str = os.path.join("logs", "errors.jsonl"), include_tracebacks: bool = False):
        self.path = path
        self.include_tracebacks = bool(include_tracebacks)
        self._lock = threading.Lock()
        os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)

    def report_exception(self, exc: BaseException, *, trace_id: str, subsystem: str) -> BadgeAuthError:
        err = normalize_exception(exc)
        self.write_error(err, trace_id=trace_id, subsystem=subsystem, internal_exc=exc)
        return err

    def write_error(self, err: BadgeAuthError, *, trace_id: str, subsystem: str, internal_exc: Optional[BaseException] = None) -> None:
        entry: Dict[str, Any] = {
            "ts": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
            "trace_id": trace_id,
            "subsystem": subsystem,
            "error_code": err.code,
            "severity": err.severity.value,
            "status_code": int(err.status_code),
            "user_message": err.user_message,
            "safe_context": redact(err.context or {}),
        }
        if self.include_tracebacks and internal_exc is not None:
            entry["internal_context"] = {"traceback": "".join(traceback.format_exception(type(internal_exc), internal_exc, internal_exc.__traceback__, limit=30))}
        line = json.dumps(entry, ensure_ascii=False)
        with self._lock:
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(line + "\n")

    def tail(self, n: int = 20) -> list[Dict[str, Any]]:
        if not os.path.exists(self.path):
            return []
        with open(self.path, "r", encoding="utf-8") as f:
            lines = f.readlines()
        return [json.loads(x) for x in lines[-max(1, int(n)) :] if x.strip()]


def normalize_exception(exc: BaseException) -> BadgeAuthError:
    if isinstance(exc, BadgeAuthError):
        return exc
    return BadgeAuthError(code="internal_error", user_message="Internal server error.", status_code=500, context={"type": type(exc).__name__})
