from __future__ import annotations

import json
import os
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from badgeauth.core.redaction import redact
from badgeauth.core.trace import resolve_trace_id


@dataclass(frozen=True)
class AuthAuditLogger:
    """
    Append-only JSONL audit trail for lockout, PIN and OTP state changes.

    Every line names the acting badge number; details are redacted so raw
    PINs, codes and exchange links never reach disk.
    """

    path: str = os.path.join("logs", "auth_audit.jsonl")
    _lock: threading.Lock = field(default_factory=threading.Lock, compare=False, repr=False)

    def log(
        self,
        *,
        event: str,
        badge_number: Optional[str],
        outcome: str,
        severity: str = "INFO",
        trace_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
        payload = {
            "ts": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
            "trace_id": resolve_trace_id(trace_id),
            "severity": severity,
            "event": event,
            "badge_number": badge_number,
            "outcome": outcome,
            "details": redact(details or {}),
        }
        line = json.dumps(payload, ensure_ascii=False)
        with self._lock:
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(line + "\n")


class NullAuditLogger:
    def log(self, **_kwargs: Any) -> None:
        return None
