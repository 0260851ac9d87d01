from __future__ import annotations

from typing import Any, Dict


REDACT_KEYS = {
    "pin",
    "new_pin",
    "newpin",
    "current_pin",
    "otp",
    "code",
    "password",
    "secret",
    "token",
    "api_key",
    "service_key",
    "authorization",
    "action_link",
    "magic_link",
    "magiclink",
}


def redact(obj: Any) -> Any:
    """
    Mask values of secret-bearing keys anywhere in a nested dict/list.

    Audit lines carry the badge number for attribution but must never carry
    a PIN, a one-time code or a session link.
    """
    if isinstance(obj, dict):
        out: Dict[str, Any] = {}
        for k, v in obj.items():
            if str(k).lower() in REDACT_KEYS:
                out[k] = "***REDACTED***"
            else:
                out[k] = redact(v)
        return out
    if isinstance(obj, list):
        return [redact(x) for x in obj]
    return obj
