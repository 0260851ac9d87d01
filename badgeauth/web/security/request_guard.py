from __future__ import annotations

import json
from typing import Any


class RequestRejected(ValueError):
    def __init__(self, reason: str, *, status_code: int = 400):
        super().__init__(reason)
        self.reason = reason
        self.status_code = status_code


def _check_depth(obj: Any, max_depth: int) -> None:
    stack = [(obj, 1)]
    while stack:
        cur, depth = stack.pop()
        if depth > max_depth:
            raise RequestRejected("json too deeply nested")
        children = cur.values() if isinstance(cur, dict) else cur if isinstance(cur, list) else ()
        stack.extend((c, depth + 1) for c in children)


def inspect_body(body: bytes, *, max_bytes: int, max_depth: int = 4) -> Any:
    """
    Size and shape checks before the body reaches FastAPI validation.
    Returns the decoded JSON (None for an empty body).
    """
    if not body:
        return None
    if len(body) > int(max_bytes):
        raise RequestRejected("request too large", status_code=413)
    if b"\x00" in body:
        raise RequestRejected("binary payload rejected")
    try:
        obj = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise RequestRejected("malformed json") from e
    _check_depth(obj, max_depth)
    return obj
