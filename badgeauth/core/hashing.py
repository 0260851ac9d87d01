from __future__ import annotations

import hashlib
import secrets


def hash_secret(value: str) -> str:
    return hashlib.sha256(str(value).encode("utf-8")).hexdigest()


def digests_match(a: str | None, b: str | None) -> bool:
    if not a or not b:
        return False
    return secrets.compare_digest(str(a), str(b))


def generate_otp() -> str:
    """Six digits, never a leading zero."""
    return str(100000 + secrets.randbelow(900000))
