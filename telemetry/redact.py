from __future__ import annotations

import hashlib
import re
from typing import Any, Dict

EMAIL_RE = re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}")
BEARER_RE = re.compile(r"(?i)bearer\s+[A-Za-z0-9._~+/=-]+")

# Never logged verbatim, whatever their value.
SECRET_FIELDS = {
    "password",
    "password_hash",
    "token",
    "session_token",
    "authorization",
    "cookie",
    "supabase_service_role_key",
}


def _digest(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()[:12]


def mask_text(text: str) -> str:
    """Mask emails and bearer tokens inside free text."""
    if not text:
        return text
    masked = EMAIL_RE.sub(lambda m: f"[EMAIL:{_digest(m.group(0))}]", text)
    masked = BEARER_RE.sub("Bearer [REDACTED]", masked)
    return masked


def mask_value(value: Any) -> Any:
    if isinstance(value, str):
        return mask_text(value)
    if isinstance(value, dict):
        return mask_payload(value)
    if isinstance(value, (list, tuple)):
        return [mask_value(item) for item in value]
    return value


def mask_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of a log payload with secrets dropped and emails hashed."""
    if not isinstance(payload, dict):
        return {}
    cleaned: Dict[str, Any] = {}
    for key, value in payload.items():
        if str(key).lower() in SECRET_FIELDS and value is not None:
            cleaned[key] = "[REDACTED]"
            continue
        cleaned[key] = mask_value(value)
    return cleaned
