from __future__ import annotations

import base64
import hashlib
import hmac
import os
from typing import Any, Dict, Optional

from dotenv import load_dotenv

load_dotenv()

ALGORITHM = "pbkdf2_sha256"
ITERATIONS = 390000
SALT_BYTES = 16
SESSION_COOKIE = "mmk_session"
LOGIN_PATH = "/login"
ADMIN_PATH = "/admin"


def hash_password(password: str, *, iterations: int = ITERATIONS) -> str:
    salt = os.urandom(SALT_BYTES)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations, dklen=32)
    salt_b64 = base64.b64encode(salt).decode("ascii")
    digest_b64 = base64.b64encode(digest).decode("ascii")
    return f"{ALGORITHM}${iterations}${salt_b64}${digest_b64}"


def verify_password(password: str, encoded: Optional[str]) -> bool:
    if not encoded:
        return False
    try:
        algorithm, iter_str, salt_b64, hash_b64 = encoded.split("$")
        if algorithm != ALGORITHM:
            return False
        salt = base64.b64decode(salt_b64)
        stored = base64.b64decode(hash_b64)
        iterations = int(iter_str)
    except ValueError:
        return False
    candidate = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations, dklen=len(stored))
    return hmac.compare_digest(candidate, stored)


def session_token(authorization: Optional[str], cookie: Optional[str]) -> Optional[str]:
    """Pick the session token from a Bearer header, else from the session cookie."""
    header = (authorization or "").strip()
    if header.lower().startswith("bearer "):
        token = header.split(None, 1)[1].strip()
        if token:
            return token
    return (cookie or "").strip() or None


def admin_emails() -> set:
    raw = os.getenv("ADMIN_EMAILS", "")
    return {e.strip().lower() for e in raw.split(",") if e.strip()}


def is_admin(user: Optional[Dict[str, Any]]) -> bool:
    if not user:
        return False
    if user.get("is_admin"):
        return True
    return (user.get("email") or "").lower() in admin_emails()


def admin_redirect(user: Optional[Dict[str, Any]]) -> Optional[str]:
    """Where to send a visitor of the admin page, or None when they may stay."""
    if not user:
        return f"{LOGIN_PATH}?next={ADMIN_PATH}"
    if not is_admin(user):
        return "/"
    return None


def public_user(user: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": user["id"],
        "email": user["email"],
        "is_admin": is_admin(user),
    }
