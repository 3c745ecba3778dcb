from __future__ import annotations

import itertools
import os
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from rates.defaults import default_gold_prices, fallback_rates
from server.security import hash_password


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class InMemoryStore:
    """Demo-mode store used when Supabase is unavailable."""

    def __init__(
        self,
        *,
        admin_email: Optional[str] = None,
        admin_password: Optional[str] = None,
        seed_prices: bool = True,
    ) -> None:
        self._lock = threading.Lock()
        self._seq = itertools.count()
        self.exchange_rates: Dict[str, Dict[str, Any]] = {}
        self.gold_prices: Dict[str, Dict[str, Any]] = {}
        self.posts: Dict[str, Dict[str, Any]] = {}
        self.users: Dict[str, Dict[str, Any]] = {}
        self.sessions: Dict[str, Dict[str, Any]] = {}

        if seed_prices:
            self.upsert_exchange_rates(fallback_rates())
            self.upsert_gold_prices(default_gold_prices())

        admin_email = admin_email or os.getenv("ADMIN_EMAIL")
        admin_password = admin_password or os.getenv("ADMIN_PASSWORD")
        if admin_email and admin_password:
            self.add_user(admin_email, admin_password, is_admin=True)

    # Exchange rates -------------------------------------------------------
    def list_exchange_rates(self) -> List[Dict[str, Any]]:
        with self._lock:
            rows = [dict(r) for r in self.exchange_rates.values()]
        return sorted(rows, key=lambda r: r["currency"])

    def upsert_exchange_rates(self, rates: Iterable[Dict[str, Any]]) -> None:
        stamp = _now_iso()
        with self._lock:
            for rate in rates:
                self.exchange_rates[rate["currency"]] = {
                    "currency": rate["currency"],
                    "buy": rate["buy"],
                    "sell": rate["sell"],
                    "updated_at": stamp,
                }

    # Gold prices ----------------------------------------------------------
    def list_gold_prices(self, category: Optional[str] = None) -> List[Dict[str, Any]]:
        with self._lock:
            rows = [dict(p) for p in self.gold_prices.values()]
        if category:
            rows = [p for p in rows if p["category"] == category]
        return rows

    def upsert_gold_prices(self, prices: Iterable[Dict[str, Any]]) -> None:
        stamp = _now_iso()
        with self._lock:
            for price in prices:
                self.gold_prices[price["type"]] = {
                    "type": price["type"],
                    "price": price["price"],
                    "change": price["change"],
                    "category": price["category"],
                    "updated_at": stamp,
                }

    # Posts ----------------------------------------------------------------
    def list_posts(self, *, published_only: bool = False, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        with self._lock:
            posts = list(self.posts.values())
        if published_only:
            posts = [p for p in posts if p["published"]]
        posts.sort(key=lambda p: (p["created_at"], p["_seq"]), reverse=True)
        if limit:
            posts = posts[:limit]
        return [self._public(p) for p in posts]

    def create_post(self, title: str, content: str) -> Dict[str, Any]:
        post = {
            "id": str(uuid.uuid4()),
            "title": title,
            "content": content,
            "published": False,
            "created_at": _now_iso(),
            "_seq": next(self._seq),
        }
        with self._lock:
            self.posts[post["id"]] = post
        return self._public(post)

    def get_post(self, post_id: str) -> Optional[Dict[str, Any]]:
        post = self.posts.get(post_id)
        return self._public(post) if post else None

    def update_post(self, post_id: str, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        with self._lock:
            post = self.posts.get(post_id)
            if post is None:
                return None
            post.update({k: v for k, v in updates.items() if k in {"title", "content", "published"}})
            return self._public(post)

    def delete_post(self, post_id: str) -> bool:
        with self._lock:
            return self.posts.pop(post_id, None) is not None

    @staticmethod
    def _public(post: Dict[str, Any]) -> Dict[str, Any]:
        return {k: v for k, v in post.items() if not k.startswith("_")}

    # Users/sessions -------------------------------------------------------
    def add_user(self, email: str, password: str, *, is_admin: bool = False) -> Dict[str, Any]:
        user = {
            "id": str(uuid.uuid4()),
            "email": email.strip().lower(),
            "password_hash": hash_password(password),
            "is_admin": is_admin,
            "created_at": _now_iso(),
        }
        with self._lock:
            self.users[user["id"]] = user
        return user

    def find_user_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        wanted = email.strip().lower()
        for user in self.users.values():
            if user["email"] == wanted:
                return user
        return None

    def find_user_by_id(self, user_id: str) -> Optional[Dict[str, Any]]:
        return self.users.get(user_id)

    def create_session(self, user_id: str) -> Dict[str, Any]:
        token = str(uuid.uuid4())
        session = {"token": token, "user_id": user_id}
        with self._lock:
            self.sessions[token] = session
        return session

    def get_session(self, token: str) -> Optional[Dict[str, Any]]:
        return self.sessions.get(token)

    def revoke_session(self, token: str) -> None:
        with self._lock:
            self.sessions.pop(token, None)

    # Health ---------------------------------------------------------------
    def ping(self) -> bool:
        return True
