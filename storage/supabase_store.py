from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional
import uuid

import time
import httpx
from postgrest import APIError

from supabase import Client, create_client

from storage.errors import StoreError
from telemetry.logging_utils import get_logger

logger = get_logger(__name__)

TRANSIENT_ERRORS = (httpx.RemoteProtocolError, httpx.WriteError, APIError)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def rate_from_row(row: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "currency": row.get("currency"),
        "buy": row.get("buy_rate"),
        "sell": row.get("sell_rate"),
        "updated_at": row.get("updated_at"),
    }


class SupabaseStore:
    def __init__(self, url: str, key: str) -> None:
        self.client: Client = create_client(url, key)
        self._max_retries = 3
        self._retry_backoff_seconds = 0.25

    def _table(self, name: str):
        return self.client.table(name)

    def _with_retry(self, fn: Callable[[], Any]) -> Any:
        delay = self._retry_backoff_seconds
        for attempt in range(self._max_retries):
            try:
                return fn()
            except TRANSIENT_ERRORS as exc:
                if attempt >= self._max_retries - 1:
                    raise StoreError(str(exc)) from exc
                logger.warning("supabase_retry", extra={"attempt": attempt + 1, "error": str(exc)})
                time.sleep(delay)
                delay *= 2
            except httpx.HTTPError as exc:
                raise StoreError(str(exc)) from exc

    # Exchange rates -------------------------------------------------------------

    def list_exchange_rates(self) -> List[Dict[str, Any]]:
        resp = self._with_retry(
            lambda: self._table("exchange_rates")
            .select("currency, buy_rate, sell_rate, updated_at")
            .order("currency")
            .execute()
        )
        return [rate_from_row(row) for row in resp.data or []]

    def upsert_exchange_rates(self, rates: Iterable[Dict[str, Any]]) -> None:
        stamp = _now_iso()
        rows = [
            {"currency": r["currency"], "buy_rate": r["buy"], "sell_rate": r["sell"], "updated_at": stamp}
            for r in rates
        ]
        if not rows:
            return
        self._with_retry(lambda: self._table("exchange_rates").upsert(rows, on_conflict="currency").execute())

    # Gold prices ----------------------------------------------------------------

    def list_gold_prices(self, category: Optional[str] = None) -> List[Dict[str, Any]]:
        query = self._table("gold_prices").select("type, price, change, category, updated_at")
        if category:
            query = query.eq("category", category)
        resp = self._with_retry(lambda: query.execute())
        return resp.data or []

    def upsert_gold_prices(self, prices: Iterable[Dict[str, Any]]) -> None:
        stamp = _now_iso()
        rows = [
            {
                "type": p["type"],
                "price": p["price"],
                "change": p["change"],
                "category": p["category"],
                "updated_at": stamp,
            }
            for p in prices
        ]
        if not rows:
            return
        self._with_retry(lambda: self._table("gold_prices").upsert(rows, on_conflict="type").execute())

    # Posts ----------------------------------------------------------------------

    def list_posts(self, *, published_only: bool = False, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        query = self._table("posts").select("*")
        if published_only:
            query = query.eq("published", True)
        query = query.order("created_at", desc=True)
        if limit:
            query = query.limit(limit)
        resp = self._with_retry(lambda: query.execute())
        return resp.data or []

    def create_post(self, title: str, content: str) -> Dict[str, Any]:
        post = {
            "id": str(uuid.uuid4()),
            "title": title,
            "content": content,
            "published": False,
        }
        resp = self._with_retry(lambda: self._table("posts").insert(post).execute())
        if not resp.data:
            raise StoreError("Failed to insert post")
        return resp.data[0]

    def update_post(self, post_id: str, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        if not updates:
            return self.get_post(post_id)
        resp = self._with_retry(lambda: self._table("posts").update(updates).eq("id", post_id).execute())
        return resp.data[0] if resp.data else None

    def get_post(self, post_id: str) -> Optional[Dict[str, Any]]:
        resp = self._with_retry(lambda: self._table("posts").select("*").eq("id", post_id).maybe_single().execute())
        return resp.data if resp else None

    def delete_post(self, post_id: str) -> bool:
        resp = self._with_retry(lambda: self._table("posts").delete().eq("id", post_id).execute())
        return bool(resp.data)

    # Users/sessions -------------------------------------------------------------

    def find_user_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        resp = self._with_retry(
            lambda: self._table("users").select("*").eq("email", email.strip().lower()).maybe_single().execute()
        )
        return resp.data if resp else None

    def find_user_by_id(self, user_id: str) -> Optional[Dict[str, Any]]:
        resp = self._with_retry(lambda: self._table("users").select("*").eq("id", user_id).maybe_single().execute())
        return resp.data if resp else None

    def create_session(self, user_id: str) -> Dict[str, Any]:
        token = str(uuid.uuid4())
        resp = self._with_retry(lambda: self._table("sessions").insert({"token": token, "user_id": user_id}).execute())
        if not resp.data:
            raise StoreError("Failed to create session")
        return resp.data[0]

    def get_session(self, token: str) -> Optional[Dict[str, Any]]:
        resp = self._with_retry(
            lambda: self._table("sessions").select("*").eq("token", token).maybe_single().execute()
        )
        return resp.data if resp else None

    def revoke_session(self, token: str) -> None:
        self._with_retry(lambda: self._table("sessions").delete().eq("token", token).execute())

    # Health ---------------------------------------------------------------------

    def ping(self) -> bool:
        try:
            self._with_retry(lambda: self._table("exchange_rates").select("currency").limit(1).execute())
        except StoreError:
            return False
        return True
