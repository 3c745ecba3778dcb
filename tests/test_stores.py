from types import SimpleNamespace

import httpx
import pytest

from storage import supabase_store
from storage.errors import StoreError
from storage.memory_store import InMemoryStore


class FakeQuery:
    """Records the builder calls a store makes and answers with canned rows."""

    def __init__(self, table, rows):
        self.table = table
        self.rows = rows
        self.calls = []

    def __getattr__(self, name):
        def method(*args, **kwargs):
            self.calls.append((name, args, kwargs))
            return self

        return method

    def execute(self):
        return SimpleNamespace(data=self.rows)


class FakeClient:
    def __init__(self, rows=None):
        self.rows = rows or []
        self.queries = []

    def table(self, name):
        query = FakeQuery(name, self.rows)
        self.queries.append(query)
        return query


@pytest.fixture()
def fake_client(monkeypatch):
    client = FakeClient()
    monkeypatch.setattr(supabase_store, "create_client", lambda url, key: client)
    monkeypatch.setattr(supabase_store.time, "sleep", lambda _: None)
    return client


def test_memory_store_seeds_prices(monkeypatch):
    monkeypatch.delenv("ADMIN_EMAIL", raising=False)
    store = InMemoryStore()
    assert len(store.list_exchange_rates()) == 16
    assert len(store.list_gold_prices("world")) == 4
    assert len(store.list_gold_prices("myanmar")) == 8
    assert store.users == {}


def test_memory_store_upsert_replaces_by_key():
    store = InMemoryStore()
    store.upsert_exchange_rates([{"currency": "USD", "buy": "1", "sell": "2"}])
    store.upsert_gold_prices([{"type": "24 Karat", "price": 1.0, "change": 0.5, "category": "world"}])

    rates = store.list_exchange_rates()
    assert len(rates) == 16
    assert next(r for r in rates if r["currency"] == "USD")["buy"] == "1"
    assert next(p for p in store.list_gold_prices() if p["type"] == "24 Karat")["price"] == 1.0


def test_memory_store_post_lifecycle():
    store = InMemoryStore(seed_prices=False)
    post = store.create_post("Title", "Body")
    assert post["published"] is False
    assert "_seq" not in post

    assert store.update_post(post["id"], {"published": True, "id": "hijack"})["id"] == post["id"]
    assert store.list_posts(published_only=True)[0]["published"] is True
    assert store.update_post("missing", {"title": "x"}) is None
    assert store.delete_post(post["id"]) is True
    assert store.delete_post(post["id"]) is False


def test_memory_store_seeds_admin_from_env(monkeypatch):
    monkeypatch.setenv("ADMIN_EMAIL", "Owner@MMK.test")
    monkeypatch.setenv("ADMIN_PASSWORD", "pw")
    store = InMemoryStore(seed_prices=False)
    user = store.find_user_by_email("owner@mmk.test")
    assert user["is_admin"] is True
    session = store.create_session(user["id"])
    assert store.get_session(session["token"])["user_id"] == user["id"]
    store.revoke_session(session["token"])
    assert store.get_session(session["token"]) is None


def test_supabase_retries_transient_errors(fake_client):
    store = supabase_store.SupabaseStore("https://example.supabase.co", "key")
    attempts = []

    def flaky():
        attempts.append(1)
        if len(attempts) < 3:
            raise httpx.RemoteProtocolError("connection dropped")
        return "ok"

    assert store._with_retry(flaky) == "ok"
    assert len(attempts) == 3


def test_supabase_gives_up_with_store_error(fake_client):
    store = supabase_store.SupabaseStore("https://example.supabase.co", "key")

    def always_fails():
        raise httpx.WriteError("broken pipe")

    with pytest.raises(StoreError):
        store._with_retry(always_fails)


def test_supabase_non_transient_error_is_not_retried(fake_client):
    store = supabase_store.SupabaseStore("https://example.supabase.co", "key")
    attempts = []

    def refused():
        attempts.append(1)
        raise httpx.ConnectError("refused")

    with pytest.raises(StoreError):
        store._with_retry(refused)
    assert len(attempts) == 1


def test_supabase_maps_rate_columns(fake_client):
    fake_client.rows = [{"currency": "USD", "buy_rate": "4460.00", "sell_rate": "4560.00", "updated_at": "t"}]
    store = supabase_store.SupabaseStore("https://example.supabase.co", "key")

    assert store.list_exchange_rates() == [{"currency": "USD", "buy": "4460.00", "sell": "4560.00", "updated_at": "t"}]
    query = fake_client.queries[-1]
    assert query.table == "exchange_rates"
    assert ("order", ("currency",), {}) in query.calls


def test_supabase_upserts_rates_on_currency(fake_client):
    store = supabase_store.SupabaseStore("https://example.supabase.co", "key")
    store.upsert_exchange_rates([{"currency": "EUR", "buy": "1", "sell": "2"}])

    name, args, kwargs = fake_client.queries[-1].calls[0]
    assert name == "upsert"
    assert kwargs == {"on_conflict": "currency"}
    row = args[0][0]
    assert row["buy_rate"] == "1" and row["sell_rate"] == "2"
    assert row["updated_at"]


def test_supabase_published_posts_query(fake_client):
    store = supabase_store.SupabaseStore("https://example.supabase.co", "key")
    store.list_posts(published_only=True, limit=5)

    calls = [(name, args, kwargs) for name, args, kwargs in fake_client.queries[-1].calls]
    assert ("eq", ("published", True), {}) in calls
    assert ("order", ("created_at",), {"desc": True}) in calls
    assert ("limit", (5,), {}) in calls


def test_supabase_delete_reports_missing_row(fake_client):
    store = supabase_store.SupabaseStore("https://example.supabase.co", "key")
    assert store.delete_post("nope") is False
