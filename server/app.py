from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, HTTPException, Query, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles

from rates.defaults import GOLD_UNITS, SOCIAL_FEED, SOCIAL_LINKS, currency_info, default_gold_prices, fallback_rates
from rates.models import (
    DisplayRate,
    LoginPayload,
    Post,
    PostCreate,
    PostUpdate,
    PriceUpdate,
    validate_gold_prices,
    validate_posts,
)
from rates.sources import RateFetcher
from server.security import (
    SESSION_COOKIE,
    admin_redirect,
    is_admin,
    public_user,
    session_token,
    verify_password,
)
from storage.errors import StoreError
from storage.memory_store import InMemoryStore
from telemetry.logging_utils import get_logger
from telemetry.metrics import read_metrics

load_dotenv()
logger = get_logger(__name__)

BASE_DIR = Path(__file__).resolve().parent.parent
WEBAPP_DIR = Path(os.getenv("WEBAPP_DIR", str(BASE_DIR / "webapp")))
REFRESH_SECONDS = int(os.getenv("REFRESH_SECONDS", "30"))
PORT = int(os.getenv("PORT", "3000"))


def _build_store():
    url = os.getenv("SUPABASE_URL")
    key = os.getenv("SUPABASE_SERVICE_ROLE_KEY")
    if url and key:
        from storage.supabase_store import SupabaseStore

        return SupabaseStore(url, key)
    logger.warning("supabase_not_configured", extra={"store": "memory"})
    return InMemoryStore()


store = _build_store()
rate_fetcher = RateFetcher()

app = FastAPI(title="MMK Today")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)
if (WEBAPP_DIR / "assets").is_dir():
    app.mount("/assets", StaticFiles(directory=WEBAPP_DIR / "assets"), name="assets")


@app.exception_handler(StoreError)
def store_error_handler(request: Request, exc: StoreError):
    logger.error("store_error", extra={"path": request.url.path, "error": str(exc)})
    return JSONResponse(status_code=status.HTTP_502_BAD_GATEWAY, content={"detail": "Storage is unavailable."})


def get_optional_user(request: Request) -> Optional[Dict[str, Any]]:
    token = session_token(request.headers.get("Authorization"), request.cookies.get(SESSION_COOKIE))
    if not token:
        return None
    session = store.get_session(token)
    if not session:
        return None
    user = store.find_user_by_id(session["user_id"])
    if user:
        request.state.session_token = token
    return user


def get_current_user(user: Optional[Dict[str, Any]] = Depends(get_optional_user)) -> Dict[str, Any]:
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return user


def require_admin(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    if not is_admin(user):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required.")
    return user


# Public rates ---------------------------------------------------------------------


@app.get("/api/rates")
def get_rates():
    try:
        result = rate_fetcher.fetch()
    except Exception as exc:
        logger.exception("rates_endpoint_failed")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal server error", "message": str(exc)},
        )
    return JSONResponse(content=result.rates, headers={"X-Rates-Source": result.source})


@app.get("/api/exchange-rates")
def get_exchange_rates():
    try:
        rows = store.list_exchange_rates()
    except StoreError as exc:
        logger.error("exchange_rates_read_failed", extra={"error": str(exc)})
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Unable to fetch latest rates. Please try again later.",
        )
    if not rows:
        rows = fallback_rates()
    return {
        "rates": [_display_rate(row) for row in rows],
        "updated_at": _latest_stamp(rows),
        "refresh_seconds": REFRESH_SECONDS,
    }


@app.get("/api/gold-prices")
def get_gold_prices():
    rows = validate_gold_prices(store.list_gold_prices()) or default_gold_prices()
    grouped: Dict[str, List[Dict[str, Any]]] = {category: [] for category in GOLD_UNITS}
    for row in sorted(rows, key=lambda r: float(r["price"]), reverse=True):
        category = row.get("category")
        if category not in grouped:
            continue
        grouped[category].append(
            {
                "type": row["type"],
                "price": float(row["price"]),
                "change": float(row.get("change") or 0),
                "unit": GOLD_UNITS[category],
            }
        )
    return {**grouped, "updated_at": _latest_stamp(rows), "refresh_seconds": REFRESH_SECONDS}


@app.get("/api/posts")
def list_published_posts(limit: int = Query(5, ge=1, le=50)):
    return {"posts": validate_posts(store.list_posts(published_only=True, limit=limit))}


@app.get("/api/social")
def get_social():
    return {"links": dict(SOCIAL_LINKS), "feed": [dict(item) for item in SOCIAL_FEED]}


# Auth -----------------------------------------------------------------------------


@app.post("/api/auth/login")
def login_user(payload: LoginPayload, response: Response):
    user = store.find_user_by_email(payload.email)
    if not user or not verify_password(payload.password, user.get("password_hash")):
        logger.info("login_failed", extra={"email": payload.email})
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Failed to sign in")
    session = store.create_session(user["id"])
    response.set_cookie(SESSION_COOKIE, session["token"], httponly=True, samesite="lax")
    logger.info("login_ok", extra={"user_id": user["id"]})
    return {"token": session["token"], "user": public_user(user)}


@app.post("/api/auth/logout")
def logout_user(request: Request, response: Response, user: Dict[str, Any] = Depends(get_current_user)):
    token = getattr(request.state, "session_token", None)
    if token:
        store.revoke_session(token)
    response.delete_cookie(SESSION_COOKIE)
    return {"ok": True}


@app.get("/api/auth/me")
def get_me(user: Dict[str, Any] = Depends(get_current_user)):
    return {"user": public_user(user)}


# Admin ----------------------------------------------------------------------------


@app.get("/api/admin/posts")
def admin_list_posts(user: Dict[str, Any] = Depends(require_admin)):
    try:
        posts = store.list_posts()
    except StoreError:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Failed to fetch posts")
    return {"posts": validate_posts(posts)}


@app.post("/api/admin/posts", status_code=status.HTTP_201_CREATED)
def admin_create_post(payload: PostCreate, user: Dict[str, Any] = Depends(require_admin)):
    try:
        post = store.create_post(payload.title, payload.content)
    except StoreError:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Failed to create post")
    logger.info("post_created", extra={"post_id": post["id"], "user_id": user["id"]})
    return {"post": _post_view(post)}


@app.patch("/api/admin/posts/{post_id}")
def admin_update_post(post_id: str, payload: PostUpdate, user: Dict[str, Any] = Depends(require_admin)):
    try:
        post = store.update_post(post_id, payload.changes())
    except StoreError:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Failed to update post")
    if not post:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Post not found.")
    logger.info("post_updated", extra={"post_id": post_id, "fields": sorted(payload.changes())})
    return {"post": _post_view(post)}


@app.delete("/api/admin/posts/{post_id}")
def admin_delete_post(post_id: str, user: Dict[str, Any] = Depends(require_admin)):
    try:
        deleted = store.delete_post(post_id)
    except StoreError:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Failed to delete post")
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Post not found.")
    logger.info("post_deleted", extra={"post_id": post_id})
    return {"ok": True, "id": post_id}


@app.get("/api/admin/prices")
def admin_get_prices(user: Dict[str, Any] = Depends(require_admin)):
    return _current_prices()


@app.put("/api/admin/prices")
def admin_update_prices(payload: PriceUpdate, user: Dict[str, Any] = Depends(require_admin)):
    try:
        store.upsert_exchange_rates([rate.model_dump() for rate in payload.rates])
        store.upsert_gold_prices([price.model_dump(exclude={"unit"}) for price in payload.gold_prices])
    except StoreError as exc:
        logger.error("prices_update_failed", extra={"error": str(exc)})
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Failed to update prices")
    logger.info(
        "prices_updated",
        extra={"rates": len(payload.rates), "gold_prices": len(payload.gold_prices), "user_id": user["id"]},
    )
    return _current_prices()


@app.get("/api/admin/metrics")
def admin_get_metrics(limit: int = Query(100, ge=1, le=500), user: Dict[str, Any] = Depends(require_admin)):
    return {"metrics": read_metrics(limit=limit)}


# Pages ----------------------------------------------------------------------------


@app.get("/healthz")
def healthz():
    return {"ok": True, "store": type(store).__name__, "store_ok": store.ping()}


@app.get("/admin")
def admin_page(user: Optional[Dict[str, Any]] = Depends(get_optional_user)):
    target = admin_redirect(user)
    if target:
        return RedirectResponse(target, status_code=status.HTTP_307_TEMPORARY_REDIRECT)
    return _index_response()


@app.get("/{path:path}")
def serve_frontend(path: str):
    if path.startswith("api/"):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found.")
    target = (WEBAPP_DIR / path).resolve()
    if path and target.is_file() and WEBAPP_DIR.resolve() in target.parents:
        return FileResponse(target)
    return _index_response()


def _index_response():
    index = WEBAPP_DIR / "index.html"
    if not index.is_file():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Frontend not built.")
    return FileResponse(index)


def _display_rate(row: Dict[str, Any]) -> Dict[str, Any]:
    code = row["currency"]
    info = currency_info(code)
    return DisplayRate(
        code=code,
        currency=info["name"] or code,
        flag=info["flag"],
        link=info["link"],
        buy=str(row["buy"]),
        sell=str(row["sell"]),
    ).model_dump()


def _post_view(row: Dict[str, Any]) -> Dict[str, Any]:
    return Post.model_validate(row).model_dump()


def _latest_stamp(rows: List[Dict[str, Any]]) -> Optional[str]:
    stamps = [r["updated_at"] for r in rows if r.get("updated_at")]
    return max(stamps) if stamps else None


def _current_prices() -> Dict[str, Any]:
    rates = store.list_exchange_rates() or fallback_rates()
    gold = validate_gold_prices(store.list_gold_prices()) or default_gold_prices()
    return {
        "rates": [{"currency": r["currency"], "buy": r["buy"], "sell": r["sell"]} for r in rates],
        "gold_prices": [
            {"type": g["type"], "price": g["price"], "change": g["change"], "category": g["category"]} for g in gold
        ],
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("server.app:app", host="0.0.0.0", port=PORT, reload=False)
