"""
Upstream exchange-rate sources and the sequential fallback fetch.

Sources are tried in order; the first one that produces rates wins. When all
of them fail the canned ``FALLBACK_RATES`` are returned, so callers always get
a complete list.

Environment variables:
* CBM_API_URL (optional, Central Bank of Myanmar JSON feed)
* HELLOLINKER_URL (optional, HTML page scraped as the second source)
* RATES_TIMEOUT_SECONDS (optional, per-request timeout, default 5)
"""

from __future__ import annotations

import math
import os
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

import httpx
from bs4 import BeautifulSoup
from dotenv import load_dotenv

from rates.defaults import CBM_SPREADS, FALLBACK_RATES, fallback_rates
from rates.models import validate_rates
from telemetry.logging_utils import get_logger
from telemetry.metrics import timed_operation

logger = get_logger(__name__)

load_dotenv()
CBM_API_URL = os.getenv("CBM_API_URL", "https://forex.cbm.gov.mm/api/latest")
HELLOLINKER_URL = os.getenv("HELLOLINKER_URL", "https://www.hellolinker.com/")
RATES_TIMEOUT_SECONDS = float(os.getenv("RATES_TIMEOUT_SECONDS", "5"))
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
)

# (row selector, currency, buy, sell); current page layout first.
HELLOLINKER_LAYOUTS = [
    (".exchange-rate-container", ".currency", ".buy", ".sell"),
    (".exchange-rate-table tr", ".currency", ".buy-rate", ".sell-rate"),
]


class SourceError(Exception):
    """An upstream source answered but produced nothing usable."""


class SourceEmpty(SourceError):
    pass


@dataclass
class RateResult:
    rates: List[Dict[str, str]]
    source: str

    @property
    def is_fallback(self) -> bool:
        return self.source == "fallback"


def build_client(timeout: Optional[float] = None) -> httpx.Client:
    return httpx.Client(
        timeout=timeout if timeout is not None else RATES_TIMEOUT_SECONDS,
        headers={"User-Agent": USER_AGENT},
        follow_redirects=True,
    )


def _parse_amount(value: Any) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        amount = float(value)
    elif isinstance(value, str):
        amount = float(value.replace(",", "").strip())
    else:
        raise ValueError(f"not a rate value: {value!r}")
    if not math.isfinite(amount):
        raise ValueError(f"rate value is not finite: {value!r}")
    return amount


class RateSource:
    name = "source"

    def __init__(self, url: str) -> None:
        self.url = url

    def fetch(self, client: httpx.Client) -> List[Dict[str, str]]:
        response = client.get(self.url)
        response.raise_for_status()
        return self.parse(response)

    def parse(self, response: httpx.Response) -> List[Dict[str, str]]:
        raise NotImplementedError


class CbmSource(RateSource):
    """Central Bank of Myanmar reference rates.

    The feed only covers a handful of currencies, so every other code keeps
    its canned quote. A successful response always yields the full list.
    """

    name = "cbm"

    def __init__(self, url: Optional[str] = None) -> None:
        super().__init__(url or CBM_API_URL)

    def parse(self, response: httpx.Response) -> List[Dict[str, str]]:
        payload = response.json()
        if not isinstance(payload, dict):
            raise SourceError("CBM payload is not an object")
        upstream = payload.get("rates") or {}
        if not isinstance(upstream, dict):
            upstream = {}

        rates: List[Dict[str, str]] = []
        for fallback in FALLBACK_RATES:
            code = fallback["currency"]
            entry = dict(fallback)
            if code in CBM_SPREADS and upstream.get(code) not in (None, ""):
                try:
                    reference = _parse_amount(upstream[code])
                except ValueError:
                    logger.warning("cbm_rate_unparseable", extra={"currency": code, "value": str(upstream[code])})
                else:
                    entry["buy"] = f"{reference:.2f}"
                    entry["sell"] = f"{reference + CBM_SPREADS[code]:.2f}"
            rates.append(entry)
        return rates


class HelloLinkerSource(RateSource):
    """Rates scraped from the HelloLinker home page."""

    name = "hellolinker"

    def __init__(self, url: Optional[str] = None) -> None:
        super().__init__(url or HELLOLINKER_URL)

    def parse(self, response: httpx.Response) -> List[Dict[str, str]]:
        rates = parse_hellolinker_html(response.text)
        if not rates:
            raise SourceEmpty("no rate rows found on page")
        return rates


def _select_text(row, selector: str) -> str:
    node = row.select_one(selector)
    return node.get_text(strip=True) if node is not None else ""


def parse_hellolinker_html(html: str) -> List[Dict[str, str]]:
    soup = BeautifulSoup(html, "html.parser")
    for row_selector, currency_sel, buy_sel, sell_sel in HELLOLINKER_LAYOUTS:
        rows: List[Dict[str, str]] = []
        for row in soup.select(row_selector):
            currency = _select_text(row, currency_sel).upper()
            buy = _select_text(row, buy_sel)
            sell = _select_text(row, sell_sel)
            if currency and buy and sell:
                rows.append({"currency": currency, "buy": buy, "sell": sell})
        if rows:
            return rows
    return []


def default_sources() -> List[RateSource]:
    return [CbmSource(), HelloLinkerSource()]


class RateFetcher:
    """Try each source in turn and fall back to canned rates."""

    def __init__(
        self,
        sources: Optional[Sequence[RateSource]] = None,
        *,
        client_factory: Optional[Callable[[], httpx.Client]] = None,
    ) -> None:
        self.sources = list(sources) if sources is not None else default_sources()
        self.client_factory = client_factory or build_client

    def fetch(self) -> RateResult:
        with self.client_factory() as client:
            for source in self.sources:
                try:
                    with timed_operation("rates_source", source.name):
                        rates = validate_rates(source.fetch(client))
                        if not rates:
                            raise SourceEmpty("source returned no valid rates")
                except (httpx.HTTPError, ValueError, SourceError) as exc:
                    logger.error(
                        "rates_source_failed",
                        extra={"source": source.name, "url": source.url, "error": str(exc) or type(exc).__name__},
                    )
                    continue
                except Exception:
                    logger.exception("rates_source_crashed", extra={"source": source.name, "url": source.url})
                    continue
                logger.info("rates_source_ok", extra={"source": source.name, "count": len(rates)})
                return RateResult(rates=rates, source=source.name)

        logger.warning("rates_fallback_used", extra={"sources": [s.name for s in self.sources]})
        return RateResult(rates=fallback_rates(), source="fallback")
