"""Canned rate, gold and social data served when upstream sources or the store have nothing."""

from __future__ import annotations

import copy
from typing import Any, Dict, List, Optional

FALLBACK_RATES: List[Dict[str, str]] = [
    {"currency": "USD", "buy": "4460.00", "sell": "4560.00"},
    {"currency": "EUR", "buy": "4640.00", "sell": "4765.00"},
    {"currency": "SGD", "buy": "3275.00", "sell": "3375.00"},
    {"currency": "THB", "buy": "131.58", "sell": "133.14"},
    {"currency": "MYR", "buy": "1013.00", "sell": "1040.00"},
    {"currency": "JPY", "buy": "28.49", "sell": "29.26"},
    {"currency": "CNY", "buy": "610.00", "sell": "627.00"},
    {"currency": "WON", "buy": "3.09", "sell": "3.17"},
    {"currency": "GBP", "buy": "5520.00", "sell": "5670.00"},
    {"currency": "AUD", "buy": "2790.00", "sell": "2865.00"},
    {"currency": "CAD", "buy": "3080.00", "sell": "3165.00"},
    {"currency": "NTD", "buy": "135.00", "sell": "139.00"},
    {"currency": "AED", "buy": "1207.00", "sell": "1240.00"},
    {"currency": "INR", "buy": "51.35", "sell": "52.75"},
    {"currency": "HKD", "buy": "556.00", "sell": "565.00"},
    {"currency": "MOP", "buy": "552.00", "sell": "567.00"},
]

# The CBM feed only quotes a reference rate; sell = reference + spread.
CBM_SPREADS: Dict[str, float] = {
    "USD": 100.0,
    "EUR": 125.0,
    "SGD": 100.0,
    "THB": 1.56,
}

GOLD_UNITS: Dict[str, str] = {
    "world": "1 oz",
    "myanmar": "1 Kyat Tha",
}

DEFAULT_GOLD_PRICES: List[Dict[str, Any]] = [
    {"type": "24 Karat", "price": 2742.96, "change": -2.14, "category": "world"},
    {"type": "22 Karat", "price": 2534.57, "change": -1.14, "category": "world"},
    {"type": "21 Karat", "price": 2400.27, "change": -0.14, "category": "world"},
    {"type": "18 Karat", "price": 2087.37, "change": -1.24, "category": "world"},
    {"type": "16 Pae Yae", "price": 6423906.08, "change": -2500, "category": "myanmar"},
    {"type": "15 Pae Yae", "price": 6155862.92, "change": -2000, "category": "myanmar"},
    {"type": "14 Pae 2 Pae Yae", "price": 5887840.89, "change": -1800, "category": "myanmar"},
    {"type": "14 Pae Yae", "price": 5620219.64, "change": -1500, "category": "myanmar"},
    {"type": "13 Pae Yae", "price": 5152588.40, "change": -1200, "category": "myanmar"},
    {"type": "12 Pae 2 Pae Yae", "price": 4817333.26, "change": -1000, "category": "myanmar"},
    {"type": "11 Pae Yae", "price": 4282070.72, "change": -800, "category": "myanmar"},
    {"type": "9 Pae Yae", "price": 3746805.52, "change": -600, "category": "myanmar"},
]

_FLAG_URL = "https://flagsapi.com/{country}/flat/64.png"
_DETAIL_URL = "https://hellolinker.net/rates/exchange-price/{code}"

_CURRENCY_NAMES = {
    "USD": ("US Dollar", "US"),
    "EUR": ("Euro", "EU"),
    "SGD": ("Singapore Dollar", "SG"),
    "THB": ("Thai Baht", "TH"),
    "MYR": ("Malaysian Ringgit", "MY"),
    "JPY": ("Japanese Yen", "JP"),
    "CNY": ("Chinese Yuan", "CN"),
    "WON": ("South Korean Won", "KR"),
    "GBP": ("British Pound", "GB"),
    "AUD": ("Australian Dollar", "AU"),
    "CAD": ("Canadian Dollar", "CA"),
    "NTD": ("New Taiwan Dollar", "TW"),
    "AED": ("UAE Dirham", "AE"),
    "INR": ("Indian Rupee", "IN"),
    "HKD": ("Hong Kong Dollar", "HK"),
    "MOP": ("Macanese Pataca", "MO"),
}

CURRENCY_INFO: Dict[str, Dict[str, str]] = {
    code: {
        "name": name,
        "flag": _FLAG_URL.format(country=country),
        "link": _DETAIL_URL.format(code=code.lower()),
    }
    for code, (name, country) in _CURRENCY_NAMES.items()
}

SOCIAL_LINKS: Dict[str, str] = {
    "facebook": "https://www.facebook.com/share/1AmZzeQXco/",
    "youtube": "https://youtube.com/@mmktoday",
    "telegram": "https://t.me/mmktoday",
    "tiktok": "https://www.tiktok.com/@mmktoday",
}

SOCIAL_FEED: List[Dict[str, Any]] = [
    {
        "id": "1",
        "platform": "facebook",
        "content": "Latest exchange rates update! Check out the new USD/MMK rates.",
        "link": SOCIAL_LINKS["facebook"],
        "image": "https://images.unsplash.com/photo-1526304640581-d334cdbbf45e?auto=format&fit=crop&q=80&w=500",
    },
    {
        "id": "2",
        "platform": "youtube",
        "content": "New video: Weekly Market Analysis - Gold Price Trends",
        "link": SOCIAL_LINKS["youtube"],
    },
    {
        "id": "3",
        "platform": "telegram",
        "content": "Instant alert: Significant movement in EUR/MMK exchange rate",
        "link": SOCIAL_LINKS["telegram"],
    },
]


def fallback_rates() -> List[Dict[str, str]]:
    return copy.deepcopy(FALLBACK_RATES)


def fallback_rate(code: str) -> Optional[Dict[str, str]]:
    for rate in FALLBACK_RATES:
        if rate["currency"] == code:
            return dict(rate)
    return None


def default_gold_prices(category: Optional[str] = None) -> List[Dict[str, Any]]:
    prices = copy.deepcopy(DEFAULT_GOLD_PRICES)
    if category:
        prices = [p for p in prices if p["category"] == category]
    return prices


def currency_info(code: str) -> Dict[str, str]:
    """Display metadata for a currency code; unknown codes display as themselves."""
    info = CURRENCY_INFO.get((code or "").upper())
    if info is None:
        return {"name": code, "flag": "", "link": ""}
    return dict(info)
