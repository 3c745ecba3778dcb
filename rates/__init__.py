"""
Exchange-rate and gold-price domain package.

Holds the display records, the canned defaults and the upstream rate sources
used by the HTTP server.
"""

from .defaults import FALLBACK_RATES, fallback_rates
from .sources import RateFetcher, RateResult


__all__ = ["FALLBACK_RATES", "fallback_rates", "RateFetcher", "RateResult"]
