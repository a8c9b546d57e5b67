"""
Quote source backed by Yahoo Finance.
Turns a ticker symbol into a point-in-time Quote, or None when no usable price exists.
"""
import time
from dataclasses import dataclass
from typing import Optional

import pandas as pd
import yfinance as yf

from finora.config import QUOTE_CACHE_TTL_SECONDS
from finora.logging import log_event


@dataclass
class Quote:
    symbol: str
    price: float
    change: float = 0.0
    change_percent: float = 0.0
    volume: int = 0
    high: Optional[float] = None
    low: Optional[float] = None
    open: Optional[float] = None
    previous_close: Optional[float] = None
    market_cap: Optional[int] = None
    fifty_two_week_high: Optional[float] = None
    fifty_two_week_low: Optional[float] = None
    timestamp: Optional[str] = None


def _number(value):
    """Float of value, or None for missing/NaN values."""
    if value is None:
        return None
    try:
        if pd.isna(value):
            return None
        return float(value)
    except (TypeError, ValueError):
        return None


class YahooQuoteSource:
    def __init__(self, ticker_factory=yf.Ticker, cache_ttl_seconds=QUOTE_CACHE_TTL_SECONDS, clock=time.monotonic):
        self._ticker_factory = ticker_factory
        self._cache_ttl = cache_ttl_seconds
        self._clock = clock
        self._cache = {}

    def get_quote(self, symbol: str) -> Optional[Quote]:
        """
        Fetches the latest daily bar for the symbol.
        Provider errors, unknown symbols and empty responses all come back as None.
        """
        symbol = (symbol or "").strip().upper()
        if not symbol:
            return None

        cached = self._cache.get(symbol)
        if cached and cached[0] > self._clock():
            return cached[1]

        try:
            ticker = self._ticker_factory(symbol)
            hist = ticker.history(period="2d")
        except Exception as e:
            log_event("ERROR", "Quote fetch failed", symbol=symbol, error=str(e))
            return None

        if hist is None or hist.empty or "Close" not in hist:
            log_event("WARN", "No price data returned", symbol=symbol)
            return None

        last = hist.iloc[-1]
        price = _number(last.get("Close"))
        if price is None or price <= 0:
            log_event("WARN", "Invalid price in quote data", symbol=symbol)
            return None

        previous_close = _number(hist["Close"].iloc[-2]) if len(hist) > 1 else None
        change = price - previous_close if previous_close else 0.0
        change_percent = (change / previous_close * 100) if previous_close else 0.0
        volume = _number(last.get("Volume"))

        quote = Quote(
            symbol=symbol,
            price=price,
            change=change,
            change_percent=change_percent,
            volume=int(volume) if volume is not None else 0,
            high=_number(last.get("High")),
            low=_number(last.get("Low")),
            open=_number(last.get("Open")),
            previous_close=previous_close,
            timestamp=pd.Timestamp(hist.index[-1]).isoformat(),
        )
        self._add_fundamentals(ticker, quote)

        if self._cache_ttl > 0:
            self._cache[symbol] = (self._clock() + self._cache_ttl, quote)
        return quote

    def _add_fundamentals(self, ticker, quote):
        # fast_info is best effort; a quote without it is still valid
        try:
            info = ticker.fast_info
            market_cap = _number(info.get("marketCap"))
            quote.market_cap = int(market_cap) if market_cap is not None else None
            quote.fifty_two_week_high = _number(info.get("yearHigh"))
            quote.fifty_two_week_low = _number(info.get("yearLow"))
        except Exception as e:
            log_event("WARN", "Fundamentals unavailable", symbol=quote.symbol, error=str(e))
