from datetime import datetime, timedelta, timezone

import pandas as pd

from finora import db
from finora.logging import log_event

WINDOWS = {"52w": 364, "24w": 168, "12w": 84}


def _pct(numerator, denominator):
    if not denominator:
        return None
    return round(numerator / denominator * 100, 4)


def compute_rolling_analysis(prices_df, now):
    """
    Computes rolling lows/highs over the 52, 24 and 12 week windows from a
    frame with 'price' and 'timestamp' columns. The newest row is the current price.
    Returns None for an empty frame.
    """
    if prices_df is None or prices_df.empty:
        return None

    df = prices_df.copy()
    df["timestamp"] = pd.to_datetime(df["timestamp"], utc=True)
    df["price"] = pd.to_numeric(df["price"], errors="coerce")
    df = df.dropna(subset=["price"]).sort_values("timestamp")
    if df.empty:
        return None

    current_price = float(df["price"].iloc[-1])
    now = pd.Timestamp(now)
    if now.tzinfo is None:
        now = now.tz_localize("UTC")
    analysis = {"current_price": current_price}
    for label, days in WINDOWS.items():
        window = df[df["timestamp"] >= now - pd.Timedelta(days=days)]["price"]
        if window.empty:
            window = df["price"].iloc[-1:]
        low = float(window.min())
        high = float(window.max())
        analysis[f"week_{label[:-1]}_low"] = low
        analysis[f"week_{label[:-1]}_high"] = high
        analysis[f"percent_above_{label}_low"] = _pct(current_price - low, current_price)
        analysis[f"percent_below_{label}_high"] = _pct(high - current_price, high)
    return analysis


class PriceStore:
    """Persists quotes as price rows; each call produces exactly one new latest row."""

    def update_stock_price(self, stock_id, quote):
        now = datetime.now(timezone.utc).isoformat()
        data = {
            "stock_id": stock_id,
            "price": quote.price,
            "change": quote.change,
            "change_percent": quote.change_percent,
            "volume": quote.volume,
            "market_cap": quote.market_cap,
            "day_high": quote.high,
            "day_low": quote.low,
            "week_52_high": quote.fifty_two_week_high,
            "week_52_low": quote.fifty_two_week_low,
            "previous_close": quote.previous_close,
            "source": "yahoo",
            "timestamp": now,
            "is_latest": True,
        }
        db.mark_prices_not_latest(stock_id)
        row = db.insert_stock_price(data)
        self.update_rolling_analysis(stock_id)
        return row

    def update_rolling_analysis(self, stock_id):
        now = datetime.now(timezone.utc)
        since = (now - timedelta(days=365)).isoformat()
        history = db.fetch_price_history(stock_id, since)
        analysis = compute_rolling_analysis(pd.DataFrame(history), now)
        if analysis is None:
            log_event("INFO", "No price history for rolling analysis", stock_id=stock_id)
            return None
        analysis.update({"stock_id": stock_id, "calculated_at": now.isoformat()})
        db.insert_rolling_analysis(analysis)
        return analysis
