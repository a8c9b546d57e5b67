import pandas as pd
import pytest

from finora.quotes import YahooQuoteSource


def make_history(closes, volumes=None):
    index = pd.to_datetime(["2026-10-16", "2026-10-19"][-len(closes):])
    return pd.DataFrame({
        "Open": [c - 1 for c in closes],
        "High": [c + 2 for c in closes],
        "Low": [c - 2 for c in closes],
        "Close": closes,
        "Volume": volumes or [1000] * len(closes),
    }, index=index)


class FakeTicker:
    def __init__(self, hist, fast_info=None, history_error=None):
        self._hist = hist
        self._fast_info = fast_info if fast_info is not None else {}
        self._history_error = history_error

    def history(self, period):
        if self._history_error:
            raise self._history_error
        return self._hist

    @property
    def fast_info(self):
        if isinstance(self._fast_info, Exception):
            raise self._fast_info
        return self._fast_info


class TickerFactory:
    def __init__(self, ticker):
        self.ticker = ticker
        self.symbols = []

    def __call__(self, symbol):
        self.symbols.append(symbol)
        return self.ticker


def test_quote_from_two_day_history():
    factory = TickerFactory(FakeTicker(
        make_history([100.0, 105.0], [1500, 2500]),
        fast_info={"marketCap": 3.2e9, "yearHigh": 130.0, "yearLow": 80.0},
    ))
    quote = YahooQuoteSource(ticker_factory=factory).get_quote("aapl")

    assert factory.symbols == ["AAPL"]
    assert quote.symbol == "AAPL"
    assert quote.price == 105.0
    assert quote.previous_close == 100.0
    assert quote.change == pytest.approx(5.0)
    assert quote.change_percent == pytest.approx(5.0)
    assert quote.volume == 2500
    assert quote.high == 107.0 and quote.low == 103.0 and quote.open == 104.0
    assert quote.market_cap == 3_200_000_000
    assert quote.fifty_two_week_high == 130.0
    assert quote.timestamp.startswith("2026-10-19")


def test_single_day_history_has_no_change():
    quote = YahooQuoteSource(ticker_factory=TickerFactory(FakeTicker(make_history([50.0])))).get_quote("XYZ")
    assert quote.price == 50.0
    assert quote.previous_close is None
    assert quote.change == 0.0


@pytest.mark.parametrize("ticker", [
    FakeTicker(pd.DataFrame()),
    FakeTicker(make_history([100.0, float("nan")])),
    FakeTicker(make_history([100.0, 0.0])),
    FakeTicker(None, history_error=RuntimeError("HTTP 404")),
])
def test_unusable_data_gives_no_quote(ticker):
    assert YahooQuoteSource(ticker_factory=TickerFactory(ticker)).get_quote("BAD") is None


def test_blank_symbol_gives_no_quote():
    factory = TickerFactory(FakeTicker(make_history([1.0, 2.0])))
    assert YahooQuoteSource(ticker_factory=factory).get_quote("  ") is None
    assert factory.symbols == []


def test_missing_fundamentals_still_quotes():
    ticker = FakeTicker(make_history([10.0, 11.0]), fast_info=KeyError("marketCap"))
    quote = YahooQuoteSource(ticker_factory=TickerFactory(ticker)).get_quote("ABC")
    assert quote.price == 11.0
    assert quote.market_cap is None


def test_quotes_are_cached_for_ttl():
    now = [0.0]
    factory = TickerFactory(FakeTicker(make_history([10.0, 11.0])))
    source = YahooQuoteSource(ticker_factory=factory, cache_ttl_seconds=60, clock=lambda: now[0])

    source.get_quote("ABC")
    source.get_quote("abc")
    assert factory.symbols == ["ABC"]

    now[0] = 61.0
    source.get_quote("ABC")
    assert factory.symbols == ["ABC", "ABC"]
