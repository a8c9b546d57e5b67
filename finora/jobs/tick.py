"""
Alerts tick: refreshes prices for every stock with an active alert and
evaluates those alerts. One call processes each candidate stock once, in
selection order: quote, persist, evaluate, pace.
"""
import hmac
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from finora import db
from finora.alerts import AlertEvaluator
from finora.config import CRON_SECRET, ALERTS_TICK_FAIL_FAST
from finora.logging import log_event
from finora.jobs.pacing import NoDelayPacer, pacer_from_config
from finora.notifications.email import EmailNotifier
from finora.prices import PriceStore
from finora.quotes import YahooQuoteSource


class Unauthorized(Exception):
    pass


class TickInProgress(Exception):
    pass


def authorize_cron(secret, header_secret=None, query_secret=None):
    """
    True when no secret is configured, or when either the header or the query
    value matches it.
    """
    if not secret:
        return True
    return any(
        value is not None and hmac.compare_digest(str(value).encode(), str(secret).encode())
        for value in (header_secret, query_secret)
    )


@dataclass(frozen=True)
class StockRef:
    stock_id: str
    symbol: str


class ItemStatus(Enum):
    UPDATED = "updated"
    NO_DATA = "no_data"
    ERROR = "error"


@dataclass
class ItemResult:
    stock_id: str
    symbol: str
    status: ItemStatus
    alerts_triggered: int = 0
    price_stored: bool = False
    error: Optional[str] = None


@dataclass
class TickSummary:
    stocks_checked: int = 0
    prices_updated: int = 0
    alerts_triggered: int = 0
    errors: int = 0
    timestamp: Optional[datetime] = None
    results: List[ItemResult] = field(default_factory=list)

    def add(self, result):
        self.results.append(result)
        if result.price_stored:
            self.prices_updated += 1
        if result.status is ItemStatus.UPDATED:
            self.alerts_triggered += result.alerts_triggered
        elif result.status is ItemStatus.ERROR:
            self.errors += 1

    def to_dict(self):
        ts = self.timestamp or datetime.now(timezone.utc)
        return {
            "stocksChecked": self.stocks_checked,
            "pricesUpdated": self.prices_updated,
            "alertsTriggered": self.alerts_triggered,
            "errors": self.errors,
            "timestamp": ts.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
        }


def fetch_candidates():
    return [StockRef(stock_id, symbol) for stock_id, symbol in db.fetch_alert_candidates()]


class TickOrchestrator:
    def __init__(self, quote_source, price_store, alert_evaluator,
                 candidate_source=fetch_candidates, pacer=None, fail_fast=False, clock=None):
        self.quote_source = quote_source
        self.price_store = price_store
        self.alert_evaluator = alert_evaluator
        self.candidate_source = candidate_source
        self.pacer = pacer or NoDelayPacer()
        self.fail_fast = fail_fast
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def run(self) -> TickSummary:
        """
        Runs one tick. Candidate selection failures always propagate; a failing
        stock is recorded as an ERROR item unless fail_fast is set, in which
        case the exception aborts the tick with earlier stocks already committed.
        """
        candidates = list(self.candidate_source())
        summary = TickSummary(stocks_checked=len(candidates))
        log_event("INFO", "Alerts tick started", candidates=len(candidates))

        for index, stock in enumerate(candidates):
            if index:
                self.pacer.wait()
            summary.add(self.process_stock(stock))

        summary.timestamp = self._clock()
        log_event("INFO", "Alerts tick completed", **summary.to_dict())
        return summary

    def process_stock(self, stock: StockRef) -> ItemResult:
        stored = False
        try:
            quote = self.quote_source.get_quote(stock.symbol)
            if not quote:
                log_event("WARN", "No quote, skipping stock", stock_id=stock.stock_id, symbol=stock.symbol)
                return ItemResult(stock.stock_id, stock.symbol, ItemStatus.NO_DATA)

            self.price_store.update_stock_price(stock.stock_id, quote)
            stored = True
            triggers = self.alert_evaluator.check_stock_alerts(stock.stock_id)
            return ItemResult(stock.stock_id, stock.symbol, ItemStatus.UPDATED,
                              alerts_triggered=len(triggers), price_stored=True)
        except Exception as e:
            if self.fail_fast:
                log_event("ERROR", "Alerts tick aborted", stock_id=stock.stock_id, symbol=stock.symbol, error=str(e))
                raise
            log_event("ERROR", "Stock processing failed", stock_id=stock.stock_id, symbol=stock.symbol, error=str(e))
            return ItemResult(stock.stock_id, stock.symbol, ItemStatus.ERROR, price_stored=stored, error=str(e))


_tick_lock = threading.Lock()

# one per process so the quote cache survives between ticks
_quote_source = None


def default_quote_source():
    global _quote_source
    if _quote_source is None:
        _quote_source = YahooQuoteSource()
    return _quote_source


def build_default_orchestrator():
    return TickOrchestrator(
        quote_source=default_quote_source(),
        price_store=PriceStore(),
        alert_evaluator=AlertEvaluator(notifier=EmailNotifier()),
        pacer=pacer_from_config(),
        fail_fast=ALERTS_TICK_FAIL_FAST,
    )


def run_alerts_tick(header_secret=None, query_secret=None, secret=CRON_SECRET, orchestrator_factory=build_default_orchestrator):
    """
    Authorizes the caller and runs one tick. Raises Unauthorized before any
    work is done, and TickInProgress when another tick is running in this process.
    """
    if not authorize_cron(secret, header_secret, query_secret):
        log_event("WARN", "Unauthorized alerts tick request")
        raise Unauthorized()

    if not _tick_lock.acquire(blocking=False):
        log_event("WARN", "Alerts tick already running, request rejected")
        raise TickInProgress()
    try:
        return orchestrator_factory().run()
    finally:
        _tick_lock.release()
