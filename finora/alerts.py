"""
Alert evaluation against a stock's latest stored price.
Fired alerts are deactivated and handed to the notifier.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from finora import db
from finora.config import ALERT_COOLDOWN_MINUTES
from finora.logging import log_event

FIRE_AT_OR_BELOW = ("price_below", "cutoff_reached")
FIRE_AT_OR_ABOVE = ("price_above", "target_reached")


@dataclass
class AlertTrigger:
    alert_id: str
    user_id: str
    stock_id: str
    symbol: str
    alert_type: str
    target_price: float
    current_price: float
    message: str


def _parse_time(value):
    if value is None or isinstance(value, datetime):
        return value
    parsed = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def should_trigger(alert, current_price, now, cooldown=timedelta(minutes=ALERT_COOLDOWN_MINUTES)):
    """
    Checks the alert rule against the price. An alert that fired within the
    cooldown window never fires again.
    """
    triggered_at = _parse_time(alert.get('triggered_at'))
    if triggered_at is not None and now - triggered_at < cooldown:
        return False

    target = alert.get('target_price')
    if target is None:
        return False
    target = float(target)
    alert_type = alert.get('alert_type') or alert.get('type')
    if alert_type in FIRE_AT_OR_BELOW:
        return current_price <= target
    if alert_type in FIRE_AT_OR_ABOVE:
        return current_price >= target
    return False


def generate_alert_message(alert_type, symbol, name, target_price, current_price):
    label = f"{symbol} ({name})" if name else symbol
    current = f"${current_price:,.2f}"
    target = f"${target_price:,.2f}"
    if alert_type == 'price_below':
        return f"{label} has dropped to {current}, below your alert price of {target}"
    if alert_type == 'price_above':
        return f"{label} has risen to {current}, above your alert price of {target}"
    if alert_type == 'target_reached':
        return f"Target reached! {label} has reached {current}, meeting your target of {target}"
    if alert_type == 'cutoff_reached':
        return f"Cutoff alert: {label} has dropped to {current}, reaching your cutoff price of {target}"
    return f"Price alert for {symbol}: {current}"


class AlertEvaluator:
    def __init__(self, notifier=None, cooldown_minutes=ALERT_COOLDOWN_MINUTES, clock=None):
        self.notifier = notifier
        self.cooldown = timedelta(minutes=cooldown_minutes)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def check_stock_alerts(self, stock_id):
        """
        Evaluates every active alert of the stock against its latest price.
        Returns the alerts that fired; a stock without a stored price fires nothing.
        """
        latest = db.fetch_latest_price(stock_id)
        if not latest or latest.get('price') is None:
            return []
        current_price = float(latest['price'])
        now = self._clock()

        alerts = db.fetch_active_stock_alerts(stock_id)
        due = [a for a in alerts if should_trigger(a, current_price, now, self.cooldown)]
        if not due:
            return []

        stock = db.fetch_stock(stock_id) or {}
        triggers = []
        for alert in due:
            triggers.append(self._trigger(alert, stock, current_price, now))
        return triggers

    def _trigger(self, alert, stock, current_price, now):
        alert_type = alert.get('alert_type') or alert.get('type')
        target_price = float(alert['target_price'])
        symbol = stock.get('symbol', '')
        db.mark_alert_triggered(alert['id'], now.isoformat(), current_price)

        trigger = AlertTrigger(
            alert_id=alert['id'],
            user_id=alert.get('user_id'),
            stock_id=alert['stock_id'],
            symbol=symbol,
            alert_type=alert_type,
            target_price=target_price,
            current_price=current_price,
            message=generate_alert_message(alert_type, symbol, stock.get('name'), target_price, current_price),
        )
        log_event("INFO", "Alert triggered", alert_id=trigger.alert_id, symbol=symbol, alert_type=alert_type,
                  target_price=target_price, current_price=current_price)

        if self.notifier is not None:
            try:
                self.notifier.notify(trigger, stock_name=stock.get('name'))
            except Exception as e:
                log_event("ERROR", "Alert notification failed", alert_id=trigger.alert_id, error=str(e))
        return trigger
