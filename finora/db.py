from supabase import create_client
from finora.config import SUPABASE_URL, SUPABASE_KEY

_client = None


def get_supabase_client():
    global _client
    if _client is None:
        _client = create_client(SUPABASE_URL, SUPABASE_KEY)
    return _client


def set_supabase_client(client):
    """Swaps the shared client, e.g. for a fake in tests. Pass None to reset."""
    global _client
    _client = client


# PostgREST returns at most db-max-rows (1000 by default) per request
PAGE_SIZE = 1000


def _fetch_all(build_query, page_size=PAGE_SIZE):
    """Runs an ordered select page by page until a short page comes back."""
    rows = []
    start = 0
    while True:
        res = build_query().range(start, start + page_size - 1).execute()
        rows.extend(res.data)
        if len(res.data) < page_size:
            return rows
        start += page_size


def fetch_alert_candidates():
    """
    Returns the distinct (stock_id, symbol) pairs referenced by active alerts,
    in alert id order. Each stock appears once.
    """
    rows = _fetch_all(lambda: (
        get_supabase_client()
        .table("alerts")
        .select("id, stock_id, stocks!inner(symbol)")
        .eq("is_active", True)
        .order("id")
    ))
    seen = set()
    candidates = []
    for row in rows:
        stock_id = row["stock_id"]
        if stock_id in seen:
            continue
        stock = row.get("stocks") or {}
        symbol = stock.get("symbol")
        if not symbol:
            continue
        seen.add(stock_id)
        candidates.append((stock_id, symbol))
    return candidates


# stock_prices

def mark_prices_not_latest(stock_id):
    get_supabase_client().table("stock_prices").update({"is_latest": False}).eq("stock_id", stock_id).eq("is_latest", True).execute()

def insert_stock_price(data):
    res = get_supabase_client().table("stock_prices").insert(data).execute()
    return res.data[0] if res.data else data

def fetch_latest_price(stock_id):
    res = (
        get_supabase_client()
        .table("stock_prices")
        .select("*")
        .eq("stock_id", stock_id)
        .eq("is_latest", True)
        .limit(1)
        .execute()
    )
    return res.data[0] if res.data else None

def fetch_price_history(stock_id, since):
    res = (
        get_supabase_client()
        .table("stock_prices")
        .select("price, timestamp")
        .eq("stock_id", stock_id)
        .gte("timestamp", since)
        .order("timestamp", desc=True)
        .execute()
    )
    return res.data

def insert_rolling_analysis(data):
    get_supabase_client().table("rolling_analysis").insert(data).execute()


# alerts

def fetch_active_stock_alerts(stock_id):
    res = get_supabase_client().table("alerts").select("*").eq("stock_id", stock_id).eq("is_active", True).execute()
    return res.data

def mark_alert_triggered(alert_id, triggered_at, current_price):
    get_supabase_client().table("alerts").update({
        "triggered_at": triggered_at,
        "current_price": current_price,
        "is_active": False,
        "updated_at": triggered_at,
    }).eq("id", alert_id).execute()


# stocks, users, notification log

def fetch_stock(stock_id):
    res = get_supabase_client().table("stocks").select("id, symbol, name").eq("id", stock_id).limit(1).execute()
    return res.data[0] if res.data else None

def fetch_user(user_id):
    res = get_supabase_client().table("users").select("id, email, email_notifications").eq("id", user_id).limit(1).execute()
    return res.data[0] if res.data else None

def insert_notification_log(data):
    get_supabase_client().table("notification_logs").insert(data).execute()


# user_stocks maintenance

def fetch_user_stocks():
    return _fetch_all(
        lambda: get_supabase_client().table("user_stocks").select("id, user_id, stock_id, is_active").order("id")
    )

def fetch_existing_stock_ids(stock_ids):
    if not stock_ids:
        return set()
    res = get_supabase_client().table("stocks").select("id").in_("id", list(stock_ids)).execute()
    return {row["id"] for row in res.data}

def deactivate_user_stocks(ids, updated_at):
    res = get_supabase_client().table("user_stocks").update({"is_active": False, "updated_at": updated_at}).in_("id", ids).execute()
    return len(res.data)

def delete_user_stocks(ids):
    res = get_supabase_client().table("user_stocks").delete().in_("id", ids).execute()
    return len(res.data)
