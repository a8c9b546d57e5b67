from datetime import datetime, timezone

from finora import db
from finora.logging import log_event

ORPHAN_ACTIONS = ("dryRun", "deactivate", "delete")


def fix_orphans(action="dryRun"):
    """
    Finds watchlist rows (user_stocks) pointing at a stock that no longer exists.
    'dryRun' only reports them, 'deactivate' flags them inactive, 'delete' removes them.
    """
    if action not in ORPHAN_ACTIONS:
        raise ValueError(f"Unknown action: {action}")

    rows = db.fetch_user_stocks()
    existing = db.fetch_existing_stock_ids({row["stock_id"] for row in rows if row.get("stock_id")})
    orphans = [row for row in rows if row.get("stock_id") not in existing]

    affected = 0
    if orphans and action == "deactivate":
        affected = db.deactivate_user_stocks([o["id"] for o in orphans], datetime.now(timezone.utc).isoformat())
    elif orphans and action == "delete":
        affected = db.delete_user_stocks([o["id"] for o in orphans])

    log_event("INFO", "Orphaned watchlist rows checked", total=len(orphans), action=action, affected=affected)
    return {
        "totalOrphans": len(orphans),
        "action": action,
        "affected": affected,
        "sample": orphans[:10],
    }
