"""
Runs one alerts tick from the command line, e.g. from a scheduled GitHub Action.
Fetches quotes for every stock with an active alert, stores the prices and
sends email notifications for alerts that fire.
"""
import os
import sys
from datetime import datetime, timezone
from finora.config import ALERTS_TICK_DELAY_MS, ALERTS_TICK_FAIL_FAST
from finora.jobs.tick import build_default_orchestrator
from finora.logging import log_event

def main():
    """
    Builds the default orchestrator and runs a single tick.
    Exits non-zero when the tick aborts or any stock failed.
    """
    now_utc = datetime.now(timezone.utc)
    log_event("INFO", "Startup marker", github_sha=os.getenv("GITHUB_SHA"), utc_now=str(now_utc),
              tick_delay_ms=ALERTS_TICK_DELAY_MS, fail_fast=ALERTS_TICK_FAIL_FAST)
    try:
        summary = build_default_orchestrator().run()
    except Exception as e:
        log_event("ERROR", "Alerts tick failed", error=str(e))
        return 1
    return 1 if summary.errors else 0

if __name__ == "__main__":
    sys.exit(main())
