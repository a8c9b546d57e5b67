"""
HTTP trigger for the scheduled jobs.
A cron service calls /api/jobs/alerts-tick with the shared secret in the
x-cron-secret header or the ?secret= query parameter.
"""
import threading
import time
import traceback
from collections import deque

from flask import Flask, jsonify, request

from finora import config
from finora.logging import log_event
from finora.jobs.maintenance import fix_orphans
from finora.jobs.tick import TickInProgress, Unauthorized, authorize_cron, build_default_orchestrator, run_alerts_tick


class SlidingWindowLimiter:
    """Allows at most `limit` hits per `window` seconds for each key."""

    def __init__(self, limit, window=60.0, clock=time.monotonic):
        self.limit = limit
        self.window = window
        self._clock = clock
        self._hits = {}
        self._lock = threading.Lock()

    def allow(self, key):
        now = self._clock()
        with self._lock:
            hits = self._hits.setdefault(key, deque())
            while hits and now - hits[0] >= self.window:
                hits.popleft()
            if len(hits) >= self.limit:
                return False
            hits.append(now)
            return True


def _error(message, status):
    return jsonify({"success": False, "message": message}), status


def create_app(orchestrator_factory=None, orphan_fixer=fix_orphans, limiter=None):
    app = Flask(__name__)
    app.config["CRON_SECRET"] = config.CRON_SECRET
    limiter = limiter or SlidingWindowLimiter(config.CRON_RATE_LIMIT_PER_MINUTE)

    def authorized():
        return authorize_cron(app.config["CRON_SECRET"], request.headers.get("x-cron-secret"), request.args.get("secret"))

    def rate_limited():
        # counted per caller, and only once the caller is authorized
        return not limiter.allow((request.remote_addr, request.path))

    @app.route("/health")
    def health():
        return jsonify({"status": "ok"})

    @app.route("/api/jobs/alerts-tick", methods=["GET", "POST"])
    def alerts_tick():
        if not authorized():
            log_event("WARN", "Unauthorized alerts tick request", remote_addr=request.remote_addr)
            return _error("Unauthorized", 401)
        if rate_limited():
            return _error("Too many requests", 429)
        try:
            summary = run_alerts_tick(
                header_secret=request.headers.get("x-cron-secret"),
                query_secret=request.args.get("secret"),
                secret=app.config["CRON_SECRET"],
                orchestrator_factory=orchestrator_factory or build_default_orchestrator,
            )
        except Unauthorized:
            return _error("Unauthorized", 401)
        except TickInProgress:
            return _error("Alerts tick already running", 409)
        except Exception as e:
            log_event("ERROR", "alertsTick error", error=str(e), traceback=traceback.format_exc())
            return _error("Internal server error", 500)

        return jsonify({
            "success": True,
            "message": "Alerts tick completed",
            "data": summary.to_dict(),
        })

    @app.route("/api/jobs/maintenance/fix-orphans", methods=["GET", "POST"])
    def maintenance_fix_orphans():
        if not authorized():
            return _error("Unauthorized", 401)
        if rate_limited():
            return _error("Too many requests", 429)
        try:
            data = orphan_fixer(request.args.get("action", "dryRun"))
        except ValueError as e:
            return _error(str(e), 400)
        except Exception as e:
            log_event("ERROR", "fixOrphans error", error=str(e), traceback=traceback.format_exc())
            return _error("Internal server error", 500)
        return jsonify({"success": True, "data": data})

    return app
