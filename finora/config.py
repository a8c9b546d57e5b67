import os
from dotenv import load_dotenv

load_dotenv()


def _env(name, default):
    # blank values in .env count as unset
    value = os.environ.get(name)
    return value if value not in (None, "") else default


SUPABASE_URL = os.environ.get('SUPABASE_URL')
SUPABASE_KEY = os.environ.get('SUPABASE_KEY')
EMAIL_USER = os.environ.get('EMAIL_USER')
EMAIL_PASS = os.environ.get('EMAIL_PASS')

SMTP_HOST = _env('SMTP_HOST', 'smtp.gmail.com')
SMTP_PORT = int(_env('SMTP_PORT', "587"))

# Either name works; an empty value leaves the job endpoints open.
CRON_SECRET = os.environ.get('CRON_SECRET') or os.environ.get('JOBS_CRON_SECRET') or None

ALERTS_TICK_DELAY_MS = int(_env("ALERTS_TICK_DELAY_MS", "250"))
ALERTS_TICK_RATE_PER_SECOND = float(_env("ALERTS_TICK_RATE_PER_SECOND", "0")) or None
ALERTS_TICK_FAIL_FAST = _env("ALERTS_TICK_FAIL_FAST", "false").lower() in ("1", "true", "yes")
ALERT_COOLDOWN_MINUTES = int(_env("ALERT_COOLDOWN_MINUTES", "60"))
QUOTE_CACHE_TTL_SECONDS = int(_env("QUOTE_CACHE_TTL_SECONDS", "60"))
CRON_RATE_LIMIT_PER_MINUTE = int(_env("CRON_RATE_LIMIT_PER_MINUTE", "4"))
PORT = int(_env("PORT", "8000"))
