import smtplib
from datetime import datetime, timezone
from email.mime.text import MIMEText
from finora import db
from finora.logging import log_event
from finora.config import EMAIL_USER, EMAIL_PASS, SMTP_HOST, SMTP_PORT
from finora.notifications.email_template import prepare_alert_email_body


def send_email(to_email, subject, body, smtp_factory=smtplib.SMTP):
    """
    Sends an HTML email to the specified recipient.
    Returns (sent, error); SMTP failures are logged, not raised.
    """
    if not EMAIL_USER or not EMAIL_PASS:
        log_event("WARN", "SMTP credentials not configured, skipping email", to=to_email, subject=subject)
        return False, "smtp not configured"
    log_event("INFO", "Preparing to send email", to=to_email, subject=subject)
    msg = MIMEText(body, "html")
    msg['Subject'] = subject
    msg['From'] = EMAIL_USER
    msg['To'] = to_email
    try:
        with smtp_factory(SMTP_HOST, SMTP_PORT) as server:
            server.starttls()
            server.login(EMAIL_USER, EMAIL_PASS)
            server.sendmail(EMAIL_USER, [to_email], msg.as_string())
            log_event("INFO", "Email sent", to=to_email, subject=subject)
        return True, None
    except Exception as e:
        log_event("ERROR", f"Failed to send email to {to_email}", error=str(e))
        return False, str(e)


class EmailNotifier:
    """Emails fired alerts to their owner and records each attempt in notification_logs."""

    def __init__(self, sender=send_email):
        self.sender = sender

    def notify(self, trigger, stock_name=None):
        user = db.fetch_user(trigger.user_id)
        if not user or not user.get('email'):
            log_event("WARN", "No email on file for alert owner", user_id=trigger.user_id, alert_id=trigger.alert_id)
            return False
        if not user.get('email_notifications', True):
            log_event("INFO", "Email notifications disabled", user_id=trigger.user_id, alert_id=trigger.alert_id)
            return False

        subject = f"Price alert: {trigger.symbol} | Finora"
        body = prepare_alert_email_body(trigger, stock_name)
        sent, error = self.sender(user['email'], subject, body)
        db.insert_notification_log({
            "user_id": trigger.user_id,
            "title": subject,
            "body": trigger.message,
            "data": {
                "type": "price_alert",
                "channel": "email",
                "alert_id": trigger.alert_id,
                "stock_id": trigger.stock_id,
                "symbol": trigger.symbol,
            },
            "success": sent,
            "error": error,
            "created_at": datetime.now(timezone.utc).isoformat(),
        })
        return sent
