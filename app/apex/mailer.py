"""
Outbound email over SMTP (STARTTLS).

Sending never raises; delivery problems are logged.
"""
from __future__ import annotations

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr

from flask import current_app

logger = logging.getLogger(__name__)


def _smtp_settings() -> dict:
    cfg = current_app.config
    return {
        "host": (cfg.get("SMTP_HOST") or "").strip(),
        "port": int(cfg.get("SMTP_PORT") or 587),
        "user": (cfg.get("SMTP_USER") or "").strip(),
        "password": cfg.get("SMTP_PASS") or "",
        "from_name": cfg.get("MAIL_FROM_NAME") or "Apex",
    }


def build_message(to: str, subject: str, text: str, html: str | None, *, sender: str) -> MIMEMultipart:
    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = sender
    msg["To"] = to
    msg.attach(MIMEText(text, "plain", "utf-8"))
    if html:
        msg.attach(MIMEText(html, "html", "utf-8"))
    return msg


def send_email(to: str, subject: str, text: str, html: str | None = None) -> bool:
    """Send one email. Returns True when handed to the SMTP server."""
    if not to:
        return False
    settings = _smtp_settings()
    if not settings["host"] or not settings["user"] or not settings["password"]:
        logger.info("SMTP not configured; email not sent. to=%s subject=%r\n%s", to, subject, text)
        return False

    sender = formataddr((settings["from_name"], settings["user"]))
    msg = build_message(to, subject, text, html, sender=sender)
    try:
        with smtplib.SMTP(settings["host"], settings["port"], timeout=30) as server:
            server.starttls()
            server.login(settings["user"], settings["password"])
            server.sendmail(settings["user"], [to], msg.as_string())
        logger.info("Email sent to %s (subject=%r)", to, subject)
        return True
    except (smtplib.SMTPException, OSError) as e:
        logger.error("Failed to send email to %s (subject=%r): %s", to, subject, e)
        return False
