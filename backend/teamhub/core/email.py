# backend/teamhub/core/email.py
from __future__ import annotations

import html
import json
import logging
import os
import smtplib
import urllib.request
import urllib.error
from email.message import EmailMessage
from typing import Optional, Sequence

from teamhub.core.config import settings

logger = logging.getLogger("teamhub.email")

DEFAULT_FROM = "Teamhub <no-reply@deco.chat>"


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    v = os.getenv(name, default)
    if v is None:
        return None
    s = str(v).strip()
    return s or None


def _truthy(v: Optional[str]) -> bool:
    if v is None:
        return False
    return str(v).strip().lower() in {"1", "true", "yes", "y", "on"}


def _send_resend(
    *,
    to_email: str,
    subject: str,
    text_body: str,
    html_body: Optional[str],
) -> None:
    """
    Send email via the Resend REST API (urllib, no extra deps).
    Settings: email_from, resend_api_key (or env RESEND_API_KEY).
    """
    api_key = settings.resend_api_key or _env("RESEND_API_KEY")
    from_email = settings.email_from or _env("EMAIL_FROM") or DEFAULT_FROM

    if not api_key:
        logger.warning("EMAIL_PROVIDER=resend but RESEND_API_KEY is not set; falling back to log mode.")
        _log_email(to_email=to_email, subject=subject, text_body=text_body, html_body=html_body)
        return

    payload = {
        "from": from_email,
        "to": [to_email],
        "subject": subject,
        "text": text_body,
    }
    if html_body:
        payload["html"] = html_body

    req = urllib.request.Request(
        url="https://api.resend.com/emails",
        data=json.dumps(payload).encode("utf-8"),
        method="POST",
        headers={
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        },
    )

    try:
        with urllib.request.urlopen(req, timeout=10) as resp:
            _ = resp.read()
        logger.info("Email sent via Resend to=%s subject=%s", to_email, subject)
    except urllib.error.HTTPError as e:
        body = ""
        try:
            body = e.read().decode("utf-8", errors="replace")
        except OSError:
            pass
        logger.error("Resend HTTPError status=%s body=%s", getattr(e, "code", None), body)
    except (urllib.error.URLError, OSError):
        logger.exception("Resend send failed")


def _send_smtp(
    *,
    to_email: str,
    subject: str,
    text_body: str,
    html_body: Optional[str],
) -> None:
    """
    SMTP mode.
    Required env vars:
      SMTP_HOST, SMTP_PORT, SMTP_USER, SMTP_PASSWORD
    Optional:
      SMTP_FROM, SMTP_USE_TLS=true|false
    """
    smtp_host = _env("SMTP_HOST")
    smtp_port = int(_env("SMTP_PORT", "587") or "587")
    smtp_user = _env("SMTP_USER")
    smtp_password = _env("SMTP_PASSWORD")
    smtp_from = _env("SMTP_FROM") or settings.email_from or DEFAULT_FROM
    use_tls = _truthy(_env("SMTP_USE_TLS", "true"))

    if (not smtp_host) or (not smtp_user) or (not smtp_password):
        logger.warning("SMTP email requested but SMTP_* env vars are not fully configured; falling back to log mode.")
        _log_email(to_email=to_email, subject=subject, text_body=text_body, html_body=html_body)
        return

    msg = EmailMessage()
    msg["From"] = smtp_from
    msg["To"] = to_email
    msg["Subject"] = subject
    msg.set_content(text_body)

    if html_body:
        msg.add_alternative(html_body, subtype="html")

    try:
        with smtplib.SMTP(smtp_host, smtp_port, timeout=10) as server:
            if use_tls:
                server.starttls()
            server.login(smtp_user, smtp_password)
            server.send_message(msg)
        logger.info("Email sent via SMTP to=%s subject=%s", to_email, subject)
    except (smtplib.SMTPException, OSError):
        logger.exception("SMTP send failed")


def _log_email(*, to_email: str, subject: str, text_body: str, html_body: Optional[str]) -> None:
    logger.info("email (log mode) to=%s subject=%s\n%s", to_email, subject, text_body)


def send_email(
    *,
    to_email: str,
    subject: str,
    text_body: str,
    html_body: Optional[str] = None,
) -> None:
    """
    Unified email send.

    Provider selection (settings.email_provider / EMAIL_PROVIDER):
      - resend -> Resend API
      - smtp   -> SMTP using SMTP_* env vars
      - log    -> write to logs

    Best-effort: never raises. An invite row is already committed when this runs.
    """
    to_email = (to_email or "").strip()
    if not to_email:
        return

    provider = (settings.email_provider or _env("EMAIL_PROVIDER") or "log").strip().lower()

    if provider == "resend":
        _send_resend(to_email=to_email, subject=subject, text_body=text_body, html_body=html_body)
        return

    if provider == "smtp":
        _send_smtp(to_email=to_email, subject=subject, text_body=text_body, html_body=html_body)
        return

    _log_email(to_email=to_email, subject=subject, text_body=text_body, html_body=html_body)


def send_invite_email(
    *,
    to_email: str,
    team_name: str,
    inviter: str,
    roles: Sequence[str],
    login_url: Optional[str] = None,
) -> None:
    """Render and send the "you were invited to a team" email."""
    login_url = login_url or settings.app_login_url
    role_list = ", ".join(r for r in roles if r) or "member"

    subject = f"{inviter} invited you to join {team_name}"
    text_body = (
        f"{inviter} invited you to join the team \"{team_name}\" as {role_list}.\n\n"
        f"Log in at {login_url} to accept the invitation.\n"
    )
    html_body = (
        f"<p><strong>{html.escape(inviter)}</strong> invited you to join the team "
        f"<strong>{html.escape(team_name)}</strong> as {html.escape(role_list)}.</p>"
        f"<p><a href=\"{html.escape(login_url, quote=True)}\">Log in to accept the invitation</a></p>"
    )

    send_email(to_email=to_email, subject=subject, text_body=text_body, html_body=html_body)
