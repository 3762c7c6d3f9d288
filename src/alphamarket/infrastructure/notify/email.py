# src/alphamarket/infrastructure/notify/email.py
"""SendGrid v3 mail client (HTTP API, no SDK)."""

import html
import logging
from typing import Any, Dict, Optional

import httpx

log = logging.getLogger(__name__)

SENDGRID_URL = "https://api.sendgrid.com/v3/mail/send"


class SendGridMailer:
    def __init__(
        self,
        api_key: Optional[str],
        from_email: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10.0,
    ):
        self.api_key = api_key
        self.from_email = from_email
        self._transport = transport
        self._timeout = timeout

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def send(self, to_email: str, subject: str, html_body: str) -> Dict[str, Any]:
        """
        Send one HTML email. Never raises: returns
        {"status": "sent", "message_id": ...} or {"status": "failed", "error": ...}.
        """
        if not self.is_configured:
            log.warning("SendGrid API key not configured; email not sent")
            return {"status": "failed", "error": "SendGrid not configured"}

        data = {
            "personalizations": [{"to": [{"email": to_email}], "subject": subject}],
            "from": {"email": self.from_email},
            "content": [{"type": "text/html", "value": html_body}],
        }
        headers = {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self._timeout) as client:
                response = await client.post(SENDGRID_URL, json=data, headers=headers)
        except httpx.HTTPError as e:
            log.error(f"SendGrid request failed: {e}")
            return {"status": "failed", "error": str(e)}

        if response.status_code == 202:
            return {"status": "sent", "message_id": response.headers.get("X-Message-Id", "unknown")}
        log.error(f"SendGrid error: {response.status_code}")
        return {"status": "failed", "error": f"SendGrid error: {response.status_code} - {response.text}"}


# --- Templates ---

def _row(label: str, value: Any) -> str:
    return (
        '<tr><td style="padding: 8px; border: 1px solid #ddd; font-weight: bold;">'
        f"{label}</td>"
        f'<td style="padding: 8px; border: 1px solid #ddd;">{html.escape(str(value))}</td></tr>'
    )


def registration_email(user: Dict[str, Any]) -> tuple[str, str]:
    is_advisor = user.get("role") == "advisor"
    username = user.get("username") or ""
    if is_advisor:
        subject = f"New Advisor Registration: {user.get('company_name') or username}"
    else:
        subject = f"New Investor Registration: {username}"

    rows = [
        _row("Username", username),
        _row("Email", user.get("email") or ""),
        _row("Phone", user.get("phone") or "N/A"),
        _row("Role", user.get("role") or ""),
    ]
    if is_advisor:
        rows += [
            _row("Company", user.get("company_name") or "N/A"),
            _row("SEBI Reg Number", user.get("sebi_reg_number") or "N/A"),
            _row("Certificate", "Uploaded" if user.get("sebi_cert_url") else "Not uploaded"),
        ]

    body = (
        f"<h2>New {'Advisor' if is_advisor else 'Investor'} Registration on AlphaMarket</h2>"
        '<table style="border-collapse: collapse; width: 100%; max-width: 500px;">'
        + "".join(rows)
        + "</table>"
    )
    if is_advisor:
        body += (
            '<p style="margin-top: 16px; color: #b45309;">This advisor requires admin approval before '
            "their profile becomes public. Please log in to the Admin Panel to review.</p>"
        )
    return subject, body


def password_reset_email(username: str, reset_url: str, ttl_minutes: int) -> tuple[str, str]:
    subject = "Reset your AlphaMarket password"
    body = (
        f"<p>Hi {html.escape(username)},</p>"
        "<p>We received a request to reset your password. Use the link below to choose a new one:</p>"
        f'<p><a href="{html.escape(reset_url)}">{html.escape(reset_url)}</a></p>'
        f"<p>This link expires in {ttl_minutes} minutes. If you did not ask for a reset, ignore this email.</p>"
    )
    return subject, body
