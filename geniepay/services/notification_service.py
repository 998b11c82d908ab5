"""
Notifications email (SMTP) et SMS (Twilio).
Les envois "best effort" ne doivent jamais faire échouer l'opération principale :
ils passent par NotificationService.best_effort() qui se contente de logger.
"""
import asyncio
import html
import logging
import smtplib
from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from geniepay.core.errors import ProviderUnavailable
from geniepay.models.subscription import Subscription

logger = logging.getLogger(__name__)

EMAIL_TEMPLATES = {
    "verification": {
        "subject": "🔐 Your GeniePay verification code",
        "html": """
<h2>Hi {name},</h2>
<p>Your verification code is:</p>
<h1 style="letter-spacing: 6px;">{code}</h1>
<p>This code is valid for {expires_minutes} minutes. Never share it with anyone.</p>
<p>If you didn't request it, you can ignore this email.</p>
""".strip(),
    },
    "welcome": {
        "subject": "🌩️ Welcome to GeniePay!",
        "html": """
<h1>Welcome {name}!</h1>
<p>Your account has been verified successfully.</p>
<p>Start managing your subscriptions with AI and blockchain automation.</p>
""".strip(),
    },
    "subscription_added": {
        "subject": "✅ {service_name} Subscription Added",
        "html": """
<h2>Subscription Added Successfully</h2>
<p><strong>Service:</strong> {service_name}</p>
<p><strong>Price:</strong> ₹{price}</p>
<p><strong>Next Renewal:</strong> {renewal_date}</p>
<p>Your payment will be automated via blockchain!</p>
""".strip(),
    },
    "subscription_cancelled": {
        "subject": "🚫 {service_name} Subscription Cancelled",
        "html": """
<h2>Subscription Cancelled</h2>
<p>Your <strong>{service_name}</strong> subscription has been cancelled successfully.</p>
<p>You will not be charged in the future.</p>
""".strip(),
    },
    "reminder": {
        "subject": "🔔 Upcoming Renewal - {service_name}",
        "html": """
<h2>Payment Reminder</h2>
<p>Your <strong>{service_name}</strong> subscription will renew soon.</p>
<p><strong>Amount:</strong> ₹{price}</p>
<p><strong>Renewal Date:</strong> {renewal_date}</p>
<p>Payment will be processed automatically via blockchain.</p>
""".strip(),
    },
    "generic": {
        "subject": "🌩️ GeniePay Notification",
        "html": "<p>This is a notification from GeniePay.</p>",
    },
}


def render(template: str, **values: Any) -> Dict[str, str]:
    tpl = EMAIL_TEMPLATES[template]
    # Valeurs saisies par l'utilisateur : échappées dans le corps HTML seulement
    escaped = {key: html.escape(str(value)) for key, value in values.items()}
    return {"subject": tpl["subject"].format(**values), "html": tpl["html"].format(**escaped)}


class EmailSender:
    def __init__(self, host: str, port: int, user: Optional[str], password: Optional[str],
                 sender_name: str = "GeniePay"):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.sender_name = sender_name

    @property
    def is_configured(self) -> bool:
        return bool(self.user and self.password)

    def _send_sync(self, to: str, subject: str, html: str) -> None:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = f'"{self.sender_name}" <{self.user}>'
        msg["To"] = to
        msg.attach(MIMEText(html, "html", "utf-8"))

        with smtplib.SMTP(self.host, self.port, timeout=30) as server:
            server.starttls()
            server.login(self.user, self.password)
            server.sendmail(self.user, to, msg.as_string())

    async def send(self, to: str, subject: str, html: str) -> None:
        if not self.is_configured:
            raise ProviderUnavailable("Email service not configured")
        try:
            # smtplib est bloquant : on l'exécute dans un thread
            await asyncio.to_thread(self._send_sync, to, subject, html)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("❌ Email error (%s): %s", to, e)
            raise ProviderUnavailable("Failed to send email") from e
        logger.info("✉️ Email sent to: %s", to)


class SmsSender:
    TWILIO_URL = "https://api.twilio.com/2010-04-01/Accounts/{sid}/Messages.json"

    def __init__(self, account_sid: Optional[str], auth_token: Optional[str], from_number: Optional[str],
                 timeout: float = 15.0):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self.timeout = timeout

    @property
    def is_configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.from_number)

    async def send(self, phone: str, message: str) -> Dict[str, Any]:
        if not self.is_configured:
            # Mode dev : pas de fournisseur SMS, le message (et donc l'OTP) part dans les logs
            logger.warning("📱 SMS (DEV MODE) to %s: %s", phone, message)
            return {"success": True, "devMode": True}

        url = self.TWILIO_URL.format(sid=self.account_sid)
        payload = {"To": phone, "From": self.from_number, "Body": message}
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(url, data=payload, auth=(self.account_sid, self.auth_token))
        except httpx.HTTPError as e:
            logger.error("❌ SMS sending failed: %s", e)
            raise ProviderUnavailable("Failed to send SMS") from e

        if response.status_code not in (200, 201):
            logger.error("❌ Twilio (%s): %s", response.status_code, response.text)
            raise ProviderUnavailable("Failed to send SMS")

        sid = response.json().get("sid")
        logger.info("✅ SMS sent successfully via Twilio: %s", sid)
        return {"success": True, "messageId": sid}


class NotificationService:
    def __init__(self, email: EmailSender, sms: SmsSender, otp_minutes: int = 10):
        self.email = email
        self.sms = sms
        self.otp_minutes = otp_minutes

    @staticmethod
    async def best_effort(send: Callable[..., Awaitable[Any]], *args: Any) -> None:
        """Exécute un envoi sans jamais propager l'erreur (BackgroundTasks)."""
        try:
            await send(*args)
        except Exception as e:
            logger.warning("⚠️ Notification non envoyée (%s): %s", getattr(send, "__name__", send), e)

    async def _send_template(self, to: str, template: str, **values: Any) -> None:
        if not self.email.is_configured:
            logger.info("Email not configured, skipping '%s' for %s", template, to)
            return
        message = render(template, **values)
        await self.email.send(to, message["subject"], message["html"])

    async def send_email_code(self, to: str, name: str, code: str) -> None:
        if not self.email.is_configured:
            logger.warning("🔐 OTP (DEV MODE) for %s: %s", to, code)
            return
        await self._send_template(to, "verification", name=name, code=code,
                                  expires_minutes=self.otp_minutes)

    async def send_phone_code(self, phone: str, code: str) -> Dict[str, Any]:
        message = f"Your GeniePay verification code is {code}. Valid for {self.otp_minutes} minutes."
        return await self.sms.send(phone, message)

    async def send_welcome(self, to: str, name: str) -> None:
        await self._send_template(to, "welcome", name=name)

    async def subscription_added(self, to: str, service_name: str, price: float, renewal_date: datetime) -> None:
        await self._send_template(to, "subscription_added", service_name=service_name,
                                  price=price, renewal_date=f"{renewal_date:%d %b %Y}")

    async def subscription_cancelled(self, to: str, service_name: str) -> None:
        await self._send_template(to, "subscription_cancelled", service_name=service_name)

    async def renewal_reminder(self, to: str, sub: Subscription) -> None:
        message = render("reminder", service_name=sub.service_name, price=sub.price,
                         renewal_date=f"{sub.renewal_date:%d %b %Y}")
        await self.email.send(to, message["subject"], message["html"])

    async def generic(self, to: str) -> None:
        message = render("generic")
        await self.email.send(to, message["subject"], message["html"])
