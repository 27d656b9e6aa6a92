"""Delivery of fired alert events over email (Resend) and webhooks.

Delivery failures are soft: they are logged and the channel is left out
of the returned set. ``AlertDispatcher.dispatch`` never raises.

Webhook URLs are expected to have been vetted (no private, loopback or
metadata addresses) when the rule was saved.
"""

import html
import logging
import time
from typing import Any, Optional

import httpx

from pulse_core.config import Settings
from pulse_core.domain.schemas.alerts import AlertChannel, AlertEvent, AlertRule
from pulse_core.domain.schemas.monitoring import Brand
from pulse_core.observability.metrics import ALERT_DELIVERIES, MetricsCollector, get_collector

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"
EVENT_HEADER = "X-AIO-Pulse-Event"

DEFAULT_ACCENT = "#6366f1"

TYPE_EMOJI = {
    "mention_new": "🎯",
    "mention_lost": "⚠️",
    "sentiment_drop": "📉",
    "sentiment_spike": "📈",
    "competitor_ahead": "🏆",
    "hallucination": "🚨",
    "visibility_change": "👁️",
}

TYPE_COLOR = {
    "mention_new": "#10b981",
    "mention_lost": "#f59e0b",
    "sentiment_drop": "#ef4444",
    "sentiment_spike": "#10b981",
    "competitor_ahead": "#f59e0b",
    "hallucination": "#ef4444",
    "visibility_change": "#6366f1",
}


def build_alert_email_html(event: AlertEvent, brand: Brand, app_url: str) -> str:
    """Render the alert email. Event and brand text is HTML-escaped."""
    emoji = TYPE_EMOJI.get(event.type, "🔔")
    color = TYPE_COLOR.get(event.type, DEFAULT_ACCENT)
    brand_color = html.escape(brand.color or DEFAULT_ACCENT, quote=True)
    brand_name = html.escape(brand.name)
    type_label = html.escape(event.type.replace("_", " "))
    title = html.escape(event.title)
    message = html.escape(event.message)
    base = html.escape(app_url.rstrip("/"), quote=True)

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8" />
  <meta name="viewport" content="width=device-width, initial-scale=1.0" />
  <title>AIO Pulse Alert</title>
</head>
<body style="margin:0;padding:0;background:#080d18;font-family:-apple-system,BlinkMacSystemFont,'Segoe UI',sans-serif;">
  <div style="max-width:600px;margin:0 auto;padding:40px 20px;">
    <div style="margin-bottom:32px;">
      <span style="color:#e2e8f0;font-size:18px;font-weight:700;">AIO Pulse</span>
      <p style="color:#64748b;font-size:13px;margin:0;">AI Search Visibility Platform</p>
    </div>

    <div style="background:#0f172a;border:1px solid {color}40;border-radius:16px;padding:28px;margin-bottom:24px;">
      <div style="margin-bottom:20px;">
        <span style="font-size:28px;">{emoji}</span>
        <p style="margin:0;font-size:11px;font-weight:900;letter-spacing:0.1em;text-transform:uppercase;color:{color};">
          {type_label}
        </p>
        <h1 style="margin:4px 0 0;font-size:22px;font-weight:900;color:#f1f5f9;line-height:1.2;">
          {title}
        </h1>
      </div>

      <p style="color:#94a3b8;font-size:15px;line-height:1.6;margin:0 0 20px;">
        {message}
      </p>

      <div style="display:inline-block;background:{brand_color}15;border:1px solid {brand_color}30;border-radius:999px;padding:6px 14px;">
        <span style="color:{brand_color};font-size:13px;font-weight:700;">{brand_name}</span>
      </div>
    </div>

    <div style="text-align:center;margin-bottom:32px;">
      <a href="{base}/dashboard/monitoring" style="display:inline-block;background:#6366f1;color:white;text-decoration:none;padding:14px 32px;border-radius:12px;font-weight:700;font-size:15px;">
        View in Dashboard
      </a>
    </div>

    <div style="border-top:1px solid #1e293b;padding-top:20px;text-align:center;">
      <p style="color:#475569;font-size:12px;margin:0 0 8px;">
        You received this alert because you set up monitoring for <strong style="color:#64748b;">{brand_name}</strong>.
      </p>
      <a href="{base}/dashboard/alerts" style="color:#6366f1;font-size:12px;text-decoration:none;">
        Manage alert settings
      </a>
    </div>
  </div>
</body>
</html>"""


class AlertDispatcher:
    """Sends alert events to the channels configured on a rule."""

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        """Initialize the dispatcher.

        Args:
            settings: Resend credentials, sender address, app URL and
                delivery timeouts.
            transport: Optional httpx transport (tests use ``MockTransport``).
            metrics: Collector for delivery counters.
        """
        self.settings = settings
        self._transport = transport
        self.metrics = metrics or get_collector()

    @property
    def email_configured(self) -> bool:
        return bool(self.settings.resend_api_key)

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout, transport=self._transport)

    def _record(self, channel: str, outcome: str) -> None:
        self.metrics.increment(ALERT_DELIVERIES, labels={"channel": channel, "outcome": outcome})

    async def send_email(self, event: AlertEvent, rule: AlertRule, brand: Brand) -> bool:
        """Send the event by email. Returns False on any failure."""
        if not rule.email:
            return False
        if not self.email_configured:
            logger.warning("RESEND_API_KEY not set, skipping alert email")
            return False

        payload = {
            "from": self.settings.resend_from_email,
            "to": rule.email,
            "subject": f"{event.title} - AIO Pulse Alert",
            "html": build_alert_email_html(event, brand, self.settings.app_url),
        }
        headers = {"Authorization": f"Bearer {self.settings.resend_api_key}"}

        try:
            async with self._client(self.settings.email_timeout) as client:
                response = await client.post(RESEND_API_URL, json=payload, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"Resend request failed for rule {rule.id}: {e}")
            return False

        if not response.is_success:
            logger.error(f"Resend error {response.status_code} for rule {rule.id}: {response.text[:300]}")
            return False
        return True

    async def send_webhook(self, url: str, event: AlertEvent) -> bool:
        """POST ``{event, timestamp}`` to ``url``. Returns False on any failure."""
        body: dict[str, Any] = {
            "event": event.model_dump(mode="json"),
            "timestamp": int(time.time() * 1000),
        }
        headers = {EVENT_HEADER: event.type}

        try:
            async with self._client(self.settings.webhook_timeout) as client:
                response = await client.post(url, json=body, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"Webhook delivery to {url} failed: {e}")
            return False

        if not response.is_success:
            logger.error(f"Webhook {url} answered {response.status_code}")
            return False
        return True

    async def dispatch(self, event: AlertEvent, rule: AlertRule, brand: Brand) -> set[str]:
        """Deliver ``event`` over the rule's channels.

        Returns:
            Names of the channels that were actually delivered. Never raises.
        """
        sent: set[str] = set()
        channels = set(rule.channels)

        if AlertChannel.EMAIL.value in channels and rule.email:
            try:
                delivered = await self.send_email(event, rule, brand)
            except Exception as e:
                logger.exception(f"Unexpected error sending alert email for rule {rule.id}: {e}")
                delivered = False
            self._record(AlertChannel.EMAIL.value, "success" if delivered else "failure")
            if delivered:
                sent.add(AlertChannel.EMAIL.value)

        if AlertChannel.WEBHOOK.value in channels and rule.webhook_url:
            try:
                delivered = await self.send_webhook(rule.webhook_url, event)
            except Exception as e:
                logger.exception(f"Unexpected error sending webhook for rule {rule.id}: {e}")
                delivered = False
            self._record(AlertChannel.WEBHOOK.value, "success" if delivered else "failure")
            if delivered:
                sent.add(AlertChannel.WEBHOOK.value)

        logger.info(f"Alert {event.type} for rule {rule.id} delivered via {sorted(sent) or 'no channel'}")
        return sent
