import json
import os
import logging
from celery import shared_task
from django.utils import timezone
from django.db import transaction
from django.template import Template as DjTemplate, Context
from django.core.validators import validate_email
from django.core.exceptions import ValidationError
import requests

from .models import Notification, NotificationAttempt, Template

log = logging.getLogger(__name__)


class TransientError(Exception):
    pass


_ORDER_CONFIRMATION_HTML = """{% load currency %}<div style="font-family:Arial,sans-serif;line-height:1.6;color:#333;max-width:600px;margin:0 auto">
<div style="background:#000;color:#fff;padding:30px;text-align:center"><h1>Liberty Meal Prep</h1><p>Thank you for your order!</p></div>
<div style="background:#f9f9f9;padding:30px;border:1px solid #ddd">
<p>Hi {{ name }},</p>
<p>We've received your order and we're excited to prepare your fresh, healthy meals!</p>
<p style="font-size:20px;font-weight:bold;color:#10b981">Order #{{ order_number }}</p>
<table style="width:100%;border-collapse:collapse">
<thead><tr style="border-bottom:2px solid #e5e7eb"><th style="text-align:left;padding:12px 0">Item</th><th style="text-align:center;padding:12px 0">Qty</th><th style="text-align:right;padding:12px 0">Price</th></tr></thead>
<tbody>{% for item in items %}<tr style="border-bottom:1px solid #f3f4f6"><td style="padding:12px 0">{{ item.title }}</td><td style="text-align:center;padding:12px 0">{{ item.quantity }}</td><td style="text-align:right;padding:12px 0">{{ item.line_total_cents|usd_cents }}</td></tr>{% endfor %}</tbody>
</table>
<p><strong>Delivery Address:</strong><br>{{ address }}<br>{{ city }}, {{ state }} {{ zip }}</p>
{% if phone %}<p><strong>Phone:</strong> {{ phone }}</p>{% endif %}
{% if delivery_date %}<p><strong>Delivery Date:</strong> {{ delivery_date }}</p>{% endif %}
<p style="font-size:20px;font-weight:bold;text-align:right">Total: {{ total_cents|usd_cents }}</p>
</div></div>"""


DEFAULT_TEMPLATES = {
    ("email", "order_confirmation"): {
        "subject": "Order Confirmation #{{ order_number }} - Liberty Meal Prep",
        "body_txt": (
            "{% load currency %}Hi {{ name }},\n\n"
            "Thank you for your order #{{ order_number }}!\n\n"
            "{% for item in items %}{{ item.quantity }} x {{ item.title }} - {{ item.line_total_cents|usd_cents }}\n{% endfor %}"
            "\nTotal: {{ total_cents|usd_cents }}\n\n"
            "Delivery address: {{ address }}, {{ city }}, {{ state }} {{ zip }}\n"
            "{% if delivery_date %}Delivery date: {{ delivery_date }}\n{% endif %}"
        ),
        "body_html": _ORDER_CONFIRMATION_HTML,
    },
}


def render_template(code: str, channel: str, payload: dict) -> dict:
    """Render subject/text/html; a non-empty DB Template overrides the built-in default."""
    t = Template.objects.filter(code=code, channel=channel).first()
    default = DEFAULT_TEMPLATES.get((channel, code)) or {}
    out = {}
    for part, key in (("subject", "subject"), ("body_txt", "text"), ("body_html", "html")):
        source = getattr(t, part, "") if t else ""
        if not (source or "").strip():
            source = default.get(part, "")
        # Only the HTML body is escaped
        ctx = Context(payload or {}, autoescape=(key == "html"))
        out[key] = DjTemplate(source).render(ctx)
    return out


def _sendgrid_send_email(to_email: str, subject: str, text: str, html: str) -> dict:
    api_key = os.getenv("SENDGRID_API_KEY", "")
    from_email = os.getenv("SENDGRID_FROM_EMAIL", "")
    from_name = os.getenv("SENDGRID_FROM_NAME", "") or "Liberty Meal Prep"
    if not (api_key and from_email):
        raise TransientError("SendGrid not configured")
    url = "https://api.sendgrid.com/v3/mail/send"
    headers = {"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"}
    body = {
        "personalizations": [{"to": [{"email": to_email}]}],
        "from": {"email": from_email, "name": from_name},
        "subject": subject or "",
        "content": [
            {"type": "text/plain", "value": text or ""},
            {"type": "text/html", "value": html or ""},
        ],
    }
    resp = requests.post(url, headers=headers, data=json.dumps(body), timeout=20)
    if resp.status_code >= 500:
        raise TransientError(f"SendGrid 5xx: {resp.status_code}")
    if resp.status_code in (429,):
        raise TransientError("SendGrid rate limited")
    if resp.status_code >= 400:
        raise Exception(f"SendGrid 4xx: {resp.text}")
    # SendGrid returns 202 and may include X-Message-Id header
    msg_id = resp.headers.get("X-Message-Id")
    return {"message_id": msg_id, "raw_headers": dict(resp.headers)}


def _mark_sent(n: Notification, attempt: NotificationAttempt, *, provider: str, message_id: str, response: dict) -> None:
    n.provider = provider
    n.provider_message_id = message_id
    n.status = "sent"
    n.sent_at = timezone.now()
    n.save()
    attempt.result = "ok"
    attempt.provider_response_json = response
    attempt.finished_at = timezone.now()
    attempt.save()


@shared_task(bind=True, max_retries=5, autoretry_for=(TransientError,), retry_backoff=True, retry_backoff_max=3600)
def send_notification(self, notification_id: str):
    dev_mode = os.getenv("NOTIF_DEV_MODE", "true").lower() in ("1", "true", "yes")

    with transaction.atomic():
        try:
            n = Notification.objects.select_for_update().get(id=notification_id)
        except Notification.DoesNotExist:
            log.warning("Notification %s not found", notification_id)
            return
        if n.status not in ("queued", "processing"):
            return
        n.status = "processing"
        n.attempts = (n.attempts or 0) + 1
        n.save(update_fields=["status", "attempts", "updated_at"])

    attempt = NotificationAttempt(notification=n, started_at=timezone.now())
    try:
        if n.type != "email":
            raise Exception("invalid type")
        try:
            validate_email(n.to)
        except ValidationError:
            raise Exception("invalid email")
        ren = render_template(n.template_code, "email", n.payload_json)
        if dev_mode:
            log.info("[notifications] DEV email to %s subject=\"%s\" body_txt=\"%s\"", n.to, ren.get("subject"), ren.get("text"))
            _mark_sent(n, attempt, provider="dev", message_id="DEV", response={"dev": True})
            return
        resp = _sendgrid_send_email(n.to, ren.get("subject"), ren.get("text"), ren.get("html"))
        _mark_sent(n, attempt, provider="sendgrid", message_id=resp.get("message_id") or "", response=resp)
    except TransientError as te:
        attempt.result = "error"
        attempt.error_message = str(te)
        attempt.finished_at = timezone.now()
        attempt.save()
        # escalate to Celery autoretry
        raise
    except Exception as e:
        # Permanent failure
        log.warning("[notifications] Notification %s failed permanently: %s", n.id, e)
        n.status = "failed"
        n.error_message = str(e)
        n.save(update_fields=["status", "error_message", "updated_at"])
        attempt.result = "error"
        attempt.error_message = str(e)
        attempt.finished_at = timezone.now()
        attempt.save()
