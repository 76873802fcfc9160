from __future__ import annotations

import logging
from typing import Optional

from django.db import transaction

from .models import Notification
from .tasks import send_notification

log = logging.getLogger(__name__)


def enqueue(*, type: str, to: str, template_code: str, payload: dict, idempotency_key: Optional[str] = None) -> Notification:
    """Persist a queued notification and hand it to the worker after commit."""
    n = Notification(
        type=type,
        to=to,
        template_code=template_code,
        payload_json=payload or {},
        status="queued",
    )
    if idempotency_key:
        n.idempotency_key = idempotency_key
    n.save()
    log.info("[notifications] Queued %s %s to %s id=%s", type, template_code, to, n.id)

    def _dispatch():
        send_notification.delay(str(n.id))

    transaction.on_commit(_dispatch)
    return n
