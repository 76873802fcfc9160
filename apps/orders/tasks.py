import logging

from celery import shared_task

from .services import materialize_deliveries

log = logging.getLogger(__name__)


@shared_task
def create_missing_deliveries():
    """Periodic sweep: every PAID order without a delivery gets one."""
    count = materialize_deliveries()
    if count:
        log.info("[orders] Sweep created %s missing delivery record(s)", count)
    return {"created": count}
