from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache

from django.conf import settings
from django.core.signals import setting_changed
from django.dispatch import receiver

from .zones import SCOTTSDALE_SERVICE_ZIPS


@dataclass(frozen=True)
class PipelineConfig:
    """Process-wide configuration for the order pipeline.

    Built once from Django settings (which read the environment at startup)
    and handed to the services explicitly, so tests can inject their own.
    """

    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""
    currency: str = "usd"
    site_url: str = "http://localhost:3000"
    service_zips: frozenset[str] = field(default=SCOTTSDALE_SERVICE_ZIPS)
    minimum_order_quantity: int = 10
    recaptcha_secret_key: str = ""
    order_number_prefix: str = "LMP"
    order_number_max_attempts: int = 3

    @classmethod
    def from_settings(cls) -> "PipelineConfig":
        zips = frozenset(getattr(settings, "ORDER_SERVICE_ZIPS", None) or ()) or SCOTTSDALE_SERVICE_ZIPS
        return cls(
            stripe_secret_key=getattr(settings, "STRIPE_SECRET_KEY", ""),
            stripe_webhook_secret=getattr(settings, "STRIPE_WEBHOOK_SECRET", ""),
            currency=getattr(settings, "DEFAULT_CURRENCY", "usd"),
            site_url=getattr(settings, "SITE_URL", "http://localhost:3000").rstrip("/"),
            service_zips=zips,
            minimum_order_quantity=int(getattr(settings, "ORDER_MINIMUM_QUANTITY", 10)),
            recaptcha_secret_key=getattr(settings, "RECAPTCHA_SECRET_KEY", ""),
            order_number_prefix=getattr(settings, "ORDER_NUMBER_PREFIX", "LMP"),
            order_number_max_attempts=max(1, int(getattr(settings, "ORDER_NUMBER_MAX_ATTEMPTS", 3))),
        )


@lru_cache(maxsize=1)
def get_config() -> PipelineConfig:
    return PipelineConfig.from_settings()


@receiver(setting_changed)
def _reset_config(**kwargs):
    get_config.cache_clear()
