from django.db import models

from apps.common.models import BaseModel


class AccountingConnection(BaseModel):
    """Stored OAuth credentials for the accounting provider, one row per environment."""

    PROVIDER_QUICKBOOKS = "quickbooks"
    PROVIDER_CHOICES = [(PROVIDER_QUICKBOOKS, "QuickBooks Online")]

    provider = models.CharField(max_length=20, choices=PROVIDER_CHOICES, default=PROVIDER_QUICKBOOKS)
    environment = models.CharField(max_length=20, default="sandbox")
    realm_id = models.CharField(max_length=64)
    access_token = models.TextField(blank=True)
    refresh_token = models.TextField(blank=True)
    token_expires_at = models.DateTimeField(blank=True, null=True)
    refresh_expires_at = models.DateTimeField(blank=True, null=True)
    last_sync_at = models.DateTimeField(blank=True, null=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["provider", "environment"], name="uniq_accounting_conn_env"),
        ]

    def __str__(self):
        return f"{self.provider}:{self.environment} ({self.realm_id})"


class Expense(BaseModel):
    # Id of the Purchase in the accounting system
    external_id = models.CharField(max_length=64, unique=True)
    description = models.CharField(max_length=255)
    amount_cents = models.IntegerField(default=0)
    category = models.CharField(max_length=120, default="General Business")
    date = models.DateField(blank=True, null=True)

    class Meta:
        ordering = ["-date", "-created_at"]

    def __str__(self):
        return f"{self.description} ({self.amount_cents})"
