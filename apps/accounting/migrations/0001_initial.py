from django.db import migrations, models
import uuid


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="AccountingConnection",
            fields=[
                ("id", models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("provider", models.CharField(choices=[("quickbooks", "QuickBooks Online")], default="quickbooks", max_length=20)),
                ("environment", models.CharField(default="sandbox", max_length=20)),
                ("realm_id", models.CharField(max_length=64)),
                ("access_token", models.TextField(blank=True)),
                ("refresh_token", models.TextField(blank=True)),
                ("token_expires_at", models.DateTimeField(blank=True, null=True)),
                ("refresh_expires_at", models.DateTimeField(blank=True, null=True)),
                ("last_sync_at", models.DateTimeField(blank=True, null=True)),
            ],
            options={
                "constraints": [
                    models.UniqueConstraint(fields=("provider", "environment"), name="uniq_accounting_conn_env"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Expense",
            fields=[
                ("id", models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("external_id", models.CharField(max_length=64, unique=True)),
                ("description", models.CharField(max_length=255)),
                ("amount_cents", models.IntegerField(default=0)),
                ("category", models.CharField(default="General Business", max_length=120)),
                ("date", models.DateField(blank=True, null=True)),
            ],
            options={
                "ordering": ["-date", "-created_at"],
            },
        ),
    ]
