from django.contrib import admin

from .models import AccountingConnection, Expense


@admin.register(AccountingConnection)
class AccountingConnectionAdmin(admin.ModelAdmin):
    list_display = ("provider", "environment", "realm_id", "token_expires_at", "last_sync_at")
    list_filter = ("provider", "environment")
    readonly_fields = ("last_sync_at", "created_at", "updated_at")
    exclude = ("access_token", "refresh_token")


@admin.register(Expense)
class ExpenseAdmin(admin.ModelAdmin):
    list_display = ("date", "description", "category", "amount_cents", "external_id")
    list_filter = ("category",)
    search_fields = ("description", "external_id")
    date_hierarchy = "date"
